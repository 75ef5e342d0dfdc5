"""
GenPay REST adapter.

Every POST carries a ``Signature`` header computed over the exact body
bytes; GETs only carry basic auth. Charge, cancel and refund return the raw
:class:`GatewayResponse` so the caller can act on each failure tier, the
lookups raise instead.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional

import httpx

from application.dtos.payments import ChargeRequest, GatewayResponse, RefundRequest
from core.logging_config import get_logger
from core.settings import GenPayConfig, GENPAY_PRODUCTION_URL, GENPAY_SANDBOX_URL
from domain.common.exceptions import NoMatchingInstallmentPlanException
from domain.payment.entity import RefundKind
from infrastructure.external.payments.base import SignedGatewayClient
from infrastructure.external.payments.exceptions import GatewayTransportError
from infrastructure.external.payments.signing import basic_auth, verify


logger = get_logger(__name__)


class GenPayClient(SignedGatewayClient):
    provider = "genpay"

    def __init__(
        self,
        config: GenPayConfig,
        *,
        timeouts: Optional[dict[str, float]] = None,
        retry: Optional[dict[str, Any]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__(
            base_url=config.base_url,
            document=config.document,
            api_key=config.api_key,
            signature_key=config.signature_key,
            timeouts=timeouts,
            retry=retry,
            transport=transport,
        )
        self.config = config

    def verify_signature(self, body: bytes, signature: Optional[str]) -> bool:
        return verify(self.config.signature_key, body, signature)

    async def charge(self, req: ChargeRequest) -> GatewayResponse:
        self._log("genpay_charge_request", reference=req.reference, amount=str(req.amount))
        return await self.post("charges", req.to_wire())

    async def cancel(self, transaction_id: str) -> GatewayResponse:
        self._log("genpay_cancel_request", transaction_id=transaction_id)
        # The gateway expects an empty JSON list as the signed cancel body
        return await self.post(f"charges/{transaction_id}/cancel", [])

    async def refund(self, transaction_id: str, kind: RefundKind, req: RefundRequest) -> GatewayResponse:
        route = "refund" if kind == RefundKind.TOTAL else "refund_partial"
        self._log("genpay_refund_request", transaction_id=transaction_id, kind=kind.value, amount=str(req.amount))
        return await self.post(f"charges/{transaction_id}/{route}", req.to_wire())

    async def get_transaction(self, transaction_id: str) -> dict[str, Any]:
        response = await self.get(f"charges/{transaction_id}")
        return self.ensure_success(response).body

    async def get_installments(self, amount: Decimal) -> list[dict[str, Any]]:
        """Installment table of the ``credit_card`` method for ``amount``."""
        response = await self.get("checkout", params={"amount": float(amount)})
        body = self.ensure_success(response).body
        methods = [p for p in body.get("payments") or [] if isinstance(p, dict) and p.get("method") == "credit_card"]
        if not methods or not methods[0].get("installments"):
            raise NoMatchingInstallmentPlanException(amount=str(amount))
        return list(methods[0]["installments"])

    async def billet_download(self, transaction_id: str) -> str:
        response = await self.get(f"charges/{transaction_id}/billet/download")
        return str(self.ensure_success(response).body.get("html") or "")

    async def verify_credentials(self, document: str, api_key: str, environment: str) -> int:
        """Probe ``GET charges`` with the given credentials; returns the HTTP status."""
        base_url = GENPAY_PRODUCTION_URL if environment == "production" else GENPAY_SANDBOX_URL
        headers = {
            "Authorization": basic_auth(document, api_key),
            "Content-Type": "application/json",
            "Cache-Control": "no-cache",
        }
        try:
            async with self.client() as client:
                response = await client.get(f"{base_url}charges", headers=headers)
        except httpx.TransportError as exc:
            raise GatewayTransportError(
                f"{self.provider} unreachable: {exc.__class__.__name__}",
                provider=self.provider,
                endpoint="charges",
            ) from exc
        self._log("genpay_credentials_probe", environment=environment, status_code=response.status_code)
        return response.status_code
