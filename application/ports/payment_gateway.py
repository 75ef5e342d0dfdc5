"""
Payment gateway port (application/ports) exposing a replaceable protocol.

Application depends on this Protocol; infrastructure implements adapters.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional, Protocol, runtime_checkable

from application.dtos.payments import ChargeRequest, GatewayResponse, RefundRequest
from domain.order.entity import ShipmentTracking
from domain.payment.entity import RefundKind


@runtime_checkable
class PaymentGateway(Protocol):
    """Gateway protocol for the charge/refund provider.

    Transport failures raise; HTTP and business failures of mutating calls
    come back in the returned response.
    """

    provider: str

    def verify_signature(self, body: bytes, signature: Optional[str]) -> bool: ...

    async def charge(self, req: ChargeRequest) -> GatewayResponse: ...

    async def cancel(self, transaction_id: str) -> GatewayResponse: ...

    async def refund(self, transaction_id: str, kind: RefundKind, req: RefundRequest) -> GatewayResponse: ...

    async def get_transaction(self, transaction_id: str) -> dict[str, Any]: ...

    async def get_installments(self, amount: Decimal) -> list[dict[str, Any]]: ...

    async def billet_download(self, transaction_id: str) -> str: ...

    async def verify_credentials(self, document: str, api_key: str, environment: str) -> int: ...


@runtime_checkable
class LogisticsGateway(Protocol):
    provider: str

    async def create_calculation(self, payload: dict[str, Any]) -> dict[str, Any]: ...

    async def create_batch(self, payload: dict[str, Any]) -> dict[str, Any]: ...

    async def get_order(self, order_id: int | str) -> Optional[ShipmentTracking]: ...
