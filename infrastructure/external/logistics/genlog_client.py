"""
GenLog (logistics partner) REST adapter.

Same signing and basic-auth discipline as the payment gateway; every
failure tier surfaces as LogisticsError.
"""
from __future__ import annotations

from typing import Any, Optional

import httpx

from core.logging_config import get_logger
from core.settings import GenLogConfig
from domain.order.entity import ShipmentTracking
from infrastructure.external.payments.base import SignedGatewayClient
from infrastructure.external.payments.exceptions import GatewayTransportError, LogisticsError


logger = get_logger(__name__)


class GenLogClient(SignedGatewayClient):
    provider = "genlog"

    def __init__(
        self,
        config: GenLogConfig,
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

    async def create_calculation(self, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            response = await self.post("calculation", payload)
        except GatewayTransportError as exc:
            raise LogisticsError(exc.message) from exc
        if not response.ok or response.is_business_failure:
            raise LogisticsError(
                "Shipping calculation failed",
                messages=response.error_messages(),
                details={"status_code": response.status_code},
            )
        return response.body

    async def create_batch(self, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            response = await self.post("batch", payload)
        except GatewayTransportError as exc:
            raise LogisticsError(exc.message) from exc
        if not response.ok:
            raise LogisticsError(
                "Shipping batch was rejected",
                messages=list(response.body.get("messages") or []),
                details={"status_code": response.status_code},
            )
        if response.body.get("status") == "ERROR":
            raise LogisticsError(
                "Shipping batch was rejected",
                messages=list(response.body.get("messages") or []),
            )
        return response.body

    async def get_order(self, order_id: int | str) -> Optional[ShipmentTracking]:
        """Tracking data of a dispatched order; None until the batch is ready."""
        try:
            response = await self.get(f"order/{order_id}")
        except GatewayTransportError as exc:
            raise LogisticsError(exc.message) from exc
        body = response.body
        if not response.ok or body.get("status") != "OK":
            logger.info("genlog_order_not_ready", order_id=order_id, status_code=response.status_code)
            return None
        return self.parse_tracking(body.get("content") or {})

    @staticmethod
    def parse_tracking(content: dict[str, Any]) -> ShipmentTracking:
        trackings = content.get("trackings_number") or []
        volumes = (content.get("shipping_option") or {}).get("volumes") or []
        volume = volumes[0].get("number") if volumes and isinstance(volumes[0], dict) else None
        return ShipmentTracking(
            tracking_code=trackings[0] if trackings else None,
            tracking_url=content.get("tracking_print_url"),
            print_url=content.get("batch_print_url"),
            batch_code=content.get("batch_code"),
            volume=str(volume) if volume is not None else None,
        )
