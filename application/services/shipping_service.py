"""
Application service for the logistics partner: quotes and shipment batches.
"""
from __future__ import annotations

from typing import Any, Callable, Optional

from application.ports.order_lock import OrderLockProvider
from application.ports.payment_gateway import LogisticsGateway
from core.logging_config import get_logger
from domain.common.exceptions import OrderNotFoundException
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.order.entity import ShipmentTracking


logger = get_logger(__name__)


class ShippingService:
    def __init__(
        self,
        logistics: LogisticsGateway,
        *,
        uow_factory: Callable[..., AbstractUnitOfWork],
        locks: OrderLockProvider,
    ) -> None:
        self.logistics = logistics
        self.uow_factory = uow_factory
        self.locks = locks

    async def quote(self, payload: dict[str, Any]) -> dict[str, Any]:
        return await self.logistics.create_calculation(payload)

    async def dispatch_batch(self, order_id: int, payload: dict[str, Any]) -> Optional[ShipmentTracking]:
        """
        Post the shipment batch, then store the tracking data on the order.

        Returns None when the partner has not produced tracking data yet.
        """
        async with self.locks.lock(order_id):
            async with self.uow_factory() as uow:
                order = await uow.order_repository.get_by_id(order_id)
                if order is None:
                    raise OrderNotFoundException(order_id)

                batch = await self.logistics.create_batch(payload)
                tracking = await self.logistics.get_order(order_id)
                if tracking is None:
                    logger.info("shipment_batch_pending", order_id=order_id, batch_status=batch.get("status"))
                    return None

                order.metadata.update(tracking.as_metadata())
                if tracking.tracking_code:
                    order.add_note(f"GenLog: Shipment dispatched, tracking code {tracking.tracking_code}.")
                await uow.order_repository.update(order)

        logger.info("shipment_batch_dispatched", order_id=order_id, batch_code=tracking.batch_code)
        return tracking
