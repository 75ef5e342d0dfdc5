"""
Order repository backed by SQLAlchemy
"""
from typing import Optional
from decimal import Decimal
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.orm.exc import StaleDataError

from domain.common.exceptions import ConcurrentModificationException, OrderNotFoundException
from domain.order.entity import (
    Address,
    BillingContact,
    Category,
    Order,
    OrderItem,
    OrderRefund,
    OrderStatus,
    PaymentMethodKind,
    ShippingLine,
)
from domain.order.repository import OrderRepository
from infrastructure.models.order import OrderModel, OrderRefundModel
from core.logging_config import get_logger


logger = get_logger(__name__)


def _address_to_dict(address: Optional[Address]) -> Optional[dict]:
    if address is None:
        return None
    return dict(address.__dict__)


def _address_from_dict(data: Optional[dict]) -> Optional[Address]:
    if not data:
        return None
    return Address(**data)


def _item_to_dict(item: OrderItem) -> dict:
    return {
        "product_id": item.product_id,
        "name": item.name,
        "unit_price": str(item.unit_price),
        "quantity": item.quantity,
        "total": str(item.total),
        "sku": item.sku,
        "categories": [{"id": c.id, "name": c.name} for c in item.categories],
    }


def _item_from_dict(data: dict) -> OrderItem:
    return OrderItem(
        product_id=data["product_id"],
        name=data["name"],
        unit_price=Decimal(str(data["unit_price"])),
        quantity=data["quantity"],
        total=Decimal(str(data["total"])),
        sku=data.get("sku"),
        categories=[Category(id=c["id"], name=c["name"]) for c in data.get("categories") or []],
    )


class SQLAlchemyOrderRepository(OrderRepository):
    """SQLAlchemy implementation of the order repository."""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: OrderModel) -> Order:
        """Map the ORM model to the domain entity."""
        shipping_line = ShippingLine(**model.shipping_line) if model.shipping_line else None
        return Order(
            id=model.id,
            number=model.number,
            status=OrderStatus(model.status),
            payment_method=PaymentMethodKind(model.payment_method),
            total=Decimal(str(model.total)),
            billing=BillingContact(**model.billing),
            billing_address=_address_from_dict(model.billing_address),
            shipping_address=_address_from_dict(model.shipping_address),
            currency=model.currency,
            subtotal=Decimal(str(model.subtotal)),
            shipping_total=Decimal(str(model.shipping_total)),
            total_tax=Decimal(str(model.total_tax)),
            discount_total=Decimal(str(model.discount_total)),
            customer_ip=model.customer_ip,
            items=[_item_from_dict(i) for i in model.items or []],
            shipping_line=shipping_line,
            refunds=[self._refund_to_entity(r) for r in model.refunds],
            notes=list(model.notes or []),
            paid_at=model.paid_at,
            metadata=dict(model.extra_metadata or {}),
            version=model.version,
        )

    @staticmethod
    def _refund_to_entity(model: OrderRefundModel) -> OrderRefund:
        return OrderRefund(
            id=model.id,
            amount=Decimal(str(model.amount)),
            reason=model.reason or "",
            refund_payment=model.refund_payment,
            restock_items=model.restock_items,
            gateway_refund_id=model.gateway_refund_id,
            created_at=model.created_at,
        )

    @staticmethod
    def _refund_to_model(refund: OrderRefund) -> OrderRefundModel:
        return OrderRefundModel(
            amount=refund.amount,
            reason=refund.reason,
            refund_payment=refund.refund_payment,
            restock_items=refund.restock_items,
            gateway_refund_id=refund.gateway_refund_id,
            created_at=refund.created_at,
        )

    def _to_model(self, entity: Order) -> OrderModel:
        """Map the domain entity to an ORM model."""
        return OrderModel(
            id=entity.id,
            number=entity.number,
            status=entity.status.value,
            payment_method=entity.payment_method.value,
            currency=entity.currency,
            total=entity.total,
            subtotal=entity.subtotal,
            shipping_total=entity.shipping_total,
            total_tax=entity.total_tax,
            discount_total=entity.discount_total,
            customer_ip=entity.customer_ip,
            billing=dict(entity.billing.__dict__),
            billing_address=_address_to_dict(entity.billing_address),
            shipping_address=_address_to_dict(entity.shipping_address),
            items=[_item_to_dict(i) for i in entity.items],
            shipping_line=dict(entity.shipping_line.__dict__) if entity.shipping_line else None,
            notes=list(entity.notes),
            extra_metadata=dict(entity.metadata),
            paid_at=entity.paid_at,
            refunds=[self._refund_to_model(r) for r in entity.refunds],
        )

    async def get_by_id(self, order_id: int) -> Optional[Order]:
        """Fetch an order by id."""
        result = await self.session.execute(
            select(OrderModel).where(OrderModel.id == order_id)
        )
        db_order = result.scalar_one_or_none()
        return self._to_entity(db_order) if db_order else None

    async def create(self, order: Order) -> Order:
        """Insert an order."""
        db_order = self._to_model(order)
        self.session.add(db_order)
        await self.session.flush()
        await self.session.refresh(db_order)
        order.id = db_order.id
        order.version = db_order.version
        logger.info("order_created", order_id=db_order.id, number=db_order.number)
        return self._to_entity(db_order)

    async def update(self, order: Order) -> Order:
        """
        Persist order changes.

        Refunds are append-only: entries without an id are inserted.
        """
        result = await self.session.execute(
            select(OrderModel).where(OrderModel.id == order.id)
        )
        db_order = result.scalar_one_or_none()

        if not db_order:
            raise OrderNotFoundException(order.id)
        if db_order.version != order.version:
            raise ConcurrentModificationException("Order", order.id, order.version, db_order.version)

        db_order.status = order.status.value
        # Reassign JSON columns so the change is tracked
        db_order.notes = list(order.notes)
        db_order.extra_metadata = dict(order.metadata)
        db_order.paid_at = order.paid_at
        added = []
        for refund in order.refunds:
            if refund.id is None:
                db_refund = self._refund_to_model(refund)
                db_order.refunds.append(db_refund)
                added.append((refund, db_refund))

        try:
            await self.session.flush()
        except StaleDataError:
            raise ConcurrentModificationException("Order", order.id, order.version, order.version + 1)
        await self.session.refresh(db_order)

        order.version = db_order.version
        for refund, db_refund in added:
            refund.id = db_refund.id

        logger.info(
            "order_updated",
            order_id=db_order.id,
            status=db_order.status,
            version=db_order.version,
        )
        return self._to_entity(db_order)
