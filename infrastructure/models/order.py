"""
Order ORM models
Persistence detail of the infrastructure layer; see domain.order.entity for the rules.
"""
from sqlalchemy import (
    Boolean, Column, Integer, String, DateTime, Text, JSON,
    Index, ForeignKey
)
from sqlalchemy.orm import relationship

from .base import Base, TimestampMixin, money_column, utcnow


class OrderModel(TimestampMixin, Base):
    """
    Only the part of the storefront order the payment flow reads or writes.
    ``version`` is SQLAlchemy's optimistic concurrency counter.
    """
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    number = Column(String(50), nullable=False, index=True, comment="Storefront order number")
    status = Column(String(30), nullable=False, default="pending", index=True)
    payment_method = Column(String(30), nullable=False, comment="credit_card/billet")
    currency = Column(String(3), nullable=False, default="BRL")

    total = money_column()
    subtotal = money_column(default=0)
    shipping_total = money_column(default=0)
    total_tax = money_column(default=0)
    discount_total = money_column(default=0)

    customer_ip = Column(String(64), nullable=True)
    billing = Column(JSON, nullable=False, comment="Billing contact")
    billing_address = Column(JSON, nullable=True)
    shipping_address = Column(JSON, nullable=True)
    items = Column(JSON, nullable=False, default=list)
    shipping_line = Column(JSON, nullable=True)
    notes = Column(JSON, nullable=False, default=list)
    extra_metadata = Column("metadata", JSON, nullable=True, comment="Extension metadata")

    paid_at = Column(DateTime(timezone=True), nullable=True)
    version = Column(Integer, nullable=False, default=1)

    refunds = relationship(
        "OrderRefundModel",
        back_populates="order",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="OrderRefundModel.id",
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<OrderModel(id={self.id}, number='{self.number}', status='{self.status}', total={self.total})>"


class OrderRefundModel(Base):
    """Line-less monetary refund recorded against an order."""
    __tablename__ = "order_refunds"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(
        Integer,
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    amount = money_column()
    reason = Column(Text, nullable=True)
    refund_payment = Column(Boolean, nullable=False, default=False, comment="Refund issued through the gateway API")
    restock_items = Column(Boolean, nullable=False, default=True)
    gateway_refund_id = Column(String(100), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    order = relationship("OrderModel", back_populates="refunds")

    __table_args__ = (
        Index("ix_order_refunds_order_gateway", "order_id", "gateway_refund_id"),
    )

    def __repr__(self):
        return f"<OrderRefundModel(id={self.id}, order_id={self.order_id}, amount={self.amount})>"
