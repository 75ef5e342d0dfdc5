"""
Payment transaction ORM model
Persistence detail of the infrastructure layer; see domain.payment.entity for the rules.
"""
from sqlalchemy import (
    Boolean, Column, Integer, String, JSON, ForeignKey
)

from .base import Base, TimestampMixin


class PaymentTransactionModel(TimestampMixin, Base):
    """One row per order, never deleted; terminal states are flags."""
    __tablename__ = "payment_transactions"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(
        Integer,
        ForeignKey("orders.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
        index=True,
    )
    transaction_id = Column(String(100), unique=True, nullable=True, index=True, comment="Gateway charge uuid")

    cancelled = Column(Boolean, nullable=False, default=False)
    declined = Column(Boolean, nullable=False, default=False)
    failure = Column(Boolean, nullable=False, default=False)
    pending_notified = Column(Boolean, nullable=False, default=False)
    refunded_ids = Column(JSON, nullable=False, default=list, comment="Applied gateway refund ids")
    display = Column(JSON, nullable=True, comment="Card brand, masked number, installments, billet url")
    last_status = Column(String(30), nullable=True)
    version = Column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return (
            f"<PaymentTransactionModel(id={self.id}, order_id={self.order_id}, "
            f"transaction_id='{self.transaction_id}')>"
        )
