"""Infrastructure models package exports."""
from .base import Base, metadata
from .order import OrderModel, OrderRefundModel
from .payment import PaymentTransactionModel

__all__ = [
    "Base",
    "metadata",
    "OrderModel",
    "OrderRefundModel",
    "PaymentTransactionModel",
]
