"""
Payment transaction repository interface.
"""
from abc import ABC, abstractmethod
from typing import Optional

from .entity import PaymentTransaction


class PaymentTransactionRepository(ABC):
    """Persistence port for transaction records"""

    @abstractmethod
    async def get_by_order_id(self, order_id: int) -> Optional[PaymentTransaction]:
        """Transaction record of an order (one per order)"""
        pass

    @abstractmethod
    async def get_by_transaction_id(self, transaction_id: str) -> Optional[PaymentTransaction]:
        """Look up by the gateway's charge id"""
        pass

    @abstractmethod
    async def create(self, transaction: PaymentTransaction) -> PaymentTransaction:
        """Create the record (once per order)"""
        pass

    @abstractmethod
    async def update(self, transaction: PaymentTransaction) -> PaymentTransaction:
        """
        Persist changes.

        Raises ConcurrentModificationException if the stored version differs
        from ``transaction.version``.
        """
        pass
