"""
Order repository interface.
"""
from abc import ABC, abstractmethod
from typing import Optional

from .entity import Order


class OrderRepository(ABC):
    """Persistence port for orders owned by the storefront"""

    @abstractmethod
    async def get_by_id(self, order_id: int) -> Optional[Order]:
        """Fetch an order with its items, refunds and notes"""
        pass

    @abstractmethod
    async def create(self, order: Order) -> Order:
        """Store an order handed over by the storefront"""
        pass

    @abstractmethod
    async def update(self, order: Order) -> Order:
        """
        Persist status, notes, refunds and metadata.

        Raises ConcurrentModificationException if the stored version differs
        from ``order.version``.
        """
        pass
