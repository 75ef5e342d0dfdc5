"""Per-order locks."""
from .locks import (
    RedisOrderLock,
    InProcessOrderLock,
    create_order_lock,
)


__all__ = [
    "RedisOrderLock",
    "InProcessOrderLock",
    "create_order_lock",
]
