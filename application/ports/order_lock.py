"""
Per-order mutex port guarding read-modify-write of order payment state.
"""
from __future__ import annotations

from typing import AsyncContextManager, Protocol, runtime_checkable


@runtime_checkable
class OrderLockProvider(Protocol):
    def lock(self, order_id: int) -> AsyncContextManager[None]: ...
