"""
Notification port used to email the merchant and the buyer.
"""
from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class Notifier(Protocol):
    async def notify_merchant(self, subject: str, title: str, message: str) -> None: ...

    async def notify_customer(self, recipient: str, subject: str, title: str, message: str) -> None: ...
