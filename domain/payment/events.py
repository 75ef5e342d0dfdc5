"""
Payment domain events.

Dataclass events record the notifications an order transition asks for.
They are collected by the status processor and dispatched by the
application layer only after the unit of work commits, so a rolled back
transition never emails anyone. Domain remains free of infrastructure imports.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional
import uuid


@dataclass
class PaymentEvent:
    order_id: int
    order_number: str
    transaction_id: Optional[str] = None
    # Texts are message ids rendered with these params by the notifier
    params: dict = field(default_factory=dict)
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class MerchantNotification(PaymentEvent):
    """Email to the store administrator."""
    subject: str = ""
    title: str = ""
    message: str = ""


@dataclass
class CustomerNotification(PaymentEvent):
    """Email to the buyer's billing address."""
    recipient: str = ""
    subject: str = ""
    title: str = ""
    message: str = ""
