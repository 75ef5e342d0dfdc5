"""
Order aggregate - the commerce-side order this connector charges against.

Only the fields the payment flow reads or writes are modelled here; cart,
catalogue and checkout rendering stay with the storefront.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Optional

from domain.common.exceptions import DomainValidationException


CENT = Decimal("0.01")


def to_cents(amount: Decimal) -> int:
    """Convert a currency amount to integer minor units (half-up)."""
    return int(Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP) * 100)


def quantize_money(amount: Decimal) -> Decimal:
    return Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


class OrderStatus(str, Enum):
    """Order lifecycle states (storefront vocabulary)"""
    PENDING = "pending"
    ON_HOLD = "on-hold"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentMethodKind(str, Enum):
    CREDIT_CARD = "credit_card"
    BILLET = "billet"


@dataclass
class Address:
    street: str = ""
    complement: str = ""
    number: str = ""
    district: str = ""
    city: str = ""
    state: str = ""
    country: str = "BR"
    postcode: str = ""


@dataclass
class BillingContact:
    first_name: str
    last_name: str
    email: str
    phone: str
    company: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass
class Category:
    id: str
    name: str


@dataclass
class OrderItem:
    product_id: int
    name: str
    unit_price: Decimal
    quantity: int
    total: Decimal
    sku: Optional[str] = None
    categories: list[Category] = field(default_factory=list)


@dataclass
class ShippingLine:
    method_id: str
    calculation_code: Optional[str] = None
    postage_service_code: Optional[str] = None


@dataclass(frozen=True)
class ShipmentTracking:
    """Tracking data of a shipment dispatched through the logistics partner."""
    tracking_code: Optional[str] = None
    tracking_url: Optional[str] = None
    print_url: Optional[str] = None
    batch_code: Optional[str] = None
    volume: Optional[str] = None

    def as_metadata(self) -> dict:
        return {
            "genlog_tracking_code": self.tracking_code,
            "genlog_tracking_url": self.tracking_url,
            "genlog_print_url": self.print_url,
            "genlog_batch_print_url": self.print_url,
            "genlog_batch_code": self.batch_code,
            "genlog_volume": self.volume,
        }


@dataclass
class OrderRefund:
    """A monetary refund recorded against the order (no line items)."""
    amount: Decimal
    reason: str = ""
    refund_payment: bool = False
    restock_items: bool = True
    gateway_refund_id: Optional[str] = None
    id: Optional[int] = None
    created_at: Optional[datetime] = None


@dataclass
class Order:
    """
    Order aggregate.

    Business rules:
    1. Totals are non-negative currency amounts
    2. Refunds can never exceed the remaining refundable balance
    3. A fully refunded order moves to the refunded state
    """

    id: Optional[int]
    number: str
    status: OrderStatus
    payment_method: PaymentMethodKind
    total: Decimal
    billing: BillingContact
    billing_address: Optional[Address] = None
    shipping_address: Optional[Address] = None
    currency: str = "BRL"
    subtotal: Decimal = field(default_factory=lambda: Decimal("0"))
    shipping_total: Decimal = field(default_factory=lambda: Decimal("0"))
    total_tax: Decimal = field(default_factory=lambda: Decimal("0"))
    discount_total: Decimal = field(default_factory=lambda: Decimal("0"))
    customer_ip: Optional[str] = None
    items: list[OrderItem] = field(default_factory=list)
    shipping_line: Optional[ShippingLine] = None
    refunds: list[OrderRefund] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)
    paid_at: Optional[datetime] = None
    metadata: dict = field(default_factory=dict)
    version: int = 0

    def __post_init__(self):
        if self.total < 0:
            raise DomainValidationException(f"Order total must not be negative: {self.total}", field="total")
        if self.metadata is None:
            self.metadata = {}

    @property
    def total_refunded(self) -> Decimal:
        return sum((r.amount for r in self.refunds), Decimal("0"))

    @property
    def remaining_refundable(self) -> Decimal:
        return self.total - self.total_refunded

    def is_fully_refunded(self) -> bool:
        return to_cents(self.total) == to_cents(self.total_refunded)

    def has_status(self, *statuses: OrderStatus) -> bool:
        return self.status in statuses

    def needs_payment(self) -> bool:
        """Only unpaid orders, or ones whose last attempt failed, can be charged."""
        return self.status in (OrderStatus.PENDING, OrderStatus.FAILED)

    def update_status(self, status: OrderStatus, note: Optional[str] = None) -> bool:
        """Move to ``status``; returns False when already there."""
        if note:
            self.add_note(note)
        if self.status == status:
            return False
        self.status = status
        return True

    def add_note(self, note: str) -> None:
        self.notes.append(note)

    def payment_complete(self) -> bool:
        """Mark the order paid and hand it over to fulfillment."""
        if self.status in (OrderStatus.PROCESSING, OrderStatus.COMPLETED):
            return False
        self.status = OrderStatus.PROCESSING
        self.paid_at = datetime.now(timezone.utc)
        return True

    def create_refund(
        self,
        amount: Decimal,
        reason: str = "",
        *,
        refund_payment: bool = False,
        restock_items: bool = True,
        gateway_refund_id: Optional[str] = None,
    ) -> OrderRefund:
        """
        Record a line-less monetary refund.

        Business rules:
        1. The amount must be positive
        2. The amount cannot exceed the remaining refundable balance
        """
        amount = quantize_money(Decimal(str(amount)))
        if amount <= 0:
            raise DomainValidationException(f"Refund amount must be positive: {amount}", field="amount")
        if to_cents(amount) > to_cents(self.remaining_refundable):
            raise DomainValidationException(
                f"Refund amount {amount} exceeds refundable balance {self.remaining_refundable}",
                field="amount",
            )
        refund = OrderRefund(
            amount=amount,
            reason=reason,
            refund_payment=refund_payment,
            restock_items=restock_items,
            gateway_refund_id=gateway_refund_id,
            created_at=datetime.now(timezone.utc),
        )
        self.refunds.append(refund)
        if self.is_fully_refunded():
            self.status = OrderStatus.REFUNDED
        return refund
