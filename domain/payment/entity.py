"""
Payment domain entities - transaction record, installment plans and the
payment method variants a charge can carry.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Any, Optional, Union

from domain.common.exceptions import DomainValidationException
from domain.order.entity import CENT


class GatewayStatus(str, Enum):
    """Charge statuses reported by the gateway (after alias folding)"""
    PENDING = "pending"
    AUTHORIZED = "authorized"
    APPROVED = "approved"
    CANCELLED = "cancelled"
    FAILURE = "failure"
    DECLINED = "declined"
    REFUNDED = "refunded"


class RefundKind(str, Enum):
    TOTAL = "total"
    PARTIAL = "partial"


@dataclass(frozen=True)
class InstallmentPlan:
    """Breakdown of a charge into ``quantity`` payments."""

    total: Decimal
    quantity: int
    interest_percent: Decimal
    interest_amount: Decimal
    installment_amount: Decimal

    @classmethod
    def interest_free(cls, total: Decimal, quantity: int) -> "InstallmentPlan":
        if quantity < 1:
            raise DomainValidationException(
                f"Installment quantity must be at least 1: {quantity}",
                field="installments",
            )
        total = Decimal(total)
        return cls(
            total=total,
            quantity=quantity,
            interest_percent=Decimal("0"),
            interest_amount=Decimal("0"),
            installment_amount=(total / quantity).quantize(CENT, rounding=ROUND_HALF_UP),
        )

    @classmethod
    def from_gateway(cls, row: dict[str, Any]) -> "InstallmentPlan":
        def _dec(key: str) -> Decimal:
            return Decimal(str(row.get(key) or 0))

        return cls(
            total=_dec("total"),
            quantity=int(row["quantity"]),
            interest_percent=_dec("interest_percent"),
            interest_amount=_dec("interest_amount"),
            installment_amount=_dec("installment_amount"),
        )


@dataclass(frozen=True)
class CreditCardPayment:
    """Card details tokenized in the browser; single-shot charge only."""

    installments_quantity: int
    brand: str
    token: str
    cvv: str
    holder_name: str
    holder_document: str


@dataclass(frozen=True)
class BilletPayment:
    """Bank billet; expiry is computed when the charge is built."""


PaymentMethod = Union[CreditCardPayment, BilletPayment]


@dataclass
class PaymentDisplay:
    """Payment-method specific data shown on the order screen."""
    payment_method: str
    amount: Optional[Decimal] = None
    card_brand: Optional[str] = None
    card_number: Optional[str] = None
    installments: Optional[int] = None
    billet_url: Optional[str] = None

    def as_dict(self) -> dict[str, Any]:
        data = {
            "payment_method": self.payment_method,
            "amount": str(self.amount) if self.amount is not None else None,
            "card_brand": self.card_brand,
            "card_number": self.card_number,
            "installments": self.installments,
            "billet_url": self.billet_url,
        }
        return {k: v for k, v in data.items() if v is not None}

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> Optional["PaymentDisplay"]:
        if not data:
            return None
        amount = data.get("amount")
        return cls(
            payment_method=data.get("payment_method", ""),
            amount=Decimal(amount) if amount is not None else None,
            card_brand=data.get("card_brand"),
            card_number=data.get("card_number"),
            installments=data.get("installments"),
            billet_url=data.get("billet_url"),
        )


@dataclass
class PaymentTransaction:
    """
    Transaction record persisted against an order.

    Business rules:
    1. Created once per order, at the first charge attempt that yields a charge id
    2. Never deleted; terminal states are expressed by flags
    3. A gateway refund id is applied at most once
    """

    id: Optional[int]
    order_id: int
    transaction_id: Optional[str] = None
    cancelled: bool = False
    declined: bool = False
    failure: bool = False
    pending_notified: bool = False
    refunded_ids: list[str] = field(default_factory=list)
    display: Optional[PaymentDisplay] = None
    last_status: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    version: int = 0

    def has_refund(self, refund_id: str) -> bool:
        return refund_id in self.refunded_ids

    def record_refund(self, refund_id: str) -> bool:
        """Add ``refund_id`` to the dedup set; False if it was already there."""
        if not refund_id or refund_id in self.refunded_ids:
            return False
        self.refunded_ids.append(refund_id)
        self.touch()
        return True

    def mark_cancelled(self) -> bool:
        if self.cancelled:
            return False
        self.cancelled = True
        self.touch()
        return True

    def mark_declined(self) -> bool:
        if self.declined:
            return False
        self.declined = True
        self.touch()
        return True

    def mark_failure(self) -> bool:
        if self.failure:
            return False
        self.failure = True
        self.touch()
        return True

    def is_terminal(self) -> bool:
        return self.cancelled or self.failure

    def has_live_charge(self) -> bool:
        """A charge id the gateway may still settle (not declined nor failed)."""
        return bool(self.transaction_id) and not (self.declined or self.failure)

    def start_charge(self, charge_id: str) -> None:
        """Point the record at a new charge; per-charge flags start over."""
        if charge_id == self.transaction_id:
            return
        self.transaction_id = charge_id
        self.cancelled = False
        self.declined = False
        self.failure = False
        self.pending_notified = False
        self.last_status = None
        self.touch()

    def touch(self) -> None:
        self.updated_at = datetime.now(timezone.utc)
