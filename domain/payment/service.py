"""
Payment domain service - maps gateway charge statuses onto the order lifecycle.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Any, List, Optional

from domain.order.entity import Order, OrderStatus
from shared.codes.payment_codes import GATEWAY_STATUS_ALIASES
from .entity import GatewayStatus, PaymentTransaction
from .events import CustomerNotification, MerchantNotification


NOTE_PREFIX = "GenPay"


def normalize_status(status: Optional[str], provider: str = "genpay") -> str:
    """Fold gateway aliases (``partial_refunded`` -> ``refunded``)."""
    value = (status or "").strip().lower()
    return GATEWAY_STATUS_ALIASES.get(provider, {}).get(value, value)


class OrderStatusProcessor:
    """
    Order status state machine.

    Responsibilities:
    1. Apply a gateway status to the order and its transaction record
    2. Guard every transition so re-delivered statuses are no-ops
    3. Collect notification events for the application layer

    The same (status, payload) yields the same end state whether it comes
    from a synchronous charge response or from a webhook.
    """

    def __init__(self, *, dashboard_url: str):
        self.dashboard_url = dashboard_url.rstrip("/")
        self.events: List = []

    def transaction_url(self, transaction: PaymentTransaction) -> str:
        return f"{self.dashboard_url}/sales/{transaction.transaction_id or ''}"

    def apply(
        self,
        order: Order,
        transaction: PaymentTransaction,
        status: str,
        payload: Optional[dict[str, Any]] = None,
        result_messages: Optional[str] = None,
    ) -> bool:
        """
        Apply ``status``; returns True when the status was handled or ignored.

        Unknown statuses are accepted as no-ops so new gateway statuses do
        not break delivery.
        """
        payload = payload or {}
        normalized = normalize_status(status)
        try:
            gateway_status = GatewayStatus(normalized)
        except ValueError:
            return True

        handler = {
            GatewayStatus.PENDING: self._pending,
            GatewayStatus.AUTHORIZED: self._authorized,
            GatewayStatus.APPROVED: self._approved,
            GatewayStatus.CANCELLED: self._cancelled,
            GatewayStatus.FAILURE: self._failure,
            GatewayStatus.DECLINED: self._declined,
            GatewayStatus.REFUNDED: self._refunded,
        }[gateway_status]
        handler(order, transaction, payload, result_messages)
        transaction.last_status = gateway_status.value
        return True

    def get_domain_events(self) -> List:
        events = self.events[:]
        self.events.clear()
        return events

    # Transitions

    def _pending(self, order, transaction, payload, result_messages) -> None:
        if transaction.pending_notified:
            return
        order.update_status(OrderStatus.PENDING, f"{NOTE_PREFIX}: The transaction is being processed.")
        transaction.pending_notified = True
        self._notify_customer(
            order,
            transaction,
            subject="The transaction for order {number} was received",
            title="Transaction received",
            message="Order {number} has been marked as pending payment, for more details, see {url}.",
        )
        order.add_note(f"{NOTE_PREFIX}: The transaction is pending payment.")

    def _authorized(self, order, transaction, payload, result_messages) -> None:
        if order.has_status(OrderStatus.PROCESSING, OrderStatus.COMPLETED, OrderStatus.ON_HOLD):
            return
        order.update_status(OrderStatus.ON_HOLD, f"{NOTE_PREFIX}: The transaction was authorized.")

    def _approved(self, order, transaction, payload, result_messages) -> None:
        if order.has_status(OrderStatus.PROCESSING, OrderStatus.COMPLETED):
            return
        order.add_note(f"{NOTE_PREFIX}: Transaction paid.")
        order.payment_complete()

    def _cancelled(self, order, transaction, payload, result_messages) -> None:
        if order.has_status(OrderStatus.PROCESSING, OrderStatus.COMPLETED):
            return
        if not transaction.mark_cancelled():
            # Flag set by an outbound cancel; close the order without notifying again
            if order.update_status(OrderStatus.CANCELLED):
                order.add_note(f"{NOTE_PREFIX}: The transaction was cancelled.")
            return
        order.update_status(OrderStatus.CANCELLED)
        texts = dict(
            subject="The transaction for order {number} was cancelled",
            title="Transaction failed",
            message=(
                "Order {number} has been marked as cancelled, because the transaction "
                "was cancelled on GenPay, for more details, see {url}."
            ),
        )
        self._notify_merchant(order, transaction, **texts)
        self._notify_customer(order, transaction, **texts)
        order.add_note(f"{NOTE_PREFIX}: The transaction was cancelled.")

    def _failure(self, order, transaction, payload, result_messages) -> None:
        if not transaction.mark_failure():
            return
        order.update_status(OrderStatus.CANCELLED)
        self._notify_customer(
            order,
            transaction,
            subject="The transaction for order {number} was cancelled",
            title="Transaction failed",
            message=(
                "Order {number} has been marked as cancelled, because the transaction "
                "was cancelled on GenPay, for more details, see {url}."
            ),
        )
        order.add_note(f"{NOTE_PREFIX}: The transaction was cancelled because {result_messages or 'of a gateway failure'}")

    def _declined(self, order, transaction, payload, result_messages) -> None:
        if not transaction.mark_declined():
            return
        order.update_status(OrderStatus.FAILED)
        self._notify_customer(
            order,
            transaction,
            subject="The transaction for order {number} was declined",
            title="Transaction failed",
            message=(
                "Order {number} has been marked as declined, because the transaction "
                "was declined on GenPay, for more details, see {url}."
            ),
        )
        note = f"{NOTE_PREFIX}: The transaction was declined."
        if result_messages:
            note = f"{note} {result_messages}"
        order.add_note(note)

    def _refunded(self, order, transaction, payload, result_messages) -> None:
        if order.has_status(OrderStatus.ON_HOLD):
            return
        if order.is_fully_refunded():
            return

        created = False
        if "refunds" in payload and payload["refunds"] is not None:
            for entry in payload["refunds"]:
                refund_id = str(entry.get("id") or "")
                if not refund_id or transaction.has_refund(refund_id):
                    continue
                transaction.record_refund(refund_id)
                order.create_refund(
                    Decimal(str(entry.get("amount") or 0)),
                    entry.get("reason") or "",
                    refund_payment=False,
                    restock_items=True,
                    gateway_refund_id=refund_id,
                )
                created = True
        else:
            order.create_refund(
                order.remaining_refundable,
                "Order fully refunded",
                refund_payment=True,
                restock_items=True,
            )
            created = True

        if not created:
            return

        if order.is_fully_refunded():
            order.add_note(f"{NOTE_PREFIX}: The transaction was fully refunded.")
        else:
            order.add_note(f"{NOTE_PREFIX}: The transaction received a partial refund.")

        self._notify_merchant(
            order,
            transaction,
            subject="The transaction for order {number} was refunded",
            title="Transaction refunded",
            message="Order {number} has been marked as refunded by GenPay, for more details, see {url}.",
        )

    # Notifications

    def _params(self, order: Order, transaction: PaymentTransaction) -> dict:
        return {"number": order.number, "url": self.transaction_url(transaction)}

    def _notify_merchant(self, order, transaction, *, subject: str, title: str, message: str) -> None:
        self.events.append(MerchantNotification(
            order_id=order.id,
            order_number=order.number,
            transaction_id=transaction.transaction_id,
            params=self._params(order, transaction),
            subject=subject,
            title=title,
            message=message,
        ))

    def _notify_customer(self, order, transaction, *, subject: str, title: str, message: str) -> None:
        self.events.append(CustomerNotification(
            order_id=order.id,
            order_number=order.number,
            transaction_id=transaction.transaction_id,
            params=self._params(order, transaction),
            recipient=order.billing.email,
            subject=subject,
            title=title,
            message=message,
        ))
