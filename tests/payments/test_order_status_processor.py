from decimal import Decimal

from domain.order.entity import OrderStatus
from domain.payment.entity import PaymentTransaction
from domain.payment.events import CustomerNotification, MerchantNotification
from domain.payment.service import OrderStatusProcessor, normalize_status


DASHBOARD = "https://dashboard.genpay.com.br"


def _tx() -> PaymentTransaction:
    return PaymentTransaction(id=1, order_id=42, transaction_id="tx-1")


def _processor() -> OrderStatusProcessor:
    return OrderStatusProcessor(dashboard_url=DASHBOARD + "/")


def test_normalize_status_folds_aliases():
    assert normalize_status(" Partial_Refunded ") == "refunded"
    assert normalize_status("APPROVED") == "approved"
    assert normalize_status(None) == ""


def test_approved_completes_payment_once(order_factory):
    order, tx, processor = order_factory(), _tx(), _processor()
    processor.apply(order, tx, "approved")
    assert order.status == OrderStatus.PROCESSING
    assert order.paid_at is not None
    assert tx.last_status == "approved"

    notes = list(order.notes)
    processor.apply(order, tx, "approved")
    assert order.notes == notes


def test_pending_notifies_customer_once(order_factory):
    order, tx, processor = order_factory(), _tx(), _processor()
    processor.apply(order, tx, "pending")
    processor.apply(order, tx, "pending")

    events = processor.get_domain_events()
    assert len(events) == 1
    assert isinstance(events[0], CustomerNotification)
    assert events[0].recipient == "joao@example.com"
    assert tx.pending_notified


def test_authorized_puts_order_on_hold(order_factory):
    order, tx, processor = order_factory(), _tx(), _processor()
    processor.apply(order, tx, "authorized")
    assert order.status == OrderStatus.ON_HOLD

    paid = order_factory(status=OrderStatus.PROCESSING)
    processor.apply(paid, tx, "authorized")
    assert paid.status == OrderStatus.PROCESSING


def test_declined_twice_sends_one_email(order_factory):
    order, tx, processor = order_factory(), _tx(), _processor()
    processor.apply(order, tx, "declined", result_messages="Insufficient funds - Call issuer")
    processor.apply(order, tx, "declined", result_messages="Insufficient funds - Call issuer")

    events = processor.get_domain_events()
    assert len(events) == 1
    assert order.status == OrderStatus.FAILED
    assert tx.declined
    assert order.notes[-1] == "GenPay: The transaction was declined. Insufficient funds - Call issuer"


def test_cancelled_notifies_merchant_and_customer(order_factory):
    order, tx, processor = order_factory(), _tx(), _processor()
    processor.apply(order, tx, "cancelled")
    processor.apply(order, tx, "cancelled")

    events = processor.get_domain_events()
    assert order.status == OrderStatus.CANCELLED
    assert [type(e) for e in events] == [MerchantNotification, CustomerNotification]
    assert events[0].params == {"number": "1042", "url": "https://dashboard.genpay.com.br/sales/tx-1"}


def test_cancelled_after_outbound_cancel_closes_order_quietly(order_factory):
    order, tx, processor = order_factory(), _tx(), _processor()
    tx.mark_cancelled()

    processor.apply(order, tx, "cancelled")
    processor.apply(order, tx, "cancelled")

    assert order.status == OrderStatus.CANCELLED
    assert order.notes.count("GenPay: The transaction was cancelled.") == 1
    assert processor.get_domain_events() == []


def test_cancelled_ignored_for_paid_order(order_factory):
    order, tx, processor = order_factory(status=OrderStatus.COMPLETED), _tx(), _processor()
    processor.apply(order, tx, "cancelled")
    assert order.status == OrderStatus.COMPLETED
    assert not tx.cancelled
    assert processor.get_domain_events() == []


def test_failure_cancels_with_reason(order_factory):
    order, tx, processor = order_factory(), _tx(), _processor()
    processor.apply(order, tx, "failure", result_messages="antifraud rejected")
    assert order.status == OrderStatus.CANCELLED
    assert tx.failure
    assert order.notes[-1] == "GenPay: The transaction was cancelled because antifraud rejected"


def test_refund_ids_are_applied_once(order_factory):
    order, tx, processor = order_factory(status=OrderStatus.PROCESSING), _tx(), _processor()
    payload = {"refunds": [{"id": "r1", "amount": 50.0, "reason": "damaged"}]}

    processor.apply(order, tx, "partial_refunded", payload)
    processor.apply(order, tx, "partial_refunded", payload)

    assert len(order.refunds) == 1
    assert order.refunds[0].amount == Decimal("50.00")
    assert order.refunds[0].gateway_refund_id == "r1"
    assert tx.refunded_ids == ["r1"]
    assert order.status == OrderStatus.PROCESSING
    assert order.notes[-1] == "GenPay: The transaction received a partial refund."
    assert len(processor.get_domain_events()) == 1


def test_refund_without_list_refunds_remaining_balance(order_factory):
    order, tx, processor = order_factory(status=OrderStatus.PROCESSING), _tx(), _processor()
    order.create_refund(Decimal("30.00"), "earlier")

    processor.apply(order, tx, "refunded", {})

    assert order.status == OrderStatus.REFUNDED
    assert order.refunds[-1].amount == Decimal("120.00")
    assert order.refunds[-1].refund_payment
    assert order.notes[-1] == "GenPay: The transaction was fully refunded."

    processor.apply(order, tx, "refunded", {})
    assert len(order.refunds) == 2


def test_refund_ignored_while_on_hold(order_factory):
    order, tx, processor = order_factory(status=OrderStatus.ON_HOLD), _tx(), _processor()
    processor.apply(order, tx, "refunded", {"refunds": [{"id": "r1", "amount": 10}]})
    assert order.refunds == []
    assert tx.refunded_ids == []


def test_unknown_status_is_a_no_op(order_factory):
    order, tx, processor = order_factory(), _tx(), _processor()
    assert processor.apply(order, tx, "chargeback") is True
    assert order.status == OrderStatus.PENDING
    assert order.notes == []
    assert tx.last_status is None
