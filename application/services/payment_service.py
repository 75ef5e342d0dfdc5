"""
Application service orchestrating payment use-cases.

This class depends on the application ports (gateway, notifier, order
lock) and the domain unit of work. Implementations are provided by
infrastructure and injected from the composition root (API/tasks).

Every state change runs under the order's lock inside a unit of work;
notifications collected on the way are sent only after the commit.
"""
from __future__ import annotations

import json
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Iterable, Optional

from application.dtos.payments import (
    CheckoutForm,
    CheckoutResult,
    GatewayResponse,
    RefundForm,
    RefundResult,
    WebhookAck,
)
from application.ports.notifier import Notifier
from application.ports.order_lock import OrderLockProvider
from application.ports.payment_gateway import PaymentGateway
from application.services.request_builders import (
    build_charge_request,
    build_refund_request,
    payment_method_for,
)
from core.i18n import t
from core.logging_config import get_logger
from core.settings import GenPayConfig
from domain.common.exceptions import (
    DomainValidationException,
    NoMatchingInstallmentPlanException,
    OrderNotFoundException,
    OrderNotPayableException,
    TransactionNotFoundException,
)
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.order.entity import Order, to_cents
from domain.payment.entity import (
    BilletPayment,
    CreditCardPayment,
    InstallmentPlan,
    PaymentDisplay,
    PaymentMethod,
    PaymentTransaction,
)
from domain.payment.events import CustomerNotification, MerchantNotification, PaymentEvent
from domain.payment.service import NOTE_PREFIX, OrderStatusProcessor, normalize_status
from infrastructure.external.payments.exceptions import (
    GatewayProtocolError,
    GatewayTransportError,
    PaymentSignatureError,
    WebhookRejectedError,
)


logger = get_logger(__name__)


CARD_BRAND_NAMES = {
    "visa": "Visa",
    "mastercard": "MasterCard",
    "amex": "American Express",
    "aura": "Aura",
    "jcb": "JCB",
    "diners": "Diners",
    "elo": "Elo",
    "hipercard": "Hipercard",
    "discover": "Discover",
}


def card_brand_name(brand: str) -> str:
    return CARD_BRAND_NAMES.get((brand or "").lower(), brand)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PaymentService:
    def __init__(
        self,
        gateway: PaymentGateway,
        *,
        uow_factory: Callable[..., AbstractUnitOfWork],
        notifier: Notifier,
        locks: OrderLockProvider,
        config: GenPayConfig,
        thank_you_url: str = "/checkout/order-received/{order_id}",
        billet_base_url: str = "/api/v1/payments/billets",
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.gateway = gateway
        self.uow_factory = uow_factory
        self.notifier = notifier
        self.locks = locks
        self.config = config
        self.thank_you_url = thank_you_url
        self.billet_base_url = billet_base_url.rstrip("/")
        self.clock = clock

    def _processor(self) -> OrderStatusProcessor:
        return OrderStatusProcessor(dashboard_url=self.config.dashboard_url)

    def _redirect_url(self, order: Order) -> str:
        return self.thank_you_url.format(order_id=order.id, order_number=order.number)

    # Installments

    async def resolve_installment_plan(self, total: Decimal, payment: PaymentMethod) -> InstallmentPlan:
        """
        Plan used for the charge.

        Quantities above the free-installment threshold take the gateway's
        row for that quantity when the buyer pays interest.
        """
        if isinstance(payment, BilletPayment):
            return InstallmentPlan.interest_free(total, 1)
        quantity = payment.installments_quantity
        if quantity < 1 or not self.config.buyer_interest or quantity <= self.config.free_installments:
            return InstallmentPlan.interest_free(total, quantity)

        rows = await self.gateway.get_installments(total)
        for row in rows:
            if int(row.get("quantity") or 0) == quantity:
                return InstallmentPlan.from_gateway(row)
        raise NoMatchingInstallmentPlanException(quantity, amount=str(total))

    async def fetch_installment_options(self, amount: Decimal) -> Optional[list[InstallmentPlan]]:
        """Credit card installment table; None when the gateway has none to offer."""
        try:
            rows = await self.gateway.get_installments(amount)
        except (GatewayTransportError, GatewayProtocolError, NoMatchingInstallmentPlanException) as exc:
            logger.warning("installments_unavailable", amount=str(amount), error=exc.message)
            return None
        return [InstallmentPlan.from_gateway(row) for row in rows]

    # Checkout

    async def checkout(self, order_id: int, form: CheckoutForm) -> CheckoutResult:
        """
        Charge the order.

        The buyer is routed to the thank-you page whenever the gateway
        accepted the charge, whatever its status; declines reach the buyer
        through the order status and email. Paid or closed orders, and orders
        whose charge may still settle, raise ``OrderNotPayableException``.
        """
        events: list[PaymentEvent] = []
        async with self.locks.lock(order_id):
            async with self.uow_factory() as uow:
                order = await uow.order_repository.get_by_id(order_id)
                if order is None:
                    raise OrderNotFoundException(order_id)
                existing = await uow.transaction_repository.get_by_order_id(order_id)
                if not order.needs_payment() or (existing is not None and existing.has_live_charge()):
                    logger.warning(
                        "checkout_rejected",
                        order_id=order_id,
                        order_status=order.status.value,
                        transaction_id=existing.transaction_id if existing else None,
                    )
                    raise OrderNotPayableException(
                        order_id, order.status.value, existing.transaction_id if existing else None
                    )

                payment = payment_method_for(order, form)
                try:
                    plan = await self.resolve_installment_plan(order.total, payment)
                    request = build_charge_request(
                        order, payment, form, plan, config=self.config, now=self.clock()
                    )
                    response = await self.gateway.charge(request)
                except (GatewayTransportError, GatewayProtocolError) as exc:
                    logger.warning("checkout_gateway_unavailable", order_id=order_id, error=exc.message)
                    return CheckoutResult(
                        result="fail",
                        errors=[t("The payment could not be processed, please try again.")],
                    )

                if not response.ok:
                    result = await self._apply_failed_charge(uow, order, response, events)
                elif response.is_business_failure:
                    logger.info("checkout_business_failure", order_id=order_id, errors=response.error_text())
                    result = CheckoutResult(result="fail", errors=self._buyer_errors(response))
                elif not response.body.get("charge_uuid"):
                    logger.error("checkout_missing_charge_id", order_id=order_id, order_number=order.number)
                    result = CheckoutResult(
                        result="fail",
                        errors=[t("The payment could not be processed, please try again.")],
                    )
                else:
                    result = await self._apply_charge(uow, order, payment, request.amount, response, events)

        await self._dispatch(events)
        return result

    async def _apply_charge(
        self,
        uow: AbstractUnitOfWork,
        order: Order,
        payment: PaymentMethod,
        amount: Decimal,
        response: GatewayResponse,
        events: list[PaymentEvent],
    ) -> CheckoutResult:
        body = response.body
        charge_id = str(body["charge_uuid"])
        payments = body.get("payments") or [{}]
        first_payment = payments[0] if isinstance(payments[0], dict) else {}

        transaction = await uow.transaction_repository.get_by_order_id(order.id)
        is_new = transaction is None
        if transaction is None:
            transaction = PaymentTransaction(id=None, order_id=order.id, created_at=self.clock())
        transaction.start_charge(charge_id)
        transaction.display = self._display(payment, amount, charge_id, first_payment)
        transaction.touch()

        result_messages = " - ".join(str(m) for m in first_payment.get("result_messages") or [])
        processor = self._processor()
        processor.apply(order, transaction, response.result or "", body, result_messages or None)

        if is_new:
            await uow.transaction_repository.create(transaction)
        else:
            await uow.transaction_repository.update(transaction)
        await uow.order_repository.update(order)
        events.extend(processor.get_domain_events())

        logger.info(
            "checkout_charged",
            order_id=order.id,
            transaction_id=charge_id,
            gateway_status=response.result,
            order_status=order.status.value,
        )
        return CheckoutResult(
            result="success",
            redirect_url=self._redirect_url(order),
            empty_cart=True,
            transaction_id=charge_id,
            status=order.status.value,
        )

    async def _apply_failed_charge(
        self,
        uow: AbstractUnitOfWork,
        order: Order,
        response: GatewayResponse,
        events: list[PaymentEvent],
    ) -> CheckoutResult:
        """Non-200 charge: feed whatever status came back, then report failure."""
        messages = response.error_messages()
        logger.warning(
            "checkout_http_error",
            order_id=order.id,
            status_code=response.status_code,
            errors=response.error_text(),
        )
        status = response.result
        if status:
            charge_id = response.body.get("charge_uuid")
            transaction = await uow.transaction_repository.get_by_order_id(order.id)
            is_new = transaction is None
            if transaction is None:
                transaction = PaymentTransaction(id=None, order_id=order.id, created_at=self.clock())
            if charge_id:
                transaction.start_charge(str(charge_id))

            result_messages = response.body.get("result_messages") or []
            processor = self._processor()
            processor.apply(
                order,
                transaction,
                status,
                response.body,
                str(result_messages[0]) if result_messages else None,
            )
            # The record is only kept once the gateway handed out a charge id
            if transaction.transaction_id:
                if is_new:
                    await uow.transaction_repository.create(transaction)
                else:
                    await uow.transaction_repository.update(transaction)
            await uow.order_repository.update(order)
            events.extend(processor.get_domain_events())

        return CheckoutResult(
            result="fail",
            errors=messages or [t("The payment could not be processed, please try again.")],
        )

    @staticmethod
    def _buyer_errors(response: GatewayResponse) -> list[str]:
        errors = []
        for error in response.body.get("errors") or []:
            if isinstance(error, dict):
                errors.append(f"{error.get('code', '')}, {error.get('description', '')}")
        return errors or [t("The payment was not accepted by the gateway.")]

    def _display(
        self,
        payment: PaymentMethod,
        amount: Decimal,
        charge_id: str,
        first_payment: dict[str, Any],
    ) -> PaymentDisplay:
        if isinstance(payment, CreditCardPayment):
            return PaymentDisplay(
                payment_method="credit_card",
                amount=amount,
                card_brand=card_brand_name(payment.brand),
                card_number=(first_payment.get("credit_card") or {}).get("number"),
                installments=payment.installments_quantity,
            )
        billet_url = (first_payment.get("billet") or {}).get("url") or f"{self.billet_base_url}/{charge_id}"
        return PaymentDisplay(payment_method="billet", amount=amount, billet_url=billet_url)

    # Cancel

    async def cancel(self, order_id: int) -> bool:
        """
        Cancel the charge at the gateway.

        Flags the transaction cancelled on success; the order status itself
        follows through status processing. When the gateway is unreachable
        the merchant is emailed a dashboard link and the order is annotated.
        """
        events: list[PaymentEvent] = []
        async with self.locks.lock(order_id):
            async with self.uow_factory() as uow:
                order, transaction = await self._load(uow, order_id)
                try:
                    response = await self.gateway.cancel(transaction.transaction_id)
                except GatewayTransportError:
                    events.append(self._manual_action_notice(order, transaction, "cancel"))
                    order.add_note(
                        f"{NOTE_PREFIX}: Order could not be cancelled due to an error. "
                        "You must access the GenPay Dashboard to complete the cancel operation"
                    )
                    await uow.order_repository.update(order)
                    cancelled = False
                else:
                    if not response.ok or response.is_business_failure:
                        logger.warning(
                            "cancel_rejected",
                            order_id=order_id,
                            transaction_id=transaction.transaction_id,
                            status_code=response.status_code,
                            errors=response.error_text(),
                        )
                        cancelled = False
                    else:
                        transaction.mark_cancelled()
                        await uow.transaction_repository.update(transaction)
                        logger.info("cancel_succeeded", order_id=order_id, transaction_id=transaction.transaction_id)
                        cancelled = True

        await self._dispatch(events)
        return cancelled

    # Refund

    async def refund(self, order_id: int, form: RefundForm) -> RefundResult:
        """
        Refund ``form.amount`` at the gateway.

        On success the gateway's refund id enters the dedup set and the
        local monetary refund is created, so the matching webhook is a no-op.
        """
        events: list[PaymentEvent] = []
        async with self.locks.lock(order_id):
            async with self.uow_factory() as uow:
                order, transaction = await self._load(uow, order_id)
                amount = Decimal(form.amount)
                if to_cents(amount) > to_cents(order.remaining_refundable):
                    raise DomainValidationException(
                        f"Refund amount {amount} exceeds refundable balance {order.remaining_refundable}",
                        field="amount",
                    )

                try:
                    snapshot = await self.gateway.get_transaction(transaction.transaction_id)
                except (GatewayTransportError, GatewayProtocolError) as exc:
                    logger.warning("refund_snapshot_unavailable", order_id=order_id, error=exc.message)
                    return RefundResult(success=False)

                kind, request = build_refund_request(order, order.payment_method, form, snapshot)
                try:
                    response = await self.gateway.refund(transaction.transaction_id, kind, request)
                except GatewayTransportError:
                    response = None

                if response is None or not response.ok or response.is_business_failure:
                    if response is not None:
                        logger.warning(
                            "refund_rejected",
                            order_id=order_id,
                            status_code=response.status_code,
                            errors=response.error_text(),
                        )
                    events.append(self._manual_action_notice(order, transaction, "refund"))
                    order.add_note(
                        f"{NOTE_PREFIX}: Order could not be refunded due to an error. "
                        "You must access the GenPay Dashboard to complete the refund operation"
                    )
                    await uow.order_repository.update(order)
                    result = RefundResult(success=False, kind=kind.value)
                else:
                    refunds = response.body.get("refunds") or []
                    refund_id = str(refunds[0].get("id")) if refunds and refunds[0].get("id") else None
                    if refund_id:
                        transaction.record_refund(refund_id)
                    order.create_refund(
                        amount,
                        form.reason,
                        refund_payment=True,
                        restock_items=True,
                        gateway_refund_id=refund_id,
                    )
                    await uow.transaction_repository.update(transaction)
                    await uow.order_repository.update(order)
                    logger.info("refund_succeeded", order_id=order_id, kind=kind.value, refund_id=refund_id)
                    result = RefundResult(success=True, kind=kind.value, refund_id=refund_id)

        await self._dispatch(events)
        return result

    # Lookups

    async def fetch_transaction(self, order_id: int) -> Optional[dict[str, Any]]:
        """Raw gateway snapshot of the order's charge; None when the gateway call fails."""
        async with self.uow_factory(readonly=True) as uow:
            _, transaction = await self._load(uow, order_id)
        try:
            return await self.gateway.get_transaction(transaction.transaction_id)
        except (GatewayTransportError, GatewayProtocolError) as exc:
            logger.warning("transaction_lookup_failed", order_id=order_id, error=exc.message)
            return None

    async def billet_html(self, transaction_id: str) -> str:
        return await self.gateway.billet_download(transaction_id)

    async def verify_credentials(self, document: str, api_key: str, environment: str) -> int:
        return await self.gateway.verify_credentials(document, api_key, environment)

    # Webhook

    async def handle_webhook(self, raw_body: bytes, signature: Optional[str]) -> WebhookAck:
        """Verify and apply a gateway status notification."""
        provider = self.gateway.provider
        if not raw_body:
            raise WebhookRejectedError("Empty webhook body", provider=provider, reason="empty_body")
        if not self.gateway.verify_signature(raw_body, signature):
            logger.warning("webhook_signature_mismatch", provider=provider)
            raise PaymentSignatureError("Invalid webhook signature", provider=provider)
        try:
            payload = json.loads(raw_body)
        except ValueError:
            raise WebhookRejectedError("Malformed webhook body", provider=provider, reason="malformed_json")
        if not isinstance(payload, dict) or not payload.get("uuid"):
            raise WebhookRejectedError("Webhook has no charge uuid", provider=provider, reason="missing_uuid")

        charge_id = str(payload["uuid"])
        status = normalize_status(payload.get("status"))

        async with self.uow_factory(readonly=True) as uow:
            known = await uow.transaction_repository.get_by_transaction_id(charge_id)
        if known is None:
            logger.warning("webhook_unknown_transaction", transaction_id=charge_id)
            raise WebhookRejectedError("Unknown transaction", provider=provider, reason="unknown_transaction")

        events: list[PaymentEvent] = []
        async with self.locks.lock(known.order_id):
            async with self.uow_factory() as uow:
                transaction = await uow.transaction_repository.get_by_transaction_id(charge_id)
                order = await uow.order_repository.get_by_id(known.order_id)
                if transaction is None or order is None or order.id != transaction.order_id:
                    raise WebhookRejectedError("Order does not match transaction", provider=provider, reason="order_mismatch")

                processor = self._processor()
                try:
                    processor.apply(order, transaction, status, payload)
                except (DomainValidationException, ArithmeticError) as exc:
                    logger.warning(
                        "webhook_refund_rejected",
                        transaction_id=charge_id,
                        order_id=known.order_id,
                        refunds=payload.get("refunds"),
                        error=str(exc),
                    )
                    raise WebhookRejectedError(
                        "Refund in webhook cannot be applied", provider=provider, reason="refund_rejected"
                    ) from exc
                await uow.transaction_repository.update(transaction)
                await uow.order_repository.update(order)
                events.extend(processor.get_domain_events())

        logger.info(
            "webhook_applied",
            transaction_id=charge_id,
            order_id=known.order_id,
            gateway_status=status,
            order_status=order.status.value,
        )
        await self._dispatch(events)
        return WebhookAck(uuid=charge_id, status=status)

    # Helpers

    async def _load(self, uow: AbstractUnitOfWork, order_id: int) -> tuple[Order, PaymentTransaction]:
        order = await uow.order_repository.get_by_id(order_id)
        if order is None:
            raise OrderNotFoundException(order_id)
        transaction = await uow.transaction_repository.get_by_order_id(order_id)
        if transaction is None or not transaction.transaction_id:
            raise TransactionNotFoundException(order_id=order_id)
        return order, transaction

    def _manual_action_notice(self, order: Order, transaction: PaymentTransaction, operation: str) -> MerchantNotification:
        url = self._processor().transaction_url(transaction)
        return MerchantNotification(
            order_id=order.id,
            order_number=order.number,
            transaction_id=transaction.transaction_id,
            params={"number": order.number, "url": url, "operation": operation},
            subject="The {operation} transaction for order {number} has failed.",
            title="Transaction failed",
            message="In order to {operation} this transaction access the GenPay dashboard: {url}.",
        )

    async def _dispatch(self, events: Iterable[PaymentEvent]) -> None:
        for event in events:
            params = event.params
            try:
                if isinstance(event, MerchantNotification):
                    await self.notifier.notify_merchant(
                        t(event.subject, **params), t(event.title, **params), t(event.message, **params)
                    )
                elif isinstance(event, CustomerNotification):
                    await self.notifier.notify_customer(
                        event.recipient,
                        t(event.subject, **params),
                        t(event.title, **params),
                        t(event.message, **params),
                    )
            except Exception as exc:
                # State is already committed; a lost email must not undo it
                logger.error(
                    "notification_dispatch_failed",
                    event_id=event.event_id,
                    order_id=event.order_id,
                    error=str(exc),
                    exc_info=True,
                )
