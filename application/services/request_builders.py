"""
Builders turning an order plus submitted form data into GenPay request bodies.
"""
from __future__ import annotations

import re
import unicodedata
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Optional
from zoneinfo import ZoneInfo

from application.dtos.payments import (
    BankAccount,
    BilletCharge,
    ChargeItem,
    ChargeOrder,
    ChargeRequest,
    CheckoutForm,
    Commissioning,
    CreditCardCharge,
    Customer,
    CustomerAddress,
    Installments,
    ItemCategory,
    Phone,
    PhoneNumber,
    RefundForm,
    RefundPayment,
    RefundRequest,
)
from core.settings import GenPayConfig
from domain.common.exceptions import DomainValidationException, MalformedPhoneNumberException
from domain.order.entity import Address, Order, PaymentMethodKind, quantize_money, to_cents
from domain.payment.entity import (
    BilletPayment,
    CreditCardPayment,
    InstallmentPlan,
    PaymentMethod,
    RefundKind,
)
from infrastructure.external.payments.exceptions import GatewayProtocolError


PHONE_PATTERN = re.compile(r"^\((\d{2})\)\s?(\d{4,5})-(\d{4})$")
LOGISTICS_SHIPPING_METHOD = "genlog"
COMMISSIONING_KIND = "rakuten_logistics"
ITEM_DESCRIPTION_MAX = 255


def only_digits(value: Optional[str]) -> str:
    return re.sub(r"\D", "", value or "")


def strip_diacritics(value: str) -> str:
    normalized = unicodedata.normalize("NFKD", value)
    return "".join(c for c in normalized if not unicodedata.combining(c))


def parse_phone(phone: str) -> PhoneNumber:
    match = PHONE_PATTERN.match((phone or "").strip())
    if not match:
        raise MalformedPhoneNumberException(phone)
    area_code, prefix, suffix = match.groups()
    return PhoneNumber(country_code="55", area_code=area_code, number=f"{prefix}{suffix}")


def payment_method_for(order: Order, form: CheckoutForm) -> PaymentMethod:
    """Pick the payment variant for the order's gateway method."""
    if order.payment_method == PaymentMethodKind.BILLET:
        return BilletPayment()

    missing = [
        name
        for name, value in (
            ("card_brand", form.card_brand),
            ("card_token", form.card_token),
            ("card_cvv", form.card_cvv),
            ("card_holder_name", form.card_holder_name),
            ("card_holder_document", form.card_holder_document),
        )
        if not value
    ]
    if missing:
        raise DomainValidationException(
            f"Missing credit card fields: {', '.join(missing)}",
            field=missing[0],
            details={"missing": missing},
        )
    return CreditCardPayment(
        installments_quantity=form.installments,
        brand=form.card_brand or "",
        token=form.card_token or "",
        cvv=form.card_cvv or "",
        holder_name=form.card_holder_name or "",
        holder_document=form.card_holder_document or "",
    )


def _address(
    kind: str,
    contact: str,
    address: Address,
    *,
    number: Optional[str] = None,
    district: Optional[str] = None,
) -> CustomerAddress:
    return CustomerAddress(
        kind=kind,
        contact=contact,
        street=address.street,
        complement=address.complement or "",
        city=address.city,
        state=address.state,
        country=address.country,
        zipcode=only_digits(address.postcode),
        number=number or address.number or None,
        district=district or address.district or None,
    )


def _addresses(order: Order, form: CheckoutForm, contact: str) -> list[CustomerAddress]:
    addresses: list[CustomerAddress] = []
    billing: Optional[CustomerAddress] = None
    if order.billing_address is not None and order.billing_address.street:
        billing = _address(
            "billing",
            contact,
            order.billing_address,
            number=form.billing_number,
            district=form.billing_neighborhood,
        )
        addresses.append(billing)

    if form.ship_to_different_address and order.shipping_address is not None:
        addresses.append(_address(
            "shipping",
            contact,
            order.shipping_address,
            number=form.shipping_number,
            district=form.shipping_neighborhood,
        ))
    elif billing is not None:
        addresses.append(billing.model_copy(update={"kind": "shipping"}))
    return addresses


def _items(order: Order) -> list[ChargeItem]:
    items = []
    for item in order.items:
        reference = strip_diacritics(item.sku) if item.sku else str(item.product_id)
        items.append(ChargeItem(
            reference=reference,
            description=item.name[:ITEM_DESCRIPTION_MAX],
            amount=item.unit_price,
            quantity=item.quantity,
            total_amount=item.total,
            categories=[ItemCategory(id=str(c.id), name=c.name) for c in item.categories],
        ))
    return items


def _commissionings(order: Order) -> Optional[list[Commissioning]]:
    line = order.shipping_line
    if line is None or line.method_id != LOGISTICS_SHIPPING_METHOD:
        return None
    return [Commissioning(
        reference=str(order.id),
        kind=COMMISSIONING_KIND,
        amount=order.shipping_total,
        calculation_code=line.calculation_code,
        postage_service_code=line.postage_service_code,
    )]


def billet_expiry(now: datetime, timezone_name: str, days: int = 3) -> str:
    """Expiry date ``days`` calendar days out, in the site's timezone."""
    local = now.astimezone(ZoneInfo(timezone_name))
    return (local + timedelta(days=days)).date().isoformat()


def build_charge_request(
    order: Order,
    payment: PaymentMethod,
    form: CheckoutForm,
    plan: InstallmentPlan,
    *,
    config: GenPayConfig,
    now: datetime,
) -> ChargeRequest:
    """
    Assemble the ``POST charges`` body.

    The charged amount is the order total plus the plan's interest; the
    interest is also reported as a tax line of the order.
    """
    interest = quantize_money(plan.interest_amount)
    total_amount = quantize_money(order.total + interest)
    contact = order.billing.full_name
    phone = parse_phone(order.billing.phone)

    customer = Customer(
        document=only_digits(form.document),
        name=contact,
        business_name=form.company or order.billing.company or contact,
        email=order.billing.email,
        birth_date=form.birth_date or "1999-01-01",
        kind="personal",
        addresses=_addresses(order, form, contact),
        phones=[
            Phone(kind="billing", reference="others", number=phone),
            Phone(kind="shipping", reference="others", number=phone),
        ],
    )

    charge_order = ChargeOrder(
        reference=str(order.id),
        payer_ip=order.customer_ip,
        items_amount=order.subtotal,
        shipping_amount=order.shipping_total,
        taxes_amount=order.total_tax + interest,
        discount_amount=order.discount_total,
        items=_items(order),
    )

    if isinstance(payment, CreditCardPayment):
        charge_payment: Any = CreditCardCharge(
            amount=total_amount,
            installments_quantity=payment.installments_quantity,
            brand=payment.brand.lower(),
            token=payment.token,
            cvv=payment.cvv,
            holder_name=payment.holder_name,
            holder_document=payment.holder_document,
            installments=Installments(
                total=plan.total,
                quantity=plan.quantity,
                interest_percent=plan.interest_percent,
                interest_amount=plan.interest_amount,
                installment_amount=plan.installment_amount,
            ),
        )
    elif isinstance(payment, BilletPayment):
        charge_payment = BilletCharge(
            expires_on=billet_expiry(now, config.timezone, config.billet_days_to_expire),
            amount=order.total,
        )
    else:
        raise TypeError(f"Unsupported payment method: {type(payment).__name__}")

    return ChargeRequest(
        reference=order.number,
        amount=total_amount,
        currency=order.currency,
        webhook_url=config.webhook_url,
        fingerprint=form.fingerprint,
        customer=customer,
        order=charge_order,
        payments=[charge_payment],
        commissionings=_commissionings(order),
    )


def refund_kind(order: Order, amount: Decimal) -> RefundKind:
    """``total`` iff the refund equals the order total to the cent."""
    return RefundKind.TOTAL if to_cents(amount) == to_cents(order.total) else RefundKind.PARTIAL


def build_refund_request(
    order: Order,
    payment_method: PaymentMethodKind,
    form: RefundForm,
    transaction_snapshot: dict[str, Any],
) -> tuple[RefundKind, RefundRequest]:
    payments = transaction_snapshot.get("payments") or []
    if not payments or not payments[0].get("id"):
        raise GatewayProtocolError(
            "Transaction snapshot has no payments to refund",
            provider="genpay",
            body=transaction_snapshot,
        )

    amount = quantize_money(Decimal(form.amount))
    bank_account = None
    if payment_method == PaymentMethodKind.BILLET:
        missing = [
            name
            for name in ("customer_document", "bank_code", "bank_agency", "bank_number")
            if not getattr(form, name)
        ]
        if missing:
            raise DomainValidationException(
                f"Billet refunds need bank data: {', '.join(missing)}",
                field=missing[0],
                details={"missing": missing},
            )
        bank_account = BankAccount(
            document=only_digits(form.customer_document),
            bank_code=only_digits(form.bank_code),
            bank_agency=only_digits(form.bank_agency),
            bank_number=form.bank_number or "",
        )

    request = RefundRequest(
        requester="merchant",
        reason=form.reason,
        amount=amount,
        payments=[RefundPayment(id=str(payments[0]["id"]), amount=amount, bank_account=bank_account)],
    )
    return refund_kind(order, amount), request
