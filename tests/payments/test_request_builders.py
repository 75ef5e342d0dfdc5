from datetime import datetime, timezone
from decimal import Decimal

import pytest

from application.dtos.payments import CheckoutForm, RefundForm
from application.services.request_builders import (
    billet_expiry,
    build_charge_request,
    build_refund_request,
    parse_phone,
    payment_method_for,
    refund_kind,
    strip_diacritics,
)
from domain.common.exceptions import DomainValidationException, MalformedPhoneNumberException
from domain.order.entity import Address, PaymentMethodKind, ShippingLine
from domain.payment.entity import BilletPayment, CreditCardPayment, InstallmentPlan, RefundKind
from infrastructure.external.payments.exceptions import GatewayProtocolError
from infrastructure.external.payments.signing import encode_body


NOW = datetime(2026, 10, 19, 2, 0, tzinfo=timezone.utc)


def _card_form(**overrides) -> CheckoutForm:
    data = dict(
        document="123.456.789-09",
        installments=3,
        card_brand="Visa",
        card_token="tok_123",
        card_cvv="123",
        card_holder_name="JOAO SILVA",
        card_holder_document="12345678909",
        fingerprint="fp-1",
    )
    data.update(overrides)
    return CheckoutForm(**data)


def _plan_with_interest() -> InstallmentPlan:
    return InstallmentPlan(
        total=Decimal("154.50"),
        quantity=3,
        interest_percent=Decimal("3.00"),
        interest_amount=Decimal("4.50"),
        installment_amount=Decimal("51.50"),
    )


def test_charge_amount_adds_interest_and_reports_it_as_tax(order_factory, genpay_config):
    order = order_factory()
    form = _card_form()
    payment = payment_method_for(order, form)

    request = build_charge_request(order, payment, form, _plan_with_interest(), config=genpay_config, now=NOW)
    wire = request.to_wire()

    assert request.amount == Decimal("154.50")
    assert wire["amount"] == 154.5
    assert wire["order"]["taxes_amount"] == 4.5
    assert wire["payments"][0]["amount"] == 154.5
    assert wire["payments"][0]["brand"] == "visa"
    assert wire["payments"][0]["installments"]["quantity"] == 3
    assert wire["webhook_url"] == genpay_config.webhook_url


def test_customer_block(order_factory, genpay_config):
    order = order_factory()
    form = _card_form()
    request = build_charge_request(
        order, payment_method_for(order, form), form, InstallmentPlan.interest_free(order.total, 1),
        config=genpay_config, now=NOW,
    )
    customer = request.to_wire()["customer"]

    assert customer["document"] == "12345678909"
    assert customer["name"] == "João Silva"
    assert [p["kind"] for p in customer["phones"]] == ["billing", "shipping"]
    assert customer["phones"][0]["number"] == {"country_code": "55", "area_code": "11", "number": "987654321"}
    billing, shipping = customer["addresses"]
    assert billing["kind"] == "billing"
    assert shipping["kind"] == "shipping"
    assert billing["zipcode"] == "01001000"
    assert {k: v for k, v in billing.items() if k != "kind"} == {k: v for k, v in shipping.items() if k != "kind"}


def test_distinct_shipping_address(order_factory, genpay_config):
    order = order_factory(shipping_address=Address(street="Av. Paulista", number="1000", city="São Paulo", postcode="01310-100"))
    form = _card_form(ship_to_different_address=True, shipping_number="1578", shipping_neighborhood="Bela Vista")
    request = build_charge_request(
        order, payment_method_for(order, form), form, InstallmentPlan.interest_free(order.total, 1),
        config=genpay_config, now=NOW,
    )
    shipping = request.to_wire()["customer"]["addresses"][1]
    assert shipping["street"] == "Av. Paulista"
    assert shipping["number"] == "1578"
    assert shipping["district"] == "Bela Vista"


def test_no_address_without_billing_street(order_factory, genpay_config):
    order = order_factory(billing_address=None)
    form = _card_form()
    request = build_charge_request(
        order, payment_method_for(order, form), form, InstallmentPlan.interest_free(order.total, 1),
        config=genpay_config, now=NOW,
    )
    assert request.customer.addresses == []


def test_items_use_sku_without_diacritics(order_factory, genpay_config):
    order = order_factory()
    form = _card_form()
    request = build_charge_request(
        order, payment_method_for(order, form), form, InstallmentPlan.interest_free(order.total, 1),
        config=genpay_config, now=NOW,
    )
    item = request.to_wire()["order"]["items"][0]
    assert item["reference"] == "CAMISETA-01"
    assert item["amount"] == 70.0
    assert item["total_amount"] == 140.0
    assert item["categories"] == [{"id": "3", "name": "Roupas"}]
    assert strip_diacritics("Ação") == "Acao"


def test_commissioning_only_for_logistics_shipping(order_factory, genpay_config):
    form = _card_form()
    plain = order_factory(shipping_line=ShippingLine(method_id="flat_rate"))
    request = build_charge_request(
        plain, payment_method_for(plain, form), form, InstallmentPlan.interest_free(plain.total, 1),
        config=genpay_config, now=NOW,
    )
    assert "commissionings" not in request.to_wire()

    shipped = order_factory(shipping_line=ShippingLine(method_id="genlog", calculation_code="calc-1", postage_service_code="ps-9"))
    request = build_charge_request(
        shipped, payment_method_for(shipped, form), form, InstallmentPlan.interest_free(shipped.total, 1),
        config=genpay_config, now=NOW,
    )
    commissioning = request.to_wire()["commissionings"][0]
    assert commissioning["kind"] == "rakuten_logistics"
    assert commissioning["amount"] == 10.0
    assert commissioning["calculation_code"] == "calc-1"
    assert commissioning["postage_service_code"] == "ps-9"


def test_billet_charge_expires_in_site_timezone(order_factory, genpay_config):
    order = order_factory(payment_method=PaymentMethodKind.BILLET)
    form = CheckoutForm(document="12345678909")
    payment = payment_method_for(order, form)
    assert isinstance(payment, BilletPayment)

    request = build_charge_request(
        order, payment, form, InstallmentPlan.interest_free(order.total, 1), config=genpay_config, now=NOW
    )
    billet = request.to_wire()["payments"][0]
    # 02:00 UTC is still the previous day in Sao Paulo
    assert billet == {"method": "billet", "expires_on": "2026-10-21", "amount": 150.0}
    assert billet_expiry(NOW, "UTC", 3) == "2026-10-22"


def test_whole_amount_is_encoded_with_fraction(order_factory, genpay_config):
    order = order_factory()
    form = _card_form(installments=1)
    request = build_charge_request(
        order, payment_method_for(order, form), form, InstallmentPlan.interest_free(order.total, 1),
        config=genpay_config, now=NOW,
    )
    assert b'"amount":150.0' in encode_body(request.to_wire())


def test_malformed_phone_is_rejected():
    assert parse_phone("(21) 3456-7890").number == "34567890"
    with pytest.raises(MalformedPhoneNumberException):
        parse_phone("11987654321")


def test_card_payment_requires_card_fields(order_factory):
    with pytest.raises(DomainValidationException) as exc_info:
        payment_method_for(order_factory(), CheckoutForm(document="1", card_brand="visa"))
    assert exc_info.value.field == "card_token"


def test_card_payment_variant(order_factory):
    payment = payment_method_for(order_factory(), _card_form())
    assert isinstance(payment, CreditCardPayment)
    assert payment.installments_quantity == 3


def test_interest_free_plan_splits_total():
    plan = InstallmentPlan.interest_free(Decimal("150.00"), 3)
    assert plan.installment_amount == Decimal("50.00")
    assert plan.interest_amount == Decimal("0")


def test_refund_kind_compares_cents(order_factory):
    order = order_factory()
    assert refund_kind(order, Decimal("150")) == RefundKind.TOTAL
    assert refund_kind(order, Decimal("150.00")) == RefundKind.TOTAL
    assert refund_kind(order, Decimal("149.99")) == RefundKind.PARTIAL


def test_refund_request_for_card(order_factory):
    order = order_factory()
    kind, request = build_refund_request(
        order, PaymentMethodKind.CREDIT_CARD, RefundForm(amount=Decimal("50.00"), reason=" damaged "),
        {"payments": [{"id": "p1"}]},
    )
    wire = request.to_wire()
    assert kind == RefundKind.PARTIAL
    assert wire["requester"] == "merchant"
    assert wire["reason"] == "damaged"
    assert wire["payments"] == [{"id": "p1", "amount": 50.0}]


def test_billet_refund_needs_bank_account(order_factory):
    order = order_factory(payment_method=PaymentMethodKind.BILLET)
    with pytest.raises(DomainValidationException):
        build_refund_request(order, PaymentMethodKind.BILLET, RefundForm(amount=Decimal("10.00")), {"payments": [{"id": "p1"}]})

    kind, request = build_refund_request(
        order,
        PaymentMethodKind.BILLET,
        RefundForm(
            amount=Decimal("150.00"),
            customer_document="123.456.789-09",
            bank_code="341",
            bank_agency="0001-2",
            bank_number="12345-6",
        ),
        {"payments": [{"id": "p1"}]},
    )
    assert kind == RefundKind.TOTAL
    account = request.to_wire()["payments"][0]["bank_account"]
    assert account == {"document": "12345678909", "bank_code": "341", "bank_agency": "00012", "bank_number": "12345-6"}


def test_refund_snapshot_without_payments(order_factory):
    with pytest.raises(GatewayProtocolError):
        build_refund_request(order_factory(), PaymentMethodKind.CREDIT_CARD, RefundForm(amount=Decimal("1.00")), {})
