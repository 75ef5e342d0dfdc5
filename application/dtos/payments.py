"""
Payment DTOs (Pydantic v2) used at application boundaries.

Wire models mirror the GenPay JSON bodies. Money is kept as Decimal in
Python and serialized as a JSON float, so ``150`` goes out as ``150.0``.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Annotated, Any, Literal, Optional, Union
from pydantic import BaseModel, Field, PlainSerializer, field_validator
from pydantic.types import condecimal


Money = Annotated[Decimal, PlainSerializer(lambda v: float(v), return_type=float, when_used="json")]


# Charge request

class PhoneNumber(BaseModel):
    country_code: str = "55"
    area_code: str
    number: str


class Phone(BaseModel):
    kind: Literal["billing", "shipping"]
    reference: str = "others"
    number: PhoneNumber


class CustomerAddress(BaseModel):
    kind: Literal["billing", "shipping"]
    contact: str
    street: str
    complement: str = ""
    city: str = ""
    state: str = ""
    country: str = ""
    zipcode: str = ""
    number: Optional[str] = None
    district: Optional[str] = None


class Customer(BaseModel):
    document: str
    name: str
    business_name: str
    email: str
    birth_date: str = "1999-01-01"
    kind: str = "personal"
    addresses: list[CustomerAddress] = Field(default_factory=list)
    phones: list[Phone] = Field(default_factory=list)


class ItemCategory(BaseModel):
    id: str
    name: str


class ChargeItem(BaseModel):
    reference: str
    description: str
    amount: Money
    quantity: int
    total_amount: Money
    categories: list[ItemCategory] = Field(default_factory=list)


class ChargeOrder(BaseModel):
    reference: str
    payer_ip: Optional[str] = None
    items_amount: Money
    shipping_amount: Money
    taxes_amount: Money
    discount_amount: Money
    items: list[ChargeItem] = Field(default_factory=list)


class Commissioning(BaseModel):
    reference: str
    kind: str = "rakuten_logistics"
    amount: Money
    calculation_code: Optional[str] = None
    postage_service_code: Optional[str] = None


class Installments(BaseModel):
    total: Money
    quantity: int
    interest_percent: Money
    interest_amount: Money
    installment_amount: Money


class PaymentOptions(BaseModel):
    save_card: bool = False
    new_card: bool = False
    recurrency: bool = False


class CreditCardCharge(BaseModel):
    reference: str = "1"
    method: Literal["credit_card"] = "credit_card"
    amount: Money
    installments_quantity: int
    brand: str
    token: str
    cvv: str
    holder_name: str
    holder_document: str
    options: PaymentOptions = Field(default_factory=PaymentOptions)
    installments: Optional[Installments] = None


class BilletCharge(BaseModel):
    method: Literal["billet"] = "billet"
    expires_on: str
    amount: Money


ChargePayment = Annotated[Union[CreditCardCharge, BilletCharge], Field(discriminator="method")]


class ChargeRequest(BaseModel):
    reference: str
    amount: Money
    currency: str = "BRL"
    webhook_url: str
    fingerprint: Optional[str] = None
    customer: Customer
    order: ChargeOrder
    payments: list[ChargePayment]
    commissionings: Optional[list[Commissioning]] = None

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


# Refund request

class BankAccount(BaseModel):
    document: str
    bank_code: str
    bank_agency: str
    bank_number: str


class RefundPayment(BaseModel):
    id: str
    amount: Money
    bank_account: Optional[BankAccount] = None


class RefundRequest(BaseModel):
    requester: str = "merchant"
    reason: str = ""
    amount: Money
    payments: list[RefundPayment]

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


@dataclass
class GatewayResponse:
    """HTTP response from a gateway; non-200 statuses are returned, not raised."""
    status_code: int
    body: dict[str, Any] = field(default_factory=dict)
    raw: bytes = b""

    @property
    def ok(self) -> bool:
        return self.status_code == 200

    @property
    def result(self) -> Optional[str]:
        return self.body.get("result")

    @property
    def is_business_failure(self) -> bool:
        return self.result == "failure"

    def error_messages(self) -> list[str]:
        """``errors[].description`` in gateway order."""
        messages = []
        for error in self.body.get("errors") or []:
            if isinstance(error, dict) and error.get("description"):
                messages.append(str(error["description"]))
        return messages

    def error_text(self) -> str:
        return "\n".join(self.error_messages())


# Forms submitted by the storefront

class CheckoutForm(BaseModel):
    document: str = Field(..., description="Buyer CPF/CNPJ, any punctuation")
    company: Optional[str] = None
    birth_date: str = "1999-01-01"
    fingerprint: Optional[str] = None
    installments: int = Field(default=1, ge=1)
    card_brand: Optional[str] = None
    card_token: Optional[str] = None
    card_cvv: Optional[str] = None
    card_holder_name: Optional[str] = None
    card_holder_document: Optional[str] = None
    billing_number: Optional[str] = None
    billing_neighborhood: Optional[str] = None
    shipping_number: Optional[str] = None
    shipping_neighborhood: Optional[str] = None
    ship_to_different_address: bool = False


class RefundForm(BaseModel):
    amount: condecimal(gt=0, decimal_places=2)  # type: ignore[valid-type]
    reason: str = ""
    customer_document: Optional[str] = None
    bank_code: Optional[str] = None
    bank_agency: Optional[str] = None
    bank_number: Optional[str] = None

    @field_validator("reason")
    @classmethod
    def _strip_reason(cls, v: str) -> str:
        return (v or "").strip()


# Results

class CheckoutResult(BaseModel):
    result: Literal["success", "fail"]
    redirect_url: Optional[str] = None
    errors: list[str] = Field(default_factory=list)
    # Tells the storefront to empty the buyer's cart
    empty_cart: bool = False
    transaction_id: Optional[str] = None
    status: Optional[str] = None


class InstallmentOption(BaseModel):
    total: Money
    quantity: int
    interest_percent: Money
    interest_amount: Money
    installment_amount: Money


class RefundResult(BaseModel):
    success: bool
    kind: Optional[str] = None
    refund_id: Optional[str] = None


class WebhookAck(BaseModel):
    uuid: str
    status: str
