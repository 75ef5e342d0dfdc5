"""
Payment-related settings using pydantic-settings v2 with nested env keys.

Kept apart from core.config.Settings: these objects are handed to the
gateway clients and services by the composition root, the clients never
read them on their own.
"""
from __future__ import annotations

from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, Field


GENPAY_PRODUCTION_URL = "https://api.gencomm.com.br/rpay/v1/"
GENPAY_SANDBOX_URL = "http://oneapi-sandbox.genpay.com.br/rpay/v1/"
GENLOG_PRODUCTION_URL = "https://logistics.gencomm.com.br/logistics/"
GENLOG_SANDBOX_URL = "https://oneapi-sandbox.genlog.com.br/logistics/"


class PaymentTimeouts(BaseModel):
    connect: float = 10.0
    read: float = 60.0
    write: float = 60.0
    total: float = 60.0


class PaymentRetry(BaseModel):
    # 0 = single attempt; status reconciliation relies on webhooks
    max: int = 0
    base_backoff: float = 0.5


class GenPayConfig(BaseModel):
    """Merchant credentials and checkout options for the payment gateway."""

    environment: str = "sandbox"
    document: str = ""
    api_key: str = ""
    signature_key: str = ""
    webhook_url: str = ""
    dashboard_url: str = "https://dashboard.genpay.com.br"
    merchant_email: str = ""
    # Installment quantities up to this value never carry buyer interest
    free_installments: int = 1
    buyer_interest: bool = True
    timezone: str = "America/Sao_Paulo"
    billet_days_to_expire: int = 3

    @property
    def base_url(self) -> str:
        return GENPAY_PRODUCTION_URL if self.environment == "production" else GENPAY_SANDBOX_URL


class GenLogConfig(BaseModel):
    """Credentials for the logistics partner."""

    environment: str = "sandbox"
    document: str = ""
    api_key: str = ""
    signature_key: str = ""
    shipping_method_id: str = "genlog"

    @property
    def base_url(self) -> str:
        return GENLOG_PRODUCTION_URL if self.environment == "production" else GENLOG_SANDBOX_URL


class StorefrontSettings(BaseModel):
    # Rendered with {order_id} and {order_number}
    thank_you_url: str = "http://localhost:8000/checkout/order-received/{order_id}"
    billet_base_url: str = "http://localhost:8000/api/v1/payments/billets"


class PaymentSettings(BaseSettings):
    timeouts: PaymentTimeouts = Field(default_factory=PaymentTimeouts)
    retry: PaymentRetry = Field(default_factory=PaymentRetry)

    genpay: GenPayConfig = Field(default_factory=GenPayConfig)
    genlog: GenLogConfig = Field(default_factory=GenLogConfig)
    storefront: StorefrontSettings = Field(default_factory=StorefrontSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="allow",
        env_nested_delimiter="__",
    )


payment_settings = PaymentSettings()
