"""
Exceptions for gateway clients mapped to unified BusinessException variants.

Outbound calls fail in three tiers: transport (no HTTP response), protocol
(non-200 with an ``errors`` body) and business (200 with
``result == "failure"``). Callers handle each tier differently.
"""
from __future__ import annotations

from typing import Optional
from domain.common.exceptions import BusinessException
from shared.codes.payment_codes import PaymentCode


class PaymentProviderError(BusinessException):
    """Base for errors raised while talking to a gateway."""

    def __init__(
        self,
        message: str,
        *,
        provider: str,
        code: int = PaymentCode.PROVIDER_ERROR,
        error_type: str = "PaymentProviderError",
        details: Optional[dict] = None,
    ):
        full_details = {"provider": provider}
        if details:
            full_details.update(details)
        self.provider = provider
        super().__init__(
            code=code,
            message=message,
            error_type=error_type,
            details=full_details,
        )


class GatewayTransportError(PaymentProviderError):
    """Network, DNS or timeout failure; no HTTP response was received."""

    def __init__(self, message: str, *, provider: str, endpoint: str):
        self.endpoint = endpoint
        super().__init__(
            message,
            provider=provider,
            code=PaymentCode.TRANSPORT_ERROR,
            error_type="GatewayTransportError",
            details={"endpoint": endpoint},
        )


class GatewayProtocolError(PaymentProviderError):
    """Non-200 HTTP status; ``messages`` holds the gateway error descriptions."""

    def __init__(
        self,
        message: str,
        *,
        provider: str,
        status_code: Optional[int] = None,
        messages: Optional[list[str]] = None,
        body: Optional[dict] = None,
    ):
        self.status_code = status_code
        self.messages = messages or []
        self.body = body or {}
        super().__init__(
            message,
            provider=provider,
            code=PaymentCode.PROTOCOL_ERROR,
            error_type="GatewayProtocolError",
            details={"status_code": status_code, "messages": self.messages},
        )


class GatewayBusinessError(PaymentProviderError):
    """HTTP 200 carrying ``result == "failure"``; ``errors`` is shown to the buyer."""

    def __init__(self, message: str, *, provider: str, errors: Optional[list[dict]] = None, body: Optional[dict] = None):
        self.errors = errors or []
        self.body = body or {}
        super().__init__(
            message,
            provider=provider,
            code=PaymentCode.BUSINESS_FAILURE,
            error_type="GatewayBusinessError",
            details={"errors": self.errors},
        )


class PaymentSignatureError(BusinessException):
    def __init__(self, message: str, *, provider: str, details: Optional[dict] = None):
        full_details = {"provider": provider}
        if details:
            full_details.update(details)
        super().__init__(
            code=PaymentCode.SIGNATURE_ERROR,
            message=message,
            error_type="PaymentSignatureError",
            details=full_details,
        )


class WebhookRejectedError(BusinessException):
    """Signed webhook that cannot be applied (bad JSON, unknown charge)."""

    def __init__(self, message: str, *, provider: str, reason: str):
        super().__init__(
            code=PaymentCode.WEBHOOK_REJECTED,
            message=message,
            error_type="WebhookRejected",
            details={"provider": provider, "reason": reason},
        )


class LogisticsError(PaymentProviderError):
    def __init__(self, message: str, *, messages: Optional[list] = None, details: Optional[dict] = None):
        self.messages = messages or []
        full_details = {"messages": self.messages}
        if details:
            full_details.update(details)
        super().__init__(
            message,
            provider="genlog",
            code=PaymentCode.LOGISTICS_ERROR,
            error_type="LogisticsError",
            details=full_details,
        )
