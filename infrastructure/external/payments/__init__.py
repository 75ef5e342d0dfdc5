"""
Factory for gateway clients.
"""
from __future__ import annotations

from typing import Optional

from core.settings import PaymentSettings, payment_settings


def _client_kwargs(settings: PaymentSettings) -> dict:
    return {
        "timeouts": settings.timeouts.model_dump(),
        "retry": settings.retry.model_dump(),
    }


def get_payment_gateway(settings: Optional[PaymentSettings] = None):
    from .genpay_client import GenPayClient

    settings = settings or payment_settings
    return GenPayClient(settings.genpay, **_client_kwargs(settings))


def get_logistics_client(settings: Optional[PaymentSettings] = None):
    from infrastructure.external.logistics.genlog_client import GenLogClient

    settings = settings or payment_settings
    return GenLogClient(settings.genlog, **_client_kwargs(settings))
