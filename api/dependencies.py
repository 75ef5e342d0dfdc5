"""
API dependencies: the composition root for the application services
"""
from typing import AsyncIterator

from fastapi import Depends, Request

from application.ports.order_lock import OrderLockProvider
from application.services.payment_service import PaymentService
from application.services.shipping_service import ShippingService
from core.settings import payment_settings
from infrastructure.adapters.celery_notifier import CeleryNotifier
from infrastructure.external.logistics.genlog_client import GenLogClient
from infrastructure.external.payments import get_logistics_client, get_payment_gateway
from infrastructure.external.payments.genpay_client import GenPayClient
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork


async def get_order_lock(request: Request) -> OrderLockProvider:
    """Order lock shared for the app's lifetime (created in lifespan)."""
    return request.app.state.order_lock


async def get_gateway() -> AsyncIterator[GenPayClient]:
    gateway = get_payment_gateway()
    try:
        yield gateway
    finally:
        await gateway.aclose()


async def get_logistics() -> AsyncIterator[GenLogClient]:
    client = get_logistics_client()
    try:
        yield client
    finally:
        await client.aclose()


async def get_payment_service(
    gateway: GenPayClient = Depends(get_gateway),
    locks: OrderLockProvider = Depends(get_order_lock),
) -> PaymentService:
    genpay = payment_settings.genpay
    return PaymentService(
        gateway,
        uow_factory=SQLAlchemyUnitOfWork,
        notifier=CeleryNotifier(genpay.merchant_email),
        locks=locks,
        config=genpay,
        thank_you_url=payment_settings.storefront.thank_you_url,
        billet_base_url=payment_settings.storefront.billet_base_url,
    )


async def get_shipping_service(
    logistics: GenLogClient = Depends(get_logistics),
    locks: OrderLockProvider = Depends(get_order_lock),
) -> ShippingService:
    return ShippingService(logistics, uow_factory=SQLAlchemyUnitOfWork, locks=locks)
