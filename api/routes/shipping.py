"""
Shipping API routes backed by the GenLog logistics partner.
"""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends

from api.dependencies import get_shipping_service
from application.services.shipping_service import ShippingService
from core.response import success_response
from core.i18n import t


router = APIRouter(prefix="/shipping", tags=["Shipping"])


@router.post("/quotes", summary="Freight quote")
async def quote(payload: dict[str, Any] = Body(...), service: ShippingService = Depends(get_shipping_service)):
    content = await service.quote(payload)
    return success_response(data=content, message=t("shipping.quote.created"))


@router.post("/orders/{order_id}/batches", summary="Dispatch a shipment batch")
async def dispatch_batch(
    order_id: int,
    payload: dict[str, Any] = Body(...),
    service: ShippingService = Depends(get_shipping_service),
):
    tracking = await service.dispatch_batch(order_id, payload)
    data = tracking.as_metadata() if tracking else None
    return success_response(data=data, message=t("shipping.batch.dispatched"))
