"""
Payments API routes.

Exposes the GenPay webhook, the billet download and the order payment
operations via the application service. Keep this thin: no HTTP client
details here.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Literal

from fastapi import APIRouter, Depends, Header, Query, Request
from fastapi.responses import HTMLResponse, JSONResponse
from pydantic import BaseModel

from api.dependencies import get_payment_service
from application.dtos.payments import (
    CheckoutForm,
    InstallmentOption,
    RefundForm,
)
from application.services.payment_service import PaymentService
from core.response import success_response
from core.i18n import t
from core.logging_config import get_logger


router = APIRouter(prefix="/payments", tags=["Payments"])
logger = get_logger(__name__)


class CredentialProbe(BaseModel):
    document: str
    api_key: str
    environment: Literal["sandbox", "production"] = "sandbox"


@router.post("/webhooks/genpay", summary="GenPay status notification")
async def genpay_webhook(
    request: Request,
    signature: str | None = Header(default=None, alias="Signature"),
    service: PaymentService = Depends(get_payment_service),
):
    """
    Apply a signed status notification.

    The body is verified byte-for-byte before parsing; signature failures
    and unknown charges answer 401 through the exception handlers.
    """
    raw_body = await request.body()
    ack = await service.handle_webhook(raw_body, signature)
    # GenPay expects the bare acknowledgement, not the response envelope
    return JSONResponse(content=ack.model_dump(mode="json"))


@router.get("/billets/{transaction_id}", summary="Billet HTML", response_class=HTMLResponse)
async def billet_download(transaction_id: str, service: PaymentService = Depends(get_payment_service)):
    html = await service.billet_html(transaction_id)
    return HTMLResponse(content=html)


@router.post("/orders/{order_id}/checkout", summary="Charge an order")
async def checkout(order_id: int, form: CheckoutForm, service: PaymentService = Depends(get_payment_service)):
    result = await service.checkout(order_id, form)
    return success_response(data=result.model_dump(mode="json"), message=t("payments.checkout.processed"))


@router.post("/orders/{order_id}/cancel", summary="Cancel the order's charge")
async def cancel(order_id: int, service: PaymentService = Depends(get_payment_service)):
    cancelled = await service.cancel(order_id)
    return success_response(
        data={"order_id": order_id, "cancelled": cancelled},
        message=t("payments.cancel.processed"),
    )


@router.post("/orders/{order_id}/refunds", summary="Refund an order")
async def refund(order_id: int, form: RefundForm, service: PaymentService = Depends(get_payment_service)):
    result = await service.refund(order_id, form)
    return success_response(data=result.model_dump(mode="json"), message=t("payments.refund.processed"))


@router.get("/orders/{order_id}/transaction", summary="Gateway snapshot of the order's charge")
async def transaction(order_id: int, service: PaymentService = Depends(get_payment_service)):
    snapshot = await service.fetch_transaction(order_id)
    return success_response(data=snapshot, message=t("payments.transaction.status"))


@router.get("/installments", summary="Credit card installment table")
async def installments(
    amount: Decimal = Query(gt=0, decimal_places=2),
    service: PaymentService = Depends(get_payment_service),
):
    plans = await service.fetch_installment_options(amount)
    options = [
        InstallmentOption(
            total=p.total,
            quantity=p.quantity,
            interest_percent=p.interest_percent,
            interest_amount=p.interest_amount,
            installment_amount=p.installment_amount,
        ).model_dump(mode="json")
        for p in plans or []
    ]
    return success_response(data=options, message=t("payments.installments.listed"))


@router.post("/credentials/verify", summary="Probe GenPay credentials")
async def verify_credentials(probe: CredentialProbe, service: PaymentService = Depends(get_payment_service)):
    status_code = await service.verify_credentials(probe.document, probe.api_key, probe.environment)
    logger.info("credentials_probed", environment=probe.environment, status_code=status_code)
    return success_response(
        data={"valid": status_code == 200, "status_code": status_code},
        message=t("payments.credentials.checked"),
    )
