import json
from decimal import Decimal

import httpx
import pytest

from core.settings import GenPayConfig
from domain.common.exceptions import NoMatchingInstallmentPlanException
from domain.payment.entity import RefundKind
from application.dtos.payments import RefundPayment, RefundRequest
from infrastructure.external.payments.exceptions import GatewayProtocolError, GatewayTransportError
from infrastructure.external.payments.genpay_client import GenPayClient
from infrastructure.external.payments.signing import basic_auth, sign


CONFIG = GenPayConfig(document="12345678000199", api_key="api-key", signature_key="sig-key")


def _client(handler) -> GenPayClient:
    return GenPayClient(CONFIG, transport=httpx.MockTransport(handler))


def _refund_request(amount: str = "50.00") -> RefundRequest:
    return RefundRequest(
        reason="damaged",
        amount=Decimal(amount),
        payments=[RefundPayment(id="p1", amount=Decimal(amount))],
    )


@pytest.mark.asyncio
async def test_post_signs_exact_body_bytes():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["request"] = request
        return httpx.Response(200, json={"result": "success", "refunds": [{"id": "r1"}]})

    client = _client(handler)
    response = await client.refund("tx-1", RefundKind.PARTIAL, _refund_request())
    await client.aclose()

    request = seen["request"]
    assert response.ok
    assert request.method == "POST"
    assert request.url.path == "/rpay/v1/charges/tx-1/refund_partial"
    assert request.headers["Signature"] == sign("sig-key", request.content)
    assert request.headers["Authorization"] == basic_auth("12345678000199", "api-key")
    assert json.loads(request.content)["payments"][0]["amount"] == 50.0


@pytest.mark.asyncio
async def test_total_refund_uses_refund_route():
    paths = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.path)
        return httpx.Response(200, json={"result": "success"})

    client = _client(handler)
    await client.refund("tx-1", RefundKind.TOTAL, _refund_request("150.00"))
    await client.aclose()
    assert paths == ["/rpay/v1/charges/tx-1/refund"]


@pytest.mark.asyncio
async def test_cancel_sends_signed_empty_list():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["request"] = request
        return httpx.Response(200, json={"result": "success"})

    client = _client(handler)
    await client.cancel("tx-9")
    await client.aclose()

    request = seen["request"]
    assert request.url.path == "/rpay/v1/charges/tx-9/cancel"
    assert request.content == b"[]"
    assert request.headers["Signature"] == sign("sig-key", b"[]")


@pytest.mark.asyncio
async def test_non_200_is_returned_with_error_messages():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(422, json={"errors": [{"code": "E1", "description": "Invalid document"}]})

    client = _client(handler)
    response = await client.cancel("tx-1")
    await client.aclose()

    assert not response.ok
    assert response.status_code == 422
    assert response.error_messages() == ["Invalid document"]


@pytest.mark.asyncio
async def test_transport_failure_raises_transport_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = _client(handler)
    with pytest.raises(GatewayTransportError) as exc_info:
        await client.cancel("tx-1")
    await client.aclose()
    assert exc_info.value.endpoint == "charges/tx-1/cancel"


@pytest.mark.asyncio
async def test_get_transaction_raises_protocol_error_on_http_error():
    def handler(request: httpx.Request) -> httpx.Response:
        assert "Signature" not in request.headers
        return httpx.Response(404, json={"errors": [{"description": "Charge not found"}]})

    client = _client(handler)
    with pytest.raises(GatewayProtocolError) as exc_info:
        await client.get_transaction("missing")
    await client.aclose()
    assert exc_info.value.messages == ["Charge not found"]


@pytest.mark.asyncio
async def test_installments_keep_credit_card_rows():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/rpay/v1/checkout"
        assert request.url.params["amount"] == "150.0"
        return httpx.Response(200, json={
            "result": "success",
            "payments": [
                {"method": "billet"},
                {"method": "credit_card", "installments": [
                    {"quantity": 1, "total": 150.0, "installment_amount": 150.0},
                    {"quantity": 2, "total": 153.0, "installment_amount": 76.5, "interest_amount": 3.0},
                ]},
            ],
        })

    client = _client(handler)
    rows = await client.get_installments(Decimal("150.00"))
    await client.aclose()
    assert [r["quantity"] for r in rows] == [1, 2]


@pytest.mark.asyncio
async def test_installments_without_credit_card_method():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"result": "success", "payments": [{"method": "billet"}]})

    client = _client(handler)
    with pytest.raises(NoMatchingInstallmentPlanException):
        await client.get_installments(Decimal("150.00"))
    await client.aclose()


@pytest.mark.asyncio
async def test_billet_download_returns_html():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/rpay/v1/charges/tx-1/billet/download"
        return httpx.Response(200, json={"html": "<html>boleto</html>"})

    client = _client(handler)
    html = await client.billet_download("tx-1")
    await client.aclose()
    assert html == "<html>boleto</html>"


@pytest.mark.asyncio
async def test_verify_credentials_reports_status_code():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.host == "api.gencomm.com.br"
        assert request.headers["Authorization"] == basic_auth("doc", "key")
        return httpx.Response(401)

    client = _client(handler)
    status = await client.verify_credentials("doc", "key", "production")
    await client.aclose()
    assert status == 401


def test_verify_signature_uses_signature_key():
    client = GenPayClient(CONFIG)
    body = b'{"uuid":"tx-1","status":"approved"}'
    assert client.verify_signature(body, sign("sig-key", body))
    assert not client.verify_signature(body, sign("wrong", body))
