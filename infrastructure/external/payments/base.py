"""
Base signed client implementing shared concerns: http, auth, signing, retry, logging.

Concrete gateways subclass it and only describe their endpoints.
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable, Optional

import httpx
from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential, retry_if_exception_type

from application.dtos.payments import GatewayResponse
from core.logging_config import get_logger
from infrastructure.external.payments.exceptions import (
    GatewayBusinessError,
    GatewayProtocolError,
    GatewayTransportError,
)
from infrastructure.external.payments.signing import basic_auth, encode_body, sign


logger = get_logger(__name__)


class SignedGatewayClient:
    provider: str = "base"

    def __init__(
        self,
        *,
        base_url: str,
        document: str,
        api_key: str,
        signature_key: str,
        timeouts: Optional[dict[str, float]] = None,
        retry: Optional[dict[str, Any]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url if base_url.endswith("/") else f"{base_url}/"
        self._document = document
        self._api_key = api_key
        self._signature_key = signature_key
        self._timeouts_cfg = timeouts or {"connect": 10.0, "read": 60.0, "write": 60.0, "total": 60.0}
        self._retry_cfg = retry or {"max": 0, "base_backoff": 0.5}
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def timeouts(self) -> httpx.Timeout:
        return httpx.Timeout(
            connect=self._timeouts_cfg["connect"],
            read=self._timeouts_cfg["read"],
            write=self._timeouts_cfg["write"],
            timeout=self._timeouts_cfg["total"],
        )

    @asynccontextmanager
    async def client(self):
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeouts, transport=self._transport)
        try:
            yield self._client
        finally:
            # Keep open for reuse; explicit aclose() will close.
            ...

    async def aclose(self) -> None:
        """Close underlying HTTP client if created."""
        if self._client is not None:
            try:
                await self._client.aclose()
            finally:
                self._client = None

    async def _retry(self, fn: Callable[[], Awaitable[httpx.Response]]) -> httpx.Response:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(int(self._retry_cfg["max"]) + 1),
            wait=wait_exponential(multiplier=self._retry_cfg["base_backoff"], min=0.1, max=5.0),
            retry=retry_if_exception_type((httpx.TimeoutException, httpx.TransportError)),
            reraise=True,
        ):
            with attempt:
                return await fn()

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": basic_auth(self._document, self._api_key),
            "Content-Type": "application/json",
            "Cache-Control": "no-cache",
        }

    def url(self, endpoint: str) -> str:
        return f"{self.base_url}{endpoint.lstrip('/')}"

    async def post(self, endpoint: str, body: Any = None) -> GatewayResponse:
        """POST ``body`` encoded once; the same bytes are signed and sent."""
        content = encode_body(body if body is not None else {})
        headers = self._headers()
        headers["Signature"] = sign(self._signature_key, content)
        return await self._send("POST", endpoint, headers=headers, content=content)

    async def get(self, endpoint: str, params: Optional[dict[str, Any]] = None) -> GatewayResponse:
        return await self._send("GET", endpoint, headers=self._headers(), params=params)

    async def _send(
        self,
        method: str,
        endpoint: str,
        *,
        headers: dict[str, str],
        content: Optional[bytes] = None,
        params: Optional[dict[str, Any]] = None,
    ) -> GatewayResponse:
        url = self.url(endpoint)
        self._log("gateway_request", method=method, endpoint=endpoint)
        try:
            async with self.client() as client:
                response = await self._retry(
                    lambda: client.request(method, url, headers=headers, content=content, params=params)
                )
        except (httpx.TimeoutException, httpx.TransportError) as exc:
            logger.warning(
                "gateway_transport_error",
                provider=self.provider,
                method=method,
                endpoint=endpoint,
                error=str(exc),
            )
            raise GatewayTransportError(
                f"{self.provider} unreachable: {exc.__class__.__name__}",
                provider=self.provider,
                endpoint=endpoint,
            ) from exc

        result = GatewayResponse(
            status_code=response.status_code,
            body=self._parse_body(response),
            raw=response.content,
        )
        if not result.ok:
            logger.warning(
                "gateway_http_error",
                provider=self.provider,
                endpoint=endpoint,
                status_code=result.status_code,
                errors=result.error_text(),
            )
        else:
            self._log("gateway_response", endpoint=endpoint, status_code=result.status_code, result=result.result)
        return result

    def ensure_success(self, response: GatewayResponse) -> GatewayResponse:
        """Raise the protocol or business tier error for ``response``, if any."""
        if not response.ok:
            raise GatewayProtocolError(
                response.error_text() or f"Gateway returned HTTP {response.status_code}",
                provider=self.provider,
                status_code=response.status_code,
                messages=response.error_messages(),
                body=response.body,
            )
        if response.is_business_failure:
            raise GatewayBusinessError(
                response.error_text() or "Gateway reported a failure",
                provider=self.provider,
                errors=list(response.body.get("errors") or []),
                body=response.body,
            )
        return response

    @staticmethod
    def _parse_body(response: httpx.Response) -> dict[str, Any]:
        if not response.content:
            return {}
        try:
            data = response.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {"data": data}

    def _log(self, event: str, **kwargs) -> None:
        logger.info(
            event,
            provider=self.provider,
            **kwargs,
        )
