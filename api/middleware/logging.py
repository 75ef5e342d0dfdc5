"""
Request/response logging middleware

Webhook bodies are signed, so only the presence of a signature is logged and the body is never read.
Other bodies are logged on demand with card tokens, CVV and credentials masked.
"""
import time
from typing import Any, Optional
import json

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from core.logging_config import get_logger, redact
from core.config import settings


logger = get_logger(__name__)


class LoggingMiddleware(BaseHTTPMiddleware):
    """Log request start/end, status code and duration."""

    SKIP_PATHS = {"/health", "/docs", "/redoc", "/openapi.json"}
    WEBHOOK_MARKER = "/webhooks/"

    def __init__(self, app: ASGIApp):
        super().__init__(app)
        self.enable_body_log_default: bool = settings.LOG_REQUEST_BODY_ENABLE_BY_DEFAULT
        self.max_body_log_bytes: int = settings.LOG_REQUEST_BODY_MAX_BYTES

    async def dispatch(self, request: Request, call_next):
        if request.url.path in self.SKIP_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        request_info = await self._get_request_info(request)
        logger.info("request_started", **request_info)

        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error(
                "request_failed",
                duration=round(time.perf_counter() - start_time, 3),
                error=str(exc),
                error_type=type(exc).__name__,
                **request_info,
                exc_info=True,
            )
            raise

        duration = time.perf_counter() - start_time
        self._log_response(response, duration, request_info)
        response.headers["X-Process-Time"] = f"{duration:.3f}"
        return response

    async def _get_request_info(self, request: Request) -> dict:
        info: dict[str, Any] = {
            "method": request.method,
            "path": request.url.path,
        }
        if request.query_params:
            info["query_params"] = redact(dict(request.query_params))

        if self.WEBHOOK_MARKER in request.url.path:
            info["signature_present"] = bool(request.headers.get("Signature"))
            info["content_length"] = request.headers.get("content-length")
            return info

        if request.method in ("POST", "PUT", "PATCH") and self._should_log_body(request):
            body = await self._extract_body(request)
            if body is not None:
                info["body"] = body

        user_agent = request.headers.get("User-Agent")
        if user_agent:
            info["user_agent"] = user_agent
        return info

    def _should_log_body(self, request: Request) -> bool:
        # X-Log-Body: true/false overrides the default
        header = (request.headers.get("X-Log-Body") or "").lower()
        if header in {"true", "1", "yes"}:
            return True
        if header in {"false", "0", "no"}:
            return False
        return bool(self.enable_body_log_default and settings.DEBUG)

    async def _extract_body(self, request: Request) -> Optional[Any]:
        body = await request.body()
        if not body:
            return None
        snippet = body[: self.max_body_log_bytes].decode("utf-8", errors="ignore")
        if "application/json" not in request.headers.get("content-type", "").lower():
            return snippet
        try:
            return redact(json.loads(snippet))
        except ValueError:
            # Truncated JSON cannot be redacted; never log the raw text
            return {"truncated": True, "bytes": len(body)}

    def _log_response(self, response: Response, duration: float, request_info: dict):
        log_data = {
            "status_code": response.status_code,
            "duration": round(duration, 3),
            **request_info,
        }
        if response.status_code < 400:
            logger.info("request_completed", **log_data)
        elif response.status_code < 500:
            logger.warning("request_client_error", **log_data)
        else:
            # 502 usually means GenPay/GenLog is failing
            logger.error("request_server_error", **log_data)
