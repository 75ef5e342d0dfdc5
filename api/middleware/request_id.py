"""
Request ID middleware

Generates or forwards the tracing id and binds it to the structlog context.
Notification tasks pick request_id up from there, tying worker logs to the request.
"""
import uuid
from contextvars import ContextVar
from typing import Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

import structlog


request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


def resolve_client_ip(request: Request) -> str:
    """Client IP, preferring proxy headers (first X-Forwarded-For entry, then X-Real-IP)."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip
    return request.client.host if request.client else "unknown"


def request_channel(path: str) -> str:
    """Tag gateway callbacks apart from merchant calls for log filtering."""
    if "/webhooks/" in path:
        return "webhook"
    if path.startswith("/api/"):
        return "api"
    return "system"


class RequestIDMiddleware(BaseHTTPMiddleware):
    HEADER_NAME = "X-Request-ID"

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(self.HEADER_NAME) or str(uuid.uuid4())
        request.state.request_id = request_id
        request_id_var.set(request_id)

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            client_ip=resolve_client_ip(request),
            channel=request_channel(request.url.path),
        )

        response = await call_next(request)
        response.headers[self.HEADER_NAME] = request_id
        return response


def get_request_id() -> Optional[str]:
    """request_id of the current request; None outside a request."""
    return request_id_var.get()
