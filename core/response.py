"""
Response envelope

The GenPay webhook does not use it: GenPay only accepts the bare {"uuid", "status"} acknowledgement.
"""
from typing import Any, Optional, Generic, TypeVar
from pydantic import BaseModel, Field, field_serializer
from datetime import datetime, timezone

import structlog

from shared.codes import BusinessCode


T = TypeVar("T")


def _current_request_id() -> Optional[str]:
    return structlog.contextvars.get_contextvars().get("request_id")


class ErrorDetail(BaseModel):
    """Error details."""
    type: str
    details: Optional[dict] = None
    field: Optional[str] = None
    request_id: Optional[str] = None
    locale: Optional[str] = None
    message_key: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_serializer("timestamp")
    def serialize_timestamp(self, timestamp: datetime) -> str:
        """UTC ISO8601 ending in Z."""
        ts = timestamp.replace(tzinfo=timezone.utc) if timestamp.tzinfo is None else timestamp.astimezone(timezone.utc)
        return ts.isoformat().replace("+00:00", "Z")


class Response(BaseModel, Generic[T]):
    """Response envelope."""
    code: int
    message: str
    data: Optional[T] = None
    error: Optional[ErrorDetail] = None
    # Lets merchants match a response to the server logs
    request_id: Optional[str] = Field(default_factory=_current_request_id)


def success_response(
    data: Any = None,
    message: str = "Success",
    code: int = BusinessCode.SUCCESS,
) -> Response:
    return Response(code=code, message=message, data=data)


def error_response(
    code: int,
    message: str,
    error_type: str = "BusinessError",
    details: Optional[dict] = None,
    field: Optional[str] = None,
    request_id: Optional[str] = None,
    locale: Optional[str] = None,
    message_key: Optional[str] = None,
) -> Response:
    """
    Build an error response.

    Args:
        code: business code (shared.codes / PaymentCode)
        message: translated message
        error_type: exception type name
        details: error details (gateway errors carry provider / messages)
        field: offending field
        request_id: request id
    """
    return Response(
        code=code,
        message=message,
        request_id=request_id or _current_request_id(),
        error=ErrorDetail(
            type=error_type,
            details=details,
            field=field,
            request_id=request_id,
            locale=locale,
            message_key=message_key,
        ),
    )
