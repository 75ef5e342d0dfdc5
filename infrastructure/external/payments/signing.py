"""
Request signing shared by the gateway and logistics clients.

The gateway recomputes the signature over the bytes it receives, so a body
is encoded once with :func:`encode_body` and those exact bytes are signed
and sent.
"""
from __future__ import annotations

import base64
import hashlib
import hmac
import json
from decimal import Decimal
from typing import Any


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def encode_body(data: Any) -> bytes:
    """Compact JSON with money as floats (``150.0`` keeps its fraction)."""
    return json.dumps(
        data,
        separators=(",", ":"),
        ensure_ascii=False,
        default=_json_default,
    ).encode("utf-8")


def sign(secret: str, body: bytes) -> str:
    """base64(HMAC-SHA256(secret, body))"""
    mac = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).digest()
    return base64.b64encode(mac).decode("utf-8")


def verify(secret: str, body: bytes, signature: str | None) -> bool:
    if not secret or not signature:
        return False
    expected = sign(secret, body)
    return hmac.compare_digest(expected.encode("utf-8"), signature.strip().encode("utf-8"))


def basic_auth(document: str, api_key: str) -> str:
    token = base64.b64encode(f"{document}:{api_key}".encode("utf-8")).decode("ascii")
    return f"Basic {token}"
