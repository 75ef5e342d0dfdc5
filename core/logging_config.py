"""
Structlog configuration

Gateway credentials and card data never reach the logs: the redact_secrets processor masks them before rendering,
and the request logging middleware reuses the same key list.
"""
import logging
import json
import structlog
from structlog.processors import TimeStamper, add_log_level, JSONRenderer
from structlog.dev import ConsoleRenderer
from structlog.contextvars import merge_contextvars
from structlog.stdlib import ProcessorFormatter
from typing import Any, List, MutableMapping

from core.config import settings


SENSITIVE_KEYS = frozenset({
    "api_key",
    "signature_key",
    "signature",
    "authorization",
    "card_token",
    "card_cvv",
    "token",
    "cvv",
    "secret",
    "password",
    "bank_number",
})

MASK = "***"

# Third-party log levels: httpx logs every request at INFO
QUIET_LOGGERS = {"httpx": logging.WARNING, "httpcore": logging.WARNING, "celery": logging.INFO}


def redact(data: Any) -> Any:
    """Recursively mask sensitive keys in dicts and lists."""
    if isinstance(data, dict):
        return {k: (MASK if str(k).lower() in SENSITIVE_KEYS else redact(v)) for k, v in data.items()}
    if isinstance(data, (list, tuple)):
        return type(data)(redact(v) for v in data)
    return data


def redact_secrets(_, __, event_dict: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
    for key in list(event_dict):
        if key.lower() in SENSITIVE_KEYS:
            event_dict[key] = MASK
        elif isinstance(event_dict[key], (dict, list)):
            event_dict[key] = redact(event_dict[key])
    return event_dict


def get_renderer() -> Any:
    """Console renderer in DEBUG, JSON otherwise."""
    if settings.DEBUG:
        return ConsoleRenderer(colors=True)

    def _dumps(obj, default=None, **kwargs):
        # Keep Portuguese accents; Decimal amounts go through default
        return json.dumps(obj, ensure_ascii=False, default=default, **kwargs)
    return JSONRenderer(serializer=_dumps)


def configure_logging() -> None:
    """Configure structlog and bridge stdlib logging into the same chain."""
    shared_pre_chain: List[Any] = [
        merge_contextvars,
        add_log_level,
        TimeStamper(fmt="iso", utc=True),
        redact_secrets,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    structlog.configure(
        processors=[
            *shared_pre_chain,
            ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = ProcessorFormatter(
        foreign_pre_chain=shared_pre_chain,
        processors=[
            ProcessorFormatter.remove_processors_meta,
            get_renderer(),
        ],
    )

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)
    for name, level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger."""
    return structlog.get_logger(name)


# Initial configuration
configure_logging()
