"""Base task for notification jobs"""
from __future__ import annotations

import structlog
from celery import Task
from core.logging_config import get_logger

logger = get_logger(__name__)


class NotificationTask(Task):
    """
    Notification delivery base.

    Binds the originating request id to the log context and logs outcomes
    with the recipient and subject only; message bodies carry order links
    and stay out of the logs.
    """

    def __call__(self, *args, **kwargs):
        structlog.contextvars.bind_contextvars(
            task_name=self.name,
            request_id=kwargs.pop("request_id", None),
        )
        try:
            return super().__call__(*args, **kwargs)
        finally:
            structlog.contextvars.unbind_contextvars("task_name", "request_id")

    def on_retry(self, exc, task_id, args, kwargs, einfo):  # type: ignore[override]
        logger.warning(
            "notification_retry",
            task_id=task_id,
            recipient=kwargs.get("recipient"),
            retries=self.request.retries,
            exc=str(exc),
        )
        super().on_retry(exc, task_id, args, kwargs, einfo)

    def on_failure(self, exc, task_id, args, kwargs, einfo):  # type: ignore[override]
        logger.error(
            "notification_failed",
            task_id=task_id,
            recipient=kwargs.get("recipient"),
            subject=kwargs.get("subject"),
            exc=str(exc),
        )
        super().on_failure(exc, task_id, args, kwargs, einfo)
