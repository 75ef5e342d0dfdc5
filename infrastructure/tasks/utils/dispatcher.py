"""Dispatch facade keeping Celery out of the adapters."""
from __future__ import annotations

from typing import Optional

import structlog

from ..tasks.email import send_notification_email


class TaskDispatcher:
    """Schedules notification tasks; runs them inline in eager mode."""

    def __init__(self, queue: Optional[str] = None) -> None:
        self.queue = queue

    def send_email(self, recipient: str, subject: str, title: str, message: str) -> None:
        options = {"queue": self.queue} if self.queue else {}
        send_notification_email.apply_async(
            kwargs={
                "recipient": recipient,
                "subject": subject,
                "title": title,
                "message": message,
                # Correlates the worker log lines with the originating HTTP request
                "request_id": structlog.contextvars.get_contextvars().get("request_id"),
            },
            **options,
        )
