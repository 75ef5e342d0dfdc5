"""Infrastructure adapter that implements the application Notifier port
by queueing notification emails on Celery.
"""
from __future__ import annotations

import asyncio
from typing import Optional

from application.ports.notifier import Notifier
from core.logging_config import get_logger
from infrastructure.tasks.utils.dispatcher import TaskDispatcher


logger = get_logger(__name__)


class CeleryNotifier(Notifier):
    def __init__(self, merchant_email: str, dispatcher: Optional[TaskDispatcher] = None):
        self.merchant_email = merchant_email
        self.dispatcher = dispatcher or TaskDispatcher()

    async def notify_merchant(self, subject: str, title: str, message: str) -> None:
        if not self.merchant_email:
            logger.warning("merchant_email_not_configured", subject=subject)
            return
        await self._send(self.merchant_email, subject, title, message)

    async def notify_customer(self, recipient: str, subject: str, title: str, message: str) -> None:
        if not recipient:
            logger.warning("customer_email_missing", subject=subject)
            return
        await self._send(recipient, subject, title, message)

    async def _send(self, recipient: str, subject: str, title: str, message: str) -> None:
        # Eager mode runs the SMTP delivery inline; keep it off the event loop
        await asyncio.to_thread(self.dispatcher.send_email, recipient, subject, title, message)
        logger.info("notification_queued", recipient=recipient, subject=subject)
