"""Email related Celery tasks"""
from __future__ import annotations

import smtplib
from email.message import EmailMessage
from html import escape

from celery import shared_task

from ..utils.base_task import NotificationTask
from core.config import settings
from core.logging_config import get_logger

logger = get_logger(__name__)


def render_notification(title: str, message: str) -> str:
    """Wrap a notification message in a minimal HTML layout."""
    return (
        "<html><body>"
        f"<h2>{escape(title)}</h2>"
        f"<p>{escape(message)}</p>"
        "</body></html>"
    )


def build_message(recipient: str, subject: str, title: str, message: str) -> EmailMessage:
    email = EmailMessage()
    email["From"] = settings.smtp.sender
    email["To"] = recipient
    email["Subject"] = subject
    email.set_content(f"{title}\n\n{message}")
    email.add_alternative(render_notification(title, message), subtype="html")
    return email


@shared_task(
    bind=True,
    base=NotificationTask,
    autoretry_for=(smtplib.SMTPException, OSError),
    retry_backoff=True,
    retry_backoff_max=600,
    retry_jitter=True,
    retry_kwargs={"max_retries": 5},
)
def send_notification_email(self, recipient: str, subject: str, title: str, message: str) -> None:
    """Deliver a payment notification through the configured SMTP relay."""
    smtp = settings.smtp
    email = build_message(recipient, subject, title, message)
    with smtplib.SMTP(smtp.host, smtp.port, timeout=smtp.timeout) as client:
        if smtp.use_tls:
            client.starttls()
        if smtp.username:
            client.login(smtp.username, smtp.password or "")
        client.send_message(email)
    logger.info("notification_email_sent", recipient=recipient, subject=subject)
