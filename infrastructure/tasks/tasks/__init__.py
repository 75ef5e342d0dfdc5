"""Notification tasks; importing the package registers them with Celery."""
from . import email  # noqa: F401

__all__ = ["email"]
