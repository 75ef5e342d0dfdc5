"""Notification task helpers."""
from .dispatcher import TaskDispatcher
from .base_task import NotificationTask

__all__ = ["TaskDispatcher", "NotificationTask"]
