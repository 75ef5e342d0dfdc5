"""Celery wiring for merchant and buyer notification emails.

Importing the package configures ``celery_app`` before any task module is
loaded, so ``shared_task`` definitions bind to it.
"""
from .config.celery import celery_app
from .utils.dispatcher import TaskDispatcher

__all__ = ["celery_app", "TaskDispatcher"]
