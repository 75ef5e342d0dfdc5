"""Celery application configuration"""
from __future__ import annotations

from core.logging_config import get_logger
from celery import Celery
from kombu import Queue

from core.config import settings


# Task modules are discovered via this tuple so new packages only need to be
# listed here rather than altering the runtime imports scattered elsewhere.
CELERY_IMPORTS = (
    "infrastructure.tasks.tasks",
)


celery_app = Celery("genpay_connector")

celery_app.conf.update(
    broker_url=settings.celery.broker_url,
    result_backend=settings.celery.result_backend,
    # JSON keeps payloads interoperable and avoids arbitrary code execution.
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    # Ensure acknowledgements happen after work is done so retries are possible.
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_track_started=True,
    result_expires=3600,
    worker_prefetch_multiplier=1,
    task_default_queue=settings.celery.default_queue,
    task_default_retry_delay=5,
    task_queues=(
        Queue("high"),
        Queue(settings.celery.default_queue),
        Queue("low"),
    ),
    task_routes={
        "infrastructure.tasks.tasks.email.*": {"queue": settings.celery.default_queue},
    },
    task_always_eager=settings.celery.task_always_eager,
    # Eager mode re-raises inside the caller so failures reach the dispatcher log.
    task_eager_propagates=True,
)

celery_app.conf.imports = CELERY_IMPORTS

environment = getattr(settings, "ENVIRONMENT", "production") or "production"
if environment.lower() in {"test", "testing"}:
    celery_app.conf.task_always_eager = True

celery_app.autodiscover_tasks(packages=CELERY_IMPORTS)


logger = get_logger(__name__)


@celery_app.on_after_configure.connect
def _log_configuration(sender, **kwargs):
    logger.info(
        "celery_configured",
        broker=sender.conf.broker_url,
        result_backend=sender.conf.result_backend,
        eager=sender.conf.task_always_eager,
    )
