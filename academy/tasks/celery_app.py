"""Celery worker for scheduled maintenance."""

from celery import Celery

from academy.core.config import get_settings
from academy.tasks.beat_schedule import beat_schedule

settings = get_settings()

MAINTENANCE_QUEUE = "maintenance"

celery_app = Celery(
    "cliniks_academy",
    broker=settings.broker_url,
    backend=settings.result_backend,
    include=["academy.tasks.maintenance_tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_default_queue=MAINTENANCE_QUEUE,
    task_acks_late=True,
    task_time_limit=15 * 60,
    task_soft_time_limit=10 * 60,
    result_expires=24 * 3600,
    worker_prefetch_multiplier=1,
    broker_connection_retry_on_startup=True,
    beat_schedule=beat_schedule,
)
