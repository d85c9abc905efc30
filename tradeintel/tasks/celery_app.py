"""Celery application configuration."""

from celery import Celery
from celery.schedules import crontab

from tradeintel.config import get_settings

settings = get_settings()

celery_app = Celery(
    "tradeintel",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
    task_default_queue="default",
    task_routes={
        "tradeintel.tasks.processing_tasks.process_message": {"queue": "extraction"},
        "tradeintel.tasks.processing_tasks.catchup_unprocessed": {"queue": "extraction"},
        "tradeintel.tasks.processing_tasks.*": {"queue": "default"},
    },
    beat_schedule={
        # Sweep messages the webhook path did not finish
        "catchup-unprocessed": {
            "task": "tradeintel.tasks.processing_tasks.catchup_unprocessed",
            "schedule": settings.catchup_interval_seconds,
        },
        "expire-listings": {
            "task": "tradeintel.tasks.processing_tasks.expire_listings",
            "schedule": crontab(minute=0),
        },
        "retry-media-downloads": {
            "task": "tradeintel.tasks.processing_tasks.retry_media_downloads",
            "schedule": crontab(minute=30),
        },
    },
)

celery_app.autodiscover_tasks(["tradeintel.tasks"], related_name="processing_tasks")
