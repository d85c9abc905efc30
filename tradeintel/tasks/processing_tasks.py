"""Celery tasks for the extraction pipeline and listing lifecycle."""

import asyncio
import logging
import uuid

from celery import shared_task
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from tradeintel.config import get_settings
from tradeintel.metrics import celery_task_total
from tradeintel.services.ai_service import AIService
from tradeintel.services.media_service import MediaService
from tradeintel.services.processing_service import build_processing_service
from tradeintel.services.whapi_client import WhapiClient

logger = logging.getLogger(__name__)


def _get_async_session() -> async_sessionmaker:
    settings = get_settings()
    engine = create_async_engine(settings.database_url, echo=False)
    return async_sessionmaker(engine, expire_on_commit=False)


def _processing_service():
    # Each task runs in its own event loop, so clients are not shared across tasks
    settings = get_settings()
    return build_processing_service(settings, _get_async_session(), ai_service=AIService(settings))


@shared_task(
    bind=True,
    max_retries=3,
    default_retry_delay=10,
    autoretry_for=(ConnectionError,),
    retry_backoff=True,
    name="tradeintel.tasks.processing_tasks.process_message",
)
def process_message(self, message_id: str):
    """Run one archived message through extraction."""

    async def _run():
        return await _processing_service().process_message(uuid.UUID(message_id))

    outcome = asyncio.run(_run())
    celery_task_total.labels(task_name="process_message", status=outcome).inc()
    logger.info("process_message %s finished: %s", message_id, outcome)
    return outcome


@shared_task(name="tradeintel.tasks.processing_tasks.catchup_unprocessed")
def catchup_unprocessed():
    """Process every unprocessed, error-free message in batches."""

    async def _run():
        return await _processing_service().catchup()

    processed = asyncio.run(_run())
    celery_task_total.labels(task_name="catchup_unprocessed", status="ok").inc()
    return {"processed": processed}


@shared_task(name="tradeintel.tasks.processing_tasks.expire_listings")
def expire_listings():
    """Move active listings past their expiry date to expired."""

    async def _run():
        return await _processing_service().expire_listings()

    expired = asyncio.run(_run())
    celery_task_total.labels(task_name="expire_listings", status="ok").inc()
    return {"expired": expired}


@shared_task(name="tradeintel.tasks.processing_tasks.retry_media_downloads")
def retry_media_downloads(limit: int = 100):
    """Retry media downloads that failed at archive time."""

    async def _run():
        settings = get_settings()
        media = MediaService(settings, WhapiClient(settings), _get_async_session())
        return await media.retry_missing(limit=limit)

    downloaded = asyncio.run(_run())
    celery_task_total.labels(task_name="retry_media_downloads", status="ok").inc()
    return {"downloaded": downloaded}
