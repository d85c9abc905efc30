"""Inbound messaging-platform webhook."""

import hashlib
import hmac
import logging
from functools import partial

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from tradeintel.config import Settings, get_settings
from tradeintel.dependencies import get_db, get_processing_pool, get_processing_service, get_session_factory
from tradeintel.schemas.webhook import WhapiWebhookPayload
from tradeintel.services.archive_service import ArchiveService
from tradeintel.services.media_service import MediaService
from tradeintel.services.processing_pool import ProcessingPool
from tradeintel.services.processing_service import ProcessingService
from tradeintel.services.whapi_client import get_whapi_client

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/webhook", tags=["webhook"])

SIGNATURE_HEADER = "X-Whapi-Signature"


def get_media_service(settings: Settings = Depends(get_settings)) -> MediaService:
    return MediaService(settings, get_whapi_client(settings), get_session_factory(settings))


def verify_signature(body: bytes, signature: str | None, secret: str) -> bool:
    """Check a hex HMAC-SHA256 of the raw body against the shared secret."""
    if not signature:
        return False
    expected = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    if signature.lower().startswith("sha256="):
        signature = signature[7:]
    return hmac.compare_digest(expected, signature.strip().lower())


@router.post("/whapi")
async def whapi_webhook(
    request: Request,
    settings: Settings = Depends(get_settings),
    db: AsyncSession = Depends(get_db),
    pool: ProcessingPool = Depends(get_processing_pool),
    processing: ProcessingService = Depends(get_processing_service),
    media: MediaService = Depends(get_media_service),
):
    """Archive inbound messages and queue them for extraction.

    Flow:
    1. Verify the HMAC signature (skipped when no secret is configured)
    2. Archive each message; duplicates are ignored
    3. Commit, then queue media download and extraction for new messages
    """
    raw_body = await request.body()

    if settings.webhook_verification_enabled:
        secret = settings.whapi_webhook_secret.get_secret_value()
        if not verify_signature(raw_body, request.headers.get(SIGNATURE_HEADER), secret):
            logger.warning("Rejected webhook with invalid signature")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid webhook signature",
            )

    try:
        payload = WhapiWebhookPayload.model_validate_json(raw_body or b"{}")
    except ValidationError as e:
        logger.warning("Unparseable webhook payload: %d error(s)", e.error_count())
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid webhook payload",
        ) from e

    if not payload.messages:
        return {"status": "ok", "archived": 0, "duplicates": 0}

    archive = ArchiveService(get_whapi_client(settings))
    archived = []
    for msg in payload.messages:
        raw = await archive.archive(db, msg)
        if raw is not None:
            archived.append(raw)
    await db.commit()

    for raw in archived:
        if raw.media_url:
            await pool.submit(partial(media.download_for_message, raw.id))
        await pool.submit(partial(processing.process_message, raw.id))

    logger.info("Webhook archived %d of %d message(s)", len(archived), len(payload.messages))
    return {
        "status": "ok",
        "archived": len(archived),
        "duplicates": len(payload.messages) - len(archived),
    }
