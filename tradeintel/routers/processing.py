"""Operator routes for catch-up, reprocessing and dedup runs."""

import logging
import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tradeintel.dependencies import get_current_user_id, get_db, get_processing_pool, get_processing_service
from tradeintel.services.audit_service import write_audit_log
from tradeintel.services.crosspost_service import CrossPostService
from tradeintel.services.processing_pool import ProcessingPool
from tradeintel.services.processing_service import ProcessingService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/processing", tags=["processing"])


@router.post("/catchup")
async def run_catchup(
    user_id: uuid.UUID = Depends(get_current_user_id),
    pool: ProcessingPool = Depends(get_processing_pool),
    processing: ProcessingService = Depends(get_processing_service),
):
    """Queue every unprocessed message for extraction."""
    submitted = await processing.catchup(submit=pool.submit)
    logger.info("Manual catch-up by %s submitted %d message(s)", user_id, submitted)
    return {"status": "ok", "submitted": submitted}


@router.post("/messages/{message_id}/reprocess")
async def reprocess_message(
    message_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    processing: ProcessingService = Depends(get_processing_service),
):
    """Drop a message's open listings and extract it again."""
    outcome = await processing.reprocess(message_id)
    return {"status": "ok", "message_id": str(message_id), "outcome": outcome}


@router.post("/dedup")
async def run_dedup(
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Soft-delete exact duplicate listings."""
    removed = await CrossPostService().deduplicate(db)
    await write_audit_log(
        db=db,
        user_id=user_id,
        action="listings.deduplicated",
        entity_type="listing",
        metadata={"removed": removed},
    )
    return {"status": "ok", "removed": removed}
