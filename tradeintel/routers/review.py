"""Review queue routes."""

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from tradeintel.config import Settings, get_settings
from tradeintel.dependencies import get_current_user_id, get_db
from tradeintel.models.review_item import ReviewQueueItem
from tradeintel.schemas.review import AssistRequest, AssistResponse, ResolveRequest, ReviewItemResponse
from tradeintel.services.ai_service import get_ai_service
from tradeintel.services.cost_tracking import CostTrackingService
from tradeintel.services.extraction_service import ExtractionService
from tradeintel.services.lookup_cache import get_lookup_caches
from tradeintel.services.review_service import ReviewService

router = APIRouter(prefix="/review", tags=["review"])


def _to_response(item: ReviewQueueItem, listing=None, original_text: str | None = None) -> ReviewItemResponse:
    return ReviewItemResponse(
        id=str(item.id),
        listing_id=str(item.listing_id) if item.listing_id else None,
        raw_message_id=str(item.raw_message_id),
        reason=item.reason,
        llm_explanation=item.llm_explanation,
        suggested_values=item.suggested_values,
        status=item.status.value,
        resolved_by=str(item.resolved_by) if item.resolved_by else None,
        resolved_at=item.resolved_at.isoformat() if item.resolved_at else None,
        resolution=item.resolution,
        created_at=item.created_at.isoformat(),
        item_description=listing.item_description if listing is not None else None,
        confidence_score=listing.confidence_score if listing is not None else None,
        original_text=original_text,
    )


@router.get("", response_model=list[ReviewItemResponse])
async def list_pending(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Pending review items, oldest first."""
    service = ReviewService(get_lookup_caches(settings))
    rows = await service.list_pending(db, limit=limit, offset=offset)
    return [_to_response(item, listing, body) for item, listing, body in rows]


@router.post("/{item_id}/resolve", response_model=ReviewItemResponse)
async def resolve_item(
    item_id: uuid.UUID,
    body: ResolveRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Apply corrections and activate the listing."""
    service = ReviewService(get_lookup_caches(settings))
    item = await service.resolve(db, item_id, body.corrections, user_id)
    return _to_response(item)


@router.post("/{item_id}/skip", response_model=ReviewItemResponse)
async def skip_item(
    item_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    service = ReviewService(get_lookup_caches(settings))
    item = await service.skip(db, item_id, user_id)
    return _to_response(item)


@router.post("/listings/{listing_id}/assist", response_model=AssistResponse)
async def assist_listing(
    listing_id: uuid.UUID,
    body: AssistRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Re-run extraction with a reviewer hint; nothing is saved."""
    ai = get_ai_service(settings)
    service = ReviewService(
        get_lookup_caches(settings),
        extraction=ExtractionService(ai, settings),
        cost_tracker=CostTrackingService(),
    )
    return AssistResponse(**await service.assist(db, listing_id, body.hint, user_id))
