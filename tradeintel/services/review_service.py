"""Review queue state machine: pending -> resolved | skipped."""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tradeintel.exceptions import InvalidStateError, NotFoundError
from tradeintel.metrics import review_actions_total
from tradeintel.models.listing import IntentType, Listing, ListingStatus
from tradeintel.models.raw_message import RawMessage
from tradeintel.models.review_item import ReviewQueueItem, ReviewStatus
from tradeintel.schemas.review import ReviewCorrections
from tradeintel.services.audit_service import write_audit_log
from tradeintel.services.cost_tracking import CostTrackingService, track_usage_safely
from tradeintel.services.extraction_service import ExtractionService
from tradeintel.services.lookup_cache import LookupCaches, LookupSnapshot

logger = logging.getLogger(__name__)

# Correction field -> (listing column, LookupSnapshot resolver)
_LOOKUP_FIELDS = {
    "category": ("category_id", "resolve_category"),
    "manufacturer": ("manufacturer_id", "resolve_manufacturer"),
    "unit": ("unit_id", "resolve_unit"),
    "condition": ("condition_id", "resolve_condition"),
}
_DIRECT_FIELDS = (
    "item_description",
    "part_number",
    "model_name",
    "quantity",
    "price",
    "attributes",
)


def apply_corrections(listing: Listing, corrections: ReviewCorrections, lookups: LookupSnapshot) -> dict[str, Any]:
    """Apply the non-null corrections to the listing; returns what was applied."""
    applied = corrections.model_dump(mode="json", exclude_none=True)

    if corrections.intent is not None:
        listing.intent = IntentType(corrections.intent)
    for name in _DIRECT_FIELDS:
        value = getattr(corrections, name)
        if value is not None:
            setattr(listing, name, value)
    if corrections.price_currency is not None:
        listing.price_currency = corrections.price_currency.strip().upper()
    for name, (column, resolver) in _LOOKUP_FIELDS.items():
        value = getattr(corrections, name)
        if value is not None:
            # Unresolvable names clear the foreign key
            setattr(listing, column, getattr(lookups, resolver)(value))
    return applied


class ReviewService:
    def __init__(
        self,
        caches: LookupCaches,
        extraction: ExtractionService | None = None,
        cost_tracker: CostTrackingService | None = None,
    ) -> None:
        self._caches = caches
        self._extraction = extraction
        self._cost = cost_tracker

    async def list_pending(self, db: AsyncSession, limit: int = 50, offset: int = 0) -> list[tuple]:
        """Pending items, oldest first, with their listing and message text."""
        result = await db.execute(
            select(ReviewQueueItem, Listing, RawMessage.message_body)
            .outerjoin(Listing, Listing.id == ReviewQueueItem.listing_id)
            .join(RawMessage, RawMessage.id == ReviewQueueItem.raw_message_id)
            .where(ReviewQueueItem.status == ReviewStatus.PENDING)
            .order_by(ReviewQueueItem.created_at, ReviewQueueItem.id)
            .limit(limit)
            .offset(offset)
        )
        return list(result.all())

    async def _claim(
        self,
        db: AsyncSession,
        item_id: uuid.UUID,
        new_status: ReviewStatus,
        resolver_id: uuid.UUID,
        resolution: dict[str, Any] | None,
    ) -> ReviewQueueItem:
        """Move a pending item to new_status with a status-guarded UPDATE.

        Exactly one of several concurrent callers sees rowcount 1; the rest
        get InvalidStateError.
        """
        now = datetime.now(timezone.utc)
        result = await db.execute(
            update(ReviewQueueItem)
            .where(ReviewQueueItem.id == item_id, ReviewQueueItem.status == ReviewStatus.PENDING)
            .values(status=new_status, resolved_by=resolver_id, resolved_at=now, resolution=resolution)
            .execution_options(synchronize_session=False)
        )
        item = await db.get(ReviewQueueItem, item_id, populate_existing=True)
        if item is None:
            raise NotFoundError("ReviewQueueItem", item_id)
        if result.rowcount != 1:
            raise InvalidStateError(f"Review item {item_id} is already {item.status.value}")
        return item

    async def resolve(
        self,
        db: AsyncSession,
        item_id: uuid.UUID,
        corrections: ReviewCorrections,
        resolver_id: uuid.UUID,
    ) -> ReviewQueueItem:
        lookups = await self._caches.get_lookups(db)
        applied = corrections.model_dump(mode="json", exclude_none=True)
        item = await self._claim(db, item_id, ReviewStatus.RESOLVED, resolver_id, applied)

        if item.listing_id is not None:
            listing = await db.get(Listing, item.listing_id)
            if listing is not None:
                apply_corrections(listing, corrections, lookups)
                listing.status = ListingStatus.ACTIVE
                listing.needs_human_review = False
                listing.reviewed_by = resolver_id
                listing.reviewed_at = item.resolved_at
        await db.flush()

        await write_audit_log(
            db=db,
            user_id=resolver_id,
            action="review.resolved",
            entity_type="review_item",
            entity_id=str(item.id),
            metadata={"fields": sorted(applied)},
        )
        review_actions_total.labels(action="resolved").inc()
        logger.info("Review item %s resolved by %s (%d correction(s))", item.id, resolver_id, len(applied))
        return item

    async def skip(self, db: AsyncSession, item_id: uuid.UUID, resolver_id: uuid.UUID) -> ReviewQueueItem:
        """Close the item without touching its listing."""
        item = await self._claim(db, item_id, ReviewStatus.SKIPPED, resolver_id, None)
        await write_audit_log(
            db=db,
            user_id=resolver_id,
            action="review.skipped",
            entity_type="review_item",
            entity_id=str(item.id),
        )
        review_actions_total.labels(action="skipped").inc()
        logger.info("Review item %s skipped by %s", item.id, resolver_id)
        return item

    async def assist(
        self,
        db: AsyncSession,
        listing_id: uuid.UUID,
        hint: str,
        user_id: uuid.UUID,
    ) -> dict[str, Any]:
        """Re-extract a listing's source text with a reviewer hint.

        Nothing is persisted apart from cost accounting; the reviewer commits
        the candidate through resolve.
        """
        if self._extraction is None:
            raise RuntimeError("ReviewService was built without an extraction service")

        listing = await db.get(Listing, listing_id)
        if listing is None:
            raise NotFoundError("Listing", listing_id)

        original_text = listing.original_text
        if original_text is None:
            message = await db.get(RawMessage, listing.raw_message_id)
            original_text = message.message_body if message else None

        item_result = await db.execute(
            select(ReviewQueueItem.suggested_values)
            .where(ReviewQueueItem.listing_id == listing_id)
            .order_by(ReviewQueueItem.created_at.desc())
            .limit(1)
        )
        previous = item_result.scalar_one_or_none()
        lookups = await self._caches.get_lookups(db)

        outcome = await self._extraction.extract_with_hint(original_text or "", previous, hint, lookups)
        if self._cost is not None:
            await track_usage_safely(db, self._cost, user_id, outcome.usage)
        review_actions_total.labels(action="assist").inc()

        return {
            "listing_id": str(listing.id),
            "original_text": original_text,
            "candidate": outcome.result.model_dump(mode="json"),
            "confidence": outcome.result.confidence,
            "parse_failed": outcome.parse_failed,
        }
