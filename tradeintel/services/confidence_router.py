"""Confidence gating: turn an extraction result into listings and review items."""

import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation

from tradeintel.config import Settings
from tradeintel.models.listing import IntentType, Listing, ListingStatus
from tradeintel.models.raw_message import RawMessage
from tradeintel.models.review_item import ReviewQueueItem, ReviewStatus
from tradeintel.services.extraction_service import ExtractedItem, ExtractionResult
from tradeintel.services.lookup_cache import LookupSnapshot

logger = logging.getLogger(__name__)

_DESCRIPTION_FALLBACK_LENGTH = 500


def _to_decimal(value: float | None) -> Decimal | None:
    if value is None:
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def parse_intent(value: str | None) -> IntentType | None:
    """Map free-text intent to IntentType; None when unrecognised."""
    try:
        return IntentType((value or "").strip().lower())
    except ValueError:
        return None


class ConfidenceRouter:
    """Applies the auto-accept / review thresholds to extraction results."""

    def __init__(self, settings: Settings) -> None:
        self.auto_accept_threshold = settings.auto_accept_threshold
        self.review_threshold = settings.review_threshold
        self.low_confidence_policy = settings.low_confidence_policy
        self._expiry = timedelta(days=settings.listing_expiry_days)

    def status_for(self, confidence: float) -> ListingStatus | None:
        """Initial listing status for a score, or None when it is discarded."""
        if confidence >= self.auto_accept_threshold:
            return ListingStatus.ACTIVE
        if confidence >= self.review_threshold or self.low_confidence_policy == "review":
            return ListingStatus.PENDING_REVIEW
        return None

    def route(self, message: RawMessage, result: ExtractionResult, lookups: LookupSnapshot) -> list[Listing]:
        """Build one unsaved Listing per extracted item."""
        status = self.status_for(result.confidence)
        if status is None:
            logger.info(
                "Message %s below review threshold (confidence=%.2f); no listings created",
                message.id,
                result.confidence,
            )
            return []

        intent = parse_intent(result.intent) or IntentType.UNKNOWN
        now = datetime.now(timezone.utc)
        listings = [
            self._build_listing(message, item, intent, result.confidence, status, lookups, now)
            for item in result.items
        ]
        logger.info(
            "Routed message %s: %d listing(s) status=%s confidence=%.2f",
            message.id,
            len(listings),
            status.value,
            result.confidence,
        )
        return listings

    def _build_listing(
        self,
        message: RawMessage,
        item: ExtractedItem,
        intent: IntentType,
        confidence: float,
        status: ListingStatus,
        lookups: LookupSnapshot,
        now: datetime,
    ) -> Listing:
        description = _clean(item.description)
        if description is None:
            body = (message.message_body or "").strip()
            description = body[:_DESCRIPTION_FALLBACK_LENGTH] if body else "No description available"

        currency = _clean(item.currency)
        return Listing(
            raw_message_id=message.id,
            group_id=message.group_id,
            intent=intent,
            confidence_score=confidence,
            item_description=description,
            category_id=lookups.resolve_category(item.category),
            manufacturer_id=lookups.resolve_manufacturer(item.manufacturer),
            part_number=_clean(item.part_number),
            model_name=_clean(item.model_name),
            quantity=_to_decimal(item.quantity),
            unit_id=lookups.resolve_unit(item.unit),
            price=_to_decimal(item.price),
            price_currency=currency.upper() if currency else "USD",
            condition_id=lookups.resolve_condition(item.condition),
            attributes=item.extra_attributes(),
            original_text=message.message_body,
            sender_name=message.sender_name,
            sender_phone=message.sender_phone,
            status=status,
            needs_human_review=status != ListingStatus.ACTIVE,
            expires_at=now + self._expiry,
        )

    def build_review_item(self, listing: Listing, message: RawMessage, result: ExtractionResult) -> ReviewQueueItem:
        """Review queue entry explaining why a listing was not auto-accepted."""
        score = f"{result.confidence:.2f}"
        if result.confidence >= self.review_threshold:
            reason = f"Low confidence extraction (score: {score})"
        else:
            reason = f"Very low confidence extraction (score: {score})"
        return ReviewQueueItem(
            listing_id=listing.id,
            raw_message_id=message.id,
            reason=reason,
            llm_explanation=(
                f"Extraction confidence {score} is below auto-accept threshold "
                f"{self.auto_accept_threshold:.2f}. Intent: {result.intent}"
            ),
            suggested_values=result.model_dump(mode="json"),
            status=ReviewStatus.PENDING,
        )
