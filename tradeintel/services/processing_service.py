"""Message-to-listing pipeline: extraction, confidence gating and fan-out.

Each message is handled in short transactions. The LLM calls happen
between them so no database transaction is held open while waiting on the
provider.
"""

import logging
import re
import threading
import uuid
from datetime import datetime, timezone
from typing import Awaitable, Callable

from sqlalchemy import and_, delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tradeintel.config import Settings
from tradeintel.dependencies import get_session_factory
from tradeintel.exceptions import NotFoundError
from tradeintel.metrics import listings_created_total, messages_processed_total
from tradeintel.models.listing import Listing, ListingStatus
from tradeintel.models.raw_message import RawMessage
from tradeintel.models.review_item import ReviewQueueItem
from tradeintel.services.ai_service import AIService, get_ai_service
from tradeintel.services.confidence_router import ConfidenceRouter
from tradeintel.services.extraction_service import ExtractionOutcome, ExtractionService
from tradeintel.services.jargon_service import expand_jargon, learn_new_terms
from tradeintel.services.lookup_cache import LookupCaches, get_lookup_caches
from tradeintel.services.notification_dispatcher import get_notification_dispatcher
from tradeintel.services.notification_matcher import NotificationMatcher
from tradeintel.services.ws_manager import ConnectionManager, ws_manager

logger = logging.getLogger(__name__)

SOLD_PATTERN = re.compile(r"^\s*sold[!.]*\s*$", re.IGNORECASE)
MAX_ERROR_LENGTH = 2000
SOLDABLE_STATUSES = (ListingStatus.ACTIVE, ListingStatus.PENDING_REVIEW)
RESETTABLE_STATUSES = (ListingStatus.ACTIVE, ListingStatus.PENDING_REVIEW, ListingStatus.EXPIRED)

JobSubmitter = Callable[[Callable[[], Awaitable]], Awaitable[None]]

_catchup_guard = threading.Lock()


def is_sold_reply(message: RawMessage) -> bool:
    return bool(message.reply_to_msg_id) and bool(SOLD_PATTERN.match(message.message_body or ""))


class ProcessingService:
    """Runs archived messages through extraction and routes the results."""

    def __init__(
        self,
        settings: Settings,
        session_factory: async_sessionmaker[AsyncSession],
        ai_service: AIService,
        extraction: ExtractionService,
        router: ConfidenceRouter,
        caches: LookupCaches,
        matcher: NotificationMatcher,
        connection_manager: ConnectionManager,
    ) -> None:
        self._settings = settings
        self._session_factory = session_factory
        self._ai = ai_service
        self._extraction = extraction
        self._router = router
        self._caches = caches
        self._matcher = matcher
        self._ws = connection_manager

    async def process_message(self, message_id: uuid.UUID) -> str:
        """Process one message and return the outcome label.

        Never raises: failures are recorded on the message as
        processing_error and leave it unprocessed for a later retry.
        """
        try:
            outcome = await self._process(message_id)
        except Exception as e:
            logger.exception("Processing failed for message %s", message_id)
            await self._record_error(message_id, f"{type(e).__name__}: {e}")
            outcome = "failed"
        messages_processed_total.labels(outcome=outcome).inc()
        return outcome

    async def _process(self, message_id: uuid.UUID) -> str:
        async with self._session_factory() as db:
            message = await db.get(RawMessage, message_id)
            if message is None:
                logger.warning("Message %s not found; nothing to process", message_id)
                return "missing"
            if message.processed:
                logger.debug("Message %s already processed", message_id)
                return "skipped"

            body = (message.message_body or "").strip()
            if not body:
                message.processed = True
                message.processing_error = None
                await db.commit()
                return "empty"

            if is_sold_reply(message):
                await self.mark_sold_from_reply(db, message)
                message.processed = True
                message.processing_error = None
                await db.commit()
                return "sold"

            lookups = await self._caches.get_lookups(db)
            jargon = await self._caches.get_jargon(db)
            await db.commit()

        logger.info("Processing message %s: %s", message_id, body[:100])
        embedding = await self._embed(message_id, body)

        outcome = await self._extraction.extract(expand_jargon(body, jargon), lookups, jargon)
        if outcome.parse_failed:
            await self._record_error(message_id, "Unparseable extraction response")
            return "failed"

        async with self._session_factory() as db:
            # Claim the message; a concurrent worker that got here first wins
            claimed = await db.execute(
                update(RawMessage)
                .where(RawMessage.id == message_id, RawMessage.processed.is_(False))
                .values(processed=True, processing_error=None)
                .execution_options(synchronize_session=False)
            )
            if claimed.rowcount != 1:
                await db.rollback()
                logger.info("Message %s was processed concurrently; discarding extraction", message_id)
                return "skipped"
            message = await db.get(RawMessage, message_id)

            listings = self._router.route(message, outcome.result, lookups)
            for listing in listings:
                db.add(listing)
            await db.flush()

            review_items = [
                self._router.build_review_item(listing, message, outcome.result)
                for listing in listings
                if listing.status == ListingStatus.PENDING_REVIEW
            ]
            for item in review_items:
                db.add(item)

            if embedding is not None:
                message.embedding = embedding
            message.processed = True
            message.processing_error = None
            await db.commit()

        for listing in listings:
            listings_created_total.labels(status=listing.status.value).inc()

        await self._after_commit(listings, review_items, outcome)
        return "processed"

    async def _embed(self, message_id: uuid.UUID, body: str) -> list[float] | None:
        if not self._settings.embeddings_enabled:
            return None
        try:
            return await self._ai.embed(body)
        except Exception as e:
            logger.warning("Embedding failed for message %s (non-fatal): %s", message_id, e)
            return None

    async def _after_commit(
        self,
        listings: list[Listing],
        review_items: list[ReviewQueueItem],
        outcome: ExtractionOutcome,
    ) -> None:
        for listing in listings:
            if listing.status == ListingStatus.ACTIVE:
                await self._broadcast(
                    {
                        "type": "new_listing",
                        "listingId": str(listing.id),
                        "description": listing.item_description,
                        "intent": listing.intent.value,
                    }
                )
        for item in review_items:
            await self._broadcast(
                {
                    "type": "new_review_item",
                    "reviewItemId": str(item.id),
                    "listingId": str(item.listing_id),
                    "reason": item.reason,
                }
            )

        active = [listing for listing in listings if listing.status == ListingStatus.ACTIVE]
        if active:
            try:
                async with self._session_factory() as db:
                    for listing in active:
                        await self._matcher.match_and_dispatch(db, listing)
                    await db.commit()
            except Exception:
                logger.exception("Notification matching failed (non-fatal)")

        if outcome.result.unknown_terms:
            try:
                async with self._session_factory() as db:
                    await learn_new_terms(db, outcome.result.unknown_terms)
                    await db.commit()
            except Exception as e:
                logger.warning("Jargon learning failed (non-fatal): %s", e)

    async def _broadcast(self, payload: dict) -> None:
        try:
            await self._ws.broadcast(payload)
        except Exception as e:
            logger.warning("Failed to broadcast %s (non-fatal): %s", payload.get("type"), e)

    async def _record_error(self, message_id: uuid.UUID, error: str) -> None:
        try:
            async with self._session_factory() as db:
                message = await db.get(RawMessage, message_id)
                if message is None:
                    return
                message.processed = False
                message.processing_error = error[:MAX_ERROR_LENGTH]
                await db.commit()
        except Exception:
            logger.exception("Could not record processing error for message %s", message_id)

    async def mark_sold_from_reply(self, db: AsyncSession, reply: RawMessage) -> list[Listing]:
        """Mark listings extracted from the quoted message as sold."""
        result = await db.execute(
            select(Listing)
            .join(RawMessage, RawMessage.id == Listing.raw_message_id)
            .where(
                RawMessage.whapi_msg_id == reply.reply_to_msg_id,
                Listing.status.in_(SOLDABLE_STATUSES),
            )
        )
        listings = list(result.scalars().all())
        if not listings:
            logger.info("Sold reply %s quotes %s but no open listing found", reply.id, reply.reply_to_msg_id)
            return []

        now = datetime.now(timezone.utc)
        for listing in listings:
            listing.status = ListingStatus.SOLD
            listing.sold_at = now
            listing.sold_message_id = reply.whapi_msg_id
            if not _same_sender(listing, reply):
                listing.buyer_name = reply.sender_name or reply.sender_phone
        await db.flush()
        logger.info("Marked %d listing(s) sold from reply %s", len(listings), reply.id)
        return listings

    async def reset_for_reprocessing(self, db: AsyncSession, message: RawMessage) -> int:
        """Drop the message's non-terminal listings and clear its flags."""
        listing_ids = select(Listing.id).where(
            Listing.raw_message_id == message.id,
            Listing.status.in_(RESETTABLE_STATUSES),
        )
        await db.execute(
            delete(ReviewQueueItem)
            .where(ReviewQueueItem.listing_id.in_(listing_ids))
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(
            delete(Listing)
            .where(Listing.raw_message_id == message.id, Listing.status.in_(RESETTABLE_STATUSES))
            .execution_options(synchronize_session=False)
        )
        message.processed = False
        message.processing_error = None
        await db.flush()
        return result.rowcount or 0

    async def reprocess(self, message_id: uuid.UUID) -> str:
        """Reset one message and run it through the pipeline again."""
        async with self._session_factory() as db:
            message = await db.get(RawMessage, message_id)
            if message is None:
                raise NotFoundError("RawMessage", message_id)
            removed = await self.reset_for_reprocessing(db, message)
            await db.commit()
        logger.info("Reprocessing message %s (removed %d listing(s))", message_id, removed)
        return await self.process_message(message_id)

    async def catchup(self, submit: JobSubmitter | None = None) -> int:
        """Submit every unprocessed, error-free message in batches.

        Only one sweep runs at a time per process; a concurrent call returns 0.
        """
        if not _catchup_guard.acquire(blocking=False):
            logger.info("Catch-up already running; skipping")
            return 0
        try:
            return await self._catchup(submit)
        finally:
            _catchup_guard.release()

    async def _catchup(self, submit: JobSubmitter | None) -> int:
        batch_size = self._settings.catchup_batch_size
        submitted = 0
        cursor: tuple[datetime, uuid.UUID] | None = None

        while True:
            query = (
                select(RawMessage.id, RawMessage.received_at)
                .where(RawMessage.processed.is_(False), RawMessage.processing_error.is_(None))
                .order_by(RawMessage.received_at, RawMessage.id)
                .limit(batch_size)
            )
            if cursor is not None:
                last_at, last_id = cursor
                query = query.where(
                    or_(
                        RawMessage.received_at > last_at,
                        and_(RawMessage.received_at == last_at, RawMessage.id > last_id),
                    )
                )
            async with self._session_factory() as db:
                rows = (await db.execute(query)).all()
            if not rows:
                break

            for message_id, _ in rows:
                if submit is None:
                    await self.process_message(message_id)
                else:
                    await submit(lambda mid=message_id: self.process_message(mid))
            submitted += len(rows)
            cursor = (rows[-1].received_at, rows[-1].id)
            logger.info("Catch-up submitted batch of %d message(s)", len(rows))

            if len(rows) < batch_size:
                break

        logger.info("Catch-up complete: %d message(s) submitted", submitted)
        return submitted

    async def expire_listings(self) -> int:
        """Move active listings past their expiry date to expired."""
        now = datetime.now(timezone.utc)
        async with self._session_factory() as db:
            result = await db.execute(
                update(Listing)
                .where(
                    Listing.status == ListingStatus.ACTIVE,
                    Listing.expires_at.is_not(None),
                    Listing.expires_at < now,
                )
                .values(status=ListingStatus.EXPIRED, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            await db.commit()
        expired = result.rowcount or 0
        if expired:
            logger.info("Expired %d listing(s)", expired)
        return expired


def _same_sender(listing: Listing, reply: RawMessage) -> bool:
    if listing.sender_phone and reply.sender_phone:
        return listing.sender_phone == reply.sender_phone
    return bool(listing.sender_name) and listing.sender_name == reply.sender_name


def build_processing_service(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    ai_service: AIService | None = None,
) -> ProcessingService:
    """Wire a ProcessingService from the process-wide singletons."""
    ai = ai_service or get_ai_service(settings)
    return ProcessingService(
        settings=settings,
        session_factory=session_factory or get_session_factory(settings),
        ai_service=ai,
        extraction=ExtractionService(ai, settings),
        router=ConfidenceRouter(settings),
        caches=get_lookup_caches(settings),
        matcher=NotificationMatcher(get_notification_dispatcher(settings)),
        connection_manager=ws_manager,
    )
