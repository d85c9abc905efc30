"""Structured queries over listings and archived messages."""

import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from tradeintel.exceptions import NotFoundError
from tradeintel.models.group import WhatsappGroup
from tradeintel.models.listing import IntentType, Listing, ListingStatus
from tradeintel.models.raw_message import RawMessage
from tradeintel.services.audit_service import write_audit_log

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


def _like(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped.lower()}%"


class ListingService:
    async def search(
        self,
        db: AsyncSession,
        query: str | None = None,
        intent: IntentType | None = None,
        status: ListingStatus | None = ListingStatus.ACTIVE,
        price_min: Decimal | None = None,
        price_max: Decimal | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Listing], int]:
        """Keyword/intent/status/price search, newest first.

        Returns one page plus the total match count.
        """
        conditions = [Listing.deleted_at.is_(None)]
        if query and query.strip():
            pattern = _like(query.strip())
            conditions.append(
                or_(
                    func.lower(Listing.item_description).like(pattern, escape="\\"),
                    func.lower(Listing.part_number).like(pattern, escape="\\"),
                    func.lower(Listing.model_name).like(pattern, escape="\\"),
                )
            )
        if intent is not None:
            conditions.append(Listing.intent == intent)
        if status is not None:
            conditions.append(Listing.status == status)
        if price_min is not None:
            conditions.append(Listing.price >= price_min)
        if price_max is not None:
            conditions.append(Listing.price <= price_max)

        total = (await db.execute(select(func.count(Listing.id)).where(*conditions))).scalar_one()
        result = await db.execute(
            select(Listing)
            .where(*conditions)
            .order_by(Listing.created_at.desc(), Listing.id)
            .limit(min(max(limit, 1), MAX_PAGE_SIZE))
            .offset(max(offset, 0))
        )
        return list(result.scalars().all()), int(total)

    async def get(self, db: AsyncSession, listing_id: uuid.UUID) -> Listing:
        listing = await db.get(Listing, listing_id)
        if listing is None or listing.deleted_at is not None:
            raise NotFoundError("Listing", listing_id)
        return listing

    async def stats(self, db: AsyncSession) -> dict:
        """Listing counts by intent and by status, excluding deleted rows."""
        live = Listing.deleted_at.is_(None)
        by_intent = {
            (intent.value if isinstance(intent, IntentType) else str(intent)): int(count)
            for intent, count in (
                await db.execute(select(Listing.intent, func.count(Listing.id)).where(live).group_by(Listing.intent))
            ).all()
        }
        by_status = {
            (status.value if isinstance(status, ListingStatus) else str(status)): int(count)
            for status, count in (
                await db.execute(select(Listing.status, func.count(Listing.id)).where(live).group_by(Listing.status))
            ).all()
        }
        return {
            "total": sum(by_status.values()),
            "active": by_status.get(ListingStatus.ACTIVE.value, 0),
            "by_intent": by_intent,
            "by_status": by_status,
        }

    async def search_messages(
        self,
        db: AsyncSession,
        group_id: str | None = None,
        sender: str | None = None,
        query: str | None = None,
        limit: int = 10,
    ) -> list[RawMessage]:
        """Archived messages filtered by group, sender and keyword, newest first.

        group_id accepts either the internal UUID or the platform chat id.
        """
        stmt = select(RawMessage)
        if group_id:
            try:
                stmt = stmt.where(RawMessage.group_id == uuid.UUID(str(group_id)))
            except ValueError:
                stmt = stmt.join(WhatsappGroup, WhatsappGroup.id == RawMessage.group_id).where(
                    WhatsappGroup.whapi_group_id == group_id
                )
        if sender and sender.strip():
            pattern = _like(sender.strip())
            stmt = stmt.where(
                or_(
                    func.lower(RawMessage.sender_name).like(pattern, escape="\\"),
                    func.lower(RawMessage.sender_phone).like(pattern, escape="\\"),
                )
            )
        if query and query.strip():
            stmt = stmt.where(func.lower(RawMessage.message_body).like(_like(query.strip()), escape="\\"))
        result = await db.execute(
            stmt.order_by(RawMessage.timestamp_wa.desc()).limit(min(max(limit, 1), MAX_PAGE_SIZE))
        )
        return list(result.scalars().all())

    async def soft_delete(self, db: AsyncSession, listing_id: uuid.UUID, user_id: uuid.UUID) -> Listing:
        listing = await self.get(db, listing_id)
        listing.status = ListingStatus.DELETED
        listing.deleted_at = datetime.now(timezone.utc)
        listing.deleted_by = user_id
        await db.flush()

        await write_audit_log(
            db=db,
            user_id=user_id,
            action="listing.deleted",
            entity_type="listing",
            entity_id=str(listing.id),
        )
        logger.info("Listing %s soft-deleted by %s", listing.id, user_id)
        return listing
