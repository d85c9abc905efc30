"""Cross-post detection: exact-repeat cleanup and same-item counting."""

import logging
import uuid
from collections import defaultdict
from datetime import datetime, timezone

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from tradeintel.models.listing import Listing, ListingStatus

logger = logging.getLogger(__name__)


def _same_item_filter(listing: Listing):
    """Other listings with the same (part number, price, currency, seller).

    Returns None when the listing lacks a field the match needs; nulls never
    match anything.
    """
    if not listing.part_number or listing.price is None or not listing.price_currency:
        return None

    seller = []
    if listing.sender_name:
        seller.append(Listing.sender_name == listing.sender_name)
    if listing.sender_phone:
        seller.append(Listing.sender_phone == listing.sender_phone)
    if not seller:
        return None

    conditions = [
        Listing.id != listing.id,
        Listing.raw_message_id != listing.raw_message_id,
        Listing.status != ListingStatus.DELETED,
        Listing.deleted_at.is_(None),
        Listing.part_number == listing.part_number,
        Listing.price == listing.price,
        Listing.price_currency == listing.price_currency,
        or_(*seller),
    ]
    if listing.group_id is not None:
        conditions.append(or_(Listing.group_id.is_(None), Listing.group_id != listing.group_id))
    return and_(*conditions)


def _norm(value: str | None) -> str | None:
    if value is None:
        return None
    return " ".join(value.split()).lower() or None


def repeat_key(listing: Listing) -> tuple:
    """Identity of a listing within its source message.

    Unlike cross-post matching, missing fields compare equal here: two
    unpriced listings with otherwise identical fields are still repeats.
    """
    return (
        listing.raw_message_id,
        getattr(listing.intent, "value", listing.intent),
        _norm(listing.item_description),
        _norm(listing.part_number),
        _norm(listing.model_name),
        listing.quantity,
        listing.price,
        _norm(listing.price_currency),
        listing.category_id,
        listing.manufacturer_id,
        listing.unit_id,
        listing.condition_id,
    )


class CrossPostService:
    async def deduplicate(self, db: AsyncSession) -> int:
        """Soft-delete exact repeats from the same source message.

        Listings are grouped by ``repeat_key``; the earliest-created one in
        each group is kept. Returns the number of listings removed.
        """
        result = await db.execute(
            select(Listing)
            .where(Listing.deleted_at.is_(None), Listing.status != ListingStatus.DELETED)
            .order_by(Listing.created_at, Listing.id)
        )
        groups: dict[tuple, list[Listing]] = defaultdict(list)
        for listing in result.scalars():
            groups[repeat_key(listing)].append(listing)

        now = datetime.now(timezone.utc)
        removed = 0
        for duplicates in groups.values():
            for listing in duplicates[1:]:
                listing.status = ListingStatus.DELETED
                listing.deleted_at = now
                removed += 1

        if removed:
            await db.flush()
        logger.info("Cross-post dedup soft-deleted %d duplicate listing(s)", removed)
        return removed

    async def count_cross_posts(self, db: AsyncSession, listing: Listing) -> int:
        """How many distinct postings of the same item exist in other groups."""
        condition = _same_item_filter(listing)
        if condition is None:
            return 0
        result = await db.execute(select(func.count(Listing.id)).where(condition))
        return int(result.scalar_one())

    async def find_cross_posts(self, db: AsyncSession, listing: Listing, limit: int = 20) -> list[Listing]:
        condition = _same_item_filter(listing)
        if condition is None:
            return []
        result = await db.execute(
            select(Listing).where(condition).order_by(Listing.created_at.desc()).limit(limit)
        )
        return list(result.scalars().all())

    async def batch_counts(self, db: AsyncSession, listings: list[Listing]) -> dict[uuid.UUID, int]:
        """Cross-post counts keyed by listing id, for a page of results."""
        counts: dict[uuid.UUID, int] = {}
        for listing in listings:
            counts[listing.id] = await self.count_cross_posts(db, listing)
        return counts
