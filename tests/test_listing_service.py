"""Tests for listing search, stats, message search and soft delete."""

import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import select

from tradeintel.exceptions import NotFoundError
from tradeintel.models.audit_log import AuditLog
from tradeintel.models.listing import IntentType, ListingStatus
from tradeintel.services.listing_service import ListingService


@pytest.fixture
def listings():
    return ListingService()


class TestSearch:
    @pytest.mark.asyncio
    async def test_keyword_matches_description_part_or_model(self, db, factories, listings):
        group = await factories.group(db)
        by_description = await factories.listing(db, await factories.message(db, group))
        by_model = await factories.listing(
            db,
            await factories.message(db, group),
            item_description="Blue dial diver",
            part_number="126619LB",
            model_name="Submariner Date",
        )
        await factories.listing(
            db, await factories.message(db, group), item_description="Omega Seamaster", part_number="210.30"
        )

        results, total = await listings.search(db, query="SUBMARINER")

        assert total == 2
        assert {r.id for r in results} == {by_description.id, by_model.id}

    @pytest.mark.asyncio
    async def test_like_wildcards_are_literal(self, db, factories, listings):
        group = await factories.group(db)
        await factories.listing(db, await factories.message(db, group), item_description="100% original")
        await factories.listing(db, await factories.message(db, group), item_description="1000 pieces")

        results, total = await listings.search(db, query="100%")

        assert total == 1
        assert results[0].item_description == "100% original"

    @pytest.mark.asyncio
    async def test_filters_and_default_status(self, db, factories, listings):
        group = await factories.group(db)
        cheap = await factories.listing(db, await factories.message(db, group), price=Decimal("5000"))
        await factories.listing(db, await factories.message(db, group), price=Decimal("15000"))
        await factories.listing(db, await factories.message(db, group), intent=IntentType.WANT, price=Decimal("6000"))
        await factories.listing(db, await factories.message(db, group), status=ListingStatus.PENDING_REVIEW)

        results, total = await listings.search(
            db, intent=IntentType.SELL, price_min=Decimal("1000"), price_max=Decimal("10000")
        )
        assert total == 1
        assert results[0].id == cheap.id

        _, pending_total = await listings.search(db, status=ListingStatus.PENDING_REVIEW)
        assert pending_total == 1

    @pytest.mark.asyncio
    async def test_newest_first_with_paging(self, db, factories, listings):
        group = await factories.group(db)
        base = datetime(2024, 3, 1, tzinfo=timezone.utc)
        created = [
            await factories.listing(db, await factories.message(db, group), created_at=base + timedelta(minutes=i))
            for i in range(3)
        ]

        page, total = await listings.search(db, limit=2, offset=1)

        assert total == 3
        assert [r.id for r in page] == [created[1].id, created[0].id]

    @pytest.mark.asyncio
    async def test_deleted_excluded(self, db, factories, listings, sample_user_id):
        group = await factories.group(db)
        listing = await factories.listing(db, await factories.message(db, group))
        await listings.soft_delete(db, listing.id, sample_user_id)

        _, total = await listings.search(db, status=None)
        assert total == 0


class TestGetAndDelete:
    @pytest.mark.asyncio
    async def test_soft_delete(self, db, factories, listings):
        user = await factories.user(db)
        group = await factories.group(db)
        listing = await factories.listing(db, await factories.message(db, group))

        deleted = await listings.soft_delete(db, listing.id, user.id)

        assert deleted.status == ListingStatus.DELETED
        assert deleted.deleted_at is not None
        assert deleted.deleted_by == user.id
        audit = (await db.execute(select(AuditLog).where(AuditLog.action == "listing.deleted"))).scalar_one()
        assert audit.entity_id == str(listing.id)

        with pytest.raises(NotFoundError):
            await listings.get(db, listing.id)

    @pytest.mark.asyncio
    async def test_get_missing(self, db, listings):
        with pytest.raises(NotFoundError):
            await listings.get(db, uuid.uuid4())


class TestStats:
    @pytest.mark.asyncio
    async def test_counts_by_intent_and_status(self, db, factories, listings):
        group = await factories.group(db)
        await factories.listing(db, await factories.message(db, group))
        await factories.listing(db, await factories.message(db, group), intent=IntentType.WANT)
        await factories.listing(db, await factories.message(db, group), status=ListingStatus.PENDING_REVIEW)
        await factories.listing(
            db,
            await factories.message(db, group),
            status=ListingStatus.DELETED,
            deleted_at=datetime.now(timezone.utc),
        )

        stats = await listings.stats(db)

        assert stats["total"] == 3
        assert stats["active"] == 2
        assert stats["by_intent"] == {"sell": 2, "want": 1}
        assert stats["by_status"] == {"active": 2, "pending_review": 1}


class TestSearchMessages:
    @pytest.mark.asyncio
    async def test_group_by_internal_or_platform_id(self, db, factories, listings):
        group_a = await factories.group(db, whapi_group_id="a@g.us", name="A")
        group_b = await factories.group(db, whapi_group_id="b@g.us", name="B")
        in_a = await factories.message(db, group_a)
        await factories.message(db, group_b)

        by_uuid = await listings.search_messages(db, group_id=str(group_a.id))
        by_platform = await listings.search_messages(db, group_id="a@g.us")

        assert [m.id for m in by_uuid] == [in_a.id]
        assert [m.id for m in by_platform] == [in_a.id]

    @pytest.mark.asyncio
    async def test_sender_and_keyword(self, db, factories, listings):
        group = await factories.group(db)
        now = datetime.now(timezone.utc)
        await factories.message(db, group, body="WTS Daytona", timestamp_wa=now - timedelta(minutes=5))
        latest = await factories.message(db, group, body="WTS Daytona again", timestamp_wa=now)
        await factories.message(db, group, body="WTS Daytona", sender_name="Bob", sender_phone="+15552223333")

        results = await listings.search_messages(db, sender="alice", query="daytona")

        assert len(results) == 2
        assert results[0].id == latest.id

        by_phone = await listings.search_messages(db, sender="2223333")
        assert [m.sender_name for m in by_phone] == ["Bob"]
