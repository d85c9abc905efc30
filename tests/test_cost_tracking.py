"""Tests for LLM cost estimation and the daily usage ledger."""

from datetime import date, timedelta
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from tradeintel.models.usage_ledger import UsageLedger
from tradeintel.services.ai_service import UsageRecord, estimate_cost
from tradeintel.services.chat_service import DEFAULT_SESSION_TITLE, ChatService
from tradeintel.services.cost_tracking import CostTrackingService, track_usage_safely


class TestEstimateCost:
    def test_known_model_rates(self):
        assert estimate_cost("gpt-4o-mini", 1_000_000, 1_000_000) == Decimal("0.750000")

    def test_unknown_model_uses_default_rates(self):
        assert estimate_cost("some-new-model", 1_000_000, 0) == Decimal("2.500000")

    def test_usage_records_add(self):
        total = UsageRecord("gpt-4o-mini", 10, 5) + UsageRecord("gpt-4o-mini", 20, 7)
        assert (total.input_tokens, total.output_tokens) == (30, 12)


class TestCostTracking:
    @pytest.mark.asyncio
    async def test_track_creates_then_increments_daily_row(self, db, factories):
        user = await factories.user(db)
        tracker = CostTrackingService()

        await tracker.track(db, user.id, UsageRecord("gpt-4o-mini", 1_000_000, 0))
        await tracker.track(db, user.id, UsageRecord("gpt-4o-mini", 0, 1_000_000))

        rows = (await db.execute(select(UsageLedger))).scalars().all()
        assert len(rows) == 1
        await db.refresh(rows[0])
        assert rows[0].total_input_tokens == 1_000_000
        assert rows[0].total_output_tokens == 1_000_000
        assert rows[0].total_cost_usd == Decimal("0.75")

    @pytest.mark.asyncio
    async def test_summary_windows(self, db, factories):
        user = await factories.user(db)
        today = date.today()
        with patch("tradeintel.services.cost_tracking._today", return_value=today):
            db.add_all(
                [
                    UsageLedger(
                        user_id=user.id,
                        period_date=today - timedelta(days=60),
                        total_input_tokens=1000,
                        total_output_tokens=100,
                        total_cost_usd=Decimal("1.00"),
                        session_count=1,
                    ),
                    UsageLedger(
                        user_id=user.id,
                        period_date=today - timedelta(days=3),
                        total_input_tokens=200,
                        total_output_tokens=20,
                        total_cost_usd=Decimal("0.20"),
                        session_count=2,
                    ),
                ]
            )
            await db.flush()
            tracker = CostTrackingService()
            await tracker.increment_session_count(db, user.id)

            summary = await tracker.summary(db, user.id)

        assert summary["today"] == {
            "input_tokens": 0,
            "output_tokens": 0,
            "cost_usd": Decimal("0"),
            "sessions": 1,
        }
        assert summary["last_30_days"]["input_tokens"] == 200
        assert summary["last_30_days"]["sessions"] == 3
        assert summary["all_time"]["input_tokens"] == 1200
        assert summary["all_time"]["cost_usd"] == pytest.approx(Decimal("1.20"))

    @pytest.mark.asyncio
    async def test_ledger_failure_is_not_fatal(self, db, factories):
        user = await factories.user(db)
        tracker = CostTrackingService()
        tracker.track = AsyncMock(side_effect=OperationalError("UPDATE", {}, Exception("locked")))

        await track_usage_safely(db, tracker, user.id, UsageRecord("gpt-4o-mini", 1, 1))

        tracker.track.assert_awaited_once()


class TestChatService:
    @pytest.mark.asyncio
    async def test_create_session_counts_and_defaults_title(self, db, factories):
        user = await factories.user(db)
        service = ChatService(CostTrackingService())

        titled = await service.create_session(db, user.id, "  Rolex pricing ")
        untitled = await service.create_session(db, user.id, "   ")

        assert titled.title == "Rolex pricing"
        assert untitled.title == DEFAULT_SESSION_TITLE
        summary = await service.cost_summary(db, user.id)
        assert summary["today"]["sessions"] == 2

    @pytest.mark.asyncio
    async def test_sessions_are_private(self, db, factories):
        owner = await factories.user(db)
        other = await factories.user(db, email="other@example.com")
        service = ChatService(CostTrackingService())
        session = await service.create_session(db, owner.id)

        assert [s.id for s in await service.list_sessions(db, owner.id)] == [session.id]
        assert await service.list_sessions(db, other.id) == []
        assert (await service.get_session(db, owner.id, session.id)).id == session.id
        assert await service.get_messages(db, session.id) == []
