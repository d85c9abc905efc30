"""Tests for notification rule CRUD and parsed-filter handling."""

import uuid
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import select

from tradeintel.exceptions import NotFoundError
from tradeintel.models.audit_log import AuditLog
from tradeintel.models.listing import IntentType
from tradeintel.services.ai_service import UsageRecord
from tradeintel.services.cost_tracking import CostTrackingService
from tradeintel.services.lookup_cache import LookupCaches
from tradeintel.services.notification_rule_service import NotificationRuleService
from tradeintel.services.rule_parser import ParsedRule


def _usage() -> UsageRecord:
    return UsageRecord(model="gpt-4o-mini", input_tokens=120, output_tokens=30)


@pytest.fixture
def parser():
    fake = MagicMock()
    fake.parse = AsyncMock(
        return_value=(
            ParsedRule(
                intent="sell",
                keywords=["Rolex", "Submariner"],
                category_names=["Dive Watch", "Pocket Watch"],
                price_max=Decimal("8000"),
            ),
            _usage(),
        )
    )
    return fake


@pytest.fixture
def service(settings, parser):
    return NotificationRuleService(parser, LookupCaches(settings), CostTrackingService())


class TestCreateRule:
    @pytest.mark.asyncio
    async def test_create_parses_and_resolves_categories(self, db, factories, service, parser):
        user = await factories.user(db)
        lookups = await factories.lookups(db)

        rule = await service.create(db, user.id, "  Rolex Submariner for sale under 8000  ")

        parser.parse.assert_awaited_once_with("Rolex Submariner for sale under 8000")
        assert rule.id is not None
        assert rule.nl_rule == "Rolex Submariner for sale under 8000"
        assert rule.parsed_intent == IntentType.SELL
        assert rule.parsed_keywords == ["Rolex", "Submariner"]
        # Unresolvable "Pocket Watch" is dropped
        assert rule.parsed_category_ids == [str(lookups["dive"].id)]
        assert rule.parsed_price_min is None
        assert rule.parsed_price_max == Decimal("8000")
        assert rule.is_active is True
        assert rule.notify_channel == "email"

    @pytest.mark.asyncio
    async def test_notify_email_falls_back_to_user_email(self, db, factories, service):
        user = await factories.user(db, email="owner@example.com")

        default = await service.create(db, user.id, "any Omega")
        explicit = await service.create(db, user.id, "any Tudor", notify_email="alerts@example.com")

        assert default.notify_email == "owner@example.com"
        assert explicit.notify_email == "alerts@example.com"

    @pytest.mark.asyncio
    async def test_create_writes_audit_and_tracks_cost(self, db, factories, service):
        user = await factories.user(db)

        rule = await service.create(db, user.id, "any Omega")

        audit = (await db.execute(select(AuditLog).where(AuditLog.action == "rule.created"))).scalar_one()
        assert audit.entity_id == str(rule.id)
        summary = await CostTrackingService().summary(db, user.id)
        assert summary["today"]["input_tokens"] == 120

    @pytest.mark.asyncio
    async def test_empty_parse_saves_rule_without_filters(self, db, factories, service, parser):
        user = await factories.user(db)
        parser.parse.return_value = (ParsedRule(), UsageRecord(model="gpt-4o-mini"))

        rule = await service.create(db, user.id, "something vague")

        assert rule.parsed_intent is None
        assert rule.parsed_keywords is None
        assert rule.parsed_category_ids is None

    @pytest.mark.asyncio
    async def test_unknown_intent_means_no_intent_filter(self, db, factories, service, parser):
        user = await factories.user(db)
        parser.parse.return_value = (ParsedRule(intent="unknown", keywords=["GMT"]), _usage())

        rule = await service.create(db, user.id, "GMT anything")

        assert rule.parsed_intent is None
        assert rule.parsed_keywords == ["GMT"]

    @pytest.mark.asyncio
    async def test_missing_user(self, db, service):
        with pytest.raises(NotFoundError):
            await service.create(db, uuid.uuid4(), "any Omega")


class TestUpdateRule:
    @pytest.mark.asyncio
    async def test_text_change_reparses_and_replaces_filters(self, db, factories, service, parser):
        user = await factories.user(db)
        await factories.lookups(db)
        rule = await service.create(db, user.id, "Rolex Submariner for sale under 8000")
        parser.parse.return_value = (ParsedRule(intent="want", keywords=["Speedmaster"]), _usage())

        updated = await service.update(db, user.id, rule.id, nl_rule="WTB Speedmaster")

        assert parser.parse.await_count == 2
        assert updated.nl_rule == "WTB Speedmaster"
        assert updated.parsed_intent == IntentType.WANT
        assert updated.parsed_keywords == ["Speedmaster"]
        assert updated.parsed_category_ids is None
        assert updated.parsed_price_max is None

    @pytest.mark.asyncio
    async def test_same_text_does_not_reparse(self, db, factories, service, parser):
        user = await factories.user(db)
        rule = await service.create(db, user.id, "any Omega")

        updated = await service.update(
            db, user.id, rule.id, nl_rule=" any Omega ", notify_email="new@example.com", is_active=False
        )

        assert parser.parse.await_count == 1
        assert updated.notify_email == "new@example.com"
        assert updated.is_active is False

    @pytest.mark.asyncio
    async def test_other_users_rule_is_not_found(self, db, factories, service):
        owner = await factories.user(db)
        intruder = await factories.user(db, email="intruder@example.com")
        rule = await service.create(db, owner.id, "any Omega")

        with pytest.raises(NotFoundError):
            await service.update(db, intruder.id, rule.id, is_active=False)
        with pytest.raises(NotFoundError):
            await service.deactivate(db, intruder.id, rule.id)


class TestListAndDeactivate:
    @pytest.mark.asyncio
    async def test_deactivate_keeps_rule(self, db, factories, service):
        user = await factories.user(db)
        rule = await service.create(db, user.id, "any Omega")

        await service.deactivate(db, user.id, rule.id)

        rules = await service.list_rules(db, user.id)
        assert [r.id for r in rules] == [rule.id]
        assert rules[0].is_active is False
        audit = (await db.execute(select(AuditLog).where(AuditLog.action == "rule.deactivated"))).scalar_one()
        assert audit.user_id == user.id

    @pytest.mark.asyncio
    async def test_list_only_own_rules(self, db, factories, service):
        user = await factories.user(db)
        other = await factories.user(db, email="other@example.com")
        await service.create(db, user.id, "any Omega")
        await service.create(db, other.id, "any Tudor")

        rules = await service.list_rules(db, user.id)
        assert [r.nl_rule for r in rules] == ["any Omega"]
