"""Tests for rule matching against accepted listings."""

import uuid
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from tradeintel.models.listing import IntentType, Listing
from tradeintel.models.notification_rule import NotificationRule
from tradeintel.services.notification_matcher import NotificationMatcher, rule_matches

DIVE = uuid.UUID("11111111-1111-1111-1111-111111111111")


def _listing(**kwargs) -> Listing:
    defaults = {
        "intent": IntentType.SELL,
        "item_description": "Rolex Submariner 116610LN full set",
        "category_id": DIVE,
        "price": Decimal("7500"),
    }
    defaults.update(kwargs)
    return Listing(**defaults)


def _rule(**kwargs) -> NotificationRule:
    return NotificationRule(user_id=uuid.uuid4(), nl_rule="test rule", **kwargs)


class TestRuleMatches:
    def test_rule_without_filters_matches_everything(self):
        assert rule_matches(_rule(), _listing())
        assert rule_matches(_rule(), _listing(price=None, category_id=None, intent=IntentType.UNKNOWN))

    def test_intent_filter(self):
        rule = _rule(parsed_intent=IntentType.SELL)
        assert rule_matches(rule, _listing())
        assert not rule_matches(rule, _listing(intent=IntentType.WANT))

    def test_keywords_any_case_insensitive_substring(self):
        rule = _rule(parsed_keywords=["daytona", "SUBMARINER"])
        assert rule_matches(rule, _listing())
        assert not rule_matches(rule, _listing(item_description="Omega Speedmaster"))
        assert not rule_matches(rule, _listing(item_description=None))

    def test_category_filter(self):
        rule = _rule(parsed_category_ids=[str(DIVE)])
        assert rule_matches(rule, _listing())
        assert not rule_matches(rule, _listing(category_id=uuid.uuid4()))
        assert not rule_matches(rule, _listing(category_id=None))

    def test_price_bounds_are_inclusive(self):
        rule = _rule(parsed_price_min=Decimal("5000"), parsed_price_max=Decimal("8000"))
        assert rule_matches(rule, _listing(price=Decimal("5000")))
        assert rule_matches(rule, _listing(price=Decimal("8000")))
        assert not rule_matches(rule, _listing(price=Decimal("8000.01")))
        assert not rule_matches(rule, _listing(price=Decimal("4999")))

    def test_price_filter_rejects_unpriced_listing(self):
        assert not rule_matches(_rule(parsed_price_max=Decimal("8000")), _listing(price=None))

    def test_all_filters_combined(self):
        rule = _rule(
            parsed_intent=IntentType.SELL,
            parsed_keywords=["submariner"],
            parsed_category_ids=[str(DIVE)],
            parsed_price_max=Decimal("8000"),
        )
        assert rule_matches(rule, _listing())
        assert not rule_matches(rule, _listing(price=Decimal("12500")))


class TestMatchAndDispatch:
    @pytest.fixture
    def dispatcher(self):
        fake = AsyncMock()
        fake.dispatch.return_value = {"email_sent": True, "push_sent": True}
        return fake

    @pytest.mark.asyncio
    async def test_dispatches_only_active_matching_rules(self, db, factories, dispatcher):
        user = await factories.user(db)
        inactive_user = await factories.user(db, email="gone@example.com", is_active=False)
        group = await factories.group(db)
        listing = await factories.listing(db, await factories.message(db, group))

        matching = NotificationRule(user_id=user.id, nl_rule="Rolex", parsed_keywords=["rolex"], is_active=True)
        other = NotificationRule(user_id=user.id, nl_rule="Omega", parsed_keywords=["omega"], is_active=True)
        disabled = NotificationRule(user_id=user.id, nl_rule="Rolex off", parsed_keywords=["rolex"], is_active=False)
        orphaned = NotificationRule(user_id=inactive_user.id, nl_rule="Rolex", parsed_keywords=["rolex"], is_active=True)
        db.add_all([matching, other, disabled, orphaned])
        await db.flush()

        count = await NotificationMatcher(dispatcher).match_and_dispatch(db, listing)

        assert count == 1
        dispatcher.dispatch.assert_awaited_once_with(matching, listing, account_email="trader@example.com")

    @pytest.mark.asyncio
    async def test_dispatch_failure_does_not_stop_other_rules(self, db, factories, dispatcher):
        user = await factories.user(db)
        group = await factories.group(db)
        listing = await factories.listing(db, await factories.message(db, group))
        db.add_all(
            [
                NotificationRule(user_id=user.id, nl_rule="a", is_active=True),
                NotificationRule(user_id=user.id, nl_rule="b", is_active=True),
            ]
        )
        await db.flush()
        dispatcher.dispatch.side_effect = [RuntimeError("smtp down"), {"email_sent": True, "push_sent": True}]

        count = await NotificationMatcher(dispatcher).match_and_dispatch(db, listing)

        assert count == 2
        assert dispatcher.dispatch.await_count == 2

    @pytest.mark.asyncio
    async def test_no_rules(self, db, factories, dispatcher):
        group = await factories.group(db)
        listing = await factories.listing(db, await factories.message(db, group))

        assert await NotificationMatcher(dispatcher).match_and_dispatch(db, listing) == 0
        dispatcher.dispatch.assert_not_awaited()
