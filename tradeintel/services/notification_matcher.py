"""Evaluates active notification rules against newly accepted listings."""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tradeintel.models.listing import Listing
from tradeintel.models.notification_rule import NotificationRule
from tradeintel.models.user import User
from tradeintel.services.notification_dispatcher import NotificationDispatcher

logger = logging.getLogger(__name__)


def rule_matches(rule: NotificationRule, listing: Listing) -> bool:
    """AND of every filter the rule sets; unset filters always pass."""
    if rule.parsed_intent is not None and rule.parsed_intent != listing.intent:
        return False

    keywords = [k.lower() for k in (rule.parsed_keywords or []) if k]
    if keywords:
        description = (listing.item_description or "").lower()
        if not any(k in description for k in keywords):
            return False

    category_ids = rule.parsed_category_ids or []
    if category_ids:
        if listing.category_id is None or str(listing.category_id) not in category_ids:
            return False

    if rule.parsed_price_min is not None or rule.parsed_price_max is not None:
        if listing.price is None:
            return False
        if rule.parsed_price_min is not None and listing.price < rule.parsed_price_min:
            return False
        if rule.parsed_price_max is not None and listing.price > rule.parsed_price_max:
            return False

    return True


class NotificationMatcher:
    def __init__(self, dispatcher: NotificationDispatcher) -> None:
        self._dispatcher = dispatcher

    async def active_rules(self, db: AsyncSession) -> list[tuple[NotificationRule, str]]:
        """Active rules of active users, each paired with the owner's e-mail."""
        result = await db.execute(
            select(NotificationRule, User.email)
            .join(User, User.id == NotificationRule.user_id)
            .where(NotificationRule.is_active.is_(True), User.is_active.is_(True))
        )
        return [(rule, email) for rule, email in result.all()]

    async def match_and_dispatch(self, db: AsyncSession, listing: Listing) -> int:
        """Dispatch the listing to each matching rule; returns the match count.

        A failure for one rule is logged and never stops the others.
        """
        matched = 0
        for rule, account_email in await self.active_rules(db):
            if not rule_matches(rule, listing):
                continue
            matched += 1
            try:
                await self._dispatcher.dispatch(rule, listing, account_email=account_email)
            except Exception:
                logger.exception("Notification dispatch failed for rule %s listing %s", rule.id, listing.id)
        if matched:
            await db.flush()
            logger.info("Listing %s matched %d notification rule(s)", listing.id, matched)
        return matched
