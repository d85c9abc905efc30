"""CRUD for natural-language notification rules."""

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tradeintel.exceptions import NotFoundError
from tradeintel.models.listing import IntentType
from tradeintel.models.notification_rule import NotificationRule
from tradeintel.models.user import User
from tradeintel.services.audit_service import write_audit_log
from tradeintel.services.confidence_router import parse_intent
from tradeintel.services.cost_tracking import CostTrackingService, track_usage_safely
from tradeintel.services.lookup_cache import LookupCaches, LookupSnapshot
from tradeintel.services.rule_parser import ParsedRule, RuleParser

logger = logging.getLogger(__name__)


def apply_parsed_fields(rule: NotificationRule, parsed: ParsedRule, lookups: LookupSnapshot) -> None:
    """Overwrite every parsed filter on the rule with the new parse result."""
    intent = parse_intent(parsed.intent)
    rule.parsed_intent = intent if intent in (IntentType.SELL, IntentType.WANT) else None
    rule.parsed_keywords = list(parsed.keywords) or None

    category_ids = []
    for name in parsed.category_names:
        category_id = lookups.resolve_category(name)
        if category_id is None:
            logger.debug("Dropping unresolved category from rule: %s", name)
            continue
        if str(category_id) not in category_ids:
            category_ids.append(str(category_id))
    rule.parsed_category_ids = category_ids or None

    rule.parsed_price_min = parsed.price_min
    rule.parsed_price_max = parsed.price_max


class NotificationRuleService:
    """Creates, re-parses and deactivates a user's notification rules."""

    def __init__(
        self,
        parser: RuleParser,
        caches: LookupCaches,
        cost_tracker: CostTrackingService,
    ) -> None:
        self._parser = parser
        self._caches = caches
        self._cost = cost_tracker

    async def _parse_into(self, db: AsyncSession, rule: NotificationRule, user_id: uuid.UUID) -> None:
        parsed, usage = await self._parser.parse(rule.nl_rule)
        await track_usage_safely(db, self._cost, user_id, usage)
        apply_parsed_fields(rule, parsed, await self._caches.get_lookups(db))

    async def create(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        nl_rule: str,
        notify_email: str | None = None,
    ) -> NotificationRule:
        user = await db.get(User, user_id)
        if user is None:
            raise NotFoundError("User", user_id)

        rule = NotificationRule(
            user_id=user_id,
            nl_rule=nl_rule.strip(),
            notify_channel="email",
            notify_email=notify_email or user.email,
            is_active=True,
        )
        await self._parse_into(db, rule, user_id)
        db.add(rule)
        await db.flush()

        await write_audit_log(
            db=db,
            user_id=user_id,
            action="rule.created",
            entity_type="notification_rule",
            entity_id=str(rule.id),
        )
        logger.info("Created notification rule %s for user=%s", rule.id, user_id)
        return rule

    async def get(self, db: AsyncSession, user_id: uuid.UUID, rule_id: uuid.UUID) -> NotificationRule:
        """Fetch a rule owned by the user; other users' rules look missing."""
        result = await db.execute(
            select(NotificationRule).where(NotificationRule.id == rule_id, NotificationRule.user_id == user_id)
        )
        rule = result.scalar_one_or_none()
        if rule is None:
            raise NotFoundError("NotificationRule", rule_id)
        return rule

    async def list_rules(self, db: AsyncSession, user_id: uuid.UUID) -> list[NotificationRule]:
        result = await db.execute(
            select(NotificationRule)
            .where(NotificationRule.user_id == user_id)
            .order_by(NotificationRule.created_at.desc())
        )
        return list(result.scalars().all())

    async def update(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        rule_id: uuid.UUID,
        nl_rule: str | None = None,
        notify_email: str | None = None,
        is_active: bool | None = None,
    ) -> NotificationRule:
        rule = await self.get(db, user_id, rule_id)

        if nl_rule is not None and nl_rule.strip() and nl_rule.strip() != rule.nl_rule:
            rule.nl_rule = nl_rule.strip()
            await self._parse_into(db, rule, user_id)
            logger.info("Re-parsed notification rule %s after text change", rule.id)
        if notify_email is not None:
            rule.notify_email = notify_email
        if is_active is not None:
            rule.is_active = is_active

        await db.flush()
        await write_audit_log(
            db=db,
            user_id=user_id,
            action="rule.updated",
            entity_type="notification_rule",
            entity_id=str(rule.id),
        )
        return rule

    async def deactivate(self, db: AsyncSession, user_id: uuid.UUID, rule_id: uuid.UUID) -> NotificationRule:
        """Soft-delete: rules are deactivated, never removed."""
        rule = await self.get(db, user_id, rule_id)
        rule.is_active = False
        await db.flush()
        await write_audit_log(
            db=db,
            user_id=user_id,
            action="rule.deactivated",
            entity_type="notification_rule",
            entity_id=str(rule.id),
        )
        return rule
