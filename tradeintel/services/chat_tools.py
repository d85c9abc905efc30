"""Tools the chat agent may invoke, keyed by name."""

import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Awaitable, Callable

from sqlalchemy.ext.asyncio import AsyncSession

from tradeintel.exceptions import TradeIntelError
from tradeintel.models.listing import Listing
from tradeintel.services.confidence_router import parse_intent
from tradeintel.services.crosspost_service import CrossPostService
from tradeintel.services.listing_service import ListingService
from tradeintel.services.lookup_cache import LookupCaches, LookupSnapshot
from tradeintel.services.notification_rule_service import NotificationRuleService

logger = logging.getLogger(__name__)

MAX_TOOL_RESULTS = 10
MESSAGE_BODY_LIMIT = 500


@dataclass
class ToolContext:
    db: AsyncSession
    user_id: uuid.UUID


ToolHandler = Callable[[ToolContext, dict[str, Any]], Awaitable[Any]]


async def unsupported_tool(name: str) -> dict[str, str]:
    return {"error": f"Unknown tool: {name}"}


class ToolRegistry:
    """Maps tool names to handlers; unknown names get an error result."""

    def __init__(self) -> None:
        self._handlers: dict[str, ToolHandler] = {}

    def register(self, name: str, handler: ToolHandler) -> None:
        self._handlers[name] = handler

    @property
    def names(self) -> list[str]:
        return sorted(self._handlers)

    def __contains__(self, name: str) -> bool:
        return name in self._handlers

    async def execute(self, name: str, ctx: ToolContext, params: dict[str, Any]) -> Any:
        handler = self._handlers.get(name)
        if handler is None:
            logger.warning("Chat agent requested unknown tool: %s", name)
            return await unsupported_tool(name)
        try:
            return await handler(ctx, params or {})
        except TradeIntelError as e:
            logger.info("Tool %s returned error: %s", name, e)
            return {"error": str(e)}
        except Exception as e:
            logger.exception("Tool %s failed", name)
            return {"error": f"Tool {name} failed: {type(e).__name__}"}


def _decimal(value: Any) -> Decimal | None:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


def _uuid(value: Any) -> uuid.UUID | None:
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        return None


def listing_summary(listing: Listing, lookups: LookupSnapshot) -> dict[str, Any]:
    return {
        "id": str(listing.id),
        "intent": listing.intent.value,
        "description": listing.item_description,
        "category": lookups.name_of(listing.category_id),
        "manufacturer": lookups.name_of(listing.manufacturer_id),
        "part_number": listing.part_number,
        "price": float(listing.price) if listing.price is not None else None,
        "currency": listing.price_currency,
        "seller": listing.sender_name,
        "status": listing.status.value,
        "created_at": listing.created_at.isoformat() if listing.created_at else None,
    }


class TradeTools:
    """Handlers for the five agent tools, bound to their services."""

    def __init__(
        self,
        listings: ListingService,
        crossposts: CrossPostService,
        caches: LookupCaches,
        rules: NotificationRuleService,
    ) -> None:
        self._listings = listings
        self._crossposts = crossposts
        self._caches = caches
        self._rules = rules

    def registry(self) -> ToolRegistry:
        registry = ToolRegistry()
        registry.register("search_listings", self.search_listings)
        registry.register("search_messages", self.search_messages)
        registry.register("market_stats", self.market_stats)
        registry.register("get_listing_details", self.get_listing_details)
        registry.register("create_notification", self.create_notification)
        return registry

    async def search_listings(self, ctx: ToolContext, params: dict[str, Any]) -> dict[str, Any]:
        listings, total = await self._listings.search(
            ctx.db,
            query=params.get("query"),
            intent=parse_intent(params.get("intent")) if params.get("intent") else None,
            price_min=_decimal(params.get("priceMin")),
            price_max=_decimal(params.get("priceMax")),
            limit=MAX_TOOL_RESULTS,
        )
        lookups = await self._caches.get_lookups(ctx.db)
        return {"total": total, "listings": [listing_summary(item, lookups) for item in listings]}

    async def search_messages(self, ctx: ToolContext, params: dict[str, Any]) -> dict[str, Any]:
        messages = await self._listings.search_messages(
            ctx.db,
            group_id=params.get("groupId"),
            sender=params.get("sender"),
            query=params.get("query"),
            limit=MAX_TOOL_RESULTS,
        )
        return {
            "messages": [
                {
                    "id": str(m.id),
                    "sender": m.sender_name or m.sender_phone,
                    "body": (m.message_body or "")[:MESSAGE_BODY_LIMIT],
                    "timestamp": m.timestamp_wa.isoformat() if m.timestamp_wa else None,
                }
                for m in messages
            ]
        }

    async def market_stats(self, ctx: ToolContext, params: dict[str, Any]) -> dict[str, Any]:
        return await self._listings.stats(ctx.db)

    async def get_listing_details(self, ctx: ToolContext, params: dict[str, Any]) -> dict[str, Any]:
        listing_id = _uuid(params.get("id"))
        if listing_id is None:
            return {"error": "Invalid listing id"}
        listing = await self._listings.get(ctx.db, listing_id)
        lookups = await self._caches.get_lookups(ctx.db)
        details = listing_summary(listing, lookups)
        details.update(
            {
                "model_name": listing.model_name,
                "quantity": float(listing.quantity) if listing.quantity is not None else None,
                "unit": lookups.name_of(listing.unit_id),
                "condition": lookups.name_of(listing.condition_id),
                "attributes": listing.attributes,
                "confidence": listing.confidence_score,
                "original_text": listing.original_text,
                "seller_phone": listing.sender_phone,
                "cross_posts": await self._crossposts.count_cross_posts(ctx.db, listing),
            }
        )
        return details

    async def create_notification(self, ctx: ToolContext, params: dict[str, Any]) -> dict[str, Any]:
        rule_text = str(params.get("rule") or "").strip()
        if not rule_text:
            return {"error": "Missing rule text"}
        rule = await self._rules.create(ctx.db, ctx.user_id, rule_text)
        return {
            "id": str(rule.id),
            "rule": rule.nl_rule,
            "intent": rule.parsed_intent.value if rule.parsed_intent else None,
            "keywords": rule.parsed_keywords or [],
            "price_min": float(rule.parsed_price_min) if rule.parsed_price_min is not None else None,
            "price_max": float(rule.parsed_price_max) if rule.parsed_price_max is not None else None,
            "status": "created",
        }
