"""Delivers a matched listing to a rule owner over e-mail and WebSocket push."""

import logging
from datetime import datetime, timezone
from typing import Any

from tradeintel.config import Settings
from tradeintel.metrics import notifications_sent_total
from tradeintel.models.listing import Listing
from tradeintel.models.notification_rule import NotificationRule
from tradeintel.services.email_service import EmailService, get_email_service
from tradeintel.services.ws_manager import ConnectionManager, ws_manager

logger = logging.getLogger(__name__)

_SUBJECT_DESCRIPTION_LIMIT = 60


def _intent_label(listing: Listing) -> str:
    intent = getattr(listing.intent, "value", listing.intent)
    return str(intent or "unknown").upper()


def build_subject(listing: Listing) -> str:
    description = listing.item_description or ""
    if len(description) > _SUBJECT_DESCRIPTION_LIMIT:
        description = description[: _SUBJECT_DESCRIPTION_LIMIT - 3] + "..."
    return f"[Trade Intel] {_intent_label(listing)} Alert: {description}"


def build_body(rule: NotificationRule, listing: Listing) -> str:
    if listing.price is not None:
        price = f"{listing.price} {listing.price_currency or ''}".strip()
    else:
        price = "N/A"
    confidence = f"{(listing.confidence_score or 0.0) * 100:.0f}%"
    lines = [
        "A new listing matched your notification rule.",
        "",
        "YOUR RULE:",
        f"  {rule.nl_rule}",
        "",
        "LISTING DETAILS:",
        f"  Description: {listing.item_description}",
        f"  Intent: {_intent_label(listing)}",
        f"  Price: {price}",
        f"  Part Number: {listing.part_number or 'N/A'}",
        f"  Seller: {listing.sender_name or 'Unknown'}",
        f"  Confidence: {confidence}",
        "",
        "--",
        "Trade Intelligence Platform",
    ]
    return "\n".join(lines)


def build_push_payload(rule: NotificationRule, listing: Listing) -> dict[str, Any]:
    return {
        "type": "notification_match",
        "ruleId": str(rule.id),
        "listingId": str(listing.id),
        "description": listing.item_description,
        "ruleName": rule.nl_rule,
    }


class NotificationDispatcher:
    """Sends one match to every channel of the rule owner.

    Channels fail independently: an e-mail failure never blocks the push and
    the rule's last_triggered is stamped either way.
    """

    def __init__(self, email_service: EmailService, connection_manager: ConnectionManager) -> None:
        self._email = email_service
        self._ws = connection_manager

    async def dispatch(
        self,
        rule: NotificationRule,
        listing: Listing,
        account_email: str | None = None,
    ) -> dict[str, bool | None]:
        """Returns {"email_sent": bool | None, "push_sent": bool}.

        Mail goes to the rule's notify_email, or to the owner's account
        e-mail when that is blank.
        """
        result: dict[str, bool | None] = {"email_sent": None, "push_sent": False}

        recipient = (rule.notify_email or "").strip() or account_email
        if recipient:
            try:
                await self._email.send(recipient, build_subject(listing), build_body(rule, listing))
                result["email_sent"] = True
                notifications_sent_total.labels(channel="email", outcome="sent").inc()
            except Exception as e:
                logger.error("E-mail dispatch failed for rule %s: %s", rule.id, e)
                result["email_sent"] = False
                notifications_sent_total.labels(channel="email", outcome="failed").inc()

        rule.last_triggered = datetime.now(timezone.utc)

        try:
            await self._ws.publish_to_user(rule.user_id, build_push_payload(rule, listing))
            result["push_sent"] = True
            notifications_sent_total.labels(channel="websocket", outcome="sent").inc()
        except Exception as e:
            logger.error("Push dispatch failed for rule %s: %s", rule.id, e)
            notifications_sent_total.labels(channel="websocket", outcome="failed").inc()

        logger.info(
            "Dispatched listing %s for rule %s: email=%s push=%s",
            listing.id,
            rule.id,
            result["email_sent"],
            result["push_sent"],
        )
        return result


def get_notification_dispatcher(settings: Settings) -> NotificationDispatcher:
    """Factory that wires up a NotificationDispatcher with its dependencies."""
    return NotificationDispatcher(
        email_service=get_email_service(settings),
        connection_manager=ws_manager,
    )
