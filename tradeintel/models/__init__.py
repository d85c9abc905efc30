"""Trade Intel database models."""

from tradeintel.models.audit_log import AuditLog
from tradeintel.models.chat import ChatMessage, ChatSession
from tradeintel.models.group import WhatsappGroup
from tradeintel.models.listing import IntentType, Listing, ListingStatus
from tradeintel.models.lookup import Category, Condition, JargonEntry, Manufacturer, Unit
from tradeintel.models.notification_rule import NotificationRule
from tradeintel.models.raw_message import RawMessage
from tradeintel.models.review_item import ReviewQueueItem, ReviewStatus
from tradeintel.models.usage_ledger import UsageLedger
from tradeintel.models.user import User

__all__ = [
    "User",
    "WhatsappGroup",
    "RawMessage",
    "Category",
    "Manufacturer",
    "Unit",
    "Condition",
    "JargonEntry",
    "Listing",
    "IntentType",
    "ListingStatus",
    "ReviewQueueItem",
    "ReviewStatus",
    "NotificationRule",
    "ChatSession",
    "ChatMessage",
    "UsageLedger",
    "AuditLog",
]
