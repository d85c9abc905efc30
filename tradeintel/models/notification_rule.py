"""Notification rule model: a user's natural-language alert with parsed filters."""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from tradeintel.models.base import Base, JSONType, TimestampMixin, UUIDPrimaryKeyMixin
from tradeintel.models.listing import IntentType


class NotificationRule(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "notification_rules"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    nl_rule: Mapped[str] = mapped_column(Text, nullable=False)
    # Parsed filters; null/empty means "no constraint"
    parsed_intent: Mapped[IntentType | None] = mapped_column(
        Enum(
            IntentType,
            name="intent_type",
            native_enum=False,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=True,
    )
    parsed_keywords: Mapped[list | None] = mapped_column(JSONType, nullable=True)
    parsed_category_ids: Mapped[list | None] = mapped_column(JSONType, nullable=True)  # UUID strings
    parsed_price_min: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    parsed_price_max: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    notify_channel: Mapped[str] = mapped_column(String(32), default="email", nullable=False)
    notify_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)
    last_triggered: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<NotificationRule {self.id} user_id={self.user_id}>"
