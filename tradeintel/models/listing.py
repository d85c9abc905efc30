"""Listing model: a structured trade offer extracted from one message."""

import enum
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, Enum, Float, ForeignKey, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from tradeintel.models.base import Base, JSONType, TimestampMixin, UUIDPrimaryKeyMixin


class IntentType(str, enum.Enum):
    SELL = "sell"
    WANT = "want"
    UNKNOWN = "unknown"


class ListingStatus(str, enum.Enum):
    ACTIVE = "active"
    PENDING_REVIEW = "pending_review"
    EXPIRED = "expired"
    DELETED = "deleted"
    SOLD = "sold"


def _enum_values(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]


class Listing(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "listings"

    raw_message_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("raw_messages.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    group_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("whatsapp_groups.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    intent: Mapped[IntentType] = mapped_column(
        Enum(IntentType, name="intent_type", native_enum=False, values_callable=_enum_values),
        nullable=False,
    )
    confidence_score: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    item_description: Mapped[str] = mapped_column(Text, nullable=False)
    category_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("categories.id"), nullable=True)
    manufacturer_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("manufacturers.id"), nullable=True)
    part_number: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    model_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    quantity: Mapped[Decimal | None] = mapped_column(Numeric(14, 3), nullable=True)
    unit_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("units.id"), nullable=True)
    price: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    price_currency: Mapped[str] = mapped_column(String(8), default="USD", nullable=False)
    condition_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("conditions.id"), nullable=True)
    # Domain-specific extras (dial_color, case_material, year, ...)
    attributes: Mapped[dict | None] = mapped_column(JSONType, nullable=True)

    original_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    sender_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    sender_phone: Mapped[str | None] = mapped_column(String(64), nullable=True)

    status: Mapped[ListingStatus] = mapped_column(
        Enum(ListingStatus, name="listing_status", native_enum=False, values_callable=_enum_values),
        default=ListingStatus.ACTIVE,
        nullable=False,
        index=True,
    )
    needs_human_review: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    reviewed_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("users.id"), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    sold_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    sold_message_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    buyer_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    deleted_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("users.id"), nullable=True)

    def __repr__(self) -> str:
        return f"<Listing {self.id} intent={self.intent} status={self.status}>"
