"""Review queue item model for human correction of low-confidence extractions."""

import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from tradeintel.models.base import Base, JSONType, UUIDPrimaryKeyMixin, utcnow


class ReviewStatus(str, enum.Enum):
    PENDING = "pending"
    RESOLVED = "resolved"
    SKIPPED = "skipped"


class ReviewQueueItem(Base, UUIDPrimaryKeyMixin):
    __tablename__ = "review_queue"

    listing_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("listings.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    raw_message_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("raw_messages.id", ondelete="CASCADE"),
        nullable=False,
    )
    reason: Mapped[str] = mapped_column(String(500), nullable=False)
    llm_explanation: Mapped[str | None] = mapped_column(Text, nullable=True)
    suggested_values: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    status: Mapped[ReviewStatus] = mapped_column(
        Enum(
            ReviewStatus,
            name="review_status",
            native_enum=False,
            values_callable=lambda e: [m.value for m in e],
        ),
        default=ReviewStatus.PENDING,
        nullable=False,
        index=True,
    )
    resolved_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("users.id"), nullable=True)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    resolution: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<ReviewQueueItem {self.id} status={self.status}>"
