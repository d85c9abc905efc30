"""Archived inbound message model."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from tradeintel.models.base import Base, JSONType, UUIDPrimaryKeyMixin, utcnow


class RawMessage(Base, UUIDPrimaryKeyMixin):
    __tablename__ = "raw_messages"

    group_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("whatsapp_groups.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # External id from the messaging platform; uniqueness makes archival idempotent
    whapi_msg_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    sender_phone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    sender_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    message_body: Mapped[str | None] = mapped_column(Text, nullable=True)
    message_type: Mapped[str] = mapped_column(String(32), default="text", nullable=False)
    media_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    media_mime_type: Mapped[str | None] = mapped_column(String(128), nullable=True)
    media_local_path: Mapped[str | None] = mapped_column(Text, nullable=True)
    reply_to_msg_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    is_forwarded: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    timestamp_wa: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    received_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    processed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)
    processing_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    embedding: Mapped[list | None] = mapped_column(JSONType, nullable=True)

    def __repr__(self) -> str:
        return f"<RawMessage {self.whapi_msg_id} processed={self.processed}>"
