"""Messaging group model."""

from sqlalchemy import Boolean, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from tradeintel.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class WhatsappGroup(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "whatsapp_groups"

    whapi_group_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    group_name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<WhatsappGroup {self.whapi_group_id}>"
