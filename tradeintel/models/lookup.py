"""Admin-managed lookup tables used to normalise extracted values."""

from sqlalchemy import Boolean, Float, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from tradeintel.models.base import Base, JSONType, TimestampMixin, UUIDPrimaryKeyMixin


class Category(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "categories"

    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class Manufacturer(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "manufacturers"

    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    aliases: Mapped[list] = mapped_column(JSONType, default=list, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class Unit(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "units"

    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    abbreviation: Mapped[str | None] = mapped_column(String(32), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class Condition(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "conditions"

    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    abbreviation: Mapped[str | None] = mapped_column(String(32), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class JargonEntry(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "jargon_entries"

    acronym: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    expansion: Mapped[str] = mapped_column(String(500), nullable=False)
    industry: Mapped[str | None] = mapped_column(String(100), nullable=True)
    context_example: Mapped[str | None] = mapped_column(Text, nullable=True)
    source: Mapped[str] = mapped_column(String(32), default="llm", nullable=False)  # "llm" | "admin"
    confidence: Mapped[float] = mapped_column(Float, default=0.5, nullable=False)
    usage_count: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    def __repr__(self) -> str:
        return f"<JargonEntry {self.acronym} verified={self.verified}>"
