"""Shared test fixtures."""

import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from tradeintel import models  # noqa: F401
from tradeintel.config import Settings
from tradeintel.models.base import Base
from tradeintel.models.group import WhatsappGroup
from tradeintel.models.listing import IntentType, Listing, ListingStatus
from tradeintel.models.lookup import Category, Condition, Manufacturer, Unit
from tradeintel.models.raw_message import RawMessage
from tradeintel.models.user import User
from tradeintel.services.ai_service import ChatCompletion, UsageRecord


@pytest.fixture
def settings() -> Settings:
    return Settings(
        app_env="development",
        database_url="sqlite+aiosqlite://",
        redis_url="redis://localhost:6379/0",
        embeddings_enabled=False,
        catchup_batch_size=2,
        debug=True,
    )


@pytest.fixture
def sample_user_id() -> uuid.UUID:
    return uuid.UUID("12345678-1234-1234-1234-123456789abc")


@pytest_asyncio.fixture
async def engine():
    """In-memory SQLite with working SAVEPOINTs.

    pysqlite's own transaction handling breaks nested transactions, so BEGIN
    is emitted explicitly.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


def completion(content: str, input_tokens: int = 100, output_tokens: int = 50) -> ChatCompletion:
    return ChatCompletion(
        content=content,
        usage=UsageRecord(model="gpt-4o-mini", input_tokens=input_tokens, output_tokens=output_tokens),
    )


@pytest.fixture
def make_completion():
    return completion


@pytest.fixture
def ai_service():
    """AIService double: set chat_completion.return_value / side_effect per test."""
    ai = MagicMock()
    ai.chat_completion = AsyncMock()
    ai.embed = AsyncMock(return_value=[0.1, 0.2, 0.3])
    return ai


# -- factories --


async def create_user(db, email: str = "trader@example.com", user_id: uuid.UUID | None = None, **kwargs) -> User:
    defaults = {"display_name": "Trader", "is_active": True}
    defaults.update(kwargs)
    user = User(id=user_id or uuid.uuid4(), email=email, **defaults)
    db.add(user)
    await db.flush()
    return user


async def create_group(db, whapi_group_id: str = "120363000000000001@g.us", name: str = "Watch Traders") -> WhatsappGroup:
    group = WhatsappGroup(whapi_group_id=whapi_group_id, group_name=name, is_active=True)
    db.add(group)
    await db.flush()
    return group


async def create_message(db, group: WhatsappGroup, body: str | None = "WTS Rolex Submariner 116610LN $12,500", **kwargs) -> RawMessage:
    defaults = {
        "whapi_msg_id": f"msg-{uuid.uuid4().hex[:12]}",
        "sender_phone": "+15550001111",
        "sender_name": "Alice",
        "message_type": "text",
        "timestamp_wa": datetime.now(timezone.utc),
        "processed": False,
    }
    defaults.update(kwargs)
    message = RawMessage(group_id=group.id, message_body=body, **defaults)
    db.add(message)
    await db.flush()
    return message


async def create_listing(db, message: RawMessage, **kwargs) -> Listing:
    defaults = {
        "intent": IntentType.SELL,
        "confidence_score": 0.9,
        "item_description": "Rolex Submariner 116610LN",
        "part_number": "116610LN",
        "price": Decimal("12500"),
        "price_currency": "USD",
        "original_text": message.message_body,
        "sender_name": message.sender_name,
        "sender_phone": message.sender_phone,
        "status": ListingStatus.ACTIVE,
        "needs_human_review": False,
        "expires_at": datetime.now(timezone.utc) + timedelta(days=30),
    }
    defaults.update(kwargs)
    listing = Listing(raw_message_id=message.id, group_id=message.group_id, **defaults)
    db.add(listing)
    await db.flush()
    return listing


async def create_lookups(db) -> dict:
    dive = Category(name="Dive Watch", is_active=True)
    chrono = Category(name="Chronograph", is_active=True)
    rolex = Manufacturer(name="Rolex", aliases=["RLX"], is_active=True)
    omega = Manufacturer(name="Omega", aliases=[], is_active=True)
    piece = Unit(name="piece", abbreviation="pc", is_active=True)
    new = Condition(name="New", abbreviation="BNIB", is_active=True)
    db.add_all([dive, chrono, rolex, omega, piece, new])
    await db.flush()
    return {"dive": dive, "chrono": chrono, "rolex": rolex, "omega": omega, "piece": piece, "new": new}


@pytest.fixture
def factories():
    """Async model factories: factories.user(db), factories.message(db, group), ..."""

    class _Factories:
        user = staticmethod(create_user)
        group = staticmethod(create_group)
        message = staticmethod(create_message)
        listing = staticmethod(create_listing)
        lookups = staticmethod(create_lookups)

    return _Factories
