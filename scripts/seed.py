"""Seed script: populates dev DB with lookup tables, verified jargon, a user and a sample rule."""

import asyncio
import uuid

from sqlalchemy import text
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from tradeintel.config import get_settings
from tradeintel.models.lookup import Category, Condition, JargonEntry, Manufacturer, Unit
from tradeintel.models.notification_rule import NotificationRule
from tradeintel.models.listing import IntentType
from tradeintel.models.user import User

SEED_USER_ID = uuid.UUID("aaaaaaaa-bbbb-cccc-dddd-eeeeeeeeeeee")
SEED_EMAIL = "dev@example.com"

CATEGORIES = [
    ("Dive Watch", "Water-resistant sports watches with rotating bezels"),
    ("Chronograph", "Watches with a stopwatch complication"),
    ("Dress Watch", "Slim, minimal watches"),
    ("GMT", "Watches with a second time zone hand"),
    ("Pilot Watch", "Aviation watches"),
]

MANUFACTURERS = [
    ("Rolex", ["RLX"]),
    ("Omega", ["OMG"]),
    ("Patek Philippe", ["Patek", "PP"]),
    ("Audemars Piguet", ["AP"]),
    ("Tudor", []),
    ("Cartier", []),
]

UNITS = [("piece", "pc"), ("pair", "pr"), ("lot", None)]

CONDITIONS = [
    ("New", "BNIB"),
    ("Unworn", None),
    ("Like New", "LNIB"),
    ("Pre-owned", "PO"),
    ("For Parts", None),
]

JARGON = [
    ("BNIB", "Brand New In Box"),
    ("LNIB", "Like New In Box"),
    ("FS", "For Sale"),
    ("WTB", "Want To Buy"),
    ("B&P", "Box and Papers"),
    ("FSOT", "For Sale Or Trade"),
    ("SS", "Stainless Steel"),
]


async def seed():
    settings = get_settings()
    engine = create_async_engine(settings.database_url, echo=False)
    session_factory = async_sessionmaker(engine, expire_on_commit=False)

    async with session_factory() as db:
        result = await db.execute(text("SELECT id FROM users WHERE email = :email"), {"email": SEED_EMAIL})
        if result.scalar():
            print(f"Seed user {SEED_EMAIL} already exists, skipping.")
            await engine.dispose()
            return

        db.add(User(id=SEED_USER_ID, email=SEED_EMAIL, display_name="Dev User", role="admin"))
        db.add_all(Category(name=name, description=description) for name, description in CATEGORIES)
        db.add_all(Manufacturer(name=name, aliases=aliases) for name, aliases in MANUFACTURERS)
        db.add_all(Unit(name=name, abbreviation=abbr) for name, abbr in UNITS)
        db.add_all(Condition(name=name, abbreviation=abbr) for name, abbr in CONDITIONS)
        db.add_all(
            JargonEntry(
                acronym=acronym,
                expansion=expansion,
                industry="watches",
                source="admin",
                confidence=1.0,
                verified=True,
            )
            for acronym, expansion in JARGON
        )
        await db.flush()

        db.add(
            NotificationRule(
                user_id=SEED_USER_ID,
                nl_rule="Alert me when someone sells a Rolex Submariner under $15,000",
                parsed_intent=IntentType.SELL,
                parsed_keywords=["rolex", "submariner"],
                parsed_price_max=15000,
                notify_email=SEED_EMAIL,
            )
        )

        await db.commit()
        print(
            f"Seeded: user={SEED_EMAIL}, {len(CATEGORIES)} categories, "
            f"{len(MANUFACTURERS)} manufacturers, {len(JARGON)} jargon entries, 1 rule"
        )

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(seed())
