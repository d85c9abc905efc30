"""Time-expiring read caches for the admin-managed lookup tables.

Each cache holds one immutable snapshot. A refresh loads a complete new
snapshot and swaps it in; snapshots are never mutated in place.
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tradeintel.config import Settings
from tradeintel.models.lookup import Category, Condition, JargonEntry, Manufacturer, Unit

logger = logging.getLogger(__name__)


def _key(name: str | None) -> str:
    return (name or "").strip().lower()


@dataclass(frozen=True)
class LookupSnapshot:
    """Name to id maps for categories, manufacturers, units and conditions."""

    categories: dict[str, uuid.UUID] = field(default_factory=dict)
    manufacturers: dict[str, uuid.UUID] = field(default_factory=dict)
    units: dict[str, uuid.UUID] = field(default_factory=dict)
    conditions: dict[str, uuid.UUID] = field(default_factory=dict)
    names: dict[uuid.UUID, str] = field(default_factory=dict)
    category_csv: str = ""
    manufacturer_csv: str = ""

    def resolve_category(self, name: str | None) -> uuid.UUID | None:
        return self.categories.get(_key(name))

    def resolve_manufacturer(self, name: str | None) -> uuid.UUID | None:
        return self.manufacturers.get(_key(name))

    def resolve_unit(self, name: str | None) -> uuid.UUID | None:
        return self.units.get(_key(name))

    def resolve_condition(self, name: str | None) -> uuid.UUID | None:
        return self.conditions.get(_key(name))

    def name_of(self, lookup_id: uuid.UUID | None) -> str | None:
        if lookup_id is None:
            return None
        return self.names.get(lookup_id)


@dataclass(frozen=True)
class JargonSnapshot:
    """Verified jargon entries as (acronym, expansion) pairs."""

    entries: tuple[tuple[str, str], ...] = ()

    @property
    def csv(self) -> str:
        return ", ".join(f"{acronym}={expansion}" for acronym, expansion in self.entries)


async def load_lookups(db: AsyncSession) -> LookupSnapshot:
    """Load all active lookup rows into a fresh snapshot."""
    categories: dict[str, uuid.UUID] = {}
    manufacturers: dict[str, uuid.UUID] = {}
    units: dict[str, uuid.UUID] = {}
    conditions: dict[str, uuid.UUID] = {}
    names: dict[uuid.UUID, str] = {}
    manufacturer_labels: list[str] = []

    for cat in (await db.execute(select(Category).where(Category.is_active.is_(True)).order_by(Category.name))).scalars():
        categories[_key(cat.name)] = cat.id
        names[cat.id] = cat.name

    for mfr in (
        await db.execute(select(Manufacturer).where(Manufacturer.is_active.is_(True)).order_by(Manufacturer.name))
    ).scalars():
        aliases = [a for a in (mfr.aliases or []) if a]
        manufacturers[_key(mfr.name)] = mfr.id
        for alias in aliases:
            # An alias never shadows another manufacturer's canonical name
            manufacturers.setdefault(_key(alias), mfr.id)
        names[mfr.id] = mfr.name
        manufacturer_labels.append(f"{mfr.name} ({', '.join(aliases)})" if aliases else mfr.name)

    for unit in (await db.execute(select(Unit).where(Unit.is_active.is_(True)))).scalars():
        units[_key(unit.name)] = unit.id
        if unit.abbreviation:
            units.setdefault(_key(unit.abbreviation), unit.id)
        names[unit.id] = unit.name

    for cond in (await db.execute(select(Condition).where(Condition.is_active.is_(True)))).scalars():
        conditions[_key(cond.name)] = cond.id
        if cond.abbreviation:
            conditions.setdefault(_key(cond.abbreviation), cond.id)
        names[cond.id] = cond.name

    return LookupSnapshot(
        categories=categories,
        manufacturers=manufacturers,
        units=units,
        conditions=conditions,
        names=names,
        category_csv=", ".join(names[cid] for cid in categories.values()),
        manufacturer_csv=", ".join(manufacturer_labels),
    )


async def load_jargon(db: AsyncSession) -> JargonSnapshot:
    """Load verified jargon entries, longest acronym first."""
    result = await db.execute(select(JargonEntry).where(JargonEntry.verified.is_(True)))
    entries = sorted(
        ((e.acronym, e.expansion) for e in result.scalars() if e.acronym and e.expansion),
        key=lambda pair: len(pair[0]),
        reverse=True,
    )
    return JargonSnapshot(entries=tuple(entries))


class TTLCache:
    """Holds the result of an async loader until the TTL elapses."""

    def __init__(
        self,
        name: str,
        loader: Callable[[AsyncSession], Awaitable[Any]],
        ttl_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._name = name
        self._loader = loader
        self._ttl = ttl_seconds
        self._clock = clock
        self._value: Any = None
        self._loaded_at: float | None = None

    def _expired(self) -> bool:
        return self._loaded_at is None or self._clock() - self._loaded_at >= self._ttl

    async def get(self, db: AsyncSession) -> Any:
        if self._expired():
            return await self.refresh(db)
        return self._value

    async def refresh(self, db: AsyncSession) -> Any:
        value = await self._loader(db)
        self._value, self._loaded_at = value, self._clock()
        logger.debug("Refreshed %s cache", self._name)
        return value

    def invalidate(self) -> None:
        self._loaded_at = None


class LookupCaches:
    """Process-wide caches for lookups and jargon."""

    def __init__(self, settings: Settings, clock: Callable[[], float] = time.monotonic) -> None:
        self.lookups = TTLCache("lookup", load_lookups, settings.category_cache_ttl_seconds, clock)
        self.jargon = TTLCache("jargon", load_jargon, settings.jargon_cache_ttl_seconds, clock)

    async def get_lookups(self, db: AsyncSession) -> LookupSnapshot:
        return await self.lookups.get(db)

    async def get_jargon(self, db: AsyncSession) -> JargonSnapshot:
        return await self.jargon.get(db)


_lookup_caches: LookupCaches | None = None


def get_lookup_caches(settings: Settings) -> LookupCaches:
    global _lookup_caches
    if _lookup_caches is None:
        _lookup_caches = LookupCaches(settings)
    return _lookup_caches
