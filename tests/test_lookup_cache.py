"""Tests for lookup snapshots and the TTL caches."""

from unittest.mock import AsyncMock

import pytest

from tradeintel.models.lookup import JargonEntry, Manufacturer
from tradeintel.services.lookup_cache import LookupCaches, TTLCache, load_jargon, load_lookups


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class TestTTLCache:
    @pytest.mark.asyncio
    async def test_value_reused_until_ttl(self):
        clock = FakeClock()
        loader = AsyncMock(side_effect=["first", "second"])
        cache = TTLCache("test", loader, ttl_seconds=60, clock=clock)

        assert await cache.get(None) == "first"
        clock.now += 59
        assert await cache.get(None) == "first"
        clock.now += 1
        assert await cache.get(None) == "second"
        assert loader.await_count == 2

    @pytest.mark.asyncio
    async def test_invalidate_forces_reload(self):
        loader = AsyncMock(side_effect=["first", "second"])
        cache = TTLCache("test", loader, ttl_seconds=600, clock=FakeClock())

        await cache.get(None)
        cache.invalidate()
        assert await cache.get(None) == "second"

    @pytest.mark.asyncio
    async def test_failed_refresh_keeps_previous_snapshot(self):
        clock = FakeClock()
        loader = AsyncMock(side_effect=["first", RuntimeError("db down")])
        cache = TTLCache("test", loader, ttl_seconds=10, clock=clock)

        await cache.get(None)
        clock.now += 11
        with pytest.raises(RuntimeError):
            await cache.get(None)
        assert cache._value == "first"


class TestLoadLookups:
    @pytest.mark.asyncio
    async def test_names_and_aliases_resolve_case_insensitively(self, db, factories):
        rows = await factories.lookups(db)

        snapshot = await load_lookups(db)

        assert snapshot.resolve_category("DIVE WATCH") == rows["dive"].id
        assert snapshot.resolve_manufacturer(" rolex ") == rows["rolex"].id
        assert snapshot.resolve_manufacturer("rlx") == rows["rolex"].id
        assert snapshot.resolve_unit("pc") == rows["piece"].id
        assert snapshot.resolve_condition("bnib") == rows["new"].id
        assert snapshot.resolve_category("Pocket Watch") is None
        assert snapshot.name_of(rows["omega"].id) == "Omega"
        assert "Rolex (RLX)" in snapshot.manufacturer_csv
        assert snapshot.category_csv == "Chronograph, Dive Watch"

    @pytest.mark.asyncio
    async def test_alias_never_shadows_canonical_name(self, db):
        tudor = Manufacturer(name="Tudor", aliases=[], is_active=True)
        other = Manufacturer(name="Aardvark", aliases=["Tudor"], is_active=True)
        db.add_all([tudor, other])
        await db.flush()

        snapshot = await load_lookups(db)
        assert snapshot.resolve_manufacturer("tudor") == tudor.id

    @pytest.mark.asyncio
    async def test_inactive_rows_excluded(self, db):
        db.add(Manufacturer(name="Defunct", aliases=[], is_active=False))
        await db.flush()
        assert (await load_lookups(db)).resolve_manufacturer("Defunct") is None


class TestLoadJargon:
    @pytest.mark.asyncio
    async def test_only_verified_longest_first(self, db):
        db.add_all(
            [
                JargonEntry(acronym="FS", expansion="For Sale", verified=True),
                JargonEntry(acronym="FSOT", expansion="For Sale Or Trade", verified=True),
                JargonEntry(acronym="ZZZ", expansion="ZZZ", verified=False),
            ]
        )
        await db.flush()

        snapshot = await load_jargon(db)
        assert snapshot.entries == (("FSOT", "For Sale Or Trade"), ("FS", "For Sale"))
        assert snapshot.csv == "FSOT=For Sale Or Trade, FS=For Sale"


@pytest.mark.asyncio
async def test_lookup_caches_wire_ttls(settings, db, factories):
    await factories.lookups(db)
    caches = LookupCaches(settings, clock=FakeClock())

    first = await caches.get_lookups(db)
    second = await caches.get_lookups(db)
    assert first is second
    assert caches.lookups._ttl == settings.category_cache_ttl_seconds
    assert caches.jargon._ttl == settings.jargon_cache_ttl_seconds
