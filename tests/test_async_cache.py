"""
Tests for the aiosqlite-backed cache.
"""

from __future__ import annotations

import asyncio
import sqlite3
from datetime import timedelta
from pathlib import Path
from uuid import uuid4

import pytest

from pond import (
    AsyncCache,
    Cache,
    DecodeError,
    EncodeError,
    QueryError,
    StorageUnavailableError,
    UUIDKeyNormalizer,
)
from pond.utils.dates import utc_now


@pytest.fixture
async def async_cache(db_path: Path) -> AsyncCache:
    """Create an initialized async cache for testing."""
    return await AsyncCache.open(db_path, timedelta(minutes=5))


class TestAsyncCacheBasics:
    """Test the async store/get/clean cycle."""

    @pytest.mark.asyncio
    async def test_open_creates_schema(self, db_path: Path) -> None:
        cache = await AsyncCache.open(db_path)
        assert cache.ttl == timedelta(minutes=10)
        assert db_path.exists()

    @pytest.mark.asyncio
    async def test_init_is_idempotent(self, async_cache: AsyncCache) -> None:
        await async_cache.store("K1", "v")
        await async_cache.init()
        assert await async_cache.get("K1") == "v"

    @pytest.mark.asyncio
    async def test_requires_init(self, db_path: Path) -> None:
        cache = AsyncCache(db_path)
        with pytest.raises(RuntimeError):
            await cache.get("K1")

    @pytest.mark.asyncio
    async def test_non_database_file_is_unavailable(self, temp_dir: Path) -> None:
        path = temp_dir / "notes.txt"
        path.write_text("not a database\n" * 300)

        with pytest.raises(StorageUnavailableError) as exc_info:
            await AsyncCache.open(path)

        assert isinstance(exc_info.value.__cause__, sqlite3.DatabaseError)

    @pytest.mark.asyncio
    async def test_round_trip(self, async_cache: AsyncCache) -> None:
        await async_cache.store("K1", {"greeting": "Hello, world!"})
        assert await async_cache.get("K1") == {"greeting": "Hello, world!"}

    @pytest.mark.asyncio
    async def test_absent_key(self, async_cache: AsyncCache) -> None:
        assert await async_cache.get("missing") is None

    @pytest.mark.asyncio
    async def test_overwrite(self, async_cache: AsyncCache) -> None:
        await async_cache.store("K1", 1)
        await async_cache.store("K1", 2)
        assert await async_cache.get("K1") == 2
        assert (await async_cache.stats()).total == 1

    @pytest.mark.asyncio
    async def test_expired_masked_then_cleaned(self, async_cache: AsyncCache) -> None:
        await async_cache.store("live", "keep")
        await async_cache.store_with_expiration("dead", "drop", utc_now() - timedelta(minutes=5))

        assert await async_cache.get("dead") is None
        stats = await async_cache.stats()
        assert stats.total == 2
        assert stats.expired == 1

        await async_cache.clean()

        stats = await async_cache.stats()
        assert stats.total == 1
        assert stats.expired == 0
        assert await async_cache.get("live") == "keep"

    @pytest.mark.asyncio
    async def test_concurrent_tasks(self, async_cache: AsyncCache) -> None:
        await asyncio.gather(*(async_cache.store(f"k{n}", n) for n in range(20)))
        values = await asyncio.gather(*(async_cache.get(f"k{n}") for n in range(20)))
        assert values == list(range(20))

    @pytest.mark.asyncio
    async def test_uuid_keys(self, db_path: Path) -> None:
        cache = await AsyncCache.open(db_path, key_normalizer=UUIDKeyNormalizer())
        key = uuid4()
        await cache.store(key, "v")
        assert await cache.get(str(key)) == "v"


class TestAsyncInterop:
    """Files are shared between Cache and AsyncCache."""

    @pytest.mark.asyncio
    async def test_sync_writes_async_reads(self, db_path: Path) -> None:
        Cache(db_path).store(("report", 2026), [1, 2, 3])

        cache = await AsyncCache.open(db_path)
        assert await cache.get(("report", 2026)) == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_async_writes_sync_reads(self, async_cache: AsyncCache) -> None:
        await async_cache.store("K1", "from async")
        assert Cache(async_cache.location).get("K1") == "from async"


class TestAsyncErrors:
    """Test the error taxonomy on the async path."""

    @pytest.mark.asyncio
    async def test_invalid_location(self, temp_dir: Path) -> None:
        blocker = temp_dir / "file"
        blocker.write_text("x")
        with pytest.raises(StorageUnavailableError):
            await AsyncCache.open(blocker / "cache.sqlite")

    @pytest.mark.asyncio
    async def test_encode_error(self, async_cache: AsyncCache) -> None:
        with pytest.raises(EncodeError):
            await async_cache.store("K1", object())

    @pytest.mark.asyncio
    async def test_decode_error(self, async_cache: AsyncCache, raw_table) -> None:
        identifier = async_cache.key_normalizer.identifier("K1")
        raw_table.write(identifier, utc_now() + timedelta(hours=1), b"{broken")

        with pytest.raises(DecodeError):
            await async_cache.get("K1")

    @pytest.mark.asyncio
    async def test_schema_mismatch(self, db_path: Path) -> None:
        db_path.parent.mkdir(parents=True)
        conn = sqlite3.connect(str(db_path))
        with conn:
            conn.execute("CREATE TABLE items (key TEXT)")
        conn.close()

        cache = await AsyncCache.open(db_path)
        with pytest.raises(QueryError):
            await cache.store("K1", "v")
