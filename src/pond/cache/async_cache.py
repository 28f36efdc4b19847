"""
AsyncCache: the same cache contract for asyncio code, using aiosqlite.

Each coroutine opens its own aiosqlite connection, runs one statement and
closes it. Files written by Cache and AsyncCache are interchangeable.
"""

from __future__ import annotations

import sqlite3
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

import aiosqlite

from pond.cache.base import (
    CREATE_TABLE_SQL,
    DEFAULT_TTL,
    DELETE_EXPIRED_SQL,
    SELECT_SQL,
    STATS_SQL,
    UPSERT_SQL,
    BaseCache,
    settings_arguments,
)
from pond.config import Settings, get_settings
from pond.exceptions import CacheError, QueryError, SchemaError
from pond.logging import get_logger, log_context
from pond.types import CacheStats
from pond.utils.dates import to_rfc3339, utc_now

logger = get_logger(__name__)


class AsyncCache(BaseCache):
    """Asyncio flavour of Cache.

    Creating the schema is I/O, so construction is split: build the object,
    then ``await cache.init()``, or use ``await AsyncCache.open(...)`` which
    does both.

    Example:
        >>> cache = await AsyncCache.open("cache.db", timedelta(minutes=5))
        >>> await cache.store("greeting", "Hello, world!")
        >>> await cache.get("greeting")
        'Hello, world!'
    """

    def __init__(
        self,
        location: Path | str,
        ttl: timedelta | float | int = DEFAULT_TTL,
        **kwargs: Any,
    ) -> None:
        super().__init__(location, ttl, **kwargs)
        self._initialized = False

    @classmethod
    async def open(
        cls,
        location: Path | str,
        ttl: timedelta | float | int = DEFAULT_TTL,
        **kwargs: Any,
    ) -> AsyncCache:
        """Create an AsyncCache and set up its schema.

        Raises:
            StorageUnavailableError: If the file cannot be created or opened.
            SchemaError: If the table cannot be created.
        """
        cache = cls(location, ttl, **kwargs)
        await cache.init()
        return cache

    @classmethod
    async def from_settings(
        cls, settings: Settings | None = None, **overrides: Any
    ) -> AsyncCache:
        """Open an AsyncCache from ``POND_*`` configuration."""
        location, ttl, kwargs = settings_arguments(settings or get_settings(), overrides)
        return await cls.open(location, ttl, **kwargs)

    async def init(self) -> None:
        """Create the ``items`` table if missing. Safe to call multiple times."""
        if self._initialized:
            return

        self._prepare_location()
        async with self._connect("init", mismatch_error=SchemaError) as db:
            await db.execute(CREATE_TABLE_SQL)

        self._initialized = True
        logger.debug("Async cache initialized", location=str(self._location), ttl=str(self._ttl))

    @asynccontextmanager
    async def _connect(
        self,
        operation: str,
        mismatch_error: type[CacheError] = QueryError,
    ) -> AsyncIterator[aiosqlite.Connection]:
        """Open a connection for one operation, commit on success, always close."""
        if operation != "init" and not self._initialized:
            raise RuntimeError("AsyncCache not initialized. Call init() first.")

        with log_context(location=str(self._location), operation=operation):
            try:
                db = await aiosqlite.connect(
                    self._location,
                    timeout=self._timeout,
                    isolation_level="DEFERRED",
                )
            except sqlite3.Error as e:
                raise self._unavailable(e, operation) from e

            try:
                yield db
                await db.commit()
            except sqlite3.Error as e:
                raise self._storage_error(e, operation, mismatch_error) from e
            finally:
                await db.close()

    async def store(self, key: Any, value: Any) -> None:
        """Store a value that expires after the default TTL."""
        await self.store_with_expiration(key, value, utc_now() + self._ttl)

    async def store_with_expiration(self, key: Any, value: Any, expires_at: datetime) -> None:
        """Store a value with an explicit absolute expiration (insert or replace)."""
        identifier = self._normalizer.identifier(key)
        payload = self._encode(value, identifier)
        expires = self._expiration_for(expires_at)

        async with self._connect("store") as db:
            await db.execute(UPSERT_SQL, (identifier, expires, payload))

        logger.debug("Stored cache entry", identifier=identifier, expires=expires)

    async def get(self, key: Any) -> Any | None:
        """Fetch a value, or None if it is missing or expired."""
        identifier = self._normalizer.identifier(key)

        async with self._connect("get") as db:
            async with db.execute(SELECT_SQL, (identifier,)) as cursor:
                row = await cursor.fetchone()

        if row is None:
            logger.debug("Cache miss", identifier=identifier)
            return None

        return self._resolve_row(tuple(row), identifier)

    async def clean(self) -> None:
        """Delete every entry whose expiration is strictly in the past."""
        async with self._connect("clean") as db:
            cursor = await db.execute(DELETE_EXPIRED_SQL, (to_rfc3339(utc_now()),))
            removed = cursor.rowcount
            await cursor.close()

        logger.debug("Removed expired cache entries", removed=removed)

    async def stats(self) -> CacheStats:
        """Count all rows and the rows that have expired but not been cleaned."""
        async with self._connect("stats") as db:
            async with db.execute(STATS_SQL, (to_rfc3339(utc_now()),)) as cursor:
                total, expired = await cursor.fetchone()
        return CacheStats(total=int(total), expired=int(expired))
