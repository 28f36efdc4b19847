"""
Cache: durable SQLite-backed key-value cache with TTL expiration.

Every operation acquires its own connection, runs one statement inside
SQLite's implicit transaction and closes the connection before returning.
No connection or lock is held between calls.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

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


class Cache(BaseCache):
    """Disk-backed key-value cache with a default time-to-live.

    Constructing a Cache creates the ``items`` table if it is missing, so
    re-opening an existing file keeps its entries. Expired entries are
    hidden from ``get`` but stay on disk until ``clean`` is called; there
    is no background sweeper.

    Example:
        >>> cache = Cache("cache.db", timedelta(minutes=5))
        >>> cache.store("greeting", "Hello, world!")
        >>> cache.get("greeting")
        'Hello, world!'

    Raises:
        StorageUnavailableError: If the file cannot be created or opened.
        SchemaError: If the table cannot be created.
    """

    def __init__(
        self,
        location: Path | str,
        ttl: timedelta | float | int = DEFAULT_TTL,
        **kwargs: Any,
    ) -> None:
        super().__init__(location, ttl, **kwargs)
        self._prepare_location()
        with self._connect("init", mismatch_error=SchemaError) as conn:
            conn.execute(CREATE_TABLE_SQL)
        logger.debug("Cache initialized", location=str(self._location), ttl=str(self._ttl))

    @classmethod
    def with_ttl(cls, location: Path | str, ttl: timedelta | float | int, **kwargs: Any) -> Cache:
        """Create a cache with a custom default time-to-live."""
        return cls(location, ttl, **kwargs)

    @classmethod
    def from_settings(cls, settings: Settings | None = None, **overrides: Any) -> Cache:
        """Create a cache from ``POND_*`` configuration.

        Args:
            settings: Settings to use; defaults to ``get_settings()``.
            **overrides: Keyword arguments that take precedence over settings.
        """
        location, ttl, kwargs = settings_arguments(settings or get_settings(), overrides)
        return cls(location, ttl, **kwargs)

    @contextmanager
    def _connect(
        self,
        operation: str,
        mismatch_error: type[CacheError] = QueryError,
    ) -> Iterator[sqlite3.Connection]:
        """Open a connection for one operation and always close it.

        The statement run inside is committed on success and rolled back on
        any error.
        """
        with log_context(location=str(self._location), operation=operation):
            try:
                conn = sqlite3.connect(
                    str(self._location),
                    timeout=self._timeout,
                    isolation_level="DEFERRED",
                )
            except sqlite3.Error as e:
                raise self._unavailable(e, operation) from e

            try:
                with conn:
                    yield conn
            except sqlite3.Error as e:
                raise self._storage_error(e, operation, mismatch_error) from e
            finally:
                conn.close()

    def store(self, key: Any, value: Any) -> None:
        """Store a value that expires after the default TTL.

        Args:
            key: Application key, normalized by the configured strategy.
            value: Value to encode with the configured codec.

        Raises:
            EncodeError: If the value cannot be encoded.
            StorageUnavailableError: If the database cannot be written.
            QueryError: If the file's schema does not match.
        """
        self.store_with_expiration(key, value, utc_now() + self._ttl)

    def store_with_expiration(self, key: Any, value: Any, expires_at: datetime) -> None:
        """Store a value with an explicit absolute expiration.

        Any existing entry for the same identifier is replaced in a single
        INSERT OR REPLACE, whether or not it had expired. Naive datetimes
        are taken to be UTC.
        """
        identifier = self._normalizer.identifier(key)
        payload = self._encode(value, identifier)
        expires = self._expiration_for(expires_at)

        with self._connect("store") as conn:
            conn.execute(UPSERT_SQL, (identifier, expires, payload))

        logger.debug("Stored cache entry", identifier=identifier, expires=expires)

    def get(self, key: Any) -> Any | None:
        """Fetch a value, or None if it is missing or expired.

        Expired rows are not deleted here.

        Raises:
            DecodeError: If the stored payload cannot be decoded.
            StorageUnavailableError: If the database cannot be read.
            QueryError: If the file's schema does not match.
        """
        identifier = self._normalizer.identifier(key)

        with self._connect("get") as conn:
            row = conn.execute(SELECT_SQL, (identifier,)).fetchone()

        if row is None:
            logger.debug("Cache miss", identifier=identifier)
            return None

        return self._resolve_row(row, identifier)

    def clean(self) -> None:
        """Delete every entry whose expiration is strictly in the past."""
        with self._connect("clean") as conn:
            cursor = conn.execute(DELETE_EXPIRED_SQL, (to_rfc3339(utc_now()),))
            removed = cursor.rowcount

        logger.debug("Removed expired cache entries", removed=removed)

    def stats(self) -> CacheStats:
        """Count all rows and the rows that have expired but not been cleaned."""
        with self._connect("stats") as conn:
            total, expired = conn.execute(STATS_SQL, (to_rfc3339(utc_now()),)).fetchone()
        return CacheStats(total=int(total), expired=int(expired))
