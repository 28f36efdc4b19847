"""
Shared behaviour for the synchronous and asynchronous caches.

This module holds everything that does not touch a connection:
- the ``items`` table schema and the statements run against it
- configuration validation (location, TTL, normalizer, codec)
- encoding, decoding and the expiration check applied on read
- mapping of sqlite3 errors onto the cache error taxonomy

Both Cache and AsyncCache open a fresh connection for every operation and
run exactly one statement on it, so any number of handles (threads or
processes) may point at the same file. Statement atomicity comes from
SQLite itself.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

from pond.codecs import Codec, JSONCodec, make_codec
from pond.config import Settings
from pond.exceptions import (
    CacheError,
    ConfigurationError,
    DecodeError,
    EncodeError,
    QueryError,
    StorageUnavailableError,
)
from pond.keys import HashKeyNormalizer, KeyNormalizer, make_normalizer
from pond.logging import get_logger
from pond.types import CacheEntry
from pond.utils.dates import parse_rfc3339, to_rfc3339, utc_now

logger = get_logger(__name__)

DEFAULT_TTL = timedelta(minutes=10)
DEFAULT_TIMEOUT = 30.0

TABLE_NAME = "items"

CREATE_TABLE_SQL = f"""
    CREATE TABLE IF NOT EXISTS {TABLE_NAME} (
        id      TEXT PRIMARY KEY,
        expires TEXT NOT NULL,
        data    BLOB NOT NULL
    )
"""
UPSERT_SQL = f"INSERT OR REPLACE INTO {TABLE_NAME} (id, expires, data) VALUES (?, ?, ?)"
SELECT_SQL = f"SELECT expires, data FROM {TABLE_NAME} WHERE id = ?"
DELETE_EXPIRED_SQL = f"DELETE FROM {TABLE_NAME} WHERE expires < ?"
STATS_SQL = f"SELECT COUNT(*), COALESCE(SUM(expires < ?), 0) FROM {TABLE_NAME}"

# Messages SQLite uses when the file's schema does not match ours
_SCHEMA_MISMATCH_MARKERS = (
    "no such table",
    "no such column",
    "has no column named",
    "syntax error",
    "there is already",
    "malformed database schema",
)


def _coerce_ttl(ttl: timedelta | float | int) -> timedelta:
    if isinstance(ttl, bool):
        raise ConfigurationError("TTL must be a timedelta or seconds", {"ttl": ttl})
    if isinstance(ttl, (int, float)):
        ttl = timedelta(seconds=ttl)
    if not isinstance(ttl, timedelta):
        raise ConfigurationError(
            "TTL must be a timedelta or seconds", {"ttl": repr(ttl)}
        )
    if ttl <= timedelta(0):
        raise ConfigurationError("TTL must be positive", {"ttl": str(ttl)})
    return ttl


def settings_arguments(
    settings: Settings, overrides: dict[str, Any]
) -> tuple[Path, timedelta, dict[str, Any]]:
    """Constructor arguments for a cache built from settings.

    Keys in ``overrides`` (including ``location`` and ``ttl``) win over the
    configured values.
    """
    kwargs: dict[str, Any] = {
        "key_normalizer": make_normalizer(settings.KEY_STRATEGY, settings.HASH_BITS),
        "codec": make_codec(settings.CODEC),
        "timeout": settings.BUSY_TIMEOUT_SECONDS,
    }
    kwargs.update(overrides)
    location = kwargs.pop("location", settings.DB_PATH)
    ttl = kwargs.pop("ttl", settings.default_ttl)
    return Path(location), ttl, kwargs


def is_schema_mismatch(exc: sqlite3.Error) -> bool:
    """Whether a sqlite3 error means the statement does not fit the file."""
    if isinstance(exc, (sqlite3.ProgrammingError, sqlite3.IntegrityError)):
        return True
    message = str(exc).lower()
    return any(marker in message for marker in _SCHEMA_MISMATCH_MARKERS)


class BaseCache:
    """Configuration and row handling shared by Cache and AsyncCache.

    Args:
        location: Path to the SQLite database file.
        ttl: Default time-to-live, as a timedelta or seconds.
        key_normalizer: Key strategy; defaults to 32-bit hashing.
        codec: Value codec; defaults to orjson.
        timeout: Seconds a statement waits on a locked database file.
        create_dirs: Create missing parent directories of ``location``.
    """

    def __init__(
        self,
        location: Path | str,
        ttl: timedelta | float | int = DEFAULT_TTL,
        *,
        key_normalizer: KeyNormalizer | None = None,
        codec: Codec | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        create_dirs: bool = True,
    ) -> None:
        if str(location) == ":memory:" or str(location).startswith("file::memory:"):
            raise StorageUnavailableError(
                "In-memory databases cannot back a cache; each operation "
                "opens a new connection",
                {"location": str(location)},
            )
        self._location = Path(location)
        self._ttl = _coerce_ttl(ttl)
        self._normalizer = key_normalizer if key_normalizer is not None else HashKeyNormalizer()
        self._codec = codec if codec is not None else JSONCodec()
        self._timeout = timeout
        self._create_dirs = create_dirs

    @property
    def location(self) -> Path:
        """Path of the backing SQLite file."""
        return self._location

    @property
    def ttl(self) -> timedelta:
        """Default time-to-live applied by ``store``."""
        return self._ttl

    @property
    def key_normalizer(self) -> KeyNormalizer:
        return self._normalizer

    @property
    def codec(self) -> Codec:
        return self._codec

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(location={str(self._location)!r}, "
            f"ttl={self._ttl!r}, key_normalizer={self._normalizer!r}, "
            f"codec={self._codec!r})"
        )

    def _prepare_location(self) -> None:
        """Create parent directories for the database file if requested."""
        if not self._create_dirs:
            return
        try:
            self._location.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageUnavailableError(
                "Cannot create cache directory",
                {"location": str(self._location), "error": str(e)},
            ) from e

    def _expiration_for(self, expires_at: datetime | None) -> str:
        if expires_at is None:
            expires_at = utc_now() + self._ttl
        return to_rfc3339(expires_at)

    def _encode(self, value: Any, identifier: str) -> Any:
        try:
            return self._codec.encode(value)
        except CacheError:
            raise
        except Exception as e:
            raise EncodeError(
                "Failed to encode value",
                {
                    "codec": self._codec.name,
                    "identifier": identifier,
                    "value_type": type(value).__name__,
                    "error": str(e),
                },
            ) from e

    def _decode(self, data: Any, identifier: str) -> Any:
        try:
            return self._codec.decode(data)
        except CacheError:
            raise
        except Exception as e:
            raise DecodeError(
                "Failed to decode stored value",
                {"codec": self._codec.name, "identifier": identifier, "error": str(e)},
            ) from e

    def _resolve_row(self, row: tuple[Any, Any], identifier: str) -> Any | None:
        """Decode a fetched row, masking it as absent if it has expired.

        The row is never deleted here; that is left to ``clean``.
        """
        expires_text, data = row
        try:
            expires_at = parse_rfc3339(expires_text)
        except (TypeError, ValueError) as e:
            raise DecodeError(
                "Stored expiration is not a valid timestamp",
                {"identifier": identifier, "expires": expires_text},
            ) from e

        entry = CacheEntry(identifier=identifier, expires_at=expires_at, payload=data)
        value = self._decode(entry.payload, identifier)

        if entry.is_expired():
            logger.debug("Cache entry expired", identifier=identifier)
            return None

        logger.debug("Cache hit", identifier=identifier)
        return value

    def _storage_error(
        self,
        exc: sqlite3.Error,
        operation: str,
        mismatch_error: type[CacheError] = QueryError,
    ) -> CacheError:
        """Translate a sqlite3 error raised while running a statement.

        Errors that mean the statement does not fit the file become
        ``mismatch_error``; locking, I/O and "file is not a database" errors
        mean the store itself is unavailable.
        """
        error_cls = mismatch_error if is_schema_mismatch(exc) else StorageUnavailableError
        error = error_cls(
            f"Cache {operation} failed",
            {"location": str(self._location), "operation": operation, "error": str(exc)},
        )
        logger.warning(
            "Cache statement failed",
            error_type=error_cls.__name__,
            error=str(exc),
        )
        return error

    def _unavailable(self, exc: sqlite3.Error, operation: str) -> StorageUnavailableError:
        """Translate a failure to open the database file."""
        logger.warning("Cannot open cache database", error=str(exc))
        return StorageUnavailableError(
            "Cannot open cache database",
            {"location": str(self._location), "operation": operation, "error": str(exc)},
        )
