"""
Pytest configuration and fixtures for pond cache tests.
"""

from __future__ import annotations

import logging
import os
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any, Generator
from unittest.mock import patch

import pytest

from pond.cache import Cache
from pond.config import clear_settings_cache
from pond.utils.dates import to_rfc3339


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test outputs."""
    return tmp_path


@pytest.fixture
def db_path(temp_dir: Path) -> Path:
    """Path for a cache file that does not exist yet."""
    return temp_dir / "cache" / "pond-test.sqlite"


@pytest.fixture
def cache(db_path: Path) -> Cache:
    """A cache with the default 10 minute TTL."""
    return Cache(db_path)


@pytest.fixture
def mock_env_vars(db_path: Path) -> Generator[dict[str, str], None, None]:
    """Provide POND_* environment variables for testing."""
    env_vars = {
        "POND_DB_PATH": str(db_path),
        "POND_DEFAULT_TTL_SECONDS": "300",
        "POND_KEY_STRATEGY": "hash",
        "POND_HASH_BITS": "48",
        "POND_CODEC": "json",
        "POND_BUSY_TIMEOUT_SECONDS": "5",
        "POND_LOG_LEVEL": "DEBUG",
    }

    with patch.dict(os.environ, env_vars, clear=False):
        clear_settings_cache()
        yield env_vars


@pytest.fixture(autouse=True)
def reset_settings_cache() -> Generator[None, None, None]:
    """Automatically reset settings cache before and after each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture(autouse=True)
def reset_pond_logging() -> Generator[None, None, None]:
    """Restore the library's quiet logging defaults after each test."""
    pond_logger = logging.getLogger("pond")
    handlers = pond_logger.handlers[:]
    level = pond_logger.level
    yield
    for handler in pond_logger.handlers:
        if handler not in handlers:
            handler.close()
    pond_logger.handlers[:] = handlers
    pond_logger.setLevel(level)
    pond_logger.propagate = True


class RawTable:
    """Direct access to a cache file's ``items`` table, bypassing the cache."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def _conn(self) -> sqlite3.Connection:
        return sqlite3.connect(str(self.path))

    def write(self, identifier: str, expires: datetime, data: Any) -> None:
        conn = self._conn()
        try:
            with conn:
                conn.execute(
                    "INSERT OR REPLACE INTO items (id, expires, data) VALUES (?, ?, ?)",
                    (identifier, to_rfc3339(expires), data),
                )
        finally:
            conn.close()

    def read(self, identifier: str) -> tuple[str, Any] | None:
        conn = self._conn()
        try:
            return conn.execute(
                "SELECT expires, data FROM items WHERE id = ?", (identifier,)
            ).fetchone()
        finally:
            conn.close()

    def count(self) -> int:
        conn = self._conn()
        try:
            return conn.execute("SELECT COUNT(*) FROM items").fetchone()[0]
        finally:
            conn.close()


@pytest.fixture
def raw_table(db_path: Path) -> RawTable:
    """Raw table access for the file behind the ``cache`` fixture."""
    return RawTable(db_path)
