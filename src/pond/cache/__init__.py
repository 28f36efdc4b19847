"""
Cache package: the SQLite-backed cache engine.

- Cache (sqlite_cache.py): synchronous cache on the stdlib sqlite3 driver
- AsyncCache (async_cache.py): the same contract on aiosqlite
- base.py: schema, statements and row handling shared by both
"""

from pond.cache.async_cache import AsyncCache
from pond.cache.base import DEFAULT_TTL, TABLE_NAME, BaseCache
from pond.cache.sqlite_cache import Cache

__all__ = ["DEFAULT_TTL", "TABLE_NAME", "AsyncCache", "BaseCache", "Cache"]
