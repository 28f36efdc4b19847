"""
pond: a durable, disk-backed key-value cache with TTL expiration.

Entries live in a single SQLite file and survive process restarts. Every
operation opens its own connection, so several cache handles, threads or
processes can share one file.
"""

from pond.cache import AsyncCache, Cache
from pond.codecs import Codec, JSONCodec, ModelCodec, PickleCodec, RawCodec
from pond.exceptions import (
    CacheError,
    ConfigurationError,
    DecodeError,
    EncodeError,
    QueryError,
    SchemaError,
    StorageUnavailableError,
)
from pond.keys import HashKeyNormalizer, KeyNormalizer, UUIDKeyNormalizer
from pond.types import CacheEntry, CacheStats

__version__ = "0.3.0"

__all__ = [
    "AsyncCache",
    "Cache",
    "CacheEntry",
    "CacheError",
    "CacheStats",
    "Codec",
    "ConfigurationError",
    "DecodeError",
    "EncodeError",
    "HashKeyNormalizer",
    "JSONCodec",
    "KeyNormalizer",
    "ModelCodec",
    "PickleCodec",
    "QueryError",
    "RawCodec",
    "SchemaError",
    "StorageUnavailableError",
    "UUIDKeyNormalizer",
    "__version__",
]
