"""
Exception hierarchy for the pond cache.

All exceptions inherit from CacheError, which carries optional structured
context for logging and debugging. Storage failures, schema problems and
codec failures are kept apart so callers can tell "cache unusable" from
"this particular entry is corrupt".
"""

from __future__ import annotations

from typing import Any


class CacheError(Exception):
    """Base exception for all cache errors.

    Attributes:
        message: Human-readable error message.
        context: Optional structured context for logging/debugging.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx_str})"
        return self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, context={self.context!r})"


class ConfigurationError(CacheError):
    """Raised when cache configuration is invalid.

    Examples:
        - Unknown key strategy or codec name
        - Hash width outside the supported range
    """

    pass


class StorageUnavailableError(CacheError):
    """Raised when the backing store cannot be opened or written.

    Covers bad paths, missing permissions, a full disk, and lock contention
    that outlasted the busy timeout.

    Context should include:
        - location: The database file path
        - operation: The cache operation that failed
    """

    pass


class SchemaError(CacheError):
    """Raised when table creation fails against an otherwise-open store."""

    pass


class QueryError(CacheError):
    """Raised when a statement cannot be executed against the store.

    Usually means the database file was written by an incompatible schema
    (missing table or column).
    """

    pass


class EncodeError(CacheError):
    """Raised when a value cannot be encoded by the configured codec.

    Context should include:
        - codec: Name of the codec
        - value_type: Type name of the rejected value
    """

    pass


class DecodeError(CacheError):
    """Raised when a stored payload cannot be decoded.

    Never masked as a cache miss.

    Context should include:
        - codec: Name of the codec
        - identifier: Row identifier of the corrupt entry
    """

    pass
