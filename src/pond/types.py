"""
Core types for the pond cache.

Defines the stored entry shape and the statistics snapshot returned by
``Cache.stats()``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from pond.utils.dates import ensure_utc, utc_now

__all__ = ["CacheEntry", "CacheStats", "utc_now"]


@dataclass(frozen=True)
class CacheEntry:
    """One row of the ``items`` table.

    Attributes:
        identifier: Canonical text form of the normalized key.
        expires_at: Absolute UTC expiration.
        payload: Encoded value as stored (bytes for most codecs).
    """

    identifier: str
    expires_at: datetime
    payload: Any

    def is_expired(self, now: datetime | None = None) -> bool:
        """Check whether the entry is logically dead at ``now``.

        An entry expiring exactly at ``now`` is still live; only strictly
        past expirations count, matching ``clean()``.
        """
        current = ensure_utc(now) if now is not None else utc_now()
        return ensure_utc(self.expires_at) < current


@dataclass(frozen=True)
class CacheStats:
    """Row counts for a cache file at a point in time."""

    total: int
    expired: int

    @property
    def live(self) -> int:
        """Rows that ``get`` would still return."""
        return self.total - self.expired

    def to_dict(self) -> dict[str, int]:
        return {"total": self.total, "expired": self.expired, "live": self.live}
