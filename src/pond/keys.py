"""
Key normalization: application key -> fixed-width storage identifier.

Two strategies are available and are interchangeable on the same cache:

- HashKeyNormalizer: hashes any hashable key to a ``bits``-wide integer.
  Distinct keys may collide and then silently share one entry. The hash is
  deterministic across processes, so persisted entries stay addressable
  after a restart.
- UUIDKeyNormalizer: uses a caller-supplied UUID as the identifier. No
  hashing, no collisions.
"""

from __future__ import annotations

import hashlib
import math
import numbers
import uuid
from abc import ABC, abstractmethod
from collections.abc import Hashable
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any

import orjson
from uuid6 import uuid7

from pond.exceptions import ConfigurationError

DEFAULT_HASH_BITS = 32
MIN_HASH_BITS = 8
MAX_HASH_BITS = 64

_ORJSON_OPTIONS = orjson.OPT_SORT_KEYS | orjson.OPT_NON_STR_KEYS


class KeyNormalizer(ABC):
    """Abstract key normalization strategy."""

    name: str = ""

    @abstractmethod
    def normalize(self, key: Any) -> Any:
        """Map an application key to its identifier value."""
        ...

    def identifier(self, key: Any) -> str:
        """Canonical text form of the identifier, used as the row key."""
        return str(self.normalize(key))

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


def _frame(parts: list[bytes]) -> bytes:
    return b"".join(len(p).to_bytes(8, "big") + p for p in parts)


def _orjson_default(obj: Any) -> Any:
    if hasattr(obj, "model_dump"):
        return obj.model_dump(mode="json")
    if isinstance(obj, (frozenset, set)):
        return sorted(obj, key=repr)
    raise TypeError


def _builtin_number(value: numbers.Number) -> int | float | None:
    """The int or float equal to a numeric key, if there is one."""
    if isinstance(value, numbers.Complex) and not isinstance(value, numbers.Real):
        if value.imag:
            return None
        value = value.real
    for convert in (int, float):
        try:
            candidate = convert(value)
        except (TypeError, ValueError, ArithmeticError):
            continue
        if candidate == value:
            return candidate
    return None


def canonical_bytes(key: Any) -> bytes:
    """Deterministic, type-tagged byte representation of a hashable key.

    Keys that compare equal produce the same bytes: ``1``, ``1.0``,
    ``True``, ``Decimal("1")`` and an IntEnum member with value 1 share a
    representation, as do equal aware datetimes in different time zones.
    ``1`` and ``"1"`` do not.

    Raises:
        TypeError: If the key is unhashable or cannot be represented.
    """
    if not isinstance(key, Hashable):
        raise TypeError(f"unhashable key type: {type(key).__name__}")

    if key is None:
        return b"n:"
    if isinstance(key, Enum):
        # IntEnum, StrEnum and friends compare equal to their plain values
        if not isinstance(key, (int, float, str, bytes)):
            return f"e:{type(key).__module__}.{type(key).__qualname__}.{key.name}".encode()
        key = key.value
    if isinstance(key, bool):
        key = int(key)
    if isinstance(key, numbers.Number) and not isinstance(key, (int, float)):
        plain = _builtin_number(key)
        if plain is None:
            type_name = f"{type(key).__module__}.{type(key).__qualname__}"
            return b"x:" + type_name.encode() + b":" + str(key).encode("utf-8")
        key = plain
    if isinstance(key, float) and key.is_integer():
        key = int(key)
    if isinstance(key, int):
        return b"i:" + str(key).encode("ascii")
    if isinstance(key, float):
        return b"f:" + repr(key).encode("ascii")
    if isinstance(key, str):
        return b"s:" + key.encode("utf-8")
    if isinstance(key, bytes):
        return b"y:" + key
    if isinstance(key, uuid.UUID):
        return b"u:" + key.hex.encode("ascii")
    if isinstance(key, datetime):
        if key.tzinfo is not None and key.utcoffset() is not None:
            return b"t:" + key.astimezone(timezone.utc).isoformat().encode("ascii")
        return b"tn:" + key.isoformat().encode("ascii")
    if isinstance(key, date):
        return b"d:" + key.isoformat().encode("ascii")
    if isinstance(key, tuple):
        return b"(" + _frame([canonical_bytes(item) for item in key]) + b")"
    if isinstance(key, frozenset):
        return b"{" + _frame(sorted(canonical_bytes(item) for item in key)) + b"}"

    # Dataclasses, pydantic models and other value objects
    try:
        body = orjson.dumps(key, default=_orjson_default, option=_ORJSON_OPTIONS)
    except TypeError as e:
        raise TypeError(f"cannot normalize key of type {type(key).__name__}") from e
    type_name = f"{type(key).__module__}.{type(key).__qualname__}"
    return b"o:" + type_name.encode() + b":" + body


class HashKeyNormalizer(KeyNormalizer):
    """Hash arbitrary hashable keys down to a ``bits``-wide integer.

    The canonical key bytes go through an unkeyed 64-bit BLAKE2b digest and
    the low ``bits`` bits are kept. The default width of 32 bits keeps
    identifiers short at the cost of collisions: with 10,000 keys the chance
    of any collision is about 1%, and it reaches 50% near 77,000 keys. Use
    ``collision_probability`` to size ``bits`` for a given key count, or
    switch to UUIDKeyNormalizer when keys are already unique.
    """

    name = "hash"

    def __init__(self, bits: int = DEFAULT_HASH_BITS) -> None:
        if isinstance(bits, bool) or not isinstance(bits, int):
            raise ConfigurationError("Hash width must be an integer", {"bits": bits})
        if not MIN_HASH_BITS <= bits <= MAX_HASH_BITS:
            raise ConfigurationError(
                f"Hash width must be between {MIN_HASH_BITS} and {MAX_HASH_BITS} bits",
                {"bits": bits},
            )
        self.bits = bits
        self._mask = (1 << bits) - 1

    def normalize(self, key: Hashable) -> int:
        """Hash a key to an unsigned integer below ``2 ** bits``.

        Raises:
            TypeError: If the key is unhashable or has no canonical form.
        """
        digest = hashlib.blake2b(canonical_bytes(key), digest_size=8).digest()
        return int.from_bytes(digest, "little") & self._mask

    def collision_probability(self, key_count: int) -> float:
        """Probability that at least two of ``key_count`` distinct keys collide.

        Birthday bound: ``1 - exp(-n(n-1) / 2^(bits+1))``.
        """
        if key_count < 2:
            return 0.0
        pairs = key_count * (key_count - 1) / 2
        return -math.expm1(-pairs / float(1 << self.bits))

    def __repr__(self) -> str:
        return f"HashKeyNormalizer(bits={self.bits})"


class UUIDKeyNormalizer(KeyNormalizer):
    """Use a caller-supplied UUID directly as the identifier."""

    name = "uuid"

    def normalize(self, key: uuid.UUID | str) -> uuid.UUID:
        """Return the key as a UUID.

        Raises:
            TypeError: If the key is neither a UUID nor a string.
            ValueError: If a string key is not a valid UUID.
        """
        if isinstance(key, uuid.UUID):
            return key
        if isinstance(key, str):
            return uuid.UUID(key)
        raise TypeError(f"UUID key expected, got {type(key).__name__}")

    @staticmethod
    def generate_key() -> uuid.UUID:
        """Generate a fresh time-ordered UUID (version 7) to use as a key."""
        return uuid.UUID(str(uuid7()))


def make_normalizer(strategy: str, bits: int = DEFAULT_HASH_BITS) -> KeyNormalizer:
    """Build a normalizer from its configuration name.

    Args:
        strategy: ``"hash"`` or ``"uuid"``.
        bits: Hash width, ignored for the UUID strategy.

    Raises:
        ConfigurationError: If the strategy is unknown.
    """
    value = strategy.strip().lower()
    if value == HashKeyNormalizer.name:
        return HashKeyNormalizer(bits)
    if value == UUIDKeyNormalizer.name:
        return UUIDKeyNormalizer()
    raise ConfigurationError("Unknown key strategy", {"strategy": strategy})
