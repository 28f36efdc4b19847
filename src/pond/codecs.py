"""
Value codecs: how cached values become the ``data`` column and back.

The cache wraps any failure raised here into EncodeError / DecodeError, so
codecs simply let their library's exceptions escape.
"""

from __future__ import annotations

import pickle
from abc import ABC, abstractmethod
from typing import Any, Generic, TypeVar

import orjson
from pydantic import TypeAdapter

from pond.exceptions import ConfigurationError

T = TypeVar("T")

SQLITE_INT_MIN = -(2**63)
SQLITE_INT_MAX = 2**63 - 1


class Codec(ABC):
    """Encode values for storage and decode them on read."""

    name: str = ""

    @abstractmethod
    def encode(self, value: Any) -> Any:
        """Turn a value into something SQLite can bind (usually bytes)."""
        ...

    @abstractmethod
    def decode(self, data: Any) -> Any:
        """Rebuild a value from the stored column."""
        ...

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


class JSONCodec(Codec):
    """JSON via orjson.

    Handles str, int, float, bool, None, lists, dicts, dataclasses,
    datetimes and UUIDs. Dataclasses, datetimes and UUIDs come back as
    plain dicts and strings; use ModelCodec for typed round trips.
    """

    name = "json"

    def __init__(self, option: int | None = None) -> None:
        self.option = option

    def encode(self, value: Any) -> bytes:
        return orjson.dumps(value, option=self.option)

    def decode(self, data: Any) -> Any:
        return orjson.loads(data)


class ModelCodec(Codec, Generic[T]):
    """Typed JSON codec built on a pydantic TypeAdapter.

    Example:
        >>> codec = ModelCodec(User)
        >>> cache = Cache(path, codec=codec)   # get() returns User instances
    """

    name = "model"

    def __init__(self, type_: Any) -> None:
        self.type_ = type_
        self._adapter: TypeAdapter[T] = TypeAdapter(type_)

    def encode(self, value: T) -> bytes:
        return self._adapter.dump_json(value)

    def decode(self, data: Any) -> T:
        return self._adapter.validate_json(data)

    def __repr__(self) -> str:
        return f"ModelCodec({getattr(self.type_, '__name__', self.type_)!r})"


class PickleCodec(Codec):
    """Pickle for arbitrary Python objects.

    Only use with cache files you trust: unpickling runs code.
    """

    name = "pickle"

    def __init__(self, protocol: int = pickle.HIGHEST_PROTOCOL) -> None:
        self.protocol = protocol

    def encode(self, value: Any) -> bytes:
        return pickle.dumps(value, protocol=self.protocol)

    def decode(self, data: Any) -> Any:
        return pickle.loads(data)


class RawCodec(Codec):
    """Store values natively, without an encoding step.

    Accepts str, bytes, float and int within SQLite's signed 64-bit range.
    bool is stored as an integer and comes back as 0/1.
    """

    name = "raw"

    _native_types = (str, bytes, int, float)

    def encode(self, value: Any) -> Any:
        if not isinstance(value, self._native_types):
            raise TypeError(
                f"raw codec cannot store {type(value).__name__}; "
                "expected str, bytes, int or float"
            )
        if isinstance(value, int) and not SQLITE_INT_MIN <= value <= SQLITE_INT_MAX:
            raise ValueError(f"integer {value} does not fit in a signed 64-bit SQLite INTEGER")
        return value

    def decode(self, data: Any) -> Any:
        return data


_CODECS: dict[str, type[Codec]] = {
    JSONCodec.name: JSONCodec,
    PickleCodec.name: PickleCodec,
    RawCodec.name: RawCodec,
}


def make_codec(name: str) -> Codec:
    """Build a codec from its configuration name (json, pickle, raw).

    Raises:
        ConfigurationError: If the name is unknown.
    """
    codec_cls = _CODECS.get(name.strip().lower())
    if codec_cls is None:
        raise ConfigurationError(
            "Unknown codec", {"codec": name, "available": sorted(_CODECS)}
        )
    return codec_cls()
