"""
Tests for the exception hierarchy.
"""

from __future__ import annotations

import pytest

from pond.exceptions import (
    CacheError,
    ConfigurationError,
    DecodeError,
    EncodeError,
    QueryError,
    SchemaError,
    StorageUnavailableError,
)


class TestCacheError:
    def test_message_only(self) -> None:
        error = CacheError("boom")
        assert str(error) == "boom"
        assert error.context == {}

    def test_context_in_str(self) -> None:
        error = CacheError("Cache get failed", {"operation": "get", "location": "x.db"})
        assert str(error) == "Cache get failed (operation='get', location='x.db')"

    def test_repr(self) -> None:
        error = DecodeError("bad", {"identifier": "42"})
        assert repr(error) == "DecodeError('bad', context={'identifier': '42'})"

    @pytest.mark.parametrize(
        "error_cls",
        [
            ConfigurationError,
            StorageUnavailableError,
            SchemaError,
            QueryError,
            EncodeError,
            DecodeError,
        ],
    )
    def test_hierarchy(self, error_cls: type[CacheError]) -> None:
        with pytest.raises(CacheError):
            raise error_cls("failure")

    def test_codec_errors_distinct_from_storage(self) -> None:
        assert not issubclass(DecodeError, StorageUnavailableError)
        assert not issubclass(StorageUnavailableError, (EncodeError, DecodeError))
