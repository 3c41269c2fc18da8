"""
Unit tests for cache domain value objects, entities, codec and exceptions.
"""

from datetime import timedelta

import pytest

from caching_api.domain.cache.codec import (
    decode_mapping,
    decode_value,
    encode_fields,
    encode_value,
)
from caching_api.domain.cache.entities import (
    CachedEntry,
    Record,
    VersionEntry,
    extract_data,
    extract_expected_version,
)
from caching_api.domain.cache.exceptions import (
    CacheSerializationException,
    DurableStoreUnavailableException,
    OptimisticLockConflictException,
    StoreUnavailableException,
    VolatileStoreUnavailableException,
)
from caching_api.domain.cache.value_objects import TTL, CacheKey, RecordVersion


class TestCacheKey:
    """Test CacheKey validation."""

    def test_valid_key(self):
        key = CacheKey("user:42:profile")
        assert str(key) == "user:42:profile"
        assert CacheKey.validate("a") == "a"

    def test_empty_key(self):
        with pytest.raises(ValueError, match="cannot be empty"):
            CacheKey("")

    def test_key_too_long(self):
        CacheKey("x" * 255)
        with pytest.raises(ValueError, match="too long"):
            CacheKey("x" * 256)

    @pytest.mark.parametrize("key", ["user 1", "tab\tkey", " padded "])
    def test_whitespace_allowed(self, key):
        assert CacheKey.validate(key) == key

    def test_non_string_rejected(self):
        with pytest.raises(TypeError):
            CacheKey(42)


class TestTTL:
    """Test TTL value object."""

    def test_strategy_presets(self):
        assert TTL.cache_aside().seconds == 300
        assert TTL.write_through().seconds == 600
        assert TTL.write_through().timedelta == timedelta(minutes=10)

    def test_constructors(self):
        assert TTL.minutes(2) == TTL(120)
        assert TTL.hours(1) == TTL(3600)
        assert str(TTL(30)) == "30s"

    @pytest.mark.parametrize("seconds", [0, -5])
    def test_non_positive(self, seconds):
        with pytest.raises(ValueError, match="TTL must be positive"):
            TTL(seconds)

    def test_too_large(self):
        with pytest.raises(ValueError, match="max 1 year"):
            TTL(86400 * 366)


class TestRecordVersion:
    """Test RecordVersion value object."""

    def test_initial_and_next(self):
        version = RecordVersion.initial()
        assert version.value == 1
        assert version.next().value == 2
        assert str(version.next()) == "v2"

    def test_negative(self):
        with pytest.raises(ValueError, match="cannot be negative"):
            RecordVersion(-1)

    @pytest.mark.parametrize("value", [True, "1", 1.0, None])
    def test_non_int(self, value):
        with pytest.raises(TypeError):
            RecordVersion(value)


class TestEntities:
    """Test entity helpers and expiry rules."""

    def test_record_to_value(self):
        record = Record(key="k", data={"a": 1}, version=3)
        assert record.to_value() == {"id": "k", "data": {"a": 1}, "version": 3}

    def test_record_rejects_negative_version(self):
        with pytest.raises(ValueError):
            Record(key="k", data=None, version=-1)

    def test_extract_data(self):
        assert extract_data({"data": None}) is None
        with pytest.raises(ValueError, match="'data'"):
            extract_data({"id": "k"})
        with pytest.raises(TypeError):
            extract_data(["data"])

    def test_extract_expected_version(self):
        assert extract_expected_version({"data": 1, "version": 4}) == 4
        with pytest.raises(ValueError, match="'version'"):
            extract_expected_version({"data": 1})
        with pytest.raises(TypeError):
            extract_expected_version({"data": 1, "version": "4"})

    def test_cached_entry_expiry_is_inclusive(self):
        entry = CachedEntry(payload="{}", expires_at=100.0)
        assert not entry.is_expired(99.9)
        assert entry.is_expired(100.0)
        assert entry.remaining(90.0) == pytest.approx(10.0)
        assert entry.remaining(150.0) == 0.0

    def test_version_entry_expiry_is_strict(self):
        entry = VersionEntry(version=1, expires_at=100.0)
        assert not entry.is_expired(100.0)
        assert entry.is_expired(100.001)


class TestCodec:
    """Test value encoding and decoding."""

    def test_encode_is_compact(self):
        assert encode_value({"a": [1, 2]}) == '{"a":[1,2]}'

    def test_encode_falls_back_to_str(self):
        assert encode_value({"t": timedelta(seconds=1)}) == '{"t":"0:00:01"}'

    def test_encode_circular_value(self):
        value = {}
        value["self"] = value
        with pytest.raises(CacheSerializationException) as exc_info:
            encode_value(value, key="loop")
        assert exc_info.value.details["key"] == "loop"

    def test_decode_bytes(self):
        assert decode_value(b'{"a":1}') == {"a": 1}

    def test_decode_invalid(self):
        with pytest.raises(CacheSerializationException):
            decode_value("{nope", key="k")
        with pytest.raises(CacheSerializationException):
            decode_value(b"\xff\xfe", key="k")

    def test_decode_mapping_requires_object(self):
        with pytest.raises(CacheSerializationException, match="expected an object"):
            decode_mapping("[1,2]")

    def test_encode_fields(self):
        encoded = encode_fields({"s": "x", "n": 3, "flag": True, "obj": {"a": 1}})
        assert encoded == {"s": "x", "n": 3, "flag": "true", "obj": '{"a":1}'}


class TestExceptions:
    """Test exception hierarchy and details."""

    def test_store_unavailable_details(self):
        cause = ConnectionError("refused")
        error = VolatileStoreUnavailableException(
            operation="get", key="k", original_error=cause
        )

        assert isinstance(error, StoreUnavailableException)
        assert error.error_code == "STORE_UNAVAILABLE"
        assert error.details["store"] == "volatile"
        assert error.details["original_error_type"] == "ConnectionError"
        assert error.__cause__ is cause

    def test_durable_default_message(self):
        assert str(DurableStoreUnavailableException()) == "durable store unavailable"

    def test_conflict_carries_versions(self):
        error = OptimisticLockConflictException("k", expected_version=1, current_version=3)
        assert error.expected_version == 1
        assert error.current_version == 3
        assert error.details == {"key": "k", "expected_version": 1, "current_version": 3}
