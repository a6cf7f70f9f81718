"""Tests for identity normalization, metadata clipping and timestamp coercion."""

from datetime import datetime, timedelta, timezone

import pytest

from lockguard.core.errors import InvalidIdentityError
from lockguard.core.time import coerce_utc, utcnow
from lockguard.core.validation import (
    MAX_IDENTITY_LENGTH,
    clip_metadata,
    is_safe_string,
    normalize_identity,
    normalize_single_line,
)


class TestNormalizeIdentity:
    def test_trims_and_lowercases(self):
        assert normalize_identity("  Alice@Example.COM ") == "alice@example.com"

    def test_unicode_nfc(self):
        # "e" + combining acute accent -> precomposed
        assert normalize_identity("Jose\u0301@x.com") == "jos\u00e9@x.com"

    @pytest.mark.parametrize("value", [None, "", "   ", "\t\n"])
    def test_empty_rejected(self, value):
        with pytest.raises(InvalidIdentityError, match="Identity is required"):
            normalize_identity(value)

    @pytest.mark.parametrize("value", ["a\x00b@x.com", "a b@x.com", "a\nb@x.com"])
    def test_unsafe_characters_rejected(self, value):
        with pytest.raises(InvalidIdentityError, match="invalid characters"):
            normalize_identity(value)

    def test_too_long_rejected(self):
        with pytest.raises(InvalidIdentityError, match="too long"):
            normalize_identity("a" * (MAX_IDENTITY_LENGTH + 1))

    def test_is_a_value_error(self):
        with pytest.raises(ValueError):
            normalize_identity("")


class TestMetadata:
    def test_normalize_single_line(self):
        assert normalize_single_line(None) is None
        assert normalize_single_line("  Mozilla/5.0\r\n  (X11)\x07 ") == "Mozilla/5.0 (X11)"

    def test_is_safe_string(self):
        assert is_safe_string("") is True
        assert is_safe_string("10.0.0.1") is True
        assert is_safe_string("bad\x1b[0m") is False

    def test_clip_metadata(self):
        assert clip_metadata("  ", 10) is None
        assert clip_metadata(None, 10) is None
        assert clip_metadata("abcdefghijkl", 5) == "abcde"


class TestCoerceUtc:
    def test_empty_values(self):
        assert coerce_utc(None) is None
        assert coerce_utc("") is None

    def test_naive_passthrough(self):
        value = datetime(2025, 6, 1, 12, 0)
        assert coerce_utc(value) is value

    def test_aware_converted_to_naive_utc(self):
        value = datetime(2025, 6, 1, 7, 0, tzinfo=timezone(timedelta(hours=-5)))
        assert coerce_utc(value) == datetime(2025, 6, 1, 12, 0)

    def test_iso_string_with_z(self):
        assert coerce_utc("2025-06-01T12:00:00Z") == datetime(2025, 6, 1, 12, 0)

    def test_epoch_milliseconds(self):
        assert coerce_utc(1748779200000) == datetime(2025, 6, 1, 12, 0)
        assert coerce_utc(1748779200000.0) == datetime(2025, 6, 1, 12, 0)

    @pytest.mark.parametrize("value", [True, object(), [2025]])
    def test_unsupported_rejected(self, value):
        with pytest.raises(ValueError):
            coerce_utc(value)

    def test_garbage_string_rejected(self):
        with pytest.raises(ValueError):
            coerce_utc("yesterday")

    def test_utcnow_is_naive(self):
        assert utcnow().tzinfo is None
