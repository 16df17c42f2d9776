"""
Tests for shared field validators.
"""

import pytest

from sentinel_vault.core.errors import ValidationError
from sentinel_vault.core.validation import (
    optional_text,
    validate_email,
    validate_name,
    validate_secret,
    validate_title,
    validate_url,
    validate_username,
)


class TestUsername:
    def test_stripped(self):
        assert validate_username("  alice ") == "alice"

    @pytest.mark.parametrize("value", [None, "", "ab", "   ab  ", "x" * 51])
    def test_rejected(self, value):
        with pytest.raises(ValidationError):
            validate_username(value)

    def test_bounds_accepted(self):
        assert validate_username("abc") == "abc"
        assert validate_username("x" * 50) == "x" * 50


class TestEmail:
    def test_normalized(self):
        assert validate_email(" Alice@X.com ") == "alice@x.com"

    @pytest.mark.parametrize("value", [None, "", "alice", "alice@", "@x.com", "a b@x.com"])
    def test_rejected(self, value):
        with pytest.raises(ValidationError):
            validate_email(value)


class TestOptionalFields:
    def test_name(self):
        assert validate_name(None) is None
        assert validate_name("  ") is None
        assert validate_name(" Alice ") == "Alice"
        with pytest.raises(ValidationError):
            validate_name("x" * 101)

    def test_optional_text(self):
        assert optional_text(None) is None
        assert optional_text("") is None
        assert optional_text(" note ") == "note"


class TestRecordFields:
    def test_title(self):
        assert validate_title(" GitHub ") == "GitHub"
        for bad in (None, "", "   ", "x" * 101):
            with pytest.raises(ValidationError):
                validate_title(bad)

    def test_secret_kept_verbatim(self):
        assert validate_secret("  spaced  ") == "  spaced  "
        with pytest.raises(ValidationError):
            validate_secret("")
        with pytest.raises(ValidationError):
            validate_secret(None)

    @pytest.mark.parametrize(
        "value, expected",
        [
            (None, None),
            ("", None),
            ("  ", None),
            ("https://github.com/login", "https://github.com/login"),
            (" http://localhost:8080 ", "http://localhost:8080"),
        ],
    )
    def test_url_accepted(self, value, expected):
        assert validate_url(value) == expected

    @pytest.mark.parametrize("value", ["github.com", "ftp://x.com", "https://", "javascript:alert(1)"])
    def test_url_rejected(self, value):
        with pytest.raises(ValidationError):
            validate_url(value)
