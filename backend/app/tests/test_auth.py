from unittest.mock import patch

import pytest

from app.dependencies.auth import read_bearer_token, safe_equal, verify_bearer_token


@pytest.mark.parametrize("header, expected", [
    ("Bearer abc", "abc"),
    ("bearer abc", "abc"),
    ("BeArEr abc", "abc"),
    ("Bearer   abc  ", "abc"),
    ("Bearer\tabc", "abc"),
    ("Bearer a b c", "a b c"),
    ("Bearer ", None),
    ("Bearer    ", None),
    ("Bearer", None),
    ("Bearerabc", None),
    ("Basic abc", None),
    (" Bearer abc", None),
    ("", None),
    (None, None),
])
def test_read_bearer_token(header, expected):
    assert read_bearer_token(header) == expected


def test_safe_equal_matches_identical_strings():
    assert safe_equal("secret123", "secret123") is True
    assert safe_equal("sécret", "sécret") is True


@pytest.mark.parametrize("candidate", ["secret124", "Secret123", "secret12", "secret1234", ""])
def test_safe_equal_rejects_differences(candidate):
    assert safe_equal(candidate, "secret123") is False


def test_safe_equal_uses_constant_time_compare_for_equal_lengths():
    with patch("app.dependencies.auth.secrets.compare_digest", return_value=False) as mock_compare:
        assert safe_equal("aaaaaaaa", "aaaaaaab") is False
        mock_compare.assert_called_once_with(b"aaaaaaaa", b"aaaaaaab")


def test_safe_equal_length_mismatch_short_circuits():
    with patch("app.dependencies.auth.secrets.compare_digest") as mock_compare:
        assert safe_equal("short", "much-longer-secret") is False
        mock_compare.assert_not_called()


def test_safe_equal_compares_utf8_byte_length():
    # Same character count, different byte length
    assert safe_equal("é", "ab") is False


def test_verify_bearer_token():
    assert verify_bearer_token("Bearer secret123", "secret123") is True
    assert verify_bearer_token("bearer  secret123 ", "secret123") is True
    assert verify_bearer_token("Bearer secret1234", "secret123") is False
    assert verify_bearer_token(None, "secret123") is False


def test_verify_bearer_token_never_matches_empty_secret():
    assert verify_bearer_token("Bearer ", "") is False
    assert verify_bearer_token("Bearer x", "") is False
