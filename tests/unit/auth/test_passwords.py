from __future__ import annotations

import pytest

from docvault.auth.passwords import (
    PasswordPolicy,
    hash_password,
    validate_email,
    validate_password,
    verify_password,
)
from docvault.exceptions import ValidationError


def test_hash_and_verify():
    hashed = hash_password("s3cret-pass")

    assert hashed != "s3cret-pass"
    assert verify_password("s3cret-pass", hashed)
    assert not verify_password("wrong-pass", hashed)


def test_verify_rejects_malformed_hash():
    assert verify_password("anything", "not-a-bcrypt-hash") is False


def test_long_passwords_truncate_consistently():
    long_pw = "x" * 100
    assert verify_password(long_pw, hash_password(long_pw))


def test_min_length():
    with pytest.raises(ValidationError) as exc:
        validate_password("abc", PasswordPolicy(min_length=6))
    assert "at least 6 characters" in exc.value.message
    assert exc.value.field == "password"


def test_common_password_rejected():
    with pytest.raises(ValidationError):
        validate_password("Password")


def test_optional_rules():
    policy = PasswordPolicy(min_length=4, require_upper=True, require_digit=True)

    with pytest.raises(ValidationError) as exc:
        validate_password("abcdef", policy)
    assert "an uppercase letter" in exc.value.message
    assert "a digit" in exc.value.message

    validate_password("Abcde1", policy)


@pytest.mark.parametrize("raw,expected", [(" Owner@Example.COM ", "owner@example.com"), ("a@b.io", "a@b.io")])
def test_email_normalized(raw, expected):
    assert validate_email(raw) == expected


@pytest.mark.parametrize("raw", ["", "no-at-sign", "two@@example.com", "spaces in@example.com", "a@b"])
def test_email_rejected(raw):
    with pytest.raises(ValidationError):
        validate_email(raw)
