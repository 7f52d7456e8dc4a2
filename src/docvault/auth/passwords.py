from __future__ import annotations

import re
from dataclasses import dataclass

import bcrypt

from docvault.exceptions import ValidationError

COMMON_PASSWORDS = {"password", "123456", "qwerty", "letmein", "azerty"}

EMAIL = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
UPPER = re.compile(r"[A-Z]")
DIGIT = re.compile(r"[0-9]")


@dataclass
class PasswordPolicy:
    min_length: int = 6
    require_upper: bool = False
    require_digit: bool = False
    forbid_common: bool = True


def validate_email(email: str) -> str:
    normalized = email.strip().lower()
    if not EMAIL.match(normalized):
        raise ValidationError("Invalid email address", field="email")
    return normalized


def validate_password(pw: str, policy: PasswordPolicy | None = None) -> None:
    policy = policy or PasswordPolicy()
    reasons: list[str] = []
    if len(pw) < policy.min_length:
        reasons.append(f"at least {policy.min_length} characters")
    if policy.require_upper and not UPPER.search(pw):
        reasons.append("an uppercase letter")
    if policy.require_digit and not DIGIT.search(pw):
        reasons.append("a digit")
    if policy.forbid_common and pw.lower() in COMMON_PASSWORDS:
        reasons.append("not a common password")
    if reasons:
        raise ValidationError("Password must have " + ", ".join(reasons), field="password")


def hash_password(pw: str) -> str:
    # bcrypt only looks at the first 72 bytes
    return bcrypt.hashpw(pw.encode("utf-8")[:72], bcrypt.gensalt()).decode("ascii")


def verify_password(pw: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(pw.encode("utf-8")[:72], hashed.encode("ascii"))
    except ValueError:
        return False


__all__ = [
    "PasswordPolicy",
    "validate_email",
    "validate_password",
    "hash_password",
    "verify_password",
]
