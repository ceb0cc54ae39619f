"""Format rules for user-supplied account fields."""

import re
from typing import Optional

from email_validator import EmailNotValidError, validate_email as _check_email

from ..core.exceptions import PasswordMismatch, PasswordTooShort, ValidationError

MIN_PASSWORD_LENGTH = 8
# bcrypt only accepts up to 72 bytes of input
MAX_PASSWORD_BYTES = 72

_USERNAME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9_-]{3,23}$")
_NAME_RE = re.compile(r"^[A-Za-z0-9]+$")
_PHONE_RE = re.compile(r"^\+[1-9]\d{6,14}$")
_SYMBOL_RE = re.compile(r"[^A-Za-z0-9]")


def normalize_email(email: str) -> str:
    email_clean = (email or "").strip().lower()
    try:
        _check_email(email_clean, check_deliverability=False)
    except EmailNotValidError as exc:
        raise ValidationError("Please provide a valid email") from exc
    return email_clean


def validate_username(username: str) -> str:
    value = (username or "").strip()
    if not _USERNAME_RE.match(value):
        raise ValidationError(
            "username must be 4-24 characters, start with a letter and contain only "
            "letters, numbers, hyphens and underscores"
        )
    return value


def validate_name(value: str, label: str) -> str:
    cleaned = (value or "").strip()
    if not _NAME_RE.match(cleaned):
        raise ValidationError(f"{label} can only have alphanumeric values. No special characters allowed")
    return cleaned


def validate_phone_number(phone: Optional[str]) -> Optional[str]:
    if phone is None:
        return None
    cleaned = phone.strip().replace(" ", "")
    if not _PHONE_RE.match(cleaned):
        raise ValidationError(
            "Your phone number must begin with a '+', followed by your country code "
            "then an actual number e.g. +4412345678"
        )
    return cleaned


def validate_password_strength(password: str) -> str:
    """Password needs 8+ chars with lower and upper case letters, a digit and a symbol."""
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise PasswordTooShort(f"Passwords must be at least {MIN_PASSWORD_LENGTH} characters long")
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValidationError(f"Passwords cannot be longer than {MAX_PASSWORD_BYTES} bytes")
    if (
        not any(ch.islower() for ch in password)
        or not any(ch.isupper() for ch in password)
        or not any(ch.isdigit() for ch in password)
        or not _SYMBOL_RE.search(password)
    ):
        raise ValidationError(
            "Password must be at least 8 characters long, with at least 1 uppercase and "
            "lowercase letters, 1 number and at least 1 symbol"
        )
    return password


def validate_password_pair(password: str, password_confirm: str) -> str:
    if password != password_confirm:
        raise PasswordMismatch("Passwords do not match")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordTooShort(f"Passwords must be at least {MIN_PASSWORD_LENGTH} characters long")
    return validate_password_strength(password)
