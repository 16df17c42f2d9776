# Sentinel Vault - Input Validation
#
# Field rules shared by the auth and vault services. Each validator returns
# the normalized value or raises ValidationError with a caller-safe message.

import re
from typing import Optional
from urllib.parse import urlparse

from .errors import ValidationError

USERNAME_MIN = 3
USERNAME_MAX = 50
TITLE_MAX = 100
NAME_MAX = 100

_EMAIL = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def validate_username(username: Optional[str]) -> str:
    value = (username or "").strip()
    if not USERNAME_MIN <= len(value) <= USERNAME_MAX:
        raise ValidationError(
            f"Username must be between {USERNAME_MIN} and {USERNAME_MAX} characters"
        )
    return value


def validate_email(email: Optional[str]) -> str:
    value = (email or "").strip().lower()
    if not _EMAIL.match(value):
        raise ValidationError("Invalid email address")
    return value


def validate_name(name: Optional[str]) -> Optional[str]:
    if name is None:
        return None
    value = name.strip()
    if len(value) > NAME_MAX:
        raise ValidationError(f"Name must be at most {NAME_MAX} characters")
    return value or None


def validate_title(title: Optional[str]) -> str:
    value = (title or "").strip()
    if not value:
        raise ValidationError("Title is required")
    if len(value) > TITLE_MAX:
        raise ValidationError(f"Title must be at most {TITLE_MAX} characters")
    return value


def validate_secret(secret: Optional[str]) -> str:
    # Secrets are stored exactly as given; only emptiness is rejected.
    if not secret:
        raise ValidationError("Password is required")
    return secret


def validate_url(url: Optional[str]) -> Optional[str]:
    """Empty means no URL; anything else must be an absolute http(s) URL."""
    if url is None or not url.strip():
        return None
    value = url.strip()
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValidationError("URL must start with http:// or https://")
    return value


def optional_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None
