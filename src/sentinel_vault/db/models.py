# Sentinel Vault - Data Models
#
# Typed row objects for every persisted entity:
#   User                - identity + password verifier + KDF salt
#   CredentialRecord    - one encrypted credential owned by a user
#   SecurityAlert       - weak / reused / breach finding
#   ActivityLogEntry    - append-only per-user activity ledger
#   PasswordResetToken  - single-use reset token
#   SessionRecord       - server-side session (no secrets)
#
# Timestamps are timezone-aware UTC datetimes, stored as ISO 8601 text.

import json
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_db_time(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def from_db_time(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class AlertKind(str, Enum):
    """Classification of a security alert."""

    WEAK = "weak"
    REUSED = "reused"
    BREACH = "breach"


@dataclass
class User:
    id: str
    username: str
    email: str
    password_verifier: str  # base64, HKDF "login verifier" output
    salt: str  # base64, per-user KDF salt
    created_at: datetime
    name: Optional[str] = None
    last_login: Optional[datetime] = None
    is_premium: bool = False

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "User":
        return cls(
            id=row["id"],
            username=row["username"],
            email=row["email"],
            password_verifier=row["password_verifier"],
            salt=row["salt"],
            created_at=from_db_time(row["created_at"]),
            name=row["name"],
            last_login=from_db_time(row["last_login"]),
            is_premium=bool(row["is_premium"]),
        )

    def to_public_dict(self) -> Dict[str, Any]:
        """User view safe for callers: no verifier, no salt."""
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "name": self.name,
            "created_at": to_db_time(self.created_at),
            "last_login": to_db_time(self.last_login),
            "is_premium": self.is_premium,
        }


@dataclass
class CredentialRecord:
    """Stored credential. `encrypted_secret` is an envelope, never plaintext."""

    id: str
    user_id: str
    title: str
    encrypted_secret: str
    created_at: datetime
    updated_at: datetime
    site_username: Optional[str] = None
    url: Optional[str] = None
    notes: Optional[str] = None
    category: Optional[str] = None
    is_favorite: bool = False
    strength: int = 0

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "CredentialRecord":
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            title=row["title"],
            encrypted_secret=row["encrypted_secret"],
            created_at=from_db_time(row["created_at"]),
            updated_at=from_db_time(row["updated_at"]),
            site_username=row["site_username"],
            url=row["url"],
            notes=row["notes"],
            category=row["category"],
            is_favorite=bool(row["is_favorite"]),
            strength=row["strength"],
        )


@dataclass
class SecurityAlert:
    id: str
    user_id: str
    kind: AlertKind
    description: str
    created_at: datetime
    metadata: Dict[str, Any] = field(default_factory=dict)
    is_resolved: bool = False
    credential_id: Optional[str] = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "SecurityAlert":
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            kind=AlertKind(row["kind"]),
            description=row["description"],
            created_at=from_db_time(row["created_at"]),
            metadata=json.loads(row["metadata"]) if row["metadata"] else {},
            is_resolved=bool(row["is_resolved"]),
            credential_id=row["credential_id"],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind.value,
            "description": self.description,
            "metadata": self.metadata,
            "is_resolved": self.is_resolved,
            "credential_id": self.credential_id,
            "created_at": to_db_time(self.created_at),
        }


@dataclass
class ActivityLogEntry:
    id: str
    user_id: str
    action: str
    details: str
    ip_address: str
    user_agent: str
    created_at: datetime

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "ActivityLogEntry":
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            action=row["action"],
            details=row["details"] or "",
            ip_address=row["ip_address"] or "",
            user_agent=row["user_agent"] or "",
            created_at=from_db_time(row["created_at"]),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "action": self.action,
            "details": self.details,
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "created_at": to_db_time(self.created_at),
        }


@dataclass
class PasswordResetToken:
    """Reset token row. Only the SHA-256 digest of the token is stored."""

    id: str
    user_id: str
    token_hash: str
    expires_at: datetime
    created_at: datetime
    used: bool = False

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "PasswordResetToken":
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            token_hash=row["token_hash"],
            expires_at=from_db_time(row["expires_at"]),
            created_at=from_db_time(row["created_at"]),
            used=bool(row["used"]),
        )

    def is_active(self, now: datetime) -> bool:
        return not self.used and now < self.expires_at


@dataclass
class SessionRecord:
    """Persisted session row: id digest -> user id + expiry, nothing else."""

    id_hash: str
    user_id: str
    created_at: datetime
    last_seen: datetime
    expires_at: datetime

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "SessionRecord":
        return cls(
            id_hash=row["id_hash"],
            user_id=row["user_id"],
            created_at=from_db_time(row["created_at"]),
            last_seen=from_db_time(row["last_seen"]),
            expires_at=from_db_time(row["expires_at"]),
        )
