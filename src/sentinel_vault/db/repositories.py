"""
Data access objects (repositories) for Sentinel Vault entities.

Provides CRUD operations for:
- Users
- Credential records
- Security alerts
- Activity log entries
- Password reset tokens
- Sessions

Vault-scoped lookups always filter on user_id as well as the primary key,
so a record owned by someone else behaves exactly like a missing one.
"""

import json
import logging
import sqlite3
import uuid
from datetime import datetime
from typing import List, Optional

from ..core.errors import Conflict
from .database import Database
from .models import (
    ActivityLogEntry,
    AlertKind,
    CredentialRecord,
    PasswordResetToken,
    SecurityAlert,
    SessionRecord,
    User,
    to_db_time,
    utcnow,
)

logger = logging.getLogger(__name__)


def new_id() -> str:
    return str(uuid.uuid4())


class UserRepository:
    """User data access object."""

    def __init__(self, db: Database):
        self.db = db

    def create(
        self,
        username: str,
        email: str,
        password_verifier: str,
        salt: str,
        name: Optional[str] = None,
    ) -> User:
        """
        Insert a user. Uniqueness of username and email is enforced by the
        database, so two concurrent registrations cannot both succeed.

        Raises:
            Conflict: If username or email is already taken
        """
        user = User(
            id=new_id(),
            username=username,
            email=email.lower(),
            password_verifier=password_verifier,
            salt=salt,
            created_at=utcnow(),
            name=name,
        )
        try:
            with self.db.connection() as conn:
                conn.execute(
                    """
                    INSERT INTO users
                    (id, username, email, name, password_verifier, salt, created_at, is_premium)
                    VALUES (?, ?, ?, ?, ?, ?, ?, 0)
                    """,
                    (
                        user.id,
                        user.username,
                        user.email,
                        user.name,
                        user.password_verifier,
                        user.salt,
                        to_db_time(user.created_at),
                    ),
                )
        except sqlite3.IntegrityError as e:
            if "users.email" in str(e):
                raise Conflict("Email already exists") from e
            raise Conflict("Username already exists") from e

        logger.info("User created: %s", user.id)
        return user

    def get_by_id(self, user_id: str) -> Optional[User]:
        with self.db.connection() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        return User.from_row(row) if row else None

    def get_by_username(self, username: str) -> Optional[User]:
        with self.db.connection() as conn:
            row = conn.execute(
                "SELECT * FROM users WHERE username = ?", (username,)
            ).fetchone()
        return User.from_row(row) if row else None

    def get_by_email(self, email: str) -> Optional[User]:
        with self.db.connection() as conn:
            row = conn.execute(
                "SELECT * FROM users WHERE email = ?", (email.lower(),)
            ).fetchone()
        return User.from_row(row) if row else None

    def update_last_login(self, user_id: str, when: datetime) -> None:
        with self.db.connection() as conn:
            conn.execute(
                "UPDATE users SET last_login = ? WHERE id = ?",
                (to_db_time(when), user_id),
            )

    def update_password(self, user_id: str, password_verifier: str, salt: str) -> bool:
        """Replace verifier and salt together."""
        with self.db.connection() as conn:
            cursor = conn.execute(
                "UPDATE users SET password_verifier = ?, salt = ? WHERE id = ?",
                (password_verifier, salt, user_id),
            )
            return cursor.rowcount > 0


class CredentialRepository:
    """Credential record data access object."""

    def __init__(self, db: Database):
        self.db = db

    def create(self, record: CredentialRecord) -> CredentialRecord:
        with self.db.connection() as conn:
            conn.execute(
                """
                INSERT INTO credentials
                (id, user_id, title, site_username, encrypted_secret, url, notes,
                 category, is_favorite, strength, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.id,
                    record.user_id,
                    record.title,
                    record.site_username,
                    record.encrypted_secret,
                    record.url,
                    record.notes,
                    record.category,
                    int(record.is_favorite),
                    record.strength,
                    to_db_time(record.created_at),
                    to_db_time(record.updated_at),
                ),
            )
        return record

    def get(self, record_id: str, user_id: str) -> Optional[CredentialRecord]:
        with self.db.connection() as conn:
            row = conn.execute(
                "SELECT * FROM credentials WHERE id = ? AND user_id = ?",
                (record_id, user_id),
            ).fetchone()
        return CredentialRecord.from_row(row) if row else None

    def list_by_user(
        self,
        user_id: str,
        category: Optional[str] = None,
        favorites_only: bool = False,
    ) -> List[CredentialRecord]:
        query = "SELECT * FROM credentials WHERE user_id = ?"
        params: list = [user_id]
        if category:
            query += " AND category = ?"
            params.append(category)
        if favorites_only:
            query += " AND is_favorite = 1"
        query += " ORDER BY title COLLATE NOCASE, created_at"

        with self.db.connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return [CredentialRecord.from_row(r) for r in rows]

    def update(self, record: CredentialRecord) -> bool:
        """Persist every mutable field in one statement (last write wins)."""
        with self.db.connection() as conn:
            cursor = conn.execute(
                """
                UPDATE credentials SET
                    title = ?, site_username = ?, encrypted_secret = ?, url = ?,
                    notes = ?, category = ?, is_favorite = ?, strength = ?,
                    updated_at = ?
                WHERE id = ? AND user_id = ?
                """,
                (
                    record.title,
                    record.site_username,
                    record.encrypted_secret,
                    record.url,
                    record.notes,
                    record.category,
                    int(record.is_favorite),
                    record.strength,
                    to_db_time(record.updated_at),
                    record.id,
                    record.user_id,
                ),
            )
            return cursor.rowcount > 0

    def delete(self, record_id: str, user_id: str) -> bool:
        with self.db.connection() as conn:
            cursor = conn.execute(
                "DELETE FROM credentials WHERE id = ? AND user_id = ?",
                (record_id, user_id),
            )
            return cursor.rowcount > 0


class AlertRepository:
    """Security alert data access object."""

    def __init__(self, db: Database):
        self.db = db

    def create_if_absent(
        self,
        user_id: str,
        kind: AlertKind,
        description: str,
        metadata: Optional[dict] = None,
        credential_id: Optional[str] = None,
    ) -> Optional[SecurityAlert]:
        """
        Insert an alert unless an open one of the same kind already exists
        for the credential. Check and insert share one write transaction.

        Returns:
            The new alert, or None when an open duplicate exists
        """
        with self.db.transaction() as conn:
            existing = conn.execute(
                """
                SELECT id FROM security_alerts
                WHERE user_id = ? AND kind = ? AND credential_id IS ? AND is_resolved = 0
                LIMIT 1
                """,
                (user_id, kind.value, credential_id),
            ).fetchone()
            if existing is not None:
                return None

            alert = SecurityAlert(
                id=new_id(),
                user_id=user_id,
                kind=kind,
                description=description,
                created_at=utcnow(),
                metadata=metadata or {},
                credential_id=credential_id,
            )
            conn.execute(
                """
                INSERT INTO security_alerts
                (id, user_id, kind, description, metadata, is_resolved, created_at, credential_id)
                VALUES (?, ?, ?, ?, ?, 0, ?, ?)
                """,
                (
                    alert.id,
                    alert.user_id,
                    alert.kind.value,
                    alert.description,
                    json.dumps(alert.metadata),
                    to_db_time(alert.created_at),
                    alert.credential_id,
                ),
            )
        return alert

    def list_by_user(
        self, user_id: str, include_resolved: bool = True
    ) -> List[SecurityAlert]:
        query = "SELECT * FROM security_alerts WHERE user_id = ?"
        if not include_resolved:
            query += " AND is_resolved = 0"
        query += " ORDER BY created_at DESC"
        with self.db.connection() as conn:
            rows = conn.execute(query, (user_id,)).fetchall()
        return [SecurityAlert.from_row(r) for r in rows]

    def resolve(self, alert_id: str, user_id: str) -> bool:
        """Flip to resolved. True when the alert exists for this user (idempotent)."""
        with self.db.connection() as conn:
            cursor = conn.execute(
                "UPDATE security_alerts SET is_resolved = 1 WHERE id = ? AND user_id = ?",
                (alert_id, user_id),
            )
            return cursor.rowcount > 0


class ActivityRepository:
    """Activity log data access object (insert + read only)."""

    def __init__(self, db: Database):
        self.db = db

    def append(self, entry: ActivityLogEntry) -> None:
        with self.db.connection() as conn:
            conn.execute(
                """
                INSERT INTO activity_logs
                (id, user_id, action, details, ip_address, user_agent, created_at, seq)
                VALUES (?, ?, ?, ?, ?, ?, ?,
                        (SELECT COALESCE(MAX(seq), 0) + 1 FROM activity_logs))
                """,
                (
                    entry.id,
                    entry.user_id,
                    entry.action,
                    entry.details,
                    entry.ip_address,
                    entry.user_agent,
                    to_db_time(entry.created_at),
                ),
            )

    def list_by_user(self, user_id: str, limit: int) -> List[ActivityLogEntry]:
        with self.db.connection() as conn:
            rows = conn.execute(
                "SELECT * FROM activity_logs WHERE user_id = ? ORDER BY seq DESC LIMIT ?",
                (user_id, limit),
            ).fetchall()
        return [ActivityLogEntry.from_row(r) for r in rows]


class ResetTokenRepository:
    """Password reset token data access object."""

    def __init__(self, db: Database):
        self.db = db

    def replace_for_user(
        self, user_id: str, token_hash: str, expires_at: datetime
    ) -> PasswordResetToken:
        """
        Invalidate every active token of the user and insert a new one,
        atomically, so at most one active token exists per user.
        """
        token = PasswordResetToken(
            id=new_id(),
            user_id=user_id,
            token_hash=token_hash,
            expires_at=expires_at,
            created_at=utcnow(),
        )
        with self.db.transaction() as conn:
            conn.execute(
                "UPDATE password_reset_tokens SET used = 1 WHERE user_id = ? AND used = 0",
                (user_id,),
            )
            conn.execute(
                """
                INSERT INTO password_reset_tokens
                (id, user_id, token_hash, expires_at, used, created_at)
                VALUES (?, ?, ?, ?, 0, ?)
                """,
                (
                    token.id,
                    token.user_id,
                    token.token_hash,
                    to_db_time(token.expires_at),
                    to_db_time(token.created_at),
                ),
            )
        return token

    def get_by_hash(self, token_hash: str) -> Optional[PasswordResetToken]:
        with self.db.connection() as conn:
            row = conn.execute(
                "SELECT * FROM password_reset_tokens WHERE token_hash = ?",
                (token_hash,),
            ).fetchone()
        return PasswordResetToken.from_row(row) if row else None

    def mark_used(self, token_id: str) -> bool:
        """Consume a token. Only the first caller gets True."""
        with self.db.connection() as conn:
            cursor = conn.execute(
                "UPDATE password_reset_tokens SET used = 1 WHERE id = ? AND used = 0",
                (token_id,),
            )
            return cursor.rowcount > 0

    def delete_expired(self, now: datetime) -> int:
        with self.db.connection() as conn:
            cursor = conn.execute(
                "DELETE FROM password_reset_tokens WHERE expires_at < ? OR used = 1",
                (to_db_time(now),),
            )
            return cursor.rowcount


class SessionRepository:
    """Session data access object. Rows never contain secrets."""

    def __init__(self, db: Database):
        self.db = db

    def create(self, session: SessionRecord) -> None:
        with self.db.connection() as conn:
            conn.execute(
                """
                INSERT INTO sessions (id_hash, user_id, created_at, last_seen, expires_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    session.id_hash,
                    session.user_id,
                    to_db_time(session.created_at),
                    to_db_time(session.last_seen),
                    to_db_time(session.expires_at),
                ),
            )

    def get(self, id_hash: str) -> Optional[SessionRecord]:
        with self.db.connection() as conn:
            row = conn.execute(
                "SELECT * FROM sessions WHERE id_hash = ?", (id_hash,)
            ).fetchone()
        return SessionRecord.from_row(row) if row else None

    def touch(self, id_hash: str, last_seen: datetime, expires_at: datetime) -> None:
        with self.db.connection() as conn:
            conn.execute(
                "UPDATE sessions SET last_seen = ?, expires_at = ? WHERE id_hash = ?",
                (to_db_time(last_seen), to_db_time(expires_at), id_hash),
            )

    def delete(self, id_hash: str) -> bool:
        with self.db.connection() as conn:
            cursor = conn.execute("DELETE FROM sessions WHERE id_hash = ?", (id_hash,))
            return cursor.rowcount > 0

    def delete_for_user(self, user_id: str) -> List[str]:
        """Delete every session of a user; returns the removed id hashes."""
        with self.db.connection() as conn:
            rows = conn.execute(
                "SELECT id_hash FROM sessions WHERE user_id = ?", (user_id,)
            ).fetchall()
            conn.execute("DELETE FROM sessions WHERE user_id = ?", (user_id,))
        return [r["id_hash"] for r in rows]

    def delete_expired(self, now: datetime) -> List[str]:
        with self.db.connection() as conn:
            rows = conn.execute(
                "SELECT id_hash FROM sessions WHERE expires_at <= ?", (to_db_time(now),)
            ).fetchall()
            conn.execute("DELETE FROM sessions WHERE expires_at <= ?", (to_db_time(now),))
        return [r["id_hash"] for r in rows]


class RepositoryFactory:
    """All repositories over one Database."""

    def __init__(self, db: Database):
        self.db = db
        self.users = UserRepository(db)
        self.credentials = CredentialRepository(db)
        self.alerts = AlertRepository(db)
        self.activity = ActivityRepository(db)
        self.reset_tokens = ResetTokenRepository(db)
        self.sessions = SessionRepository(db)
