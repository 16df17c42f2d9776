# Sentinel Vault - Sessions & Key Ring
#
# Session tokens are 256-bit random values handed to the client once.
# Only their SHA-256 digest is persisted, together with the owner id and
# expiry. Expiry slides on use (idle timeout) but never passes the
# absolute lifetime fixed at login.
#
# The per-user encryption key is derived at login and held by the
# KeyRing, in process memory only, keyed by the session digest. It is
# dropped on logout, expiry, password reset and process exit. After a
# restart a persisted session still authenticates, but vault operations
# fail with Unauthorized until the user logs in again.

import hashlib
import logging
import secrets
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from ..core.audit_log import EventSeverity, EventType, get_audit_logger
from ..core.errors import Unauthorized
from ..db.models import SessionRecord, utcnow
from ..db.repositories import SessionRepository

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32


def hash_session_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


@dataclass
class Session:
    """
    Authenticated caller.

    `token` is the opaque client credential; it is only populated on the
    Session returned by `SessionStore.create` and never persisted.
    """

    id_hash: str
    user_id: str
    created_at: datetime
    expires_at: datetime
    token: Optional[str] = field(default=None, repr=False)

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


class SessionStore:
    """Creates, validates and revokes sessions and their vault keys."""

    def __init__(
        self,
        repository: SessionRepository,
        keyring: Optional["KeyRing"] = None,
        idle_seconds: int = 24 * 60 * 60,
        absolute_seconds: int = 7 * 24 * 60 * 60,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.repository = repository
        self.keyring = keyring if keyring is not None else KeyRing()
        self.idle = timedelta(seconds=idle_seconds)
        self.absolute = timedelta(seconds=absolute_seconds)
        self.clock = clock

    def _expiry(self, created_at: datetime, now: datetime) -> datetime:
        return min(now + self.idle, created_at + self.absolute)

    def create(self, user_id: str, key: Optional[bytes] = None) -> Session:
        """Start a session; `key` is the derived vault key to hold for it."""
        token = secrets.token_urlsafe(TOKEN_BYTES)
        now = self.clock()
        record = SessionRecord(
            id_hash=hash_session_token(token),
            user_id=user_id,
            created_at=now,
            last_seen=now,
            expires_at=self._expiry(now, now),
        )
        self.repository.create(record)
        session = Session(
            id_hash=record.id_hash,
            user_id=user_id,
            created_at=now,
            expires_at=record.expires_at,
            token=token,
        )
        if key is not None:
            self.keyring.put(session, key)
        return session

    def _load(self, id_hash: str) -> Session:
        record = self.repository.get(id_hash)
        if record is None:
            raise Unauthorized("Session is invalid or has expired")

        now = self.clock()
        if now >= record.expires_at:
            self.repository.delete(id_hash)
            self.keyring.discard(id_hash)
            get_audit_logger().log_auth_event(
                EventType.AUTH_SESSION_EXPIRED,
                "Session expired",
                user_id=record.user_id,
            )
            raise Unauthorized("Session is invalid or has expired")

        expires_at = self._expiry(record.created_at, now)
        self.repository.touch(id_hash, now, expires_at)
        return Session(
            id_hash=id_hash,
            user_id=record.user_id,
            created_at=record.created_at,
            expires_at=expires_at,
        )

    def validate(self, token: Optional[str]) -> Session:
        """
        Resolve a client token to a live session, sliding its expiry.

        Raises:
            Unauthorized: Token missing, unknown, revoked or expired
        """
        if not token:
            raise Unauthorized()
        return self._load(hash_session_token(token))

    def ensure_active(self, session: Session) -> Session:
        """Re-check a Session object against the store (logout, expiry)."""
        if session is None:
            raise Unauthorized()
        return self._load(session.id_hash)

    def vault_key(self, session: Session) -> bytes:
        """
        Key of a live session.

        Raises:
            Unauthorized: Session revoked/expired, or key lost to a restart
        """
        return self.keyring.get(self.ensure_active(session))

    def revoke(self, session: Session) -> bool:
        self.keyring.discard(session.id_hash)
        return self.repository.delete(session.id_hash)

    def revoke_all(self, user_id: str) -> List[str]:
        id_hashes = self.repository.delete_for_user(user_id)
        self.keyring.discard(*id_hashes)
        return id_hashes

    def purge_expired(self) -> List[str]:
        """Delete expired sessions and their keys; returns their digests."""
        id_hashes = self.repository.delete_expired(self.clock())
        self.keyring.discard(*id_hashes)
        if id_hashes:
            logger.info("Purged %d expired sessions", len(id_hashes))
        return id_hashes


class KeyRing:
    """In-memory map of session digest -> derived vault key."""

    def __init__(self):
        self._keys: Dict[str, bytes] = {}
        self._lock = threading.Lock()

    def put(self, session: Session, key: bytes) -> None:
        with self._lock:
            self._keys[session.id_hash] = key

    def get(self, session: Session) -> bytes:
        """
        Raises:
            Unauthorized: No key for this session (logged out or restarted)
        """
        with self._lock:
            key = self._keys.get(session.id_hash)
        if key is None:
            get_audit_logger().log_vault_event(
                EventType.VAULT_ERROR,
                "Vault key unavailable for session",
                user_id=session.user_id,
                severity=EventSeverity.INVESTIGATE,
            )
            raise Unauthorized("Vault is locked. Please log in again.")
        return key

    def discard(self, *id_hashes: str) -> None:
        with self._lock:
            for id_hash in id_hashes:
                self._keys.pop(id_hash, None)

    def clear(self) -> None:
        with self._lock:
            self._keys.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._keys)
