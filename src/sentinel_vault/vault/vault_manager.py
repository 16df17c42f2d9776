# Sentinel Vault - Credential Vault
#
# Per-user store of encrypted credential records.
#
# Security:
# - Every secret is encrypted with AES-256-GCM under the owner's derived key
#   (fresh nonce per write), with "owner_id:record_id" bound as associated
#   data so an envelope cannot be replayed into another record
# - Strength is computed from the plaintext before encryption; the
#   plaintext is never stored
# - The key comes from the session (KeyRing); no session, no key
# - Lookups filter on owner, so another user's record is "not found"
# - A record that fails to decrypt is reported on its own; it never fails
#   the whole listing

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict, List, Optional

from ..auth.sessions import Session, SessionStore
from ..core.audit_log import EventSeverity, EventType, get_audit_logger
from ..core.errors import DecryptionFailed, NotFound, Unauthorized, ValidationError
from ..core.event_log import ActivityAction, SecurityEventLog
from ..core.validation import optional_text, validate_secret, validate_title, validate_url
from ..db.models import CredentialRecord, to_db_time, utcnow
from ..db.repositories import CredentialRepository, new_id
from . import strength
from .encryption import VaultCipher
from .health import ReuseAndBreachDetector

logger = logging.getLogger(__name__)

PATCHABLE_FIELDS = frozenset(
    {"title", "site_username", "secret", "url", "notes", "category", "is_favorite"}
)


def record_aad(owner_id: str, record_id: str) -> bytes:
    return f"{owner_id}:{record_id}".encode("utf-8")


@dataclass
class DecryptedCredential:
    """
    Decrypted view of a CredentialRecord.

    `secret` is None and `error` is set when the envelope could not be
    decrypted (wrong key after a password reset, corruption, tampering).
    """

    id: str
    title: str
    site_username: Optional[str]
    url: Optional[str]
    notes: Optional[str]
    category: Optional[str]
    is_favorite: bool
    strength: int
    created_at: Any
    updated_at: Any
    secret: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def from_record(
        cls, record: CredentialRecord, secret: Optional[str], error: Optional[str] = None
    ) -> "DecryptedCredential":
        return cls(
            id=record.id,
            title=record.title,
            site_username=record.site_username,
            url=record.url,
            notes=record.notes,
            category=record.category,
            is_favorite=record.is_favorite,
            strength=record.strength,
            created_at=record.created_at,
            updated_at=record.updated_at,
            secret=secret,
            error=error,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "username": self.site_username,
            "password": self.secret,
            "url": self.url,
            "notes": self.notes,
            "category": self.category,
            "is_favorite": self.is_favorite,
            "strength": self.strength,
            "strength_label": strength.strength_label(self.strength),
            "created_at": to_db_time(self.created_at),
            "updated_at": to_db_time(self.updated_at),
            "error": self.error,
        }


class CredentialVault:
    """
    CRUD over a user's credential records.

    Every operation takes the caller's Session; the owner is always the
    session's user.
    """

    def __init__(
        self,
        credentials: CredentialRepository,
        sessions: SessionStore,
        event_log: SecurityEventLog,
    ):
        self.credentials = credentials
        self.sessions = sessions
        self.event_log = event_log

    def _key(self, session: Session) -> bytes:
        return self.sessions.vault_key(session)

    def _decrypt(self, record: CredentialRecord, key: bytes) -> str:
        try:
            return VaultCipher.decrypt(
                record.encrypted_secret, key, record_aad(record.user_id, record.id)
            )
        except DecryptionFailed:
            get_audit_logger().log_vault_event(
                EventType.VAULT_DECRYPT_FAILED,
                "Credential could not be decrypted",
                user_id=record.user_id,
                severity=EventSeverity.CRITICAL,
                details={"record_id": record.id},
            )
            raise

    def add_record(
        self,
        session: Session,
        title: str,
        secret: str,
        site_username: Optional[str] = None,
        url: Optional[str] = None,
        notes: Optional[str] = None,
        category: Optional[str] = None,
        is_favorite: bool = False,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> DecryptedCredential:
        """
        Encrypt and store a new credential.

        Raises:
            ValidationError: Missing title or secret, malformed url
            Unauthorized: Session invalid or vault key unavailable
        """
        title = validate_title(title)
        secret = validate_secret(secret)
        url = validate_url(url)
        key = self._key(session)

        now = utcnow()
        record_id = new_id()
        record = CredentialRecord(
            id=record_id,
            user_id=session.user_id,
            title=title,
            encrypted_secret=VaultCipher.encrypt(
                secret, key, record_aad(session.user_id, record_id)
            ),
            created_at=now,
            updated_at=now,
            site_username=optional_text(site_username),
            url=url,
            notes=optional_text(notes),
            category=optional_text(category),
            is_favorite=bool(is_favorite),
            strength=strength.score(secret),
        )
        self.credentials.create(record)

        self.event_log.append(
            session.user_id,
            ActivityAction.CREATE_PASSWORD,
            f"Created password for {title}",
            ip_address=ip_address,
            user_agent=user_agent,
        )
        get_audit_logger().log_vault_event(
            EventType.VAULT_RECORD_ADDED,
            "Credential added",
            user_id=session.user_id,
            details={"record_id": record_id, "category": record.category},
        )
        return DecryptedCredential.from_record(record, secret)

    def list_records(
        self,
        session: Session,
        owner_id: Optional[str] = None,
        category: Optional[str] = None,
        favorites_only: bool = False,
    ) -> List[DecryptedCredential]:
        """
        Decrypted records of the session's user, ordered by title.

        Raises:
            Unauthorized: owner_id given and not the session's user
        """
        if owner_id is not None and owner_id != session.user_id:
            raise Unauthorized("Not allowed to read another user's vault")
        key = self._key(session)

        results = []
        for record in self.credentials.list_by_user(
            session.user_id, category=category, favorites_only=favorites_only
        ):
            try:
                results.append(DecryptedCredential.from_record(record, self._decrypt(record, key)))
            except DecryptionFailed as e:
                results.append(DecryptedCredential.from_record(record, None, e.public_message))
        return results

    def get_record(self, session: Session, record_id: str) -> DecryptedCredential:
        """
        Raises:
            NotFound: Missing or owned by someone else
            DecryptionFailed: Envelope does not authenticate
        """
        key = self._key(session)
        record = self.credentials.get(record_id, session.user_id)
        if record is None:
            raise NotFound("Password not found")
        return DecryptedCredential.from_record(record, self._decrypt(record, key))

    def update_record(
        self,
        session: Session,
        record_id: str,
        patch: Dict[str, Any],
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> DecryptedCredential:
        """
        Apply a partial update.

        A new secret is re-scored and re-encrypted with a fresh nonce.
        updated_at always moves forward.

        Raises:
            ValidationError: Unknown field or invalid value
            NotFound: Missing or owned by someone else
        """
        unknown = set(patch) - PATCHABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")

        key = self._key(session)
        record = self.credentials.get(record_id, session.user_id)
        if record is None:
            raise NotFound("Password not found")

        if "title" in patch:
            record.title = validate_title(patch["title"])
        if "site_username" in patch:
            record.site_username = optional_text(patch["site_username"])
        if "url" in patch:
            record.url = validate_url(patch["url"])
        if "notes" in patch:
            record.notes = optional_text(patch["notes"])
        if "category" in patch:
            record.category = optional_text(patch["category"])
        if "is_favorite" in patch:
            record.is_favorite = bool(patch["is_favorite"])

        secret: Optional[str] = None
        if patch.get("secret") is not None:
            secret = validate_secret(patch["secret"])
            record.strength = strength.score(secret)
            record.encrypted_secret = VaultCipher.encrypt(
                secret, key, record_aad(record.user_id, record.id)
            )

        now = utcnow()
        if now <= record.updated_at:
            now = record.updated_at + timedelta(microseconds=1)
        record.updated_at = now

        if not self.credentials.update(record):
            raise NotFound("Password not found")

        self.event_log.append(
            session.user_id,
            ActivityAction.UPDATE_PASSWORD,
            f"Updated password for {record.title}",
            ip_address=ip_address,
            user_agent=user_agent,
        )
        get_audit_logger().log_vault_event(
            EventType.VAULT_RECORD_UPDATED,
            "Credential updated",
            user_id=session.user_id,
            details={"record_id": record.id, "secret_changed": secret is not None},
        )

        if secret is None:
            try:
                secret = self._decrypt(record, key)
            except DecryptionFailed as e:
                return DecryptedCredential.from_record(record, None, e.public_message)
        return DecryptedCredential.from_record(record, secret)

    def delete_record(
        self,
        session: Session,
        record_id: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> bool:
        """Hard delete. False when nothing was deleted (missing, foreign, repeat)."""
        session = self.sessions.ensure_active(session)
        record = self.credentials.get(record_id, session.user_id)
        if record is None or not self.credentials.delete(record_id, session.user_id):
            return False

        self.event_log.append(
            session.user_id,
            ActivityAction.DELETE_PASSWORD,
            f"Deleted password for {record.title}",
            ip_address=ip_address,
            user_agent=user_agent,
        )
        get_audit_logger().log_vault_event(
            EventType.VAULT_RECORD_DELETED,
            "Credential deleted",
            user_id=session.user_id,
            details={"record_id": record_id},
        )
        return True

    def compute_stats(self, session: Session) -> Dict[str, int]:
        """
        Health counters over the user's vault.

        strong: score >= 80, weak: score < 50, reused: records sharing their
        secret with at least one other record, reused_groups: distinct
        shared secrets, undecryptable: records whose secret is unavailable.
        """
        records = self.list_records(session)
        groups = ReuseAndBreachDetector.reuse_groups(records)
        return {
            "total": len(records),
            "strong": sum(1 for r in records if r.strength >= strength.STRONG_THRESHOLD),
            "weak": sum(1 for r in records if r.strength < strength.WEAK_THRESHOLD),
            "reused": sum(len(g) for g in groups),
            "reused_groups": len(groups),
            "undecryptable": sum(1 for r in records if r.secret is None),
        }
