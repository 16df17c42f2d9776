"""
Password reset tokens.

Tokens are 32 random bytes (hex encoded) valid for one hour by default.
Only the SHA-256 digest is persisted, so a database leak does not leak
usable tokens. Issuing a token invalidates any earlier active token of the
same user, and consuming a token is atomic: of two concurrent resets with
the same token exactly one succeeds.
"""

import hashlib
import logging
import secrets
from datetime import datetime, timedelta
from typing import Callable

from ..core.errors import InvalidOrExpiredToken
from ..db.models import PasswordResetToken, utcnow
from ..db.repositories import ResetTokenRepository

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32


def hash_reset_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class ResetTokenService:
    """Issue, verify and consume single-use reset tokens."""

    def __init__(
        self,
        repository: ResetTokenRepository,
        ttl_seconds: int = 60 * 60,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.repository = repository
        self.ttl = timedelta(seconds=ttl_seconds)
        self.clock = clock

    def issue(self, user_id: str) -> str:
        """Create a token for the user; returns the plaintext token."""
        token = secrets.token_hex(TOKEN_BYTES)
        self.repository.replace_for_user(
            user_id, hash_reset_token(token), self.clock() + self.ttl
        )
        return token

    def verify(self, token: str) -> PasswordResetToken:
        """
        Look up an active token without consuming it.

        Raises:
            InvalidOrExpiredToken: Unknown, used or expired
        """
        if not token:
            raise InvalidOrExpiredToken()
        row = self.repository.get_by_hash(hash_reset_token(token))
        if row is None or not row.is_active(self.clock()):
            raise InvalidOrExpiredToken()
        return row

    def consume(self, row: PasswordResetToken) -> None:
        """
        Mark the token used. Only the first caller succeeds.

        Raises:
            InvalidOrExpiredToken: Already consumed by a concurrent request
        """
        if not self.repository.mark_used(row.id):
            raise InvalidOrExpiredToken()

    def purge_expired(self) -> int:
        """Delete expired and used tokens; returns how many were removed."""
        removed = self.repository.delete_expired(self.clock())
        if removed:
            logger.info("Purged %d stale reset tokens", removed)
        return removed
