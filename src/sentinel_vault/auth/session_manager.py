"""
Authentication & session management.

Flow:
    register -> salt + KDF -> user row -> session (key held in KeyRing)
    login    -> rate limit -> KDF -> constant-time verifier check -> session
    logout   -> session row + key dropped (idempotent)
    request_password_reset -> generic answer, token to notifier if user exists
    reset_password         -> single-use token -> new salt + verifier

Unknown user and wrong password produce the same InvalidCredentials error
and take the same time (a dummy derivation runs for unknown users).
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

from ..core.audit_log import EventSeverity, EventType, get_audit_logger
from ..core.errors import (
    Conflict,
    InvalidCredentials,
    InvalidOrExpiredToken,
    PasswordMismatch,
    RateLimited,
    Unauthorized,
    WeakPassword,
)
from ..core.event_log import ActivityAction, SecurityEventLog
from ..core.validation import validate_email, validate_name, validate_username
from ..db.models import User, utcnow
from ..db.repositories import UserRepository
from ..vault import strength
from ..vault.encryption import KeyDerivation, decode_from_storage, encode_for_storage
from .notifier import Notifier
from .password_reset import ResetTokenService
from .rate_limiter import LoginRateLimiter
from .sessions import Session, SessionStore

logger = logging.getLogger(__name__)

RESET_REQUEST_MESSAGE = (
    "If an account with that email exists, we've sent a password reset link."
)


@dataclass
class AuthResult:
    """Outcome of register/login: the user and the freshly issued session."""

    user: User
    session: Session


class AuthSessionManager:
    """
    Owns the Anonymous -> Authenticated -> Anonymous lifecycle.

    Every collaborator is injected, so tests can swap the clock-driven
    pieces (rate limiter, sessions, reset tokens) and the notifier.
    """

    def __init__(
        self,
        users: UserRepository,
        sessions: SessionStore,
        kdf: KeyDerivation,
        rate_limiter: LoginRateLimiter,
        reset_tokens: ResetTokenService,
        notifier: Notifier,
        event_log: SecurityEventLog,
        min_password_strength: int = 60,
        public_base_url: str = "http://localhost:8000",
    ):
        self.users = users
        self.sessions = sessions
        self.kdf = kdf
        self.rate_limiter = rate_limiter
        self.reset_tokens = reset_tokens
        self.notifier = notifier
        self.event_log = event_log
        self.min_password_strength = min_password_strength
        self.public_base_url = public_base_url.rstrip("/")
        self._dummy_salt = os.urandom(kdf.salt_length)

    def _check_policy(self, password: str) -> None:
        value = strength.score(password)
        if value < self.min_password_strength:
            raise WeakPassword(self.min_password_strength, value)

    # ------------------------------------------------------------------
    # Registration / login / logout
    # ------------------------------------------------------------------

    def register(
        self,
        username: str,
        email: str,
        master_password: str,
        confirm_password: str,
        name: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> AuthResult:
        """
        Create an account and start a session for it.

        Raises:
            ValidationError: Malformed username, email or name
            PasswordMismatch: confirm_password differs
            WeakPassword: Master password below the strength policy
            Conflict: Username or email already taken
        """
        username = validate_username(username)
        email = validate_email(email)
        name = validate_name(name)

        if master_password != confirm_password:
            raise PasswordMismatch()
        self._check_policy(master_password)

        if self.users.get_by_username(username) is not None:
            raise Conflict("Username already exists")
        if self.users.get_by_email(email) is not None:
            raise Conflict("Email already exists")

        salt = self.kdf.generate_salt()
        material = self.kdf.derive(master_password, salt)

        # The UNIQUE constraints still decide a race between two registrations.
        user = self.users.create(
            username=username,
            email=email,
            password_verifier=encode_for_storage(material.verifier),
            salt=encode_for_storage(salt),
            name=name,
        )
        session = self.sessions.create(user.id, key=material.encryption_key)

        self.event_log.append(
            user.id,
            ActivityAction.REGISTER,
            "Account created",
            ip_address=ip_address,
            user_agent=user_agent,
        )
        get_audit_logger().log_auth_event(
            EventType.AUTH_REGISTERED,
            "User registered",
            user_id=user.id,
            ip_address=ip_address,
        )
        return AuthResult(user=user, session=session)

    def login(
        self,
        username: str,
        master_password: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> AuthResult:
        """
        Authenticate and start a session.

        Raises:
            RateLimited: Too many failed attempts from this IP in the window
            InvalidCredentials: Unknown user or wrong password (indistinguishable)
        """
        audit = get_audit_logger()
        try:
            attempt = self.rate_limiter.reserve(ip_address)
        except RateLimited:
            audit.log_auth_event(
                EventType.AUTH_LOCKOUT,
                "Login blocked by rate limit",
                ip_address=ip_address,
                severity=EventSeverity.ALERT,
            )
            raise

        user = self.users.get_by_username((username or "").strip()) if username else None
        if user is None or not master_password:
            if master_password:
                self.kdf.derive(master_password, self._dummy_salt)
            self._login_failed(None, ip_address, attempt)

        material = self.kdf.derive(master_password, decode_from_storage(user.salt))
        stored = decode_from_storage(user.password_verifier)
        if not KeyDerivation.verify(material.verifier, stored):
            self._login_failed(user.id, ip_address, attempt)

        self.rate_limiter.record_success(ip_address)
        now = utcnow()
        self.users.update_last_login(user.id, now)
        user.last_login = now
        session = self.sessions.create(user.id, key=material.encryption_key)

        self.event_log.append(
            user.id,
            ActivityAction.LOGIN,
            "Signed in",
            ip_address=ip_address,
            user_agent=user_agent,
        )
        audit.log_auth_event(
            EventType.AUTH_LOGIN,
            "Login succeeded",
            user_id=user.id,
            ip_address=ip_address,
        )
        return AuthResult(user=user, session=session)

    def _login_failed(self, user_id: Optional[str], ip_address: Optional[str], attempt: int):
        get_audit_logger().log_auth_event(
            EventType.AUTH_LOGIN_FAILED,
            "Login failed",
            user_id=user_id,
            ip_address=ip_address,
            severity=EventSeverity.INVESTIGATE,
            details={"attempt": attempt, "max_attempts": self.rate_limiter.max_attempts},
        )
        raise InvalidCredentials()

    def logout(
        self,
        session: Optional[Session],
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> None:
        """Destroy the session and its key. Safe to call repeatedly."""
        if session is None:
            return
        if not self.sessions.revoke(session):
            return
        self.event_log.append(
            session.user_id,
            ActivityAction.LOGOUT,
            "Signed out",
            ip_address=ip_address,
            user_agent=user_agent,
        )
        get_audit_logger().log_auth_event(
            EventType.AUTH_LOGOUT,
            "Logout",
            user_id=session.user_id,
            ip_address=ip_address,
        )

    def authenticate(self, token: Optional[str]) -> Session:
        """Resolve a client session token (cookie/header) to a Session."""
        return self.sessions.validate(token)

    def get_current_user(self, session: Session) -> User:
        session = self.sessions.ensure_active(session)
        user = self.users.get_by_id(session.user_id)
        if user is None:
            raise Unauthorized()
        return user

    # ------------------------------------------------------------------
    # Password reset
    # ------------------------------------------------------------------

    def build_reset_url(self, token: str) -> str:
        return f"{self.public_base_url}/reset-password/{token}"

    def request_password_reset(
        self,
        email: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> str:
        """
        Issue a reset token when the email is known.

        Always returns the same generic message. Delivery failures are
        logged and not reported to the caller.
        """
        email = validate_email(email)
        user = self.users.get_by_email(email)
        if user is None:
            logger.debug("Password reset requested for an unknown address")
            return RESET_REQUEST_MESSAGE

        token = self.reset_tokens.issue(user.id)
        audit = get_audit_logger()
        try:
            self.notifier.send_reset_link(user.email, token, self.build_reset_url(token))
        except Exception:
            logger.exception("Reset notifier failed")
            audit.log_auth_event(
                EventType.RESET_NOTIFY_FAILED,
                "Reset link could not be delivered",
                user_id=user.id,
                ip_address=ip_address,
                severity=EventSeverity.ALERT,
            )

        self.event_log.append(
            user.id,
            ActivityAction.RESET_REQUESTED,
            "Password reset requested",
            ip_address=ip_address,
            user_agent=user_agent,
        )
        audit.log_auth_event(
            EventType.RESET_REQUESTED,
            "Password reset requested",
            user_id=user.id,
            ip_address=ip_address,
        )
        return RESET_REQUEST_MESSAGE

    def reset_password(
        self,
        token: str,
        new_password: str,
        confirm_password: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> None:
        """
        Replace the master password using a reset token.

        A new salt is generated, so credentials encrypted under the old key
        remain stored but no longer decrypt. All sessions of the user end.

        Raises:
            InvalidOrExpiredToken: Unknown, expired or already used token
            PasswordMismatch: confirm_password given and different
            WeakPassword: New password below the strength policy
        """
        audit = get_audit_logger()
        try:
            row = self.reset_tokens.verify(token)
        except InvalidOrExpiredToken:
            audit.log_auth_event(
                EventType.RESET_REJECTED,
                "Reset token rejected",
                ip_address=ip_address,
                severity=EventSeverity.ALERT,
            )
            raise

        if confirm_password is not None and new_password != confirm_password:
            raise PasswordMismatch()
        self._check_policy(new_password)

        # Consume before writing: of two concurrent resets only one gets here.
        self.reset_tokens.consume(row)

        salt = self.kdf.generate_salt()
        material = self.kdf.derive(new_password, salt)
        if not self.users.update_password(
            row.user_id, encode_for_storage(material.verifier), encode_for_storage(salt)
        ):
            raise InvalidOrExpiredToken()

        ended = self.sessions.revoke_all(row.user_id)

        self.event_log.append(
            row.user_id,
            ActivityAction.RESET_COMPLETED,
            "Password reset completed",
            ip_address=ip_address,
            user_agent=user_agent,
        )
        audit.log_auth_event(
            EventType.RESET_COMPLETED,
            "Password reset completed",
            user_id=row.user_id,
            ip_address=ip_address,
            details={"sessions_ended": len(ended)},
        )

    # ------------------------------------------------------------------
    # Housekeeping
    # ------------------------------------------------------------------

    def purge_expired_tokens(self) -> int:
        return self.reset_tokens.purge_expired()

    def purge_expired_sessions(self) -> int:
        return len(self.sessions.purge_expired())
