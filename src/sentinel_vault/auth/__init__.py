# Sentinel Vault - Auth Module
#
# Registration, login with per-IP rate limiting, server-side sessions
# (with the in-memory key ring) and single-use password reset tokens.

from .sessions import KeyRing, Session, SessionStore
from .rate_limiter import (
    AttemptCounter,
    InMemoryAttemptCounter,
    LoginRateLimiter,
    SQLiteAttemptCounter,
)
from .password_reset import ResetTokenService
from .notifier import LoggingNotifier, Notifier, OutboxNotifier
from .session_manager import AuthResult, AuthSessionManager

__all__ = [
    "Session",
    "SessionStore",
    "KeyRing",
    "AttemptCounter",
    "InMemoryAttemptCounter",
    "SQLiteAttemptCounter",
    "LoginRateLimiter",
    "ResetTokenService",
    "Notifier",
    "LoggingNotifier",
    "OutboxNotifier",
    "AuthSessionManager",
    "AuthResult",
]
