# Sentinel Vault - Service Wiring
#
# Builds every component from one Settings snapshot. The API layer (and
# tests) call methods on the VaultServices object rather than reaching
# for module singletons, so each app instance can get its own database,
# clock, notifier and breach oracle.

import logging
import threading
from typing import Optional

from .auth.notifier import LoggingNotifier, Notifier
from .auth.password_reset import ResetTokenService
from .auth.rate_limiter import AttemptCounter, LoginRateLimiter, SQLiteAttemptCounter
from .auth.session_manager import AuthSessionManager
from .auth.sessions import SessionStore
from .config import Settings, get_settings
from .core.event_log import SecurityEventLog
from .db.database import Database
from .db.repositories import RepositoryFactory
from .vault.alerts import SecurityAlertService
from .vault.breach import BreachOracle, DisabledBreachOracle, PwnedPasswordsClient
from .vault.encryption import KeyDerivation
from .vault.health import ReuseAndBreachDetector
from .vault.vault_manager import CredentialVault

logger = logging.getLogger(__name__)


class VaultServices:
    """Holds the wired components for one application instance."""

    def __init__(
        self,
        settings: Settings,
        notifier: Optional[Notifier] = None,
        breach_oracle: Optional[BreachOracle] = None,
        attempt_counter: Optional[AttemptCounter] = None,
    ):
        self.settings = settings
        self.db = Database(settings.db_path)
        self.repos = RepositoryFactory(self.db)
        self.event_log = SecurityEventLog(self.repos.activity)

        self.kdf = KeyDerivation(
            iterations=settings.kdf_iterations,
            salt_length=settings.salt_length,
        )
        self.sessions = SessionStore(
            self.repos.sessions,
            idle_seconds=settings.session_idle_seconds,
            absolute_seconds=settings.session_absolute_seconds,
        )
        if attempt_counter is None:
            attempt_counter = SQLiteAttemptCounter(self.db, settings.login_window_seconds)
        self.rate_limiter = LoginRateLimiter(attempt_counter, settings.login_max_attempts)
        self.reset_tokens = ResetTokenService(
            self.repos.reset_tokens, ttl_seconds=settings.reset_token_ttl_seconds
        )
        self.notifier = notifier or LoggingNotifier()

        if breach_oracle is None:
            if settings.breach_check_enabled:
                breach_oracle = PwnedPasswordsClient(
                    base_url=settings.breach_api_url,
                    timeout=settings.breach_timeout_seconds,
                )
            else:
                breach_oracle = DisabledBreachOracle()
        self.detector = ReuseAndBreachDetector(breach_oracle)

        self.auth = AuthSessionManager(
            users=self.repos.users,
            sessions=self.sessions,
            kdf=self.kdf,
            rate_limiter=self.rate_limiter,
            reset_tokens=self.reset_tokens,
            notifier=self.notifier,
            event_log=self.event_log,
            min_password_strength=settings.min_password_strength,
            public_base_url=settings.public_base_url,
        )
        self.vault = CredentialVault(self.repos.credentials, self.sessions, self.event_log)
        self.alerts = SecurityAlertService(
            self.repos.alerts, self.vault, self.detector, self.sessions, self.event_log
        )

    def sweep(self) -> dict:
        """Housekeeping pass: expired tokens, sessions, stale login attempts."""
        self.event_log.flush()
        return {
            "reset_tokens": self.auth.purge_expired_tokens(),
            "sessions": self.auth.purge_expired_sessions(),
            "login_attempts": self.rate_limiter.purge_stale(),
        }


# Global services instance
_services: Optional[VaultServices] = None
_services_lock = threading.Lock()


def get_services() -> VaultServices:
    """Get global services (singleton pattern), built from get_settings()."""
    global _services
    if _services is None:
        with _services_lock:
            if _services is None:
                _services = VaultServices(get_settings())
    return _services


def set_services(services: Optional[VaultServices]) -> None:
    global _services
    with _services_lock:
        _services = services
