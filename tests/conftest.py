"""
Shared pytest fixtures for the Sentinel Vault test suite.

Autouse fixtures below isolate tests from live application data:
  - Audit logger -> temp directory (no test events in ./audit_logs)
  - Settings     -> reset after each test

Component fixtures build everything on a temp SQLite database with a fast
KDF (1000 PBKDF2 iterations) and a controllable clock.
"""

import logging
from datetime import datetime, timedelta, timezone

import pytest

from sentinel_vault.auth.notifier import OutboxNotifier
from sentinel_vault.auth.rate_limiter import InMemoryAttemptCounter
from sentinel_vault.config import Settings, set_settings
from sentinel_vault.db.database import Database
from sentinel_vault.db.repositories import RepositoryFactory
from sentinel_vault.services import VaultServices, set_services
from sentinel_vault.vault.breach import StaticBreachOracle

STRONG_PASSWORD = "Tr0ub4dor&3"
OTHER_STRONG_PASSWORD = "Gl4ss-Onion#Vapor9"
BREACHED_PASSWORDS = ("password123", "letmein", "hunter2HUNTER!")


class FakeClock:
    """Manually advanced clock usable as both datetime and epoch sources."""

    def __init__(self, start=None):
        self.current = start or datetime.now(timezone.utc)

    def now(self) -> datetime:
        return self.current

    def time(self) -> float:
        return self.current.timestamp()

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)


@pytest.fixture(autouse=True)
def _isolate_audit_logs(tmp_path, monkeypatch):
    """Point the global AuditLogger at a temp directory for every test.

    Without this, any test that (directly or indirectly) calls
    ``get_audit_logger().log_event(...)`` writes into the real
    ``./audit_logs/`` directory.
    """
    import sentinel_vault.core.audit_log as audit_mod

    old_logger = audit_mod._audit_logger
    audit_mod._audit_logger = audit_mod.AuditLogger(tmp_path / "audit_logs")

    yield

    audit_mod._audit_logger = old_logger
    std_logger = logging.getLogger(audit_mod.AUDIT_LOGGER_NAME)
    for handler in list(std_logger.handlers):
        if str(getattr(handler, "baseFilename", "")).startswith(str(tmp_path)):
            std_logger.removeHandler(handler)
            handler.close()


@pytest.fixture(autouse=True)
def _reset_globals():
    yield
    set_settings(None)
    set_services(None)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        db_path=tmp_path / "sentinel_vault.db",
        audit_log_dir=tmp_path / "audit_logs",
        kdf_iterations=1000,
        breach_check_enabled=False,
    )


@pytest.fixture
def db(settings):
    return Database(settings.db_path)


@pytest.fixture
def repos(db):
    return RepositoryFactory(db)


@pytest.fixture
def outbox():
    return OutboxNotifier()


@pytest.fixture
def breach_oracle():
    return StaticBreachOracle(BREACHED_PASSWORDS)


@pytest.fixture
def services(settings, outbox, breach_oracle, clock):
    """Fully wired services on a temp database, driven by the fake clock."""
    svc = VaultServices(
        settings,
        notifier=outbox,
        breach_oracle=breach_oracle,
        attempt_counter=InMemoryAttemptCounter(settings.login_window_seconds, clock.time),
    )
    svc.sessions.clock = clock.now
    svc.reset_tokens.clock = clock.now
    return svc


@pytest.fixture
def alice(services):
    """Registered user 'alice' with a live session."""
    return services.auth.register(
        "alice", "alice@x.com", STRONG_PASSWORD, STRONG_PASSWORD, name="Alice"
    )


@pytest.fixture
def bob(services):
    return services.auth.register(
        "bob", "bob@x.com", OTHER_STRONG_PASSWORD, OTHER_STRONG_PASSWORD
    )
