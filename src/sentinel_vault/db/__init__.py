"""
Database module for Sentinel Vault.

SQLite persistence for users, credentials, alerts, activity, reset tokens
and sessions.

Usage:
    db = Database(settings.db_path)
    repos = RepositoryFactory(db)
    user = repos.users.get_by_username("alice")
"""

from .database import Database
from .models import (
    ActivityLogEntry,
    AlertKind,
    CredentialRecord,
    PasswordResetToken,
    SecurityAlert,
    SessionRecord,
    User,
)
from .repositories import (
    ActivityRepository,
    AlertRepository,
    CredentialRepository,
    RepositoryFactory,
    ResetTokenRepository,
    SessionRepository,
    UserRepository,
)

__all__ = [
    "Database",
    "ActivityLogEntry",
    "AlertKind",
    "CredentialRecord",
    "PasswordResetToken",
    "SecurityAlert",
    "SessionRecord",
    "User",
    "ActivityRepository",
    "AlertRepository",
    "CredentialRepository",
    "RepositoryFactory",
    "ResetTokenRepository",
    "SessionRepository",
    "UserRepository",
]
