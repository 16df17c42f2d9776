# Sentinel Vault - Core Module
#
# Shared functionality across all Sentinel Vault modules:
# - Error taxonomy
# - Security audit logging (structlog)
# - Per-user activity ledger
# - SQLite connection helper

from .audit_log import (
    AuditLogger,
    EventSeverity,
    EventType,
    get_audit_logger,
    log_security_event,
)
from .errors import (
    BreachCheckUnavailable,
    Conflict,
    DecryptionFailed,
    Forbidden,
    InvalidCredentials,
    InvalidInput,
    InvalidOrExpiredToken,
    NotFound,
    PasswordMismatch,
    RateLimited,
    StorageError,
    Unauthorized,
    ValidationError,
    VaultError,
    WeakPassword,
)

__all__ = [
    # Audit Logging
    "AuditLogger",
    "EventType",
    "EventSeverity",
    "get_audit_logger",
    "log_security_event",
    # Errors
    "VaultError",
    "ValidationError",
    "InvalidInput",
    "PasswordMismatch",
    "WeakPassword",
    "Unauthorized",
    "InvalidCredentials",
    "Forbidden",
    "NotFound",
    "Conflict",
    "RateLimited",
    "InvalidOrExpiredToken",
    "DecryptionFailed",
    "BreachCheckUnavailable",
    "StorageError",
]
