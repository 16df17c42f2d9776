# Sentinel Vault - Security Audit Log
#
# Server-side, append-only audit trail for security events (logins,
# lockouts, vault mutations, decryption failures, reset flows).
# This is the operator's forensic log. The per-user activity ledger shown
# to end users lives in core/event_log.py.
#
# Rule: never pass secrets (passwords, keys, tokens, session ids) in
# `message` or `details`.

import logging
import socket
import sys
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional
from uuid import uuid4

import structlog

AUDIT_LOGGER_NAME = "sentinel_vault.audit"


class EventType(str, Enum):
    """Types of security events that can be logged."""

    # Authentication
    AUTH_REGISTERED = "auth.registered"
    AUTH_LOGIN = "auth.login"
    AUTH_LOGIN_FAILED = "auth.login.failed"
    AUTH_LOCKOUT = "auth.lockout"
    AUTH_LOGOUT = "auth.logout"
    AUTH_SESSION_EXPIRED = "auth.session.expired"

    # Password reset
    RESET_REQUESTED = "reset.requested"
    RESET_COMPLETED = "reset.completed"
    RESET_REJECTED = "reset.rejected"
    RESET_NOTIFY_FAILED = "reset.notify.failed"

    # Vault
    VAULT_RECORD_ADDED = "vault.record.added"
    VAULT_RECORD_UPDATED = "vault.record.updated"
    VAULT_RECORD_DELETED = "vault.record.deleted"
    VAULT_DECRYPT_FAILED = "vault.decrypt.failed"
    VAULT_HEALTH_SCAN = "vault.health.scan"
    VAULT_ERROR = "vault.error"

    # System
    SYSTEM_START = "system.start"
    SYSTEM_STOP = "system.stop"
    STORAGE_ERROR = "system.storage.error"


class EventSeverity(str, Enum):
    """
    Severity levels for security events.

    - INFO: normal activity (logged only)
    - INVESTIGATE: unusual, worth a look (failed login)
    - ALERT: defensive action taken (lockout, rejected token)
    - CRITICAL: integrity problem (decryption failure, storage error)
    """

    INFO = "info"
    INVESTIGATE = "investigate"
    ALERT = "alert"
    CRITICAL = "critical"

    def to_log_level(self) -> int:
        return {
            EventSeverity.INFO: logging.INFO,
            EventSeverity.INVESTIGATE: logging.WARNING,
            EventSeverity.ALERT: logging.WARNING,
            EventSeverity.CRITICAL: logging.CRITICAL,
        }[self]


class AuditLogger:
    """
    Append-only structured audit logger.

    Features:
    - Structured JSON lines (structlog JSONRenderer)
    - Automatic event ID and UTC timestamp
    - One file per day under log_dir
    """

    def __init__(self, log_dir: Optional[Path] = None):
        """
        Initialize audit logger.

        Args:
            log_dir: Directory for audit logs (default: ./audit_logs)
        """
        self.log_dir = Path(log_dir) if log_dir else Path("./audit_logs")
        self.log_dir.mkdir(parents=True, exist_ok=True)

        structlog.configure(
            processors=[
                structlog.stdlib.add_log_level,
                structlog.stdlib.add_logger_name,
                structlog.processors.TimeStamper(fmt="iso", utc=True),
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer(),
            ],
            wrapper_class=structlog.stdlib.BoundLogger,
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=False,
        )

        self._setup_file_handler()
        self.logger = structlog.get_logger(AUDIT_LOGGER_NAME)

    def _setup_file_handler(self):
        """Attach a daily file handler to the audit logger (once per file)."""
        today = datetime.now(timezone.utc).strftime("%Y-%m-%d")
        self.log_file = self.log_dir / f"audit_{today}.log"

        std_logger = logging.getLogger(AUDIT_LOGGER_NAME)
        std_logger.setLevel(logging.INFO)
        for handler in std_logger.handlers:
            if getattr(handler, "baseFilename", None) == str(self.log_file.resolve()):
                return

        file_handler = logging.FileHandler(self.log_file, mode="a", encoding="utf-8")
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(logging.Formatter("%(message)s"))
        std_logger.addHandler(file_handler)

    def log_event(
        self,
        event_type: EventType,
        severity: EventSeverity,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        user_context: Optional[Dict[str, Any]] = None,
    ) -> str:
        """
        Log a security event (append-only).

        Args:
            event_type: Type of event (from EventType enum)
            severity: Severity level (from EventSeverity enum)
            message: Human-readable event description
            details: Additional event details (never secrets!)
            user_context: user_id, ip, user_agent of the caller

        Returns:
            str: Event ID (UUID) for reference
        """
        event_id = str(uuid4())
        event_data = {
            "event_id": event_id,
            "event_type": event_type.value,
            "severity": severity.value,
            "message": message,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "details": details or {},
            "user_context": user_context or self._get_default_context(),
        }

        self.logger.log(severity.to_log_level(), "security_event", **event_data)
        return event_id

    def log_auth_event(
        self,
        event_type: EventType,
        message: str,
        user_id: Optional[str] = None,
        ip_address: Optional[str] = None,
        severity: EventSeverity = EventSeverity.INFO,
        details: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Log an authentication event with the caller's context."""
        return self.log_event(
            event_type=event_type,
            severity=severity,
            message=f"Auth: {message}",
            details=details,
            user_context={"user_id": user_id, "ip": ip_address},
        )

    def log_vault_event(
        self,
        event_type: EventType,
        message: str,
        user_id: Optional[str] = None,
        severity: EventSeverity = EventSeverity.INFO,
        details: Optional[Dict[str, Any]] = None,
    ) -> str:
        """
        Log a Vault security event.

        Args:
            event_type: Type of Vault event
            message: Event description
            user_id: Owner of the vault
            severity: Event severity
            details: Additional details (never log actual passwords!)
        """
        return self.log_event(
            event_type=event_type,
            severity=severity,
            message=f"Vault: {message}",
            details=details,
            user_context={"user_id": user_id},
        )

    def _get_default_context(self) -> Dict[str, Any]:
        """Process-level context for system events."""
        return {
            "hostname": socket.gethostname(),
            "platform": sys.platform,
        }


# Global logger instance
_audit_logger: Optional[AuditLogger] = None


def get_audit_logger() -> AuditLogger:
    """Get global audit logger (singleton pattern)."""
    global _audit_logger
    if _audit_logger is None:
        from ..config import get_settings

        _audit_logger = AuditLogger(get_settings().audit_log_dir)
    return _audit_logger


def log_security_event(
    event_type: EventType,
    severity: EventSeverity,
    message: str,
    **kwargs,
) -> str:
    """
    Convenience function for logging security events.

    Usage:
        log_security_event(
            EventType.AUTH_LOCKOUT,
            EventSeverity.ALERT,
            "Login locked out for source IP",
            details={"attempts": 5},
        )
    """
    return get_audit_logger().log_event(event_type, severity, message, **kwargs)
