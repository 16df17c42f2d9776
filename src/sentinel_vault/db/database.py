# Sentinel Vault - SQLite Database
#
# Owns the schema and hands out short-lived connections.
#
# Concurrency:
#   - WAL journal mode for concurrent readers, foreign keys enforced
#   - `write_lock` (RLock) is the single-writer guard for read-modify-write
#     sequences that must be atomic per key (login counters, reset tokens)
#
# Errors:
#   - sqlite3.IntegrityError is re-raised unchanged so repositories can map
#     uniqueness violations to Conflict
#   - any other sqlite3.Error is logged in full and re-raised as StorageError

import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Union

from ..core.audit_log import EventSeverity, EventType, log_security_event
from ..core.errors import StorageError

logger = logging.getLogger(__name__)

BUSY_TIMEOUT_MS = 5000

SCHEMA_VERSION = 1

_SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        username TEXT NOT NULL UNIQUE,
        email TEXT NOT NULL UNIQUE,
        name TEXT,
        password_verifier TEXT NOT NULL,
        salt TEXT NOT NULL,
        created_at TEXT NOT NULL,
        last_login TEXT,
        is_premium INTEGER NOT NULL DEFAULT 0
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS credentials (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL REFERENCES users(id),
        title TEXT NOT NULL,
        site_username TEXT,
        encrypted_secret TEXT NOT NULL,
        url TEXT,
        notes TEXT,
        category TEXT,
        is_favorite INTEGER NOT NULL DEFAULT 0,
        strength INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_credentials_user ON credentials(user_id)",
    """
    CREATE TABLE IF NOT EXISTS security_alerts (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL REFERENCES users(id),
        kind TEXT NOT NULL CHECK (kind IN ('weak', 'reused', 'breach')),
        description TEXT NOT NULL,
        metadata TEXT,
        is_resolved INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL,
        credential_id TEXT REFERENCES credentials(id) ON DELETE SET NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_alerts_user ON security_alerts(user_id)",
    """
    CREATE TABLE IF NOT EXISTS activity_logs (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        action TEXT NOT NULL,
        details TEXT,
        ip_address TEXT NOT NULL DEFAULT '',
        user_agent TEXT NOT NULL DEFAULT '',
        created_at TEXT NOT NULL,
        seq INTEGER NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_activity_user ON activity_logs(user_id, seq)",
    """
    CREATE TABLE IF NOT EXISTS password_reset_tokens (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL REFERENCES users(id),
        token_hash TEXT NOT NULL UNIQUE,
        expires_at TEXT NOT NULL,
        used INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_reset_user ON password_reset_tokens(user_id)",
    """
    CREATE TABLE IF NOT EXISTS sessions (
        id_hash TEXT PRIMARY KEY,
        user_id TEXT NOT NULL REFERENCES users(id),
        created_at TEXT NOT NULL,
        last_seen TEXT NOT NULL,
        expires_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_sessions_user ON sessions(user_id)",
    """
    CREATE TABLE IF NOT EXISTS login_attempts (
        key TEXT NOT NULL,
        attempted_at REAL NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_login_attempts_key ON login_attempts(key)",
    """
    CREATE TABLE IF NOT EXISTS schema_meta (
        key TEXT PRIMARY KEY,
        value TEXT NOT NULL
    )
    """,
]


def connect(db_path: Union[str, Path], row_factory: bool = False) -> sqlite3.Connection:
    """Open a connection in WAL mode with busy_timeout and foreign_keys set."""
    conn = sqlite3.connect(str(db_path), timeout=10)
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute(f"PRAGMA busy_timeout={BUSY_TIMEOUT_MS}")
    conn.execute("PRAGMA foreign_keys=ON")
    if row_factory:
        conn.row_factory = sqlite3.Row
    return conn


class Database:
    """
    SQLite database for all Sentinel Vault entities.

    Usage::

        db = Database("data/sentinel_vault.db")
        with db.connection() as conn:
            conn.execute("SELECT COUNT(*) FROM users").fetchone()
    """

    def __init__(self, db_path: Union[str, Path]):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.write_lock = threading.RLock()
        self._init_schema()

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        """Open a WAL-mode connection; commits on success, rolls back on error."""
        try:
            conn = connect(self.db_path, row_factory=True)
        except sqlite3.Error as e:
            logger.exception("Failed to open database %s", self.db_path)
            raise StorageError() from e

        try:
            yield conn
            conn.commit()
        except sqlite3.IntegrityError:
            conn.rollback()
            raise
        except sqlite3.Error as e:
            conn.rollback()
            logger.exception("Database operation failed")
            log_security_event(
                EventType.STORAGE_ERROR,
                EventSeverity.CRITICAL,
                "Database operation failed",
                details={"error": type(e).__name__},
            )
            raise StorageError() from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Connection held under the write lock with an immediate write txn."""
        with self.write_lock:
            with self.connection() as conn:
                conn.execute("BEGIN IMMEDIATE")
                yield conn

    def _init_schema(self):
        with self.connection() as conn:
            for statement in _SCHEMA:
                conn.execute(statement)
            conn.execute(
                "INSERT OR IGNORE INTO schema_meta (key, value) VALUES ('version', ?)",
                (str(SCHEMA_VERSION),),
            )
        logger.debug("Database schema ready at %s", self.db_path)
