# Sentinel Vault - Security Event Log (per-user activity ledger)
#
# Append-only record of auth and vault mutations, shown to the user as
# "recent activity". Entries are never updated or deleted.
#
# append() is fire-and-forget: a storage failure is logged and the entry
# is parked in a bounded retry buffer that is flushed on the next append.
# It never raises into the business operation that triggered it.

import logging
import threading
from collections import deque
from typing import Deque, List, Optional

from ..db.models import ActivityLogEntry, utcnow
from ..db.repositories import ActivityRepository, new_id

logger = logging.getLogger(__name__)

MAX_PENDING = 1000
MAX_DETAILS_LENGTH = 500


class ActivityAction:
    """Action tags written to the activity ledger."""

    REGISTER = "register"
    LOGIN = "login"
    LOGOUT = "logout"
    CREATE_PASSWORD = "create_password"
    UPDATE_PASSWORD = "update_password"
    DELETE_PASSWORD = "delete_password"
    RESET_REQUESTED = "password_reset_requested"
    RESET_COMPLETED = "password_reset_completed"
    RESOLVE_ALERT = "resolve_alert"
    HEALTH_SCAN = "health_scan"


class SecurityEventLog:
    """Append-only activity ledger with a retry buffer."""

    def __init__(self, repository: ActivityRepository, max_pending: int = MAX_PENDING):
        self.repository = repository
        self._pending: Deque[ActivityLogEntry] = deque(maxlen=max_pending)
        self._lock = threading.Lock()

    def append(
        self,
        user_id: str,
        action: str,
        details: str = "",
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> None:
        """Record an activity. Never raises."""
        entry = ActivityLogEntry(
            id=new_id(),
            user_id=user_id,
            action=action,
            details=(details or "")[:MAX_DETAILS_LENGTH],
            ip_address=ip_address or "",
            user_agent=user_agent or "",
            created_at=utcnow(),
        )
        with self._lock:
            self._pending.append(entry)
        self.flush()

    def flush(self) -> int:
        """Write buffered entries in order. Returns how many were written."""
        written = 0
        with self._lock:
            while self._pending:
                entry = self._pending[0]
                try:
                    self.repository.append(entry)
                except Exception:
                    logger.exception(
                        "Activity log write failed (%d pending), will retry",
                        len(self._pending),
                    )
                    break
                self._pending.popleft()
                written += 1
        return written

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def list(self, user_id: str, limit: int = 20) -> List[ActivityLogEntry]:
        """Newest-first activity for one user, at most `limit` entries."""
        limit = max(1, min(int(limit), 500))
        return self.repository.list_by_user(user_id, limit)
