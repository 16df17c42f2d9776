"""
Login Rate Limiting.

Implements:
- Per-source-IP limit on failed login attempts (default 5 per 15 minutes)
- Timestamp-based sliding windows
- Injectable counter store (in-memory or SQLite-backed)

Atomicity:
A login reserves an attempt slot *before* the (slow) credential check.
The check-and-record step is atomic per key, so two parallel requests can
never both see "4 attempts" and both proceed. A successful login resets
the key; a failed one leaves its slot in the window. Requests rejected by
the limiter do not consume a slot.

The in-memory store loses its counters on restart (lockouts reset). Use
SQLiteAttemptCounter when lockouts must survive restarts or be shared
between processes.
"""

import logging
import threading
import time
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Callable, Dict, List, Tuple

from ..core.errors import RateLimited
from ..db.database import Database

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class AttemptCounter(ABC):
    """Sliding-window attempt counter keyed by an arbitrary string."""

    def __init__(self, window_seconds: int, clock: Clock = time.time):
        self.window_seconds = window_seconds
        self.clock = clock

    @abstractmethod
    def acquire(self, key: str, limit: int) -> Tuple[bool, int, int]:
        """
        Atomically record an attempt if fewer than `limit` are in the window.

        Returns:
            Tuple of (allowed: bool, current_count: int, retry_after_seconds: int)
        """

    @abstractmethod
    def increment(self, key: str) -> int:
        """Record an attempt unconditionally; returns the count in the window."""

    @abstractmethod
    def count(self, key: str) -> int:
        """Attempts currently inside the window."""

    @abstractmethod
    def reset(self, key: str) -> None:
        """Forget every attempt for key."""

    @abstractmethod
    def purge_stale(self) -> int:
        """Drop attempts older than the window for every key."""

    def _retry_after(self, oldest: float, now: float) -> int:
        return max(int((oldest + self.window_seconds) - now) + 1, 1)


class InMemoryAttemptCounter(AttemptCounter):
    """
    In-memory counter.

    Note: state is per process and is lost on restart, so lockouts reset
    when the process restarts.
    """

    def __init__(self, window_seconds: int, clock: Clock = time.time):
        super().__init__(window_seconds, clock)
        self._attempts: Dict[str, List[float]] = defaultdict(list)
        self._lock = threading.Lock()

    def _recent(self, key: str, now: float) -> List[float]:
        cutoff = now - self.window_seconds
        recent = [ts for ts in self._attempts.get(key, []) if ts > cutoff]
        if recent:
            self._attempts[key] = recent
        else:
            self._attempts.pop(key, None)
        return recent

    def acquire(self, key: str, limit: int) -> Tuple[bool, int, int]:
        with self._lock:
            now = self.clock()
            recent = self._recent(key, now)
            if len(recent) >= limit:
                return False, len(recent), self._retry_after(min(recent), now)
            self._attempts[key] = recent + [now]
            return True, len(recent) + 1, 0

    def increment(self, key: str) -> int:
        with self._lock:
            now = self.clock()
            recent = self._recent(key, now) + [now]
            self._attempts[key] = recent
            return len(recent)

    def count(self, key: str) -> int:
        with self._lock:
            return len(self._recent(key, self.clock()))

    def reset(self, key: str) -> None:
        with self._lock:
            self._attempts.pop(key, None)

    def purge_stale(self) -> int:
        with self._lock:
            now = self.clock()
            before = sum(len(v) for v in self._attempts.values())
            for key in list(self._attempts):
                self._recent(key, now)
            return before - sum(len(v) for v in self._attempts.values())

    def reset_all(self) -> None:
        with self._lock:
            self._attempts.clear()


class SQLiteAttemptCounter(AttemptCounter):
    """Database-backed counter; survives restarts and is shared by processes."""

    def __init__(self, db: Database, window_seconds: int, clock: Clock = time.time):
        super().__init__(window_seconds, clock)
        self.db = db

    def _prune(self, conn, key: str, now: float) -> List[float]:
        cutoff = now - self.window_seconds
        conn.execute(
            "DELETE FROM login_attempts WHERE key = ? AND attempted_at <= ?",
            (key, cutoff),
        )
        rows = conn.execute(
            "SELECT attempted_at FROM login_attempts WHERE key = ? ORDER BY attempted_at",
            (key,),
        ).fetchall()
        return [r["attempted_at"] for r in rows]

    def acquire(self, key: str, limit: int) -> Tuple[bool, int, int]:
        with self.db.transaction() as conn:
            now = self.clock()
            recent = self._prune(conn, key, now)
            if len(recent) >= limit:
                return False, len(recent), self._retry_after(recent[0], now)
            conn.execute(
                "INSERT INTO login_attempts (key, attempted_at) VALUES (?, ?)",
                (key, now),
            )
            return True, len(recent) + 1, 0

    def increment(self, key: str) -> int:
        with self.db.transaction() as conn:
            now = self.clock()
            recent = self._prune(conn, key, now)
            conn.execute(
                "INSERT INTO login_attempts (key, attempted_at) VALUES (?, ?)",
                (key, now),
            )
            return len(recent) + 1

    def count(self, key: str) -> int:
        with self.db.transaction() as conn:
            return len(self._prune(conn, key, self.clock()))

    def reset(self, key: str) -> None:
        with self.db.transaction() as conn:
            conn.execute("DELETE FROM login_attempts WHERE key = ?", (key,))

    def purge_stale(self) -> int:
        with self.db.transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM login_attempts WHERE attempted_at <= ?",
                (self.clock() - self.window_seconds,),
            )
            return cursor.rowcount


class LoginRateLimiter:
    """
    Per-IP login throttle.

    Usage::

        limiter.reserve(ip)          # raises RateLimited when locked out
        if credentials_ok:
            limiter.record_success(ip)
    """

    KEY_PREFIX = "login:ip:"

    def __init__(self, counter: AttemptCounter, max_attempts: int = 5):
        self.counter = counter
        self.max_attempts = max_attempts

    def _key(self, ip: str) -> str:
        return f"{self.KEY_PREFIX}{ip or 'unknown'}"

    def reserve(self, ip: str) -> int:
        """
        Claim an attempt slot for this IP.

        Returns:
            The attempt number inside the current window

        Raises:
            RateLimited: max_attempts already used inside the window
        """
        allowed, count, retry_after = self.counter.acquire(self._key(ip), self.max_attempts)
        if not allowed:
            logger.warning("Login rate limit hit: %d attempts in window", count)
            minutes = max(1, (retry_after + 59) // 60)
            raise RateLimited(
                retry_after=retry_after,
                public_message=(
                    f"Too many login attempts. Please try again in {minutes} minute(s)."
                ),
            )
        return count

    def record_success(self, ip: str) -> None:
        self.counter.reset(self._key(ip))

    def attempts(self, ip: str) -> int:
        return self.counter.count(self._key(ip))

    def purge_stale(self) -> int:
        return self.counter.purge_stale()
