# Sentinel Vault - Breach Oracle
#
# Checks whether a password appears in a known breach corpus using the
# k-anonymity range API (Have I Been Pwned "Pwned Passwords"):
#   1. SHA-1 the password locally
#   2. Send only the first 5 hex characters of the hash
#   3. Compare the returned suffixes locally
# The plaintext password and the full hash never leave the process.
#
# Failure policy: fail open with BreachCheckUnavailable. Callers treat that
# as "unknown", never as "safe".

import hashlib
import logging
import threading
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Callable, Dict, Iterable, Optional

import httpx

from ..core.errors import BreachCheckUnavailable

logger = logging.getLogger(__name__)

PWNED_PASSWORDS_RANGE_URL = "https://api.pwnedpasswords.com/range"

# Retry configuration
MAX_RETRIES = 3
INITIAL_BACKOFF_SEC = 0.5
BACKOFF_MULTIPLIER = 2.0
REQUEST_TIMEOUT_SEC = 10.0
MAX_RETRY_WAIT_SEC = 5.0

# Range cache
RANGE_CACHE_TTL_SEC = 6 * 60 * 60
RANGE_CACHE_MAX_ENTRIES = 4096


def sha1_hex(password: str) -> str:
    return hashlib.sha1(password.encode("utf-8")).hexdigest().upper()


def retry_after_seconds(value: Optional[str], fallback: float) -> float:
    """Seconds to wait from a Retry-After header (delta-seconds or HTTP-date)."""
    if not value:
        return fallback
    value = value.strip()
    try:
        return max(0.0, float(value))
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return fallback
    if when is None:
        return fallback
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max(0.0, (when - datetime.now(timezone.utc)).total_seconds())


class RangeCache:
    """Thread-safe LRU cache of range responses with a per-entry TTL."""

    def __init__(
        self,
        ttl: float = RANGE_CACHE_TTL_SEC,
        max_entries: int = RANGE_CACHE_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl = ttl
        self.max_entries = max(1, max_entries)
        self.clock = clock
        self._lock = threading.Lock()
        self._store: "OrderedDict[str, tuple]" = OrderedDict()

    def get(self, prefix: str) -> Optional[Dict[str, int]]:
        with self._lock:
            entry = self._store.get(prefix)
            if entry is None:
                return None
            expires_at, suffixes = entry
            if self.clock() >= expires_at:
                del self._store[prefix]
                return None
            self._store.move_to_end(prefix)
            return suffixes

    def set(self, prefix: str, suffixes: Dict[str, int]) -> None:
        with self._lock:
            self._store[prefix] = (self.clock() + self.ttl, suffixes)
            self._store.move_to_end(prefix)
            while len(self._store) > self.max_entries:
                self._store.popitem(last=False)

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def __contains__(self, prefix: str) -> bool:
        return self.get(prefix) is not None


class BreachOracle(ABC):
    """Interface for breach lookups."""

    @abstractmethod
    def check_breach(self, password: str) -> bool:
        """
        Return True when the password is known to be breached.

        Raises:
            BreachCheckUnavailable: The oracle could not answer
        """


class PwnedPasswordsClient(BreachOracle):
    """k-anonymity client for the Pwned Passwords range API.

    Usage::

        oracle = PwnedPasswordsClient()
        try:
            breached = oracle.check_breach("hunter2")
        except BreachCheckUnavailable:
            breached = None  # unknown
    """

    def __init__(
        self,
        base_url: str = PWNED_PASSWORDS_RANGE_URL,
        timeout: float = REQUEST_TIMEOUT_SEC,
        max_retries: int = MAX_RETRIES,
        min_occurrences: int = 1,
        cache: Optional[RangeCache] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.min_occurrences = min_occurrences
        self.cache = cache if cache is not None else RangeCache()

    def check_breach(self, password: str) -> bool:
        if not password:
            return False

        digest = sha1_hex(password)
        prefix, suffix = digest[:5], digest[5:]

        suffixes = self.cache.get(prefix)
        if suffixes is None:
            suffixes = self._parse_range(self._fetch_range(prefix).text.splitlines())
            self.cache.set(prefix, suffixes)

        return suffixes.get(suffix, 0) >= self.min_occurrences

    @staticmethod
    def _parse_range(lines: Iterable[str]) -> Dict[str, int]:
        """Parse 'SUFFIX:COUNT' lines. Padding entries have count 0."""
        result: Dict[str, int] = {}
        for line in lines:
            line = line.strip()
            if not line or ":" not in line:
                continue
            hash_suffix, _, count = line.partition(":")
            try:
                result[hash_suffix.strip().upper()] = int(count.strip())
            except ValueError:
                logger.debug("Skipping malformed range line")
        return result

    def _fetch_range(self, prefix: str) -> httpx.Response:
        """GET /range/{prefix} with retry + exponential backoff."""
        url = f"{self.base_url}/{prefix}"
        backoff = INITIAL_BACKOFF_SEC
        last_exc: Optional[Exception] = None

        for attempt in range(1, self.max_retries + 1):
            try:
                resp = httpx.request(
                    "GET",
                    url,
                    headers={
                        "Add-Padding": "true",
                        "User-Agent": "SentinelVault/0.3",
                    },
                    timeout=self.timeout,
                )
            except httpx.HTTPError as exc:
                last_exc = exc
                logger.warning(
                    "Breach range request failed (%s), attempt %d/%d",
                    type(exc).__name__, attempt, self.max_retries,
                )
            else:
                if resp.status_code < 400:
                    return resp

                if resp.status_code == 429 or resp.status_code >= 500:
                    wait = retry_after_seconds(resp.headers.get("Retry-After"), backoff)
                    logger.warning(
                        "Breach range API returned %d, attempt %d/%d",
                        resp.status_code, attempt, self.max_retries,
                    )
                    if attempt < self.max_retries:
                        time.sleep(min(wait, MAX_RETRY_WAIT_SEC))
                        backoff *= BACKOFF_MULTIPLIER
                    continue

                logger.error("Breach range API rejected request: %d", resp.status_code)
                raise BreachCheckUnavailable()

            if attempt < self.max_retries:
                time.sleep(backoff)
                backoff *= BACKOFF_MULTIPLIER

        raise BreachCheckUnavailable() from last_exc


class StaticBreachOracle(BreachOracle):
    """Oracle backed by a fixed set of known-breached passwords (offline use)."""

    def __init__(self, breached: Iterable[str] = ()):
        self._hashes = {sha1_hex(p) for p in breached}

    def check_breach(self, password: str) -> bool:
        return sha1_hex(password) in self._hashes


class DisabledBreachOracle(BreachOracle):
    """Oracle used when breach checks are switched off: always unknown."""

    def check_breach(self, password: str) -> bool:
        raise BreachCheckUnavailable("Breach checking is disabled")
