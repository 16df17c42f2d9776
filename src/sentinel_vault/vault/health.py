# Sentinel Vault - Reuse & Breach Detection
#
# Works on decrypted views of a user's records (anything with `.id` and
# `.secret`; records whose secret is None failed to decrypt and are
# skipped).
#
# Reuse convention: a record is "reused" when at least one other record of
# the same user has the identical secret. `find_reused` returns those
# record ids, so the reused count is the number of affected records, not
# the number of colliding groups.

import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Protocol, Set

from ..core.errors import BreachCheckUnavailable
from .breach import BreachOracle

logger = logging.getLogger(__name__)


class HasSecret(Protocol):
    id: str
    secret: Optional[str]


class ReuseAndBreachDetector:
    """Reuse grouping plus breach lookups through an external oracle."""

    def __init__(self, oracle: BreachOracle):
        self.oracle = oracle

    @staticmethod
    def reuse_groups(records: Iterable[HasSecret]) -> List[Set[str]]:
        """Groups (sets of record ids) sharing one secret, only groups of 2+."""
        by_secret: Dict[str, Set[str]] = defaultdict(set)
        for record in records:
            if record.secret is None:
                continue
            by_secret[record.secret].add(record.id)
        return [ids for ids in by_secret.values() if len(ids) > 1]

    @classmethod
    def find_reused(cls, records: Iterable[HasSecret]) -> Set[str]:
        """Ids of every record whose secret is shared with another record."""
        reused: Set[str] = set()
        for group in cls.reuse_groups(records):
            reused |= group
        return reused

    def check_breach(self, password: str) -> bool:
        """
        Ask the oracle whether a password is breached.

        Raises:
            BreachCheckUnavailable: Oracle failed; result is unknown
        """
        try:
            return self.oracle.check_breach(password)
        except BreachCheckUnavailable:
            raise
        except Exception as e:
            logger.exception("Breach oracle raised an unexpected error")
            raise BreachCheckUnavailable() from e

    def check_records(self, records: Iterable[HasSecret]) -> Dict[str, Optional[bool]]:
        """
        Breach status per record id: True / False, or None when unknown.

        Each distinct secret is looked up once.
        """
        verdicts: Dict[str, Optional[bool]] = {}
        status: Dict[str, Optional[bool]] = {}
        for record in records:
            if record.secret is None:
                continue
            if record.secret not in verdicts:
                try:
                    verdicts[record.secret] = self.check_breach(record.secret)
                except BreachCheckUnavailable:
                    verdicts[record.secret] = None
            status[record.id] = verdicts[record.secret]
        return status
