"""
Security alerts from vault health scans.

A scan decrypts the user's vault and raises one alert per finding:

- weak:   strength score below 50
- reused: secret shared with another record of the same user
- breach: secret known to the breach oracle

An unresolved alert of the same kind for the same credential is never
duplicated. When the breach oracle is unavailable the affected records are
reported as "unknown" in the scan summary and no breach alert is raised.
"""

import logging
from dataclasses import asdict, dataclass
from typing import Dict, List, Optional

from ..auth.sessions import Session, SessionStore
from ..core.audit_log import EventSeverity, EventType, get_audit_logger
from ..core.errors import NotFound
from ..core.event_log import ActivityAction, SecurityEventLog
from ..db.models import AlertKind, SecurityAlert
from ..db.repositories import AlertRepository
from . import strength
from .health import ReuseAndBreachDetector
from .vault_manager import CredentialVault, DecryptedCredential

logger = logging.getLogger(__name__)


@dataclass
class ScanSummary:
    scanned: int = 0
    weak: int = 0
    reused: int = 0
    breached: int = 0
    breach_unknown: int = 0
    undecryptable: int = 0
    alerts_created: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


class SecurityAlertService:
    """Health scans plus alert listing/resolution for one vault owner."""

    def __init__(
        self,
        alerts: AlertRepository,
        vault: CredentialVault,
        detector: ReuseAndBreachDetector,
        sessions: SessionStore,
        event_log: SecurityEventLog,
    ):
        self.alerts = alerts
        self.vault = vault
        self.detector = detector
        self.sessions = sessions
        self.event_log = event_log

    def _raise_alert(
        self,
        user_id: str,
        kind: AlertKind,
        record: DecryptedCredential,
        description: str,
        metadata: Optional[dict] = None,
    ) -> bool:
        created = self.alerts.create_if_absent(
            user_id,
            kind,
            description,
            metadata=metadata,
            credential_id=record.id,
        )
        return created is not None

    def scan(self, session: Session) -> ScanSummary:
        """Analyze every record of the session's user and record alerts."""
        records = self.vault.list_records(session)
        readable = [r for r in records if r.secret is not None]
        user_id = session.user_id
        summary = ScanSummary(scanned=len(records), undecryptable=len(records) - len(readable))

        for record in readable:
            if record.strength < strength.WEAK_THRESHOLD:
                summary.weak += 1
                if self._raise_alert(
                    user_id,
                    AlertKind.WEAK,
                    record,
                    f"Weak password detected for {record.title}",
                    {"strength": record.strength},
                ):
                    summary.alerts_created += 1

        for group in self.detector.reuse_groups(readable):
            members = [r for r in readable if r.id in group]
            for record in members:
                summary.reused += 1
                if self._raise_alert(
                    user_id,
                    AlertKind.REUSED,
                    record,
                    f"Password for {record.title} is reused across {len(group)} accounts",
                    {"shared_with": sorted(r.title for r in members if r.id != record.id)},
                ):
                    summary.alerts_created += 1

        status = self.detector.check_records(readable)
        for record in readable:
            verdict = status.get(record.id)
            if verdict is None:
                summary.breach_unknown += 1
            elif verdict:
                summary.breached += 1
                if self._raise_alert(
                    user_id,
                    AlertKind.BREACH,
                    record,
                    f"Password for {record.title} appeared in a known data breach",
                ):
                    summary.alerts_created += 1

        self.event_log.append(
            user_id,
            ActivityAction.HEALTH_SCAN,
            f"Security scan: {summary.alerts_created} new alert(s)",
        )
        get_audit_logger().log_vault_event(
            EventType.VAULT_HEALTH_SCAN,
            "Vault health scan completed",
            user_id=user_id,
            severity=EventSeverity.INVESTIGATE if summary.breached else EventSeverity.INFO,
            details=summary.to_dict(),
        )
        return summary

    def list_alerts(self, session: Session, include_resolved: bool = True) -> List[SecurityAlert]:
        """Newest first."""
        session = self.sessions.ensure_active(session)
        return self.alerts.list_by_user(session.user_id, include_resolved=include_resolved)

    def resolve_alert(
        self,
        session: Session,
        alert_id: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> None:
        """
        Mark an alert resolved. Resolving twice is a no-op.

        Raises:
            NotFound: Missing or owned by someone else
        """
        session = self.sessions.ensure_active(session)
        if not self.alerts.resolve(alert_id, session.user_id):
            raise NotFound("Alert not found")
        self.event_log.append(
            session.user_id,
            ActivityAction.RESOLVE_ALERT,
            "Resolved security alert",
            ip_address=ip_address,
            user_agent=user_agent,
        )
