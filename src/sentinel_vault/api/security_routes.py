# Sentinel Vault - Security Dashboard API
#
# - GET  /api/security-alerts               alerts, newest first
# - POST /api/security-alerts/scan          run a vault health scan
# - POST /api/security-alerts/{id}/resolve  resolve (idempotent)
# - GET  /api/activity-logs                 recent account activity

import asyncio
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..services import VaultServices
from .security import Caller, get_services, require_caller

router = APIRouter(prefix="/api", tags=["security"])


@router.get("/security-alerts")
def list_alerts(
    include_resolved: bool = True,
    caller: Caller = Depends(require_caller),
    services: VaultServices = Depends(get_services),
):
    alerts = services.alerts.list_alerts(caller.session, include_resolved=include_resolved)
    return [a.to_dict() for a in alerts]


@router.post("/security-alerts/scan")
async def scan_vault(
    caller: Caller = Depends(require_caller),
    services: VaultServices = Depends(get_services),
):
    """Weak, reused and breached password scan (breach lookups hit the network)."""
    summary = await asyncio.to_thread(services.alerts.scan, caller.session)
    return summary.to_dict()


@router.post("/security-alerts/{alert_id}/resolve")
def resolve_alert(
    alert_id: str,
    caller: Caller = Depends(require_caller),
    services: VaultServices = Depends(get_services),
):
    services.alerts.resolve_alert(
        caller.session,
        alert_id,
        ip_address=caller.ip_address,
        user_agent=caller.user_agent,
    )
    return {"message": "Alert resolved"}


@router.get("/activity-logs")
def activity_logs(
    limit: Optional[int] = Query(None, ge=1, le=500),
    caller: Caller = Depends(require_caller),
    services: VaultServices = Depends(get_services),
):
    limit = limit or services.settings.activity_page_size
    entries = services.event_log.list(caller.session.user_id, limit)
    return [e.to_dict() for e in entries]
