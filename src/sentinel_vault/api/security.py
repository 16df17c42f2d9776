# Sentinel Vault - API Security
#
# Session authentication for the HTTP layer.
#
# The session token travels in the httpOnly `sv_session` cookie (browsers)
# or the X-Session-Token header (non-browser clients). Either way it is
# resolved through AuthSessionManager.authenticate(), which checks expiry
# and slides the idle timeout on every call.

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Request, Response

from ..auth.sessions import Session
from ..core.errors import Unauthorized
from ..services import VaultServices, get_services as get_global_services

SESSION_HEADER = "X-Session-Token"


@dataclass
class Caller:
    """Authenticated request context handed to route handlers."""

    session: Session
    ip_address: str
    user_agent: str


def get_services(request: Request) -> VaultServices:
    """Services bound to this app, else the process-wide instance."""
    services = getattr(request.app.state, "services", None)
    if services is None:
        services = get_global_services()
        request.app.state.services = services
    return services


def client_ip(request: Request) -> str:
    """
    Socket peer address, or the first X-Forwarded-For hop when the peer
    is a configured trusted proxy.
    """
    peer = request.client.host if request.client and request.client.host else "unknown"
    if peer not in get_services(request).settings.trusted_proxies:
        return peer
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return peer


def user_agent(request: Request) -> str:
    return request.headers.get("user-agent", "")[:500]


def session_token(request: Request, services: VaultServices) -> Optional[str]:
    return request.headers.get(SESSION_HEADER) or request.cookies.get(
        services.settings.session_cookie_name
    )


def set_session_cookie(response: Response, services: VaultServices, session: Session) -> None:
    settings = services.settings
    response.set_cookie(
        key=settings.session_cookie_name,
        value=session.token,
        max_age=settings.session_idle_seconds,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        path="/",
    )


def clear_session_cookie(response: Response, services: VaultServices) -> None:
    response.delete_cookie(key=services.settings.session_cookie_name, path="/")


def require_caller(
    request: Request, services: VaultServices = Depends(get_services)
) -> Caller:
    """
    FastAPI dependency: the request must carry a live session.

    Raises:
        Unauthorized: Missing, unknown or expired session token
    """
    session = services.auth.authenticate(session_token(request, services))
    return Caller(session=session, ip_address=client_ip(request), user_agent=user_agent(request))


def optional_caller(
    request: Request, services: VaultServices = Depends(get_services)
) -> Optional[Caller]:
    """Like require_caller, but anonymous requests yield None."""
    try:
        return require_caller(request, services)
    except Unauthorized:
        return None
