# Sentinel Vault - FastAPI Backend
#
# REST API over the auth, vault and security services.
#
# - One exception handler maps VaultError to {"detail": public_message}
#   with its status code; internal detail never reaches the response
# - A background task purges expired reset tokens, sessions and stale
#   login attempts every `token_sweep_interval_seconds`

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..config import get_settings
from ..core.audit_log import EventSeverity, EventType, get_audit_logger
from ..core.errors import RateLimited, VaultError
from ..services import VaultServices, get_services as get_global_services
from .auth_routes import router as auth_router
from .security_routes import router as security_router
from .vault_routes import router as vault_router

logger = logging.getLogger(__name__)


async def _sweep_forever(services: VaultServices, interval: float):
    while True:
        await asyncio.sleep(interval)
        try:
            purged = await asyncio.to_thread(services.sweep)
            logger.debug("Sweep finished: %s", purged)
        except Exception:
            logger.exception("Periodic sweep failed")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the sweeper on startup, stop it on shutdown."""
    services = app.state.services
    if services is None:
        services = app.state.services = get_global_services()

    app.state.started_at = datetime.now(timezone.utc)
    get_audit_logger().log_event(
        event_type=EventType.SYSTEM_START,
        severity=EventSeverity.INFO,
        message="Sentinel Vault API starting",
        details={"version": __version__, "environment": services.settings.environment},
    )

    sweeper = asyncio.create_task(
        _sweep_forever(services, services.settings.token_sweep_interval_seconds)
    )
    try:
        yield
    finally:
        sweeper.cancel()
        try:
            await sweeper
        except asyncio.CancelledError:
            pass
        services.event_log.flush()
        get_audit_logger().log_event(
            event_type=EventType.SYSTEM_STOP,
            severity=EventSeverity.INFO,
            message="Sentinel Vault API shutting down",
        )


async def vault_error_handler(request: Request, exc: VaultError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "%s on %s %s", type(exc).__name__, request.method, request.url.path,
            exc_info=exc,
        )
    headers = None
    if isinstance(exc, RateLimited) and exc.retry_after:
        headers = {"Retry-After": str(exc.retry_after)}
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.public_message},
        headers=headers,
    )


def create_app(services: Optional[VaultServices] = None) -> FastAPI:
    """
    Build the FastAPI app.

    Args:
        services: Wired components; None uses the process-wide instance
            built from environment settings on first use.
    """
    app = FastAPI(
        title="Sentinel Vault API",
        description="Encrypted credential vault with security analytics",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.services = services
    app.state.started_at = datetime.now(timezone.utc)

    settings = services.settings if services is not None else get_settings()
    origins = ["http://localhost:3000", "http://127.0.0.1:3000", settings.public_base_url]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(VaultError, vault_error_handler)

    app.include_router(auth_router)
    app.include_router(vault_router)
    app.include_router(security_router)

    @app.get("/api/health")
    async def health(request: Request):
        now = datetime.now(timezone.utc)
        return {
            "status": "ok",
            "version": __version__,
            "timestamp": now.isoformat(),
            "uptime_seconds": int((now - request.app.state.started_at).total_seconds()),
        }

    return app


app = create_app()
