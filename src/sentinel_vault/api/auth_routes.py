# Sentinel Vault - Auth API
#
# Endpoints:
# - POST /api/auth/register         create account, start session
# - POST /api/auth/login            rate-limited login, start session
# - POST /api/auth/logout           end session (idempotent)
# - GET  /api/auth/me               current user
# - POST /api/auth/forgot-password  always the same generic answer
# - POST /api/auth/reset-password   single-use token -> new master password
#
# Register, login and reset run the slow KDF, so they are moved off the
# event loop with asyncio.to_thread.

import asyncio
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response, status
from pydantic import BaseModel, Field

from ..services import VaultServices
from .security import (
    Caller,
    clear_session_cookie,
    client_ip,
    get_services,
    optional_caller,
    require_caller,
    set_session_cookie,
    user_agent,
)

router = APIRouter(prefix="/api/auth", tags=["auth"])


# Request Models
class RegisterRequest(BaseModel):
    username: str
    email: str = Field(..., max_length=254)
    password: str = Field(..., min_length=1)
    confirm_password: str
    name: Optional[str] = Field(None, max_length=100)


class LoginRequest(BaseModel):
    username: str
    password: str


class ForgotPasswordRequest(BaseModel):
    email: str = Field(..., max_length=254)


class ResetPasswordRequest(BaseModel):
    token: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
    confirm_password: Optional[str] = None


# Endpoints

@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    body: RegisterRequest,
    request: Request,
    response: Response,
    services: VaultServices = Depends(get_services),
):
    """
    Register a new user and log them in.

    The master password must reach the configured strength score
    (default 60/100).
    """
    result = await asyncio.to_thread(
        services.auth.register,
        body.username,
        body.email,
        body.password,
        body.confirm_password,
        body.name,
        client_ip(request),
        user_agent(request),
    )
    set_session_cookie(response, services, result.session)
    return {"user": result.user.to_public_dict(), "message": "Registration successful"}


@router.post("/login")
async def login(
    body: LoginRequest,
    request: Request,
    response: Response,
    services: VaultServices = Depends(get_services),
):
    """Log in. At most 5 failed attempts per IP per 15 minutes."""
    result = await asyncio.to_thread(
        services.auth.login,
        body.username,
        body.password,
        client_ip(request),
        user_agent(request),
    )
    set_session_cookie(response, services, result.session)
    return {"user": result.user.to_public_dict(), "message": "Login successful"}


@router.post("/logout")
async def logout(
    response: Response,
    caller: Optional[Caller] = Depends(optional_caller),
    services: VaultServices = Depends(get_services),
):
    if caller is not None:
        services.auth.logout(caller.session, caller.ip_address, caller.user_agent)
    clear_session_cookie(response, services)
    return {"message": "Logged out successfully"}


@router.get("/me")
async def me(
    caller: Caller = Depends(require_caller),
    services: VaultServices = Depends(get_services),
):
    user = services.auth.get_current_user(caller.session)
    return user.to_public_dict()


@router.post("/forgot-password")
async def forgot_password(
    body: ForgotPasswordRequest,
    request: Request,
    services: VaultServices = Depends(get_services),
):
    message = await asyncio.to_thread(
        services.auth.request_password_reset,
        body.email,
        client_ip(request),
        user_agent(request),
    )
    return {"message": message}


@router.post("/reset-password")
async def reset_password(
    body: ResetPasswordRequest,
    request: Request,
    response: Response,
    services: VaultServices = Depends(get_services),
):
    await asyncio.to_thread(
        services.auth.reset_password,
        body.token,
        body.password,
        body.confirm_password,
        client_ip(request),
        user_agent(request),
    )
    clear_session_cookie(response, services)
    return {"message": "Password has been reset successfully"}
