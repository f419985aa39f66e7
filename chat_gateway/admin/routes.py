"""
Admin API router.

Thin HTTP callers of the ConnectionManager's moderation and snapshot
operations. Every route except login requires a bearer admin token.

Handlers are coroutines: manager calls must run on the event loop that
owns the session channels.
"""

from typing import Any

from fastapi import APIRouter, Depends, Request

from chat_gateway.admin.schemas import (
    BroadcastRequest,
    BroadcastResponse,
    CountResponse,
    KickRequest,
    KickResponse,
    LoginRequest,
    LoginResponse,
    StatsResponse,
    UnbanRequest,
    UnbanResponse,
    VerifyResponse,
)
from chat_gateway.connection_manager import ConnectionManager
from chat_gateway.core.session.moderation import TargetNotFoundError
from shared.config.logging import admin_logger as logger, audit_auth_event
from shared.config.settings import settings
from shared.security.auth import (
    admin_enabled,
    current_admin_context,
    sign_admin_token,
    verify_admin_password,
)
from shared.security.rate_limit import limiter
from shared.utils.exceptions import (
    NotFoundError,
    ServiceUnavailableError,
    UnauthorizedError,
    ValidationError,
)


router = APIRouter(prefix="/api/admin", tags=["admin"])


def get_manager(request: Request) -> ConnectionManager:
    """Dependency returning the application's ConnectionManager."""
    return request.app.state.manager


def _login_rate_limit() -> str:
    return settings.admin_login_rate_limit


# =============================================================================
# Auth
# =============================================================================


@router.post("/login", response_model=LoginResponse)
@limiter.limit(_login_rate_limit)
async def login(request: Request, body: LoginRequest) -> LoginResponse:
    """Exchange the admin password for a bearer token."""
    ip_address = request.client.host if request.client else None
    if not admin_enabled():
        raise ServiceUnavailableError("Admin API")
    if not verify_admin_password(body.password):
        audit_auth_event("LOGIN_FAILED", success=False, reason="bad_password", ip_address=ip_address)
        raise UnauthorizedError("Invalid password")

    ttl_seconds = settings.admin_token_expire_minutes * 60
    token = sign_admin_token(ttl_seconds)
    audit_auth_event("LOGIN_SUCCESS", success=True, ip_address=ip_address)
    return LoginResponse(token=token, expires_in=ttl_seconds)


@router.get("/verify", response_model=VerifyResponse)
async def verify(ctx: dict[str, Any] = Depends(current_admin_context)) -> VerifyResponse:
    return VerifyResponse(expires_at=int(ctx["exp"]))


# =============================================================================
# Snapshot
# =============================================================================


@router.get("/stats", response_model=StatsResponse)
async def stats(
    ctx: dict[str, Any] = Depends(current_admin_context),
    manager: ConnectionManager = Depends(get_manager),
) -> dict[str, Any]:
    return manager.snapshot()


# =============================================================================
# Moderation
# =============================================================================


@router.post("/kick", response_model=KickResponse)
async def kick(
    body: KickRequest,
    ctx: dict[str, Any] = Depends(current_admin_context),
    manager: ConnectionManager = Depends(get_manager),
) -> KickResponse:
    """
    Kick a user by display name; a positive `seconds` also bans the device.
    """
    try:
        result = manager.kick(body.username, body.seconds)
    except TargetNotFoundError:
        raise NotFoundError("User", body.username)
    except ValueError as e:
        raise ValidationError(str(e), seconds=body.seconds)

    logger.info(
        "Admin kick",
        name=result.name,
        banned=result.banned,
        target=result.target,
        duration_seconds=body.seconds,
    )
    return KickResponse(username=result.name, banned=result.banned, target=result.target)


@router.post("/kick-all", response_model=CountResponse)
async def kick_all(
    ctx: dict[str, Any] = Depends(current_admin_context),
    manager: ConnectionManager = Depends(get_manager),
) -> CountResponse:
    count = manager.kick_all()
    logger.info("Admin kick-all", count=count)
    return CountResponse(count=count)


@router.post("/unban", response_model=UnbanResponse)
async def unban(
    body: UnbanRequest,
    ctx: dict[str, Any] = Depends(current_admin_context),
    manager: ConnectionManager = Depends(get_manager),
) -> UnbanResponse:
    """Lift a ban by the name recorded with it or by device token."""
    try:
        result = manager.unban(name=body.username, device=body.device)
    except TargetNotFoundError:
        raise NotFoundError("Ban", body.username or "device")
    except ValueError as e:
        raise ValidationError(str(e))
    return UnbanResponse(username=result.name, device=result.device)


@router.post("/broadcast", response_model=BroadcastResponse)
async def broadcast(
    body: BroadcastRequest,
    ctx: dict[str, Any] = Depends(current_admin_context),
    manager: ConnectionManager = Depends(get_manager),
) -> BroadcastResponse:
    try:
        line = manager.admin_broadcast(body.message)
    except ValueError as e:
        raise ValidationError(str(e))
    return BroadcastResponse(line=line)


@router.post("/clear-history", response_model=CountResponse)
async def clear_history(
    ctx: dict[str, Any] = Depends(current_admin_context),
    manager: ConnectionManager = Depends(get_manager),
) -> CountResponse:
    return CountResponse(count=manager.clear_history())
