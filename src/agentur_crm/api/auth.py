"""Login, logout and the current user."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter
from pydantic import BaseModel

from agentur_crm.dependencies import DatabaseDep, SessionContextDep, SettingsDep, SignedInDep
from agentur_crm.services import permissions
from agentur_crm.services.factory import ServiceFactory
from agentur_crm.services.session import CurrentUser


router = APIRouter(prefix="/auth")


class LoginRequest(BaseModel):
    """Credentials; emptiness is checked by the login flow itself."""

    email: str = ""
    password: str = ""


class SessionResponse(BaseModel):
    """The signed-in user and what it may do."""

    user: CurrentUser
    permissions: dict[str, bool]


def _session_response(user: CurrentUser) -> SessionResponse:
    return SessionResponse(user=user, permissions=permissions.permission_map(user))


@router.post("/login")
async def login(
    body: LoginRequest,
    db: DatabaseDep,
    ctx: SessionContextDep,
    settings: SettingsDep,
) -> SessionResponse:
    """Check credentials and return the user object the client keeps."""
    services = ServiceFactory(db, ctx, settings)
    user = await services.auth().login(ctx, body.email, body.password)
    return _session_response(user)


@router.post("/logout")
async def logout(db: DatabaseDep, ctx: SignedInDep, settings: SettingsDep) -> dict[str, Any]:
    """Record the logout; the client drops its stored user."""
    services = ServiceFactory(db, ctx, settings)
    await services.auth().logout(ctx)
    return {"success": True}


@router.get("/me")
async def me(ctx: SignedInDep) -> SessionResponse:
    """The user behind the request header."""
    return _session_response(ctx.user)
