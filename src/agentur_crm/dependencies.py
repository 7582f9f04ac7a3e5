"""Dependency Injection for Agentur CRM.

Provides FastAPI dependency functions for settings, database sessions,
the per-request session context and the service factory.

The acting user is resolved on every request from the user header
(``X-User-Id`` by default) against active team members. The client
holds the user object returned by ``/api/v1/auth/login`` and sends its
id back, the same way the browser keeps it in local storage.

Usage:
    from agentur_crm.dependencies import ServicesDep

    @router.get("/customers")
    async def list_customers(services: ServicesDep):
        ...
"""

from __future__ import annotations

from typing import Annotated, AsyncGenerator
from uuid import UUID

from fastapi import Depends, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from agentur_crm.config import Settings, get_settings
from agentur_crm.core.exceptions import StoreError, UnauthorizedError
from agentur_crm.core.log_setup import get_logger
from agentur_crm.db.repositories.team import TeamMemberRepository
from agentur_crm.db.session import get_db as _get_db
from agentur_crm.services.factory import ServiceFactory
from agentur_crm.services.session import CurrentUser, SessionContext

log = get_logger(__name__)

SESSION_INVALID_MESSAGE = "Ihre Sitzung ist ungültig. Bitte melden Sie sich erneut an."


# =============================================================================
# Settings Dependency
# =============================================================================


def get_app_settings() -> Settings:
    """Get application settings.

    Returns cached settings instance.
    """
    return get_settings()


SettingsDep = Annotated[Settings, Depends(get_app_settings)]


# =============================================================================
# Database Dependencies
# =============================================================================


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get database session for request.

    Stores commit their own unit of work; the session is rolled back on
    error and closed afterwards.
    """
    async for session in _get_db():
        yield session


DatabaseDep = Annotated[AsyncSession, Depends(get_db)]


# =============================================================================
# Session Context Dependencies
# =============================================================================


async def get_session_context(
    request: Request,
    db: DatabaseDep,
    settings: SettingsDep,
) -> SessionContext:
    """Build the session context of this request (anonymous when no header)."""
    ctx = SessionContext(
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )

    raw_id = request.headers.get(settings.api.user_header)
    if not raw_id:
        return ctx

    try:
        user_id = UUID(raw_id.strip())
    except ValueError as e:
        raise UnauthorizedError(SESSION_INVALID_MESSAGE) from e

    try:
        member = await TeamMemberRepository(db).get(user_id)
    except SQLAlchemyError as e:
        log.error("Session lookup failed", error=str(e))
        raise StoreError(
            "Es gab ein Problem bei der Verbindung zur Datenbank.",
            cause=e,
        ) from e

    if member is None or not member.is_active:
        log.info("Rejected request for unknown or inactive user", user_id=str(user_id))
        raise UnauthorizedError(SESSION_INVALID_MESSAGE)

    ctx.start(CurrentUser.model_validate(member))
    return ctx


SessionContextDep = Annotated[SessionContext, Depends(get_session_context)]


async def require_signed_in(ctx: SessionContextDep) -> SessionContext:
    """Session context of a signed-in user."""
    if not ctx.is_authenticated:
        raise UnauthorizedError("Bitte melden Sie sich an.")
    return ctx


SignedInDep = Annotated[SessionContext, Depends(require_signed_in)]


# =============================================================================
# Service Dependencies
# =============================================================================


def get_services(
    db: DatabaseDep,
    ctx: SignedInDep,
    settings: SettingsDep,
) -> ServiceFactory:
    """Service factory bound to this request's session and user."""
    return ServiceFactory(db, ctx, settings)


ServicesDep = Annotated[ServiceFactory, Depends(get_services)]
