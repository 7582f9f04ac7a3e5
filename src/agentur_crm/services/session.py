"""Signed-in user session: explicit context, durable storage and login flow.

The signed-in user lives in a ``SessionContext`` that callers pass
down explicitly. It is started by a successful login and ended by
logout; there is no module-level "current user".

``SessionStorage`` keeps the serialized user in a small JSON file so a
CLI session survives restarts, the same way a browser keeps it in
local storage.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError

from agentur_crm.core.exceptions import (
    AuthenticationFailedError,
    StoreError,
    ValidationError,
)
from agentur_crm.core.log_setup import bind_actor, get_logger, unbind_actor
from agentur_crm.db.repositories.team import TeamMemberRepository
from agentur_crm.domain import AuditAction, Role
from agentur_crm.services import permissions
from agentur_crm.services.audit_trail import AuditTrail
from agentur_crm.services.permissions import Capability

log = get_logger(__name__)

SESSION_TABLE = "user_sessions"


class CurrentUser(BaseModel):
    """The signed-in team member as held by the client."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    email: str
    user_role: Role
    role: str = ""
    is_active: bool = True
    customer_dashboard_name: str | None = None
    customer_id: UUID | None = None


class SessionContext:
    """Explicit holder of the signed-in user for one client session.

    Also carries request metadata (IP address, user agent) that ends up
    on audit entries.
    """

    def __init__(
        self,
        user: CurrentUser | None = None,
        *,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> None:
        self._user: CurrentUser | None = None
        self.ip_address = ip_address
        self.user_agent = user_agent
        if user is not None:
            self.start(user)

    @property
    def user(self) -> CurrentUser | None:
        return self._user

    @property
    def is_authenticated(self) -> bool:
        return self._user is not None

    @property
    def actor_id(self) -> UUID | None:
        """Id of the signed-in member, None when anonymous."""
        return self._user.id if self._user is not None else None

    def start(self, user: CurrentUser) -> None:
        """Begin the session for ``user``."""
        self._user = user
        bind_actor(str(user.id))

    def end(self) -> None:
        """Tear the session down."""
        self._user = None
        unbind_actor()

    def can(self, capability: Capability) -> bool:
        return permissions.has_capability(self._user, capability)

    def require(self, capability: Capability) -> None:
        """Raise unless the signed-in user holds ``capability``."""
        permissions.require(self._user, capability)

    def __repr__(self) -> str:
        who = self._user.email if self._user else "anonymous"
        return f"<SessionContext {who}>"


class SessionStorage:
    """Durable single-key storage for the serialized current user."""

    def __init__(self, path: str | Path, key: str = "dashboard_user") -> None:
        self.path = Path(path)
        self.key = key

    def load(self) -> CurrentUser | None:
        """Read the stored user.

        Unreadable or malformed content is removed and treated as
        "nobody signed in".
        """
        if not self.path.exists():
            return None

        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
            raw_user = payload.get(self.key)
            if raw_user is None:
                return None
            return CurrentUser.model_validate(raw_user)
        except (OSError, ValueError, AttributeError, PydanticValidationError) as e:
            log.warning("Stored session unreadable, discarding", path=str(self.path), error=str(e))
            self.clear()
            return None

    def save(self, user: CurrentUser) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {self.key: user.model_dump(mode="json")}
        self.path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)


def login_error_message(error: str | None) -> str:
    """Turn an ``authenticate_user`` error into the text shown to the user."""
    if not error:
        return "Ungültige Email oder Passwort."
    if "nicht gefunden" in error:
        return "Diese Email-Adresse ist nicht registriert."
    if "Passwort" in error:
        return "Das eingegebene Passwort ist falsch."
    if "inaktiv" in error:
        return "Ihr Account wurde deaktiviert. Bitte kontaktieren Sie den Administrator."
    return error


class AuthService:
    """Login and logout with audit entries and durable session storage.

    Usage:
        auth = AuthService(TeamMemberRepository(db), AuditTrail(AuditLogRepository(db)), storage)
        ctx = auth.restore()
        if not ctx.is_authenticated:
            await auth.login(ctx, email, password)
    """

    def __init__(
        self,
        team_repo: TeamMemberRepository,
        audit: AuditTrail,
        storage: SessionStorage | None = None,
    ) -> None:
        self._team_repo = team_repo
        self._audit = audit
        self._storage = storage

    def restore(self) -> SessionContext:
        """Rebuild a session context from durable storage (may be anonymous)."""
        user = self._storage.load() if self._storage is not None else None
        return SessionContext(user)

    async def login(self, ctx: SessionContext, email: str, password: str) -> CurrentUser:
        """Authenticate and start ``ctx`` for the matching team member.

        Raises:
            ValidationError: Email or password missing
            AuthenticationFailedError: Credentials rejected
            StoreError: Database unreachable
        """
        if not email or not email.strip() or not password:
            raise ValidationError("Bitte geben Sie Email und Passwort ein.")

        try:
            envelope = await self._team_repo.authenticate_user(email, password)
        except SQLAlchemyError as e:
            log.error("Login lookup failed", email=email, error=str(e))
            raise StoreError(
                "Es gab ein Problem bei der Verbindung zur Datenbank.",
                cause=e,
            ) from e

        if not envelope.get("success"):
            log.info("Login rejected", email=email, reason=envelope.get("error"))
            raise AuthenticationFailedError(login_error_message(envelope.get("error")))

        user = CurrentUser.model_validate(envelope["user"])
        ctx.start(user)
        if self._storage is not None:
            self._storage.save(user)

        await self._write_session_entry(
            ctx,
            AuditAction.LOGIN,
            {
                "user_id": str(user.id),
                "user_name": user.name,
                "user_email": user.email,
                "login_time": _now_iso(),
            },
        )
        log.info("User logged in", user_id=str(user.id), user_role=user.user_role.value)
        return user

    async def logout(self, ctx: SessionContext) -> None:
        """End ``ctx`` and forget the stored user."""
        user = ctx.user
        if user is not None:
            await self._write_session_entry(
                ctx,
                AuditAction.LOGOUT,
                {
                    "user_id": str(user.id),
                    "user_name": user.name,
                    "logout_time": _now_iso(),
                },
            )
            log.info("User logged out", user_id=str(user.id))

        if self._storage is not None:
            self._storage.clear()
        ctx.end()

    async def _write_session_entry(
        self,
        ctx: SessionContext,
        action: AuditAction,
        new_values: dict[str, Any],
    ) -> None:
        # A failed session entry must not block signing in or out.
        try:
            await self._audit.record(
                ctx,
                action,
                SESSION_TABLE,
                record_id=ctx.actor_id,
                new_values=new_values,
            )
            await self._audit.commit()
        except SQLAlchemyError as e:
            await self._audit.rollback()
            log.error("Session audit entry not written", action=action.value, error=str(e))


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
