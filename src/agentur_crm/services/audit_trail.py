"""Audit trail recorder.

Every tracked mutation appends one ``audit_logs`` row in the same unit
of work as the write itself, so an entry exists exactly when the change
was committed.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID

from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError

from agentur_crm.core.exceptions import StoreError
from agentur_crm.core.log_setup import get_logger
from agentur_crm.db.base import ToDictMixin
from agentur_crm.db.models.compliance import AuditLogModel
from agentur_crm.db.repositories.compliance import AuditLogRepository
from agentur_crm.domain import AuditAction
from agentur_crm.services.permissions import Capability

if TYPE_CHECKING:
    from agentur_crm.services.session import SessionContext

log = get_logger(__name__)

AUDIT_TABLE = "audit_logs"


class AuditEntryView(BaseModel):
    """One audit entry as shown in the audit log view."""

    id: UUID
    timestamp: datetime
    action: str
    table_name: str
    record_id: str | None = None
    old_values: dict[str, Any] | None = None
    new_values: dict[str, Any] | None = None
    user_id: UUID | None = None
    user_name: str | None = None
    user_email: str | None = None
    ip_address: str | None = None

    @classmethod
    def from_row(
        cls,
        entry: AuditLogModel,
        user_name: str | None,
        user_email: str | None,
    ) -> "AuditEntryView":
        return cls(
            id=entry.id,
            timestamp=entry.timestamp,
            action=entry.action,
            table_name=entry.table_name,
            record_id=entry.record_id,
            old_values=entry.old_values,
            new_values=entry.new_values,
            user_id=entry.user_id,
            user_name=user_name,
            user_email=user_email,
            ip_address=entry.ip_address,
        )

    @property
    def actor_label(self) -> str:
        """Display name of the actor, falling back to email, then "System"."""
        return self.user_name or self.user_email or "System"


def snapshot(record: ToDictMixin | None) -> dict[str, Any] | None:
    """JSON-safe copy of a row's column values (None stays None)."""
    if record is None:
        return None
    return record.to_dict()


class AuditTrail:
    """Appends and reads audit entries.

    ``record`` only adds the entry to the session; the caller commits it
    together with the write it describes.
    """

    def __init__(self, repository: AuditLogRepository, *, read_limit: int = 100) -> None:
        self._repository = repository
        self.read_limit = read_limit

    @property
    def repository(self) -> AuditLogRepository:
        return self._repository

    async def record(
        self,
        ctx: SessionContext | None,
        action: AuditAction,
        table_name: str,
        *,
        record_id: Any = None,
        old_values: dict[str, Any] | None = None,
        new_values: dict[str, Any] | None = None,
    ) -> AuditLogModel:
        """Add one entry to the current unit of work."""
        entry = AuditLogModel.create(
            action.value,
            table_name,
            user_id=ctx.actor_id if ctx is not None else None,
            record_id=record_id,
            old_values=old_values,
            new_values=new_values,
            ip_address=ctx.ip_address if ctx is not None else None,
            user_agent=ctx.user_agent if ctx is not None else None,
        )
        return await self._repository.create(entry)

    async def commit(self) -> None:
        await self._repository.commit()

    async def rollback(self) -> None:
        await self._repository.rollback()

    async def recent(self, ctx: SessionContext, limit: int | None = None) -> list[AuditEntryView]:
        """Newest entries first, resolved with the actor's name and email.

        Unlike the other read paths, a failure here carries the
        underlying database message to the user.
        """
        ctx.require(Capability.VIEW_AUDIT_LOGS)
        try:
            rows = await self._repository.recent_with_actor(limit or self.read_limit)
        except SQLAlchemyError as e:
            log.error("Audit log fetch failed", error=str(e))
            raise StoreError(
                f"Fehler beim Laden der Audit-Logs: {e}",
                cause=e,
            ) from e
        return [AuditEntryView.from_row(entry, name, email) for entry, name, email in rows]

    async def clear_all(self, ctx: SessionContext) -> int:
        """Delete every entry, leaving only the entry recording the clear.

        The CLEAR_LOGS entry is written before the delete so the record
        of the clear survives it.

        Returns:
            Number of deleted entries
        """
        ctx.require(Capability.CLEAR_AUDIT_LOGS)
        try:
            count = await self._repository.count()
            marker = await self.record(
                ctx,
                AuditAction.CLEAR_LOGS,
                AUDIT_TABLE,
                new_values={"deleted_count": count},
            )
            deleted = await self._repository.clear_all_except(marker.id)
            await self._repository.commit()
        except SQLAlchemyError as e:
            await self._repository.rollback()
            log.error("Audit log clear failed", error=str(e))
            raise StoreError("Audit-Logs konnten nicht gelöscht werden.", cause=e) from e

        log.info("Audit log cleared", deleted=deleted)
        return deleted
