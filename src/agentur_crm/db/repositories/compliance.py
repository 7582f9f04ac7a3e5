"""Audit Log Repository for Agentur CRM.

Audit entries are append-only. The single exception is
``clear_all_except``, used by the audited bulk clear.
"""
from __future__ import annotations

from uuid import UUID

from sqlalchemy import delete, desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from agentur_crm.db.models.compliance import AuditLogModel
from agentur_crm.db.models.team import TeamMemberModel
from agentur_crm.db.repositories.base import BaseRepository, OrderBy


class AuditLogRepository(BaseRepository[AuditLogModel]):
    """Repository for audit log operations."""

    default_order = (OrderBy("timestamp", descending=True),)

    def __init__(self, session: AsyncSession):
        super().__init__(AuditLogModel, session)

    # ========================================================================
    # Audit Log Queries
    # ========================================================================

    async def recent_with_actor(
        self,
        limit: int = 100,
    ) -> list[tuple[AuditLogModel, str | None, str | None]]:
        """Newest entries first, each with the acting member's name and email.

        Entries whose member no longer exists come back with ``None``
        for name and email.
        """
        stmt = (
            select(self._model, TeamMemberModel.name, TeamMemberModel.email)
            .outerjoin(TeamMemberModel, TeamMemberModel.id == self._model.user_id)
            .order_by(desc(self._model.timestamp))
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return [(entry, name, email) for entry, name, email in result]

    # ========================================================================
    # Bulk Clear
    # ========================================================================

    async def clear_all_except(self, keep_id: UUID) -> int:
        """Delete every entry but ``keep_id``.

        Returns:
            Number of deleted entries
        """
        stmt = (
            delete(self._model)
            .where(self._model.id != keep_id)
            .execution_options(synchronize_session="fetch")
        )
        result = await self._session.execute(stmt)
        await self._session.flush()
        return result.rowcount
