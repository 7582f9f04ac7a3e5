"""Team Repositories for Agentur CRM.

Besides plain CRUD this module hosts the server-side procedures the
application calls by name:

- authenticate_user(email, password)
- get_team_member_earnings(member_id) / add_team_member_earning(...)
- get_team_member_expenses(member_id) / add_team_member_expense(...)
"""
from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any, Sequence
from uuid import UUID

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from agentur_crm.core.security import verify_password
from agentur_crm.db.models.core import AppointmentHistoryModel, AppointmentModel
from agentur_crm.db.models.team import (
    TeamMemberEarningModel,
    TeamMemberExpenseModel,
    TeamMemberModel,
)
from agentur_crm.db.repositories.base import BaseRepository, OrderBy, as_uuid
from agentur_crm.domain import Role

# Error texts of the authenticate_user envelope. Callers match on the
# keywords "nicht gefunden", "Passwort" and "inaktiv".
AUTH_ERROR_NOT_FOUND = "Benutzer nicht gefunden"
AUTH_ERROR_PASSWORD = "Falsches Passwort"
AUTH_ERROR_INACTIVE = "Benutzer ist inaktiv"


class TeamMemberRepository(BaseRepository[TeamMemberModel]):
    """Repository for team member accounts and their bookkeeping."""

    default_order = (OrderBy("created_at", descending=True),)

    def __init__(self, session: AsyncSession):
        super().__init__(TeamMemberModel, session)

    # ========================================================================
    # Account Queries
    # ========================================================================

    async def list_recent(self) -> Sequence[TeamMemberModel]:
        """All team members, newest first."""
        return await self.list_ordered()

    async def find_by_email(self, email: str) -> TeamMemberModel | None:
        """Find an account by email (case-insensitive)."""
        stmt = select(self._model).where(
            func.lower(self._model.email) == email.strip().lower()
        )
        result = await self._session.execute(stmt)
        return result.scalars().first()

    async def count_admins(self) -> int:
        """Number of active admin accounts."""
        return await self.count(user_role=Role.ADMIN.value, is_active=True)

    async def record_booking(self, member_id: UUID | str) -> TeamMemberModel | None:
        """Count a newly booked appointment against the member."""
        member = await self.get(member_id)
        if member is None:
            return None
        member.appointment_count = (member.appointment_count or 0) + 1
        await self._session.flush()
        return member

    # ========================================================================
    # Procedures
    # ========================================================================

    async def authenticate_user(self, email: str, password: str) -> dict[str, Any]:
        """Check credentials and return a ``{success, user?, error?}`` envelope.

        Never raises for bad credentials; only database failures propagate.
        """
        member = await self.find_by_email(email)
        if member is None:
            return {"success": False, "error": AUTH_ERROR_NOT_FOUND}
        if not verify_password(password, member.password_hash):
            return {"success": False, "error": AUTH_ERROR_PASSWORD}
        if not member.is_active:
            return {"success": False, "error": AUTH_ERROR_INACTIVE}

        return {
            "success": True,
            "user": {
                "id": str(member.id),
                "name": member.name,
                "email": member.email,
                "user_role": member.user_role,
                "role": member.role,
                "is_active": member.is_active,
                "customer_dashboard_name": member.customer_dashboard_name,
                "customer_id": str(member.customer_id) if member.customer_id else None,
            },
        }

    async def get_team_member_earnings(self, member_id: UUID | str) -> Sequence[TeamMemberEarningModel]:
        """Earnings of one member, newest date first."""
        return await self._bookings(TeamMemberEarningModel, member_id)

    async def get_team_member_expenses(self, member_id: UUID | str) -> Sequence[TeamMemberExpenseModel]:
        """Expenses of one member, newest date first."""
        return await self._bookings(TeamMemberExpenseModel, member_id)

    async def add_team_member_earning(
        self,
        member_id: UUID | str,
        amount: Decimal,
        description: str,
        booked_on: date,
    ) -> TeamMemberEarningModel:
        """Book an earning for a member."""
        row = TeamMemberEarningModel(
            team_member_id=as_uuid(member_id),
            amount=amount,
            description=description,
            date=booked_on,
        )
        self._session.add(row)
        await self._session.flush()
        await self._session.refresh(row)
        return row

    async def add_team_member_expense(
        self,
        member_id: UUID | str,
        amount: Decimal,
        description: str,
        booked_on: date,
    ) -> TeamMemberExpenseModel:
        """Book an expense for a member."""
        row = TeamMemberExpenseModel(
            team_member_id=as_uuid(member_id),
            amount=amount,
            description=description,
            date=booked_on,
        )
        self._session.add(row)
        await self._session.flush()
        await self._session.refresh(row)
        return row

    async def _bookings(self, model: type, member_id: UUID | str) -> Sequence[Any]:
        stmt = (
            select(model)
            .where(model.team_member_id == as_uuid(member_id))
            .order_by(model.date.desc(), model.created_at.desc())
        )
        result = await self._session.execute(stmt)
        return result.scalars().all()

    # ========================================================================
    # Cascading Delete
    # ========================================================================

    async def delete_cascade(self, member_id: UUID | str) -> dict[str, int]:
        """Delete a member together with every row that references it.

        Order: appointment history, earnings, expenses, appointments,
        then the member row. History lines of the member's appointments
        go too, even when another member wrote them.

        Returns:
            Number of deleted rows per table (``team_members`` is 0 or 1)
        """
        member_uuid = as_uuid(member_id)
        own_appointments = select(AppointmentModel.id).where(
            AppointmentModel.team_member_id == member_uuid
        )

        counts: dict[str, int] = {}
        steps = (
            (
                "appointment_history",
                delete(AppointmentHistoryModel).where(
                    or_(
                        AppointmentHistoryModel.team_member_id == member_uuid,
                        AppointmentHistoryModel.appointment_id.in_(own_appointments),
                    )
                ),
            ),
            (
                "team_member_earnings",
                delete(TeamMemberEarningModel).where(
                    TeamMemberEarningModel.team_member_id == member_uuid
                ),
            ),
            (
                "team_member_expenses",
                delete(TeamMemberExpenseModel).where(
                    TeamMemberExpenseModel.team_member_id == member_uuid
                ),
            ),
            (
                "appointments",
                delete(AppointmentModel).where(AppointmentModel.team_member_id == member_uuid),
            ),
            (
                "team_members",
                delete(TeamMemberModel).where(TeamMemberModel.id == member_uuid),
            ),
        )

        for table_name, stmt in steps:
            result = await self._session.execute(
                stmt.execution_options(synchronize_session="fetch")
            )
            counts[table_name] = result.rowcount

        await self._session.flush()
        return counts
