"""Appointment Repositories for Agentur CRM.

Queries behind the pipeline board and appointment statistics.
"""
from __future__ import annotations

from datetime import date
from typing import Sequence
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from agentur_crm.db.models.core import AppointmentHistoryModel, AppointmentModel
from agentur_crm.db.repositories.base import BaseRepository, OrderBy, as_uuid
from agentur_crm.domain import SUCCESS_STAGES, PipelineStage


class AppointmentRepository(BaseRepository[AppointmentModel]):
    """Repository for appointment database operations."""

    default_order = (
        OrderBy("date"),
        OrderBy("time", nulls_last=True),
        OrderBy("created_at"),
    )

    def __init__(self, session: AsyncSession):
        super().__init__(AppointmentModel, session)

    # ========================================================================
    # Board Queries
    # ========================================================================

    async def list_for_board(
        self,
        *,
        customer_id: UUID | str | None = None,
        team_member_id: UUID | str | None = None,
    ) -> Sequence[AppointmentModel]:
        """Appointments in date order, optionally scoped to one customer or member."""
        filters = {}
        if customer_id is not None:
            filters["customer_id"] = as_uuid(customer_id)
        if team_member_id is not None:
            filters["team_member_id"] = as_uuid(team_member_id)
        return await self.list_ordered(**filters)

    async def get_by_customer(self, customer_id: UUID | str) -> Sequence[AppointmentModel]:
        """All appointments that reference a customer id."""
        return await self.list_ordered(customer_id=as_uuid(customer_id))

    async def upcoming(
        self,
        today: date,
        *,
        customer_id: UUID | str | None = None,
        limit: int = 5,
    ) -> Sequence[AppointmentModel]:
        """Next open appointments from ``today`` on."""
        stmt = select(self._model).where(
            self._model.date >= today,
            self._model.result == PipelineStage.TERMIN_AUSSTEHEND.value,
        )
        if customer_id is not None:
            stmt = stmt.where(self._model.customer_id == as_uuid(customer_id))
        stmt = self._apply_order(stmt, self.default_order).limit(limit)
        result = await self._session.execute(stmt)
        return result.scalars().all()

    # ========================================================================
    # Statistics
    # ========================================================================

    async def count_by_stage(self) -> dict[str, int]:
        """Number of appointments per stage (stages without rows are omitted)."""
        stmt = select(self._model.result, func.count()).group_by(self._model.result)
        result = await self._session.execute(stmt)
        return {stage: count for stage, count in result}

    async def completed_counts_by_member(self) -> dict[UUID, int]:
        """Successful appointments (attended or completed) per team member."""
        stmt = (
            select(self._model.team_member_id, func.count())
            .where(
                self._model.team_member_id.is_not(None),
                self._model.result.in_([s.value for s in SUCCESS_STAGES]),
            )
            .group_by(self._model.team_member_id)
        )
        result = await self._session.execute(stmt)
        return {member_id: count for member_id, count in result}


class AppointmentHistoryRepository(BaseRepository[AppointmentHistoryModel]):
    """Repository for appointment history lines."""

    default_order = (OrderBy("created_at", descending=True),)

    def __init__(self, session: AsyncSession):
        super().__init__(AppointmentHistoryModel, session)

    async def add_entry(
        self,
        appointment_id: UUID,
        message: str,
        *,
        team_member_id: UUID | None = None,
        created_by: str | None = None,
    ) -> AppointmentHistoryModel:
        """Append one history line to an appointment."""
        return await self.create(
            AppointmentHistoryModel(
                appointment_id=appointment_id,
                team_member_id=team_member_id,
                message=message,
                created_by=created_by,
            )
        )

    async def get_by_appointment(self, appointment_id: UUID | str) -> Sequence[AppointmentHistoryModel]:
        """History of one appointment, newest first."""
        return await self.list_ordered(appointment_id=as_uuid(appointment_id))
