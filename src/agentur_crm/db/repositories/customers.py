"""CRM Repositories for Agentur CRM.

Specialized repositories for customers and hot leads.
"""
from __future__ import annotations

from typing import Sequence
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from agentur_crm.db.models.crm import CustomerModel, HotLeadModel
from agentur_crm.db.repositories.base import BaseRepository, OrderBy


class CustomerRepository(BaseRepository[CustomerModel]):
    """Repository for customer database operations."""

    default_order = (OrderBy("created_at", descending=True),)

    def __init__(self, session: AsyncSession):
        super().__init__(CustomerModel, session)

    async def list_recent(self) -> Sequence[CustomerModel]:
        """All customers, newest first."""
        return await self.list_ordered()

    async def search(self, term: str, *, limit: int = 20) -> Sequence[CustomerModel]:
        """Case-insensitive search over name, contact person and email."""
        pattern = f"%{term.lower()}%"
        stmt = (
            select(self._model)
            .where(
                or_(
                    func.lower(self._model.name).like(pattern),
                    func.lower(self._model.contact).like(pattern),
                    func.lower(self._model.email).like(pattern),
                )
            )
            .order_by(self._model.created_at.desc())
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return result.scalars().all()

    async def record_booking(self, customer_id: UUID | str, stage: str) -> CustomerModel | None:
        """Count a newly booked appointment against the customer.

        Increments ``booked_appointments`` and moves the customer's own
        pipeline stage to the stage of the new appointment.
        """
        customer = await self.get(customer_id)
        if customer is None:
            return None

        customer.booked_appointments = (customer.booked_appointments or 0) + 1
        customer.pipeline_stage = stage
        await self._session.flush()
        return customer


class HotLeadRepository(BaseRepository[HotLeadModel]):
    """Repository for hot lead database operations."""

    default_order = (OrderBy("created_at", descending=True),)

    def __init__(self, session: AsyncSession):
        super().__init__(HotLeadModel, session)

    async def list_recent(self) -> Sequence[HotLeadModel]:
        """All leads, newest first."""
        return await self.list_ordered()
