"""Bookkeeping Repositories for Agentur CRM."""
from __future__ import annotations

from decimal import Decimal
from typing import Sequence
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from agentur_crm.db.models.crm import CustomerModel
from agentur_crm.db.models.finance import ExpenseModel, RevenueModel
from agentur_crm.db.repositories.base import BaseRepository, OrderBy, as_uuid


class RevenueRepository(BaseRepository[RevenueModel]):
    """Repository for revenue bookings."""

    default_order = (
        OrderBy("date", descending=True),
        OrderBy("created_at", descending=True),
    )

    def __init__(self, session: AsyncSession):
        super().__init__(RevenueModel, session)

    async def list_recent(self, *, customer_id: UUID | str | None = None) -> Sequence[RevenueModel]:
        """Revenues, latest booking date first."""
        if customer_id is not None:
            return await self.list_ordered(customer_id=as_uuid(customer_id))
        return await self.list_ordered()

    async def list_with_customer_names(self) -> list[tuple[RevenueModel, str | None]]:
        """Revenues paired with the linked customer's name, if any."""
        stmt = select(self._model, CustomerModel.name).outerjoin(
            CustomerModel, CustomerModel.id == self._model.customer_id
        )
        stmt = self._apply_order(stmt, self.default_order)
        result = await self._session.execute(stmt)
        return [(revenue, name) for revenue, name in result]

    async def total_for_customer(self, customer_id: UUID | str) -> Decimal:
        """Sum of all revenues attributed to one customer."""
        stmt = select(func.coalesce(func.sum(self._model.amount), 0)).where(
            self._model.customer_id == as_uuid(customer_id)
        )
        result = await self._session.execute(stmt)
        return Decimal(str(result.scalar() or 0))


class ExpenseRepository(BaseRepository[ExpenseModel]):
    """Repository for expense bookings."""

    default_order = (
        OrderBy("date", descending=True),
        OrderBy("created_at", descending=True),
    )

    def __init__(self, session: AsyncSession):
        super().__init__(ExpenseModel, session)

    async def list_recent(self) -> Sequence[ExpenseModel]:
        """Expenses, latest booking date first."""
        return await self.list_ordered()
