"""Bookkeeping ORM Models for Agentur CRM.

Revenue and expense rows are never edited; they are created and,
if wrong, deleted.
"""
from __future__ import annotations

import datetime as dt
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from agentur_crm.db.base import Base, ToDictMixin, TimestampMixin, UUIDMixin, UUIDType


class RevenueModel(Base, UUIDMixin, TimestampMixin, ToDictMixin):
    """Income booking, optionally attributed to a customer."""

    __tablename__ = "revenues"

    description: Mapped[str] = mapped_column(String(255), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    customer_id: Mapped[UUID | None] = mapped_column(UUIDType(), nullable=True, index=True)

    def __repr__(self) -> str:
        return f"<Revenue {self.date} {self.amount}>"


class ExpenseModel(Base, UUIDMixin, TimestampMixin, ToDictMixin):
    """Outgoing booking."""

    __tablename__ = "expenses"

    description: Mapped[str] = mapped_column(String(255), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    reference: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        comment="Invoice or receipt number",
    )

    def __repr__(self) -> str:
        return f"<Expense {self.date} {self.amount}>"
