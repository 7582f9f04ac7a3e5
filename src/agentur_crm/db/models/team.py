"""Team ORM Models for Agentur CRM.

Contains:
- TeamMember: login-capable account (admin, member or customer portal)
- TeamMemberEarning / TeamMemberExpense: per-member bookkeeping rows
"""
from __future__ import annotations

import datetime as dt
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, Date, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from agentur_crm.db.base import (
    Base,
    ToDictMixin,
    TimestampMixin,
    UUIDMixin,
    UUIDType,
)
from agentur_crm.domain import Role


class TeamMemberModel(Base, UUIDMixin, TimestampMixin, ToDictMixin):
    """Team member ORM model.

    When ``user_role`` is ``kunde`` the account is the external portal
    identity of one customer, linked through ``customer_id`` and shown
    under ``customer_dashboard_name``.
    """

    __tablename__ = "team_members"
    __snapshot_exclude__ = frozenset({"password_hash"})

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    role: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        default="Mitarbeiter",
        comment="Job title shown in the team list",
    )
    user_role: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=Role.MEMBER.value,
        index=True,
    )
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Customer portal link (user_role == kunde)
    customer_dashboard_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    customer_id: Mapped[UUID | None] = mapped_column(UUIDType(), nullable=True, index=True)

    # Performance
    active_since: Mapped[dt.date | None] = mapped_column(Date, nullable=True)
    appointment_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    payouts: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    performance: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<TeamMember {self.email} ({self.user_role})>"


class TeamMemberEarningModel(Base, UUIDMixin, TimestampMixin, ToDictMixin):
    """Money earned by a team member (commission, bonus)."""

    __tablename__ = "team_member_earnings"

    team_member_id: Mapped[UUID] = mapped_column(UUIDType(), nullable=False, index=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)


class TeamMemberExpenseModel(Base, UUIDMixin, TimestampMixin, ToDictMixin):
    """Expense booked against a team member (fuel, phone)."""

    __tablename__ = "team_member_expenses"

    team_member_id: Mapped[UUID] = mapped_column(UUIDType(), nullable=False, index=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
