"""Core ORM Models for Agentur CRM.

Contains the appointment models that feed the sales pipeline board.
"""
from __future__ import annotations

import datetime as dt
from uuid import UUID

from sqlalchemy import Date, DateTime, Index, String, Text, Time
from sqlalchemy.orm import Mapped, mapped_column

from agentur_crm.db.base import (
    Base,
    ToDictMixin,
    TimestampMixin,
    UUIDMixin,
    UUIDType,
    utcnow,
)
from agentur_crm.domain import DEFAULT_STAGE


class AppointmentModel(Base, UUIDMixin, TimestampMixin, ToDictMixin):
    """Appointment ORM model.

    ``result`` holds the pipeline stage and is the only thing that
    decides which board column a card lands in.

    ``customer_id`` and ``team_member_id`` are plain indexed columns.
    Removing a customer leaves its appointments behind; removing a team
    member deletes them explicitly (see TeamMemberRepository).
    """

    __tablename__ = "appointments"

    customer_id: Mapped[UUID | None] = mapped_column(
        UUIDType(),
        nullable=True,
        index=True,
    )
    team_member_id: Mapped[UUID | None] = mapped_column(
        UUIDType(),
        nullable=True,
        index=True,
    )

    # Scheduling
    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    time: Mapped[dt.time | None] = mapped_column(Time, nullable=True)

    # Details
    type: Mapped[str] = mapped_column(String(50), nullable=False, default="Termin")
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Pipeline stage
    result: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=DEFAULT_STAGE.value,
        index=True,
    )

    __table_args__ = (
        Index("ix_appointments_customer_date", "customer_id", "date"),
        Index("ix_appointments_member_result", "team_member_id", "result"),
    )

    def __repr__(self) -> str:
        return f"<Appointment {self.date} {self.result}>"


class AppointmentHistoryModel(Base, UUIDMixin, ToDictMixin):
    """Free-text history line attached to an appointment."""

    __tablename__ = "appointment_history"

    appointment_id: Mapped[UUID] = mapped_column(UUIDType(), nullable=False, index=True)
    team_member_id: Mapped[UUID | None] = mapped_column(
        UUIDType(),
        nullable=True,
        index=True,
    )
    message: Mapped[str] = mapped_column(Text, nullable=False)
    created_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<AppointmentHistory {self.appointment_id}: {self.message[:30]}>"
