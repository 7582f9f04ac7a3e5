"""CRM ORM Models for Agentur CRM.

Contains models for the sales side:
- Customer: accounts under contract or in trial
- HotLead: prospects that have not been converted yet
"""
from __future__ import annotations

from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from agentur_crm.db.base import Base, ToDictMixin, TimestampMixin, UUIDMixin
from agentur_crm.domain import (
    DEFAULT_STAGE,
    ActionStep,
    PaymentStatus,
    Priority,
)


class CustomerModel(Base, UUIDMixin, TimestampMixin, ToDictMixin):
    """Customer ORM model.

    Appointments and revenues reference customers by id without a
    foreign-key cascade; deleting a customer leaves them in place.
    """

    __tablename__ = "customers"

    # Profile
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    contact: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        comment="Contact person",
    )
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Sales attributes
    priority: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=Priority.MITTEL.value,
    )
    payment_status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=PaymentStatus.AUSSTEHEND.value,
    )
    action_step: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=ActionStep.IN_VORBEREITUNG.value,
        index=True,
    )
    pipeline_stage: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=DEFAULT_STAGE.value,
    )
    satisfaction: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=5,
        comment="1-10",
    )
    statuses: Mapped[list[str]] = mapped_column(nullable=False, default=list)

    # Activity counters
    booked_appointments: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completed_appointments: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Lifecycle
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Customer {self.name} ({self.priority})>"


class HotLeadModel(Base, UUIDMixin, TimestampMixin, ToDictMixin):
    """Hot lead ORM model.

    A prospect that is promoted into a CustomerModel once it converts.
    """

    __tablename__ = "hot_leads"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    contact: Mapped[str | None] = mapped_column(String(255), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    priority: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=Priority.MITTEL.value,
    )
    source: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
        comment="Where the lead came from (Empfehlung, Website, Messe...)",
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<HotLead {self.name}>"
