"""Office ORM Models for Agentur CRM: to-dos and key-value settings."""
from __future__ import annotations

import datetime as dt
from uuid import UUID

from sqlalchemy import Boolean, Date, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from agentur_crm.db.base import (
    Base,
    ToDictMixin,
    TimestampMixin,
    UUIDMixin,
    UUIDType,
    utcnow,
)
from agentur_crm.domain import TodoPriority


class TodoModel(Base, UUIDMixin, TimestampMixin, ToDictMixin):
    """To-do item."""

    __tablename__ = "todos"

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    due_date: Mapped[dt.date | None] = mapped_column(Date, nullable=True, index=True)
    priority: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        default=TodoPriority.MITTEL.value,
    )
    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    assignee_id: Mapped[UUID | None] = mapped_column(UUIDType(), nullable=True, index=True)

    def __repr__(self) -> str:
        state = "x" if self.completed else " "
        return f"<Todo [{state}] {self.title}>"


class SettingModel(Base, UUIDMixin, ToDictMixin):
    """Flat key-value setting, upserted by key."""

    __tablename__ = "settings"

    key: Mapped[str] = mapped_column(String(100), nullable=False, unique=True, index=True)
    value: Mapped[str | None] = mapped_column(Text, nullable=True)
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Setting {self.key}={self.value!r}>"
