"""SQLAlchemy Base and Mixins for the Agentur CRM database.

Provides:
- DeclarativeBase for all ORM models
- UUIDMixin for UUID primary keys
- TimestampMixin for created_at/updated_at
- ToDictMixin for JSON-safe row snapshots (API payloads, audit entries)
"""
from __future__ import annotations

from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import DateTime, String, TypeDecorator, func, inspect
from sqlalchemy.dialects.sqlite import JSON
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class UUIDType(TypeDecorator):
    """Platform-independent UUID type.

    Uses String(36) storage but handles UUID <-> str conversion.
    Compatible with SQLite and PostgreSQL.
    """

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        """Convert UUID to string for storage."""
        if value is None:
            return None
        if isinstance(value, UUID):
            return str(value)
        return str(UUID(str(value)))

    def process_result_value(self, value, dialect):
        """Convert string back to UUID on retrieval."""
        if value is None:
            return None
        if isinstance(value, UUID):
            return value
        return UUID(value)


def utcnow() -> datetime:
    """Timezone-aware current time with microsecond precision."""
    return datetime.now(timezone.utc)


def to_json_value(value: Any) -> Any:
    """Convert a column value into something ``json.dumps`` accepts."""
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): to_json_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_json_value(v) for v in value]
    if hasattr(value, "value"):  # enums
        return value.value
    return str(value)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models.

    Provides common configuration and type annotations.
    """

    type_annotation_map = {
        dict[str, Any]: JSON,
        list[str]: JSON,
        UUID: UUIDType,
    }


class UUIDMixin:
    """Mixin providing UUID primary key."""

    id: Mapped[UUID] = mapped_column(
        UUIDType(),
        primary_key=True,
        default=uuid4,
        nullable=False,
    )


class TimestampMixin:
    """Mixin providing created_at and updated_at timestamps.

    Timestamps are set on the Python side so rows created within the
    same second still sort by creation order.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
        index=True,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
        nullable=False,
    )


class ToDictMixin:
    """Mixin providing a JSON-safe column snapshot.

    Models list columns that must never leave the database layer in
    ``__snapshot_exclude__`` (password hashes and the like).
    """

    __snapshot_exclude__: frozenset[str] = frozenset()

    def to_dict(self) -> dict[str, Any]:
        """Convert loaded column values to a JSON-safe dictionary."""
        mapper = inspect(type(self))
        return {
            column.key: to_json_value(getattr(self, column.key))
            for column in mapper.column_attrs
            if column.key not in self.__snapshot_exclude__
        }
