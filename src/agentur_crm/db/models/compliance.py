"""Audit ORM Model for Agentur CRM.

Append-only record of who changed what. The only deletion path is the
admin bulk clear, which writes its own entry first.
"""
from __future__ import annotations

import datetime as dt
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from agentur_crm.db.base import Base, UUIDMixin, UUIDType, to_json_value, utcnow


# ============================================================================
# Audit Log Model
# ============================================================================

class AuditLogModel(Base, UUIDMixin):
    """Persistent audit log entry.

    Note: This model intentionally does NOT use TimestampMixin
    because audit logs should never be updated. The timestamp
    is set once at creation time.
    """

    __tablename__ = "audit_logs"

    timestamp: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        index=True,
    )

    # Acting team member; kept as a bare id so entries outlive the member
    user_id: Mapped[UUID | None] = mapped_column(UUIDType(), nullable=True, index=True)

    action: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    table_name: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    record_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    old_values: Mapped[dict[str, Any] | None] = mapped_column(nullable=True)
    new_values: Mapped[dict[str, Any] | None] = mapped_column(nullable=True)

    # Request context
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(512), nullable=True)

    __table_args__ = (
        Index("ix_audit_logs_table_timestamp", "table_name", "timestamp"),
    )

    def __repr__(self) -> str:
        return f"<AuditLog {self.action} {self.table_name} by {self.user_id} at {self.timestamp}>"

    @classmethod
    def create(
        cls,
        action: str,
        table_name: str,
        *,
        user_id: UUID | None = None,
        record_id: Any = None,
        old_values: dict[str, Any] | None = None,
        new_values: dict[str, Any] | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> "AuditLogModel":
        """Create a new audit log entry with JSON-safe payloads."""
        return cls(
            id=uuid4(),
            timestamp=utcnow(),
            action=action,
            table_name=table_name,
            user_id=user_id,
            record_id=str(record_id) if record_id is not None else None,
            old_values=to_json_value(old_values) if old_values is not None else None,
            new_values=to_json_value(new_values) if new_values is not None else None,
            ip_address=ip_address,
            user_agent=user_agent,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API responses."""
        return {
            "id": str(self.id),
            "timestamp": self.timestamp.isoformat(),
            "user_id": str(self.user_id) if self.user_id else None,
            "action": self.action,
            "table_name": self.table_name,
            "record_id": self.record_id,
            "old_values": self.old_values,
            "new_values": self.new_values,
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
        }
