"""Database module for Agentur CRM.

Provides:
- SQLAlchemy ORM models for all entities
- Async session management with dependency injection
- Repository pattern for data access
- Database initialization and lifecycle management
"""
from agentur_crm.db.base import (
    Base,
    UUIDMixin,
    TimestampMixin,
    ToDictMixin,
    to_json_value,
    utcnow,
)
from agentur_crm.db.session import (
    build_engine,
    get_engine,
    make_session_factory,
    get_session_factory,
    get_db,
    get_db_context,
    init_db,
    close_db,
    create_test_engine,
)

__all__ = [
    # Base and mixins
    "Base",
    "UUIDMixin",
    "TimestampMixin",
    "ToDictMixin",
    "to_json_value",
    "utcnow",
    # Session management
    "build_engine",
    "get_engine",
    "make_session_factory",
    "get_session_factory",
    "get_db",
    "get_db_context",
    "init_db",
    "close_db",
    # Testing
    "create_test_engine",
]
