"""Base Repository Pattern for Agentur CRM.

Provides generic CRUD operations with async SQLAlchemy support.
All specialized repositories inherit from BaseRepository.

Repositories only ``flush``. Committing is left to the caller so a
domain store can group a write and its audit entry into one unit.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, Sequence, TypeVar
from uuid import UUID

from sqlalchemy import Select, delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from agentur_crm.core.exceptions import RecordNotFoundError
from agentur_crm.db.base import Base

# Type variable for model classes
ModelT = TypeVar("ModelT", bound=Base)


@dataclass(frozen=True)
class OrderBy:
    """One ordering term of a list query."""

    column: str
    descending: bool = False
    nulls_last: bool = False


def as_uuid(value: UUID | str) -> UUID:
    """Coerce a primary key given as string into a UUID."""
    if isinstance(value, UUID):
        return value
    return UUID(str(value))


class BaseRepository(Generic[ModelT]):
    """Generic base repository with async CRUD operations.

    Usage:
        class CustomerRepository(BaseRepository[CustomerModel]):
            default_order = (OrderBy("created_at", descending=True),)

            def __init__(self, session: AsyncSession):
                super().__init__(CustomerModel, session)
    """

    # Fixed sort key used by list_ordered()
    default_order: tuple[OrderBy, ...] = ()

    def __init__(self, model: type[ModelT], session: AsyncSession):
        """Initialize repository with model class and session.

        Args:
            model: SQLAlchemy model class
            session: Async database session
        """
        self._model = model
        self._session = session

    @property
    def session(self) -> AsyncSession:
        """Get the current database session."""
        return self._session

    @property
    def model(self) -> type[ModelT]:
        """Model class handled by this repository."""
        return self._model

    # ========================================================================
    # Basic CRUD Operations
    # ========================================================================

    async def get(self, id: UUID | str) -> ModelT | None:
        """Get a single record by ID.

        Args:
            id: UUID or string primary key

        Returns:
            Model instance or None if not found
        """
        stmt = select(self._model).where(self._model.id == as_uuid(id))
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_or_raise(self, id: UUID | str) -> ModelT:
        """Get a single record by ID, raising if not found.

        Raises:
            RecordNotFoundError: If record not found
        """
        obj = await self.get(id)
        if obj is None:
            raise RecordNotFoundError(
                "Eintrag wurde nicht gefunden.",
                details={"model": self._model.__name__, "id": str(id)},
            )
        return obj

    async def get_multi(
        self,
        *,
        skip: int = 0,
        limit: int | None = 100,
        order_by: str | None = None,
        descending: bool = True,
    ) -> Sequence[ModelT]:
        """Get multiple records with pagination.

        Args:
            skip: Number of records to skip
            limit: Maximum records to return (None for all)
            order_by: Column name to order by (default: created_at if exists)
            descending: Sort in descending order

        Returns:
            List of model instances
        """
        column_name = order_by or ("created_at" if hasattr(self._model, "created_at") else None)
        order = (OrderBy(column_name, descending=descending),) if column_name else ()
        stmt = self._apply_order(select(self._model), order).offset(skip)
        if limit is not None:
            stmt = stmt.limit(limit)

        result = await self._session.execute(stmt)
        return result.scalars().all()

    async def list_ordered(self, **filters: Any) -> Sequence[ModelT]:
        """All records matching ``filters`` in the repository's fixed order."""
        stmt = self._apply_filters(select(self._model), filters)
        stmt = self._apply_order(stmt, self.default_order)
        result = await self._session.execute(stmt)
        return result.scalars().all()

    async def create(self, obj_in: ModelT) -> ModelT:
        """Create a new record.

        Args:
            obj_in: Model instance to create

        Returns:
            Created model instance with generated ID and defaults
        """
        self._session.add(obj_in)
        await self._session.flush()
        await self._session.refresh(obj_in)
        return obj_in

    async def create_from(self, values: dict[str, Any]) -> ModelT:
        """Build a model from a column mapping and create it."""
        return await self.create(self._model(**values))

    async def update(self, id: UUID | str, obj_in: dict[str, Any]) -> ModelT | None:
        """Update a record by ID.

        Args:
            id: UUID or string primary key
            obj_in: Dictionary of fields to update

        Returns:
            Updated model instance or None if not found
        """
        db_obj = await self.get(id)
        if db_obj is None:
            return None

        for field, value in obj_in.items():
            if hasattr(db_obj, field):
                setattr(db_obj, field, value)

        await self._session.flush()
        await self._session.refresh(db_obj)
        return db_obj

    async def delete(self, id: UUID | str) -> bool:
        """Delete a record by ID.

        Returns:
            True if deleted, False if not found
        """
        db_obj = await self.get(id)
        if db_obj is None:
            return False

        await self._session.delete(db_obj)
        await self._session.flush()
        return True

    # ========================================================================
    # Query Helpers
    # ========================================================================

    async def count(self, **filters: Any) -> int:
        """Count records, optionally restricted by column filters."""
        stmt = self._apply_filters(select(func.count()).select_from(self._model), filters)
        result = await self._session.execute(stmt)
        return result.scalar() or 0

    async def exists(self, id: UUID | str) -> bool:
        """Check if a record exists."""
        return await self.count(id=as_uuid(id)) > 0

    async def find_one(self, **filters: Any) -> ModelT | None:
        """Find a single record by arbitrary filters.

        Returns:
            First matching model instance or None
        """
        stmt = self._apply_filters(select(self._model), filters).limit(1)
        result = await self._session.execute(stmt)
        return result.scalars().first()

    async def find_many(
        self,
        *,
        skip: int = 0,
        limit: int | None = 100,
        **filters: Any,
    ) -> Sequence[ModelT]:
        """Find multiple records by arbitrary filters, in the fixed order."""
        stmt = self._apply_filters(select(self._model), filters)
        stmt = self._apply_order(stmt, self.default_order).offset(skip)
        if limit is not None:
            stmt = stmt.limit(limit)

        result = await self._session.execute(stmt)
        return result.scalars().all()

    # ========================================================================
    # Bulk Operations
    # ========================================================================

    async def bulk_update(
        self,
        filters: dict[str, Any],
        updates: dict[str, Any],
    ) -> int:
        """Bulk update records matching filters.

        Returns:
            Number of records updated
        """
        stmt = self._apply_filters(update(self._model), filters).values(**updates)
        result = await self._session.execute(stmt)
        await self._session.flush()
        return result.rowcount

    async def bulk_delete(self, filters: dict[str, Any] | None = None) -> int:
        """Bulk delete records matching filters (all records if none).

        Returns:
            Number of records deleted
        """
        stmt = self._apply_filters(delete(self._model), filters or {})
        result = await self._session.execute(stmt)
        await self._session.flush()
        return result.rowcount

    # ========================================================================
    # Transaction Helpers
    # ========================================================================

    async def commit(self) -> None:
        """Commit the current transaction."""
        await self._session.commit()

    async def rollback(self) -> None:
        """Rollback the current transaction."""
        await self._session.rollback()

    async def refresh(self, obj: ModelT) -> ModelT:
        """Refresh an object from the database."""
        await self._session.refresh(obj)
        return obj

    def detach(self, obj: ModelT) -> ModelT:
        """Remove a loaded object from the session.

        The object keeps its loaded values and is no longer expired by a
        later rollback, so it can be held in a store's local list.
        """
        if obj in self._session:
            self._session.expunge(obj)
        return obj

    # ========================================================================
    # Statement Builders
    # ========================================================================

    def _apply_filters(self, stmt: Any, filters: dict[str, Any]) -> Any:
        """Add ``column == value`` (or ``IN`` for lists) clauses."""
        for field, value in filters.items():
            column = getattr(self._model, field, None)
            if column is None:
                raise ValueError(f"{self._model.__name__} has no column {field!r}")
            if isinstance(value, (list, tuple, set, frozenset)):
                stmt = stmt.where(column.in_(list(value)))
            elif value is None:
                stmt = stmt.where(column.is_(None))
            else:
                stmt = stmt.where(column == value)
        return stmt

    def _apply_order(self, stmt: Select, order: Sequence[OrderBy]) -> Select:
        for term in order:
            column = getattr(self._model, term.column)
            clause = column.desc() if term.descending else column.asc()
            if term.nulls_last:
                clause = clause.nulls_last()
            stmt = stmt.order_by(clause)
        return stmt
