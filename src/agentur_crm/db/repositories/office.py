"""Office Repositories for Agentur CRM: to-dos and settings."""
from __future__ import annotations

from typing import Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from agentur_crm.db.base import utcnow
from agentur_crm.db.models.office import SettingModel, TodoModel
from agentur_crm.db.repositories.base import BaseRepository, OrderBy


class TodoRepository(BaseRepository[TodoModel]):
    """Repository for to-do items."""

    default_order = (
        OrderBy("due_date", nulls_last=True),
        OrderBy("created_at", descending=True),
    )

    def __init__(self, session: AsyncSession):
        super().__init__(TodoModel, session)

    async def list_by_due_date(self) -> Sequence[TodoModel]:
        """All to-dos, earliest due date first; undated ones last."""
        return await self.list_ordered()

    async def open_count(self) -> int:
        """Number of to-dos not completed yet."""
        return await self.count(completed=False)


class SettingRepository(BaseRepository[SettingModel]):
    """Repository for the key-value settings table."""

    default_order = (OrderBy("key"),)

    def __init__(self, session: AsyncSession):
        super().__init__(SettingModel, session)

    async def get_by_key(self, key: str) -> SettingModel | None:
        stmt = select(self._model).where(self._model.key == key)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_value(self, key: str) -> str | None:
        """Stored value of ``key`` or None when unset."""
        setting = await self.get_by_key(key)
        return setting.value if setting is not None else None

    async def upsert(self, key: str, value: str | None) -> tuple[SettingModel, str | None]:
        """Insert or overwrite ``key``.

        Returns:
            The stored setting and the value it replaced (None if new)
        """
        setting = await self.get_by_key(key)
        if setting is None:
            setting = await self.create(SettingModel(key=key, value=value))
            return setting, None

        previous = setting.value
        setting.value = value
        setting.updated_at = utcnow()
        await self._session.flush()
        await self._session.refresh(setting)
        return setting, previous
