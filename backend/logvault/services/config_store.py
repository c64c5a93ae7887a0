from __future__ import annotations

import logging
from typing import Any, Dict

from sqlalchemy import delete, select
from sqlalchemy.dialects.mysql import insert as mysql_insert
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from logvault.core.errors import NotFoundError, ValidationError
from logvault.models.config import ConfigRecord
from logvault.schemas.config import ConfigItem


logger = logging.getLogger(__name__)


def _upsert_statement(dialect_name: str, key: str, value: str):
    values = {"key": key, "value": value}
    if dialect_name == "mysql":
        stmt = mysql_insert(ConfigRecord).values(**values)
        return stmt.on_duplicate_key_update(value=stmt.inserted.value)
    if dialect_name == "sqlite":
        stmt = sqlite_insert(ConfigRecord).values(**values)
        return stmt.on_conflict_do_update(index_elements=[ConfigRecord.key], set_={"value": stmt.excluded.value})
    if dialect_name == "postgresql":
        stmt = postgresql_insert(ConfigRecord).values(**values)
        return stmt.on_conflict_do_update(index_elements=[ConfigRecord.key], set_={"value": stmt.excluded.value})
    return None


class ConfigStore:
    """Key/value settings kept in the ``logvault_config`` table."""

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]) -> None:
        self._sessionmaker = sessionmaker

    async def get_config(self, key: str) -> Dict[str, Any]:
        if not key:
            raise ValidationError("Key is required.")
        async with self._sessionmaker() as session:
            record = await session.scalar(select(ConfigRecord).where(ConfigRecord.key == key))
        return {"item": ConfigItem.model_validate(record) if record else None}

    async def set_config(self, key: str, value: str) -> Dict[str, Any]:
        if not key:
            raise ValidationError("Key is required.")
        if value is None:
            raise ValidationError("Value is required.")
        value = str(value)
        async with self._sessionmaker() as session:
            stmt = _upsert_statement(session.get_bind().dialect.name, key, value)
            if stmt is not None:
                await session.execute(stmt)
            else:
                record = await session.scalar(select(ConfigRecord).where(ConfigRecord.key == key))
                if record:
                    record.value = value
                else:
                    session.add(ConfigRecord(key=key, value=value))
            await session.commit()
        logger.debug("Config %s updated", key)
        return await self.get_config(key)

    async def delete_config(self, key: str) -> Dict[str, Any]:
        if not key:
            raise ValidationError("Key is required.")
        async with self._sessionmaker() as session:
            result = await session.execute(delete(ConfigRecord).where(ConfigRecord.key == key))
            await session.commit()
        if result.rowcount == 0:
            raise NotFoundError("Configuration not found.")
        return {}


__all__ = ["ConfigStore"]
