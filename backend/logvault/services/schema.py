from __future__ import annotations

import asyncio
import logging
from typing import Optional

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import AsyncEngine

from logvault.core.config import DEFAULT_LOGS_TTL_MS
from logvault.models.config import ConfigRecord
from logvault.models.logs import LogRecord
from logvault.models.notifications import Notification
from logvault.models.users import User
from logvault.services.config_store import ConfigStore


logger = logging.getLogger(__name__)

LOGS_TTL_KEY = "logsTTL"
MANAGED_TABLES = (LogRecord.__table__, User.__table__, ConfigRecord.__table__, Notification.__table__)


class SchemaManager:
    """Brings a database up to the state logvault writes against."""

    def __init__(
        self,
        engine: AsyncEngine,
        config_store: ConfigStore,
        *,
        default_logs_ttl_ms: int = DEFAULT_LOGS_TTL_MS,
        sort_buffer_size: int = 8 * 1024 * 1024,
    ) -> None:
        self._engine = engine
        self._config_store = config_store
        self._default_logs_ttl_ms = default_logs_ttl_ms
        self._sort_buffer_size = sort_buffer_size
        self.ready = asyncio.Event()

    async def check_connection(self) -> None:
        async with self._engine.connect() as connection:
            await connection.execute(text("SELECT 1"))

    async def get_buffer_size(self) -> Optional[int]:
        if self._engine.dialect.name != "mysql":
            return None
        async with self._engine.connect() as connection:
            row = (await connection.execute(text("SHOW VARIABLES LIKE 'sort_buffer_size'"))).first()
        return int(row[1]) if row else None

    async def set_buffer_size(self) -> bool:
        """Raise the MySQL session sort buffer when the server default is lower.

        ``SET SESSION`` only reaches the connection it runs on, so the setting
        is applied to every pooled connection as it is opened.
        """
        if self._engine.dialect.name != "mysql":
            logger.debug("Skipping sort buffer tuning on %s", self._engine.dialect.name)
            return False

        current_size = await self.get_buffer_size()
        if current_size is not None and current_size >= self._sort_buffer_size:
            return False

        desired = self._sort_buffer_size

        @event.listens_for(self._engine.sync_engine, "connect")
        def _set_sort_buffer(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            try:
                cursor.execute(f"SET SESSION sort_buffer_size = {desired}")
            finally:
                cursor.close()

        await self._engine.dispose()
        logger.info("Session sort_buffer_size raised from %s to %s", current_size, desired)
        return True

    async def _create_table(self, table) -> None:
        async with self._engine.begin() as connection:
            await connection.run_sync(table.create, checkfirst=True)

    async def create_tables(self) -> None:
        if self._engine.dialect.name == "sqlite":
            # SQLite serialises writers.
            for table in MANAGED_TABLES:
                await self._create_table(table)
        else:
            await asyncio.gather(*(self._create_table(table) for table in MANAGED_TABLES))
        logger.info("Tables ready: %s", ", ".join(table.name for table in MANAGED_TABLES))
        self.ready.set()

    async def ensure_logs_ttl(self) -> None:
        result = await self._config_store.get_config(LOGS_TTL_KEY)
        if result["item"] is None:
            await self._config_store.set_config(LOGS_TTL_KEY, str(self._default_logs_ttl_ms))
            logger.info("Seeded %s with %s ms", LOGS_TTL_KEY, self._default_logs_ttl_ms)


__all__ = ["LOGS_TTL_KEY", "MANAGED_TABLES", "SchemaManager"]
