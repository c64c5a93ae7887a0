from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from logvault.core.config import DEFAULT_LOGS_TTL_MS
from logvault.services.config_store import ConfigStore
from logvault.services.schema import LOGS_TTL_KEY
from logvault.utils.time import truncate_to_second, utc_now


logger = logging.getLogger(__name__)


def parse_ttl(value: Optional[str], default: int = DEFAULT_LOGS_TTL_MS) -> int:
    """Return ``value`` as a TTL in milliseconds, or ``default`` when unusable."""
    if value is None:
        return default
    try:
        ttl = int(str(value).strip())
    except ValueError:
        return default
    return ttl if ttl >= 0 else default


class RetentionSweeper:
    """Deletes rows older than the configured TTL in bounded batches.

    One sweep runs at a time per instance: a call made while a sweep is
    running returns immediately without touching storage.
    """

    def __init__(
        self,
        name: str,
        model,
        timestamp_column,
        sessionmaker: async_sessionmaker[AsyncSession],
        config_store: ConfigStore,
        ready: asyncio.Event,
        *,
        batch_size: int = 1000,
        batch_delay: float = 10.0,
        default_ttl_ms: int = DEFAULT_LOGS_TTL_MS,
    ) -> None:
        self.name = name
        self._model = model
        self._timestamp_column = timestamp_column
        self._sessionmaker = sessionmaker
        self._config_store = config_store
        self._ready = ready
        self._batch_size = batch_size
        self._batch_delay = batch_delay
        self._default_ttl_ms = default_ttl_ms
        self.running = False

    async def resolve_ttl(self) -> int:
        result = await self._config_store.get_config(LOGS_TTL_KEY)
        item = result["item"]
        return parse_ttl(item.value if item else None, self._default_ttl_ms)

    def expiration_threshold(self, ttl_ms: int, now: Optional[datetime] = None) -> Optional[datetime]:
        """Cut-off below which rows expire, or ``None`` when the TTL reaches past ``datetime.min``."""
        try:
            return truncate_to_second((now or utc_now()) - timedelta(milliseconds=ttl_ms))
        except OverflowError:
            return None

    async def _delete_batch(self, threshold: datetime) -> int:
        # Ids first: MySQL rejects LIMIT inside an IN subquery and SQLite lacks DELETE ... LIMIT.
        id_column = self._model.id
        async with self._sessionmaker() as session:
            ids = (
                await session.scalars(
                    select(id_column)
                    .where(self._timestamp_column < threshold)
                    .order_by(id_column)
                    .limit(self._batch_size)
                )
            ).all()
            if not ids:
                return 0
            result = await session.execute(
                delete(self._model).where(id_column.in_(ids)).execution_options(synchronize_session=False)
            )
            await session.commit()
        return result.rowcount

    async def sweep(self) -> int:
        """Run one sweep; returns the number of rows deleted."""
        if self.running:
            logger.debug("%s sweep already running, skipping", self.name)
            return 0

        self.running = True
        deleted_total = 0
        try:
            await self._ready.wait()
            ttl_ms = await self.resolve_ttl()
            threshold = self.expiration_threshold(ttl_ms)
            if threshold is None:
                logger.info("%s TTL of %d ms predates any timestamp, nothing expires", self.name, ttl_ms)
                return 0
            while True:
                deleted = await self._delete_batch(threshold)
                if deleted == 0:
                    break
                deleted_total += deleted
                logger.debug("%s sweep deleted %d rows older than %s", self.name, deleted, threshold)
                await asyncio.sleep(self._batch_delay)
        except Exception:  # noqa: BLE001
            logger.exception("%s sweep stopped after deleting %d rows", self.name, deleted_total)
        finally:
            self.running = False

        if deleted_total:
            logger.info("%s sweep deleted %d expired rows", self.name, deleted_total)
        return deleted_total


__all__ = ["RetentionSweeper", "parse_ttl"]
