from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from logvault.models.logs import LogRecord
from logvault.schemas.logs import LogEntryIn
from logvault.services.buffer import LogBuffer
from logvault.utils.time import to_utc


logger = logging.getLogger(__name__)

AT_MOST_ONCE = "at_most_once"
AT_LEAST_ONCE = "at_least_once"


def _to_row(entry: Any) -> Dict[str, Any]:
    model = entry if isinstance(entry, LogEntryIn) else LogEntryIn.model_validate(entry)
    row = model.model_dump()
    row["timestamp"] = to_utc(row["timestamp"])
    return row


def _chunks(rows: List[Dict[str, Any]], size: int):
    for start in range(0, len(rows), size):
        yield rows[start : start + size]


class LogFlusher:
    """Persists the buffered entries in one transaction per flush."""

    def __init__(
        self,
        buffer: LogBuffer,
        sessionmaker: async_sessionmaker[AsyncSession],
        ready: asyncio.Event,
        *,
        interval: float = 1.0,
        delivery_policy: str = AT_MOST_ONCE,
        chunk_rows: int = 1000,
        on_error: Optional[Callable[[Exception], None]] = None,
    ) -> None:
        if delivery_policy not in (AT_MOST_ONCE, AT_LEAST_ONCE):
            raise ValueError(f"Unknown delivery policy: {delivery_policy}")
        self._buffer = buffer
        self._sessionmaker = sessionmaker
        self._ready = ready
        self._interval = interval
        self._delivery_policy = delivery_policy
        self._chunk_rows = chunk_rows
        self._on_error = on_error
        self.flushed_total = 0
        self.failed_flushes = 0

    def _build_rows(self, entries: List[Any]) -> List[Dict[str, Any]]:
        rows = []
        for entry in entries:
            try:
                rows.append(_to_row(entry))
            except PydanticValidationError as exc:
                logger.warning("Skipping invalid log entry: %s", exc.errors(include_url=False))
        return rows

    async def _write(self, rows: List[Dict[str, Any]]) -> None:
        async with self._sessionmaker() as session:
            async with session.begin():
                for chunk in _chunks(rows, self._chunk_rows):
                    await session.execute(insert(LogRecord.__table__).values(chunk))

    async def flush_logs(self) -> int:
        """Write everything buffered so far; returns the number of rows written.

        Failures are logged and reported to ``on_error`` instead of raised.
        Under ``at_most_once`` the failed batch is dropped, under
        ``at_least_once`` it goes back to the head of the buffer.
        """
        await self._ready.wait()

        drained = self._buffer.drain()
        if not drained:
            return 0

        rows = self._build_rows(drained)
        if not rows:
            return 0

        try:
            await self._write(rows)
        except Exception as exc:  # noqa: BLE001
            # Drivers raise unwrapped errors too, e.g. sqlite3 OverflowError on out-of-range integers.
            self.failed_flushes += 1
            logger.exception("Failed to flush %d log entries", len(rows))
            if self._delivery_policy == AT_LEAST_ONCE:
                self._buffer.requeue(drained)
            if self._on_error is not None:
                self._on_error(exc)
            return 0

        self.flushed_total += len(rows)
        logger.debug("Flushed %d log entries", len(rows))
        return len(rows)

    async def run(self) -> None:
        """Flush whenever a batch fills up or the interval elapses."""
        while True:
            try:
                await asyncio.wait_for(self._buffer.wait_for_batch(), timeout=self._interval)
            except asyncio.TimeoutError:
                pass
            failures = self.failed_flushes
            try:
                await self.flush_logs()
            except Exception:  # noqa: BLE001
                self.failed_flushes += 1
                logger.exception("Flush worker iteration failed")
            if self.failed_flushes > failures:
                await asyncio.sleep(self._interval)


__all__ = ["AT_LEAST_ONCE", "AT_MOST_ONCE", "LogFlusher"]
