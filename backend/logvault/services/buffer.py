from __future__ import annotations

import asyncio
import logging
from typing import Any, Iterable, List


logger = logging.getLogger(__name__)


class LogBuffer:
    """In-memory queue of log entries waiting to be flushed.

    Appending never suspends, so entries keep submission order. ``drain``
    swaps the pending list for a fresh one: whatever is appended while a
    flush is writing lands in the next flush, never in the current one.
    """

    def __init__(self, batch_size: int = 100, max_pending: int = 100_000) -> None:
        self.batch_size = batch_size
        self.max_pending = max_pending
        self.dropped = 0
        self._pending: List[Any] = []
        self._batch_ready = asyncio.Event()

    def __len__(self) -> int:
        return len(self._pending)

    @property
    def flush_requested(self) -> bool:
        return self._batch_ready.is_set()

    def append(self, entries: Iterable[Any]) -> None:
        self._pending.extend(entries)
        self._enforce_bound()
        if len(self._pending) >= self.batch_size:
            self._batch_ready.set()

    def drain(self) -> List[Any]:
        drained, self._pending = self._pending, []
        self._batch_ready.clear()
        return drained

    def requeue(self, entries: List[Any]) -> None:
        """Put a failed batch back ahead of anything posted since it was drained."""
        self._pending[:0] = entries
        self._enforce_bound()

    async def wait_for_batch(self) -> None:
        await self._batch_ready.wait()

    def _enforce_bound(self) -> None:
        overflow = len(self._pending) - self.max_pending
        if overflow > 0:
            del self._pending[:overflow]
            self.dropped += overflow
            logger.warning("Log buffer full, dropped %d oldest entries (%d dropped so far)", overflow, self.dropped)


__all__ = ["LogBuffer"]
