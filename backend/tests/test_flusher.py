from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from logvault.models.logs import LogRecord
from logvault.services.buffer import LogBuffer
from logvault.services.flusher import AT_LEAST_ONCE, LogFlusher
from logvault.storage import ERROR

from conftest import make_settings


BASE_TS = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def _entries(count: int, prefix: str = "message"):
    return [
        {
            "timestamp": BASE_TS + timedelta(seconds=i),
            "hostname": "web-1",
            "pid": 4242,
            "source": "console",
            "level": "info",
            "message": f"{prefix} {i}",
        }
        for i in range(count)
    ]


async def _stored_messages(storage) -> list[str]:
    async with storage._sessionmaker() as session:
        return list((await session.scalars(select(LogRecord.message).order_by(LogRecord.id))).all())


async def _fail_write(rows):
    raise OperationalError("INSERT", {}, Exception("database is gone"))


@pytest.mark.asyncio
async def test_posted_logs_wait_for_the_timer_then_land_once_in_order(storage):
    storage.post_logs(_entries(3)[:2])
    storage.post_logs(_entries(3)[2:])

    assert await _stored_messages(storage) == []

    flushed = await storage.flush_logs()
    assert flushed == 3
    assert await _stored_messages(storage) == ["message 0", "message 1", "message 2"]

    assert await storage.flush_logs() == 0
    assert await _stored_messages(storage) == ["message 0", "message 1", "message 2"]


@pytest.mark.asyncio
async def test_reaching_batch_size_flushes_without_the_timer(storage):
    worker = asyncio.create_task(storage.flusher.run())
    try:
        assert storage.post_logs(_entries(storage.settings.batch_size)) == {}
        assert storage.buffer.flush_requested

        for _ in range(100):
            if len(await _stored_messages(storage)) == storage.settings.batch_size:
                break
            await asyncio.sleep(0.01)
        assert len(await _stored_messages(storage)) == storage.settings.batch_size
    finally:
        worker.cancel()
        with pytest.raises(asyncio.CancelledError):
            await worker


@pytest.mark.asyncio
async def test_flush_waits_for_schema_readiness(storage):
    ready = asyncio.Event()
    buffer = LogBuffer()
    flusher = LogFlusher(buffer, storage._sessionmaker, ready)
    buffer.append(_entries(1))

    task = asyncio.create_task(flusher.flush_logs())
    await asyncio.sleep(0.05)
    assert not task.done()
    assert len(buffer) == 1

    ready.set()
    assert await task == 1


@pytest.mark.asyncio
async def test_entries_posted_during_a_flush_go_to_the_next_flush(storage, monkeypatch):
    original_write = storage.flusher._write

    async def write_while_posting(rows):
        storage.post_logs(_entries(1, prefix="late"))
        await original_write(rows)

    monkeypatch.setattr(storage.flusher, "_write", write_while_posting)
    storage.post_logs(_entries(2))

    assert await storage.flush_logs() == 2
    assert await _stored_messages(storage) == ["message 0", "message 1"]
    assert len(storage.buffer) == 1

    monkeypatch.setattr(storage.flusher, "_write", original_write)
    assert await storage.flush_logs() == 1
    assert await _stored_messages(storage) == ["message 0", "message 1", "late 0"]


@pytest.mark.asyncio
async def test_failed_flush_drops_batch_and_emits_error(storage, monkeypatch):
    errors = []
    storage.on(ERROR, errors.append)
    monkeypatch.setattr(storage.flusher, "_write", _fail_write)
    storage.post_logs(_entries(2))

    assert await storage.flush_logs() == 0

    assert len(errors) == 1
    assert isinstance(errors[0], OperationalError)
    assert len(storage.buffer) == 0
    assert storage.flusher.failed_flushes == 1


@pytest.mark.asyncio
async def test_at_least_once_policy_requeues_failed_batch(engine):
    from logvault.storage import LogStorage

    storage = LogStorage(make_settings(delivery_policy=AT_LEAST_ONCE), engine=engine)
    await storage.initialize(start_background=False)
    try:
        original_write = storage.flusher._write
        storage.flusher._write = _fail_write
        storage.post_logs(_entries(2))

        assert await storage.flush_logs() == 0
        assert len(storage.buffer) == 2

        storage.flusher._write = original_write
        assert await storage.flush_logs() == 2
        assert await _stored_messages(storage) == ["message 0", "message 1"]
    finally:
        await storage.close()


@pytest.mark.asyncio
async def test_invalid_entries_are_skipped_not_fatal(storage):
    storage.post_logs([{"message": "ok", "pid": 1}, {"message": "bad", "pid": "not-a-pid"}])

    assert await storage.flush_logs() == 1
    assert await _stored_messages(storage) == ["ok"]


@pytest.mark.asyncio
async def test_flush_splits_large_batches_into_chunks(engine):
    from logvault.storage import LogStorage

    storage = LogStorage(make_settings(flush_chunk_rows=7, batch_size=1000), engine=engine)
    await storage.initialize(start_background=False)
    try:
        storage.post_logs(_entries(20))
        assert await storage.flush_logs() == 20
        async with storage._sessionmaker() as session:
            assert await session.scalar(select(func.count()).select_from(LogRecord)) == 20
    finally:
        await storage.close()


async def _wait_until(predicate, attempts: int = 100, delay: float = 0.02) -> bool:
    for _ in range(attempts):
        if await predicate():
            return True
        await asyncio.sleep(delay)
    return await predicate()


@pytest.mark.asyncio
async def test_timer_flushes_a_partial_batch_once_in_order(engine):
    from logvault.storage import LogStorage

    storage = LogStorage(make_settings(flush_interval_ms=300, batch_size=100), engine=engine)
    await storage.initialize(start_background=False)
    worker = asyncio.create_task(storage.flusher.run())
    try:
        storage.post_logs(_entries(3))
        assert not storage.buffer.flush_requested

        await asyncio.sleep(0.05)
        assert await _stored_messages(storage) == []

        async def all_stored():
            return len(await _stored_messages(storage)) == 3

        assert await _wait_until(all_stored)
        await asyncio.sleep(0.35)
        assert await _stored_messages(storage) == ["message 0", "message 1", "message 2"]
        assert storage.flusher.flushed_total == 3
    finally:
        worker.cancel()
        with pytest.raises(asyncio.CancelledError):
            await worker
        await storage.close()


@pytest.mark.asyncio
async def test_out_of_range_integers_are_skipped_as_invalid(storage):
    storage.post_logs(
        [
            {"message": "huge pid", "pid": 2**70},
            {"message": "huge external id", "external_id": 2**64},
            {"message": "fine", "pid": 12},
        ]
    )

    assert await storage.flush_logs() == 1
    assert await _stored_messages(storage) == ["fine"]


@pytest.mark.asyncio
async def test_worker_survives_driver_errors_and_keeps_flushing(engine, monkeypatch):
    from logvault.storage import LogStorage

    storage = LogStorage(make_settings(flush_interval_ms=20), engine=engine)
    errors = []
    storage.on(ERROR, errors.append)
    await storage.initialize()
    try:
        original_write = storage.flusher._write

        async def overflowing_write(rows):
            raise OverflowError("Python int too large to convert to SQLite INTEGER")

        monkeypatch.setattr(storage.flusher, "_write", overflowing_write)
        storage.post_logs([{"message": "bad"}])

        async def error_reported():
            return bool(errors)

        assert await _wait_until(error_reported)
        assert isinstance(errors[0], OverflowError)
        assert not storage._flush_task.done()

        monkeypatch.setattr(storage.flusher, "_write", original_write)
        storage.post_logs([{"message": "good"}])

        async def good_stored():
            return await _stored_messages(storage) == ["good"]

        assert await _wait_until(good_stored)
        assert len(storage.buffer) == 0
    finally:
        await storage.close()


@pytest.mark.asyncio
async def test_close_logs_a_crashed_worker_instead_of_raising(engine):
    from logvault.storage import LogStorage

    storage = LogStorage(make_settings(), engine=engine)
    await storage.initialize(start_background=False)

    async def crash():
        raise OverflowError("worker crashed")

    storage._flush_task = asyncio.create_task(crash())
    await asyncio.sleep(0)

    await storage.close()

    assert storage._flush_task is None
