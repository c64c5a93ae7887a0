from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from logvault.core.errors import TransactionError, ValidationError
from logvault.models.notifications import Notification
from logvault.utils.time import utc_now


async def _count(storage) -> int:
    async with storage._sessionmaker() as session:
        return await session.scalar(select(func.count()).select_from(Notification))


@pytest.mark.asyncio
async def test_first_notification_has_no_previous_item(storage):
    result = await storage.insert_notification_item({"hostname": "web-1", "hashed_message": "abc", "external_id": 3})

    assert result["previous_notification_item"] is None
    assert result["today_notification_count"] == 1


@pytest.mark.asyncio
async def test_repeat_notification_reports_previous_and_daily_count(storage):
    first = await storage.insert_notification_item({"hostname": "web-1", "hashed_message": "abc"})
    assert first["previous_notification_item"] is None

    second = await storage.insert_notification_item({"hostname": "web-1", "hashed_message": "abc"})

    previous = second["previous_notification_item"]
    assert previous is not None
    assert previous.id == 1
    assert previous.hashed_message == "abc"
    assert second["today_notification_count"] == 2


@pytest.mark.asyncio
async def test_daily_count_spans_hostnames_but_previous_does_not(storage):
    await storage.insert_notification_item({"hostname": "web-1", "hashed_message": "abc"})

    result = await storage.insert_notification_item({"hostname": "web-2", "hashed_message": "abc"})

    assert result["previous_notification_item"] is None
    assert result["today_notification_count"] == 2


@pytest.mark.asyncio
async def test_yesterdays_notifications_are_not_counted(storage):
    yesterday = utc_now() - timedelta(days=1, hours=1)
    async with storage._sessionmaker() as session:
        session.add(Notification(hostname="web-1", hashed_message="abc", created_at=yesterday, updated_at=yesterday))
        await session.commit()

    result = await storage.insert_notification_item({"hostname": "web-1", "hashed_message": "abc"})

    assert result["previous_notification_item"].id == 1
    assert result["today_notification_count"] == 1


@pytest.mark.asyncio
async def test_hashed_message_is_required(storage):
    with pytest.raises(ValidationError):
        await storage.insert_notification_item({"hostname": "web-1"})


@pytest.mark.asyncio
async def test_failure_mid_transaction_rolls_back_the_insert(storage, monkeypatch):
    await storage.insert_notification_item({"hostname": "web-1", "hashed_message": "abc"})

    from sqlalchemy.ext.asyncio import AsyncSession

    original_flush = AsyncSession.flush

    async def broken_flush(self, *args, **kwargs):
        await original_flush(self, *args, **kwargs)
        raise OperationalError("SELECT count", {}, Exception("connection lost"))

    monkeypatch.setattr(AsyncSession, "flush", broken_flush)

    with pytest.raises(TransactionError):
        await storage.insert_notification_item({"hostname": "web-1", "hashed_message": "abc"})

    monkeypatch.setattr(AsyncSession, "flush", original_flush)
    assert await _count(storage) == 1
