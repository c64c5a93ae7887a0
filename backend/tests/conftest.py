from __future__ import annotations

import sys
from pathlib import Path

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

sys.path.append(str(Path(__file__).resolve().parents[1]))

from logvault.core.config import Settings  # noqa: E402
from logvault.storage import LogStorage  # noqa: E402


def make_settings(**overrides) -> Settings:
    values = {
        "database_url": "sqlite+aiosqlite://",
        "flush_interval_ms": 60_000,
        "retention_batch_delay_seconds": 0,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def storage(settings: Settings, engine) -> LogStorage:
    storage = LogStorage(settings, engine=engine)
    await storage.initialize(start_background=False)
    try:
        yield storage
    finally:
        await storage.close()
