from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from datetime import timedelta
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

import pytz
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy.ext.asyncio import AsyncEngine

from logvault.core.config import Settings, get_settings
from logvault.db.session import build_sessionmaker, create_engine_from_url
from logvault.models.logs import LogRecord
from logvault.models.notifications import Notification
from logvault.services.buffer import LogBuffer
from logvault.services.config_store import ConfigStore
from logvault.services.flusher import LogFlusher
from logvault.services.notifications import NotificationStore
from logvault.services.query import FilterInput, QueryEngine
from logvault.services.schema import SchemaManager
from logvault.services.users import UserStore
from logvault.workers.retention import RetentionSweeper


logger = logging.getLogger(__name__)

READY = "ready"
ERROR = "error"


class LogStorage:
    """Relational log storage backend.

    One instance owns the engine, the pending buffer, the flush worker and
    the retention scheduler. Construct it once per process and call
    :meth:`initialize` from a running event loop before posting logs.
    """

    def __init__(self, settings: Optional[Settings] = None, engine: Optional[AsyncEngine] = None) -> None:
        self.settings = settings or get_settings()
        self._owns_engine = engine is None
        self.engine = engine or create_engine_from_url(self.settings.database_url)
        self._sessionmaker = build_sessionmaker(self.engine)

        self.config = ConfigStore(self._sessionmaker)
        self.schema = SchemaManager(
            self.engine,
            self.config,
            default_logs_ttl_ms=self.settings.default_logs_ttl_ms,
            sort_buffer_size=self.settings.sort_buffer_size,
        )
        self.buffer = LogBuffer(batch_size=self.settings.batch_size, max_pending=self.settings.max_pending_logs)
        self.flusher = LogFlusher(
            self.buffer,
            self._sessionmaker,
            self.schema.ready,
            interval=self.settings.flush_interval_seconds,
            delivery_policy=self.settings.delivery_policy,
            chunk_rows=self.settings.flush_chunk_rows,
            on_error=lambda exc: self.emit(ERROR, exc),
        )
        self.queries = QueryEngine(
            self._sessionmaker,
            default_limit=self.settings.default_logs_limit,
            search_window=timedelta(hours=self.settings.search_window_hours),
        )
        self.users = UserStore(self._sessionmaker)
        self.notifications = NotificationStore(self._sessionmaker)
        self.logs_sweeper = self._build_sweeper("logs", LogRecord, LogRecord.timestamp)
        self.notifications_sweeper = self._build_sweeper("notifications", Notification, Notification.created_at)

        self.scheduler: Optional[AsyncIOScheduler] = None
        self._listeners: Dict[str, List[Callable[..., Any]]] = defaultdict(list)
        self._flush_task: Optional[asyncio.Task] = None
        self._initialized = False

    def _build_sweeper(self, name: str, model, column) -> RetentionSweeper:
        return RetentionSweeper(
            name,
            model,
            column,
            self._sessionmaker,
            self.config,
            self.schema.ready,
            batch_size=self.settings.retention_batch_size,
            batch_delay=self.settings.retention_batch_delay_seconds,
            default_ttl_ms=self.settings.default_logs_ttl_ms,
        )

    # events

    def on(self, event: str, callback: Callable[..., Any]) -> None:
        self._listeners[event].append(callback)

    def emit(self, event: str, *args: Any) -> None:
        for callback in list(self._listeners.get(event, [])):
            try:
                callback(*args)
            except Exception:  # noqa: BLE001
                logger.exception("Listener %r for %s failed", callback, event)

    # lifecycle

    @property
    def is_ready(self) -> bool:
        return self.schema.ready.is_set()

    async def initialize(self, start_background: bool = True) -> None:
        """Connect, prepare the schema and start the background work.

        Safe to call more than once; later calls wait for the first one.
        """
        if self._initialized:
            await self.schema.ready.wait()
            return
        self._initialized = True

        try:
            await self.schema.check_connection()
            await self.schema.set_buffer_size()
            await self.schema.create_tables()
            await self.schema.ensure_logs_ttl()
        except BaseException:
            self._initialized = False
            raise
        logger.info("Log storage ready on %s", self.engine.dialect.name)
        self.emit(READY)

        if start_background:
            self._start_background()

    def _start_background(self) -> None:
        loop = asyncio.get_running_loop()
        self._flush_task = loop.create_task(self.flusher.run(), name="logvault-flush")
        if self.scheduler is None:
            timezone = pytz.timezone(self.settings.scheduler_timezone)
            self.scheduler = AsyncIOScheduler(timezone=timezone, event_loop=loop)
            trigger = CronTrigger(minute=self.settings.retention_cron_minute, timezone=timezone)
            for job_id, func in (
                ("delete_expired_logs", self.delete_expired_logs),
                ("delete_expired_notifications", self.delete_expired_notifications),
            ):
                self.scheduler.add_job(
                    func, trigger=trigger, id=job_id, replace_existing=True, max_instances=1, coalesce=True
                )
            self.scheduler.start()

    async def close(self) -> None:
        """Stop the background work, flush what is left and release the pool."""
        if self.scheduler is not None and self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        self.scheduler = None
        if self._flush_task is not None:
            self._flush_task.cancel()
            try:
                await self._flush_task
            except asyncio.CancelledError:
                pass
            except Exception:  # noqa: BLE001
                logger.exception("Flush worker had stopped with an error")
            self._flush_task = None
        if self.is_ready:
            await self.flusher.flush_logs()
        if self._owns_engine:
            await self.engine.dispose()

    # write path

    def post_logs(self, entries: Iterable[Any]) -> Dict[str, Any]:
        """Buffer ``entries`` for the flush worker; never blocks, never raises for storage."""
        self.buffer.append(entries)
        return {}

    async def flush_logs(self) -> int:
        return await self.flusher.flush_logs()

    # retention

    async def delete_expired_logs(self) -> int:
        return await self.logs_sweeper.sweep()

    async def delete_expired_notifications(self) -> int:
        return await self.notifications_sweeper.sweep()

    # read path

    async def get_logs(self, filters: FilterInput = None) -> Dict[str, Any]:
        return await self.queries.get_logs(filters)

    async def search_logs(self, terms: Sequence[str], filters: FilterInput = None) -> Dict[str, Any]:
        return await self.queries.search_logs(terms, filters)

    async def get_meta(self, log_id: int) -> Dict[str, Any]:
        return await self.queries.get_meta(log_id)

    async def get_hostnames(self) -> Dict[str, Any]:
        return await self.queries.get_hostnames()

    async def delete_all_logs(self) -> Dict[str, Any]:
        return await self.queries.delete_all_logs()

    # config

    async def get_config(self, key: str) -> Dict[str, Any]:
        return await self.config.get_config(key)

    async def set_config(self, key: str, value: str) -> Dict[str, Any]:
        return await self.config.set_config(key, value)

    async def delete_config(self, key: str) -> Dict[str, Any]:
        return await self.config.delete_config(key)

    # users

    async def create_user(self, user: Mapping[str, Any]) -> Dict[str, Any]:
        return await self.users.create_user(user)

    async def verify_user(self, email: str, password: str) -> Dict[str, Any]:
        return await self.users.verify_user(email, password)

    async def get_user_count(self) -> Dict[str, Any]:
        return await self.users.get_user_count()

    async def get_all_users(self) -> Dict[str, Any]:
        return await self.users.get_all_users()

    async def get_user_by_email(self, email: str) -> Dict[str, Any]:
        return await self.users.get_user_by_email(email)

    async def update_user_by_email(self, email: str, updates: Mapping[str, Any]) -> Dict[str, Any]:
        return await self.users.update_user_by_email(email, updates)

    async def update_password(self, email: str, current_password: str, new_password: str) -> Dict[str, Any]:
        return await self.users.update_password(email, current_password, new_password)

    async def delete_user(self, user_id: int) -> Dict[str, Any]:
        return await self.users.delete_user(user_id)

    # notifications

    async def insert_notification_item(self, notification: Mapping[str, Any]) -> Dict[str, Any]:
        return await self.notifications.insert_notification_item(notification)


__all__ = ["ERROR", "READY", "LogStorage"]
