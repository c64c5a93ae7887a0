from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Union

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from logvault.core.errors import TransactionError, ValidationError
from logvault.models.notifications import Notification
from logvault.schemas.notifications import NotificationIn, NotificationItem
from logvault.utils.time import utc_day_bounds, utc_now


logger = logging.getLogger(__name__)


class NotificationStore:
    """Records alert notifications so the host can suppress repeats."""

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]) -> None:
        self._sessionmaker = sessionmaker

    async def insert_notification_item(
        self, notification: Union[NotificationIn, Mapping[str, Any]]
    ) -> Dict[str, Any]:
        """Insert ``notification`` and report what the host needs to rate-limit it.

        Returns the newest earlier notification for the same hostname and
        message hash (or ``None``) and how many notifications share the
        message hash today, the new one included. The read, insert and count
        share one transaction so the count always includes the new row.
        """
        if not isinstance(notification, NotificationIn):
            try:
                notification = NotificationIn.model_validate(dict(notification or {}))
            except PydanticValidationError as exc:
                raise ValidationError(str(exc)) from exc

        now = utc_now()
        start_of_day, end_of_day = utc_day_bounds(now)

        session = self._sessionmaker()
        try:
            await session.begin()
            previous = await session.scalar(
                select(Notification)
                .where(
                    Notification.hostname == notification.hostname,
                    Notification.hashed_message == notification.hashed_message,
                )
                .order_by(Notification.created_at.desc(), Notification.id.desc())
                .limit(1)
            )
            session.add(
                Notification(
                    external_id=notification.external_id,
                    hostname=notification.hostname,
                    hashed_message=notification.hashed_message,
                    created_at=now,
                    updated_at=now,
                )
            )
            await session.flush()
            today_count = await session.scalar(
                select(func.count())
                .select_from(Notification)
                .where(
                    Notification.hashed_message == notification.hashed_message,
                    Notification.created_at >= start_of_day,
                    Notification.created_at < end_of_day,
                )
            )
            await session.commit()
        except SQLAlchemyError as exc:
            await session.rollback()
            logger.warning("Notification insert rolled back: %s", exc)
            raise TransactionError("Failed to insert notification.") from exc
        finally:
            await session.close()

        return {
            "previous_notification_item": NotificationItem.model_validate(previous) if previous else None,
            "today_notification_count": today_count or 0,
        }


__all__ = ["NotificationStore"]
