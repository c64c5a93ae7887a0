from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from sqlalchemy import and_, delete, distinct, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from logvault.core.errors import NotFoundError, ValidationError
from logvault.models.logs import LogRecord
from logvault.schemas.logs import LogFilter, LogItem, LogMeta
from logvault.utils.time import to_utc


logger = logging.getLogger(__name__)

FilterInput = Union[LogFilter, Mapping[str, Any], None]

LIST_COLUMNS = (
    LogRecord.id,
    LogRecord.hostname,
    LogRecord.pid,
    LogRecord.source,
    LogRecord.timestamp,
    LogRecord.level,
    LogRecord.message,
    LogRecord.external_id,
)


def _coerce_filters(filters: FilterInput) -> LogFilter:
    if filters is None:
        return LogFilter()
    if isinstance(filters, LogFilter):
        return filters.model_copy(deep=True)
    return LogFilter.model_validate(dict(filters))


def _attribute_conditions(filters: LogFilter) -> List[Any]:
    """Conditions shared by listing and searching, pagination bounds excluded."""
    conditions: List[Any] = []
    if filters.hostname:
        conditions.append(LogRecord.hostname == filters.hostname)
    if filters.hostnames:
        conditions.append(LogRecord.hostname.in_(filters.hostnames))
    if filters.pid:
        conditions.append(LogRecord.pid == filters.pid)
    if filters.source:
        conditions.append(LogRecord.source == filters.source)
    if filters.sources:
        conditions.append(LogRecord.source.in_(filters.sources))
    if filters.level:
        conditions.append(LogRecord.level == filters.level)
    if filters.levels:
        conditions.append(LogRecord.level.in_(filters.levels))

    pair_conditions = [
        and_(LogRecord.source == pair.source, LogRecord.level == pair.level) for pair in filters.level_json
    ]
    if pair_conditions and filters.external_id:
        conditions.append(or_(*pair_conditions, LogRecord.external_id == filters.external_id))
    elif pair_conditions:
        conditions.append(or_(*pair_conditions))
    elif filters.external_id:
        conditions.append(LogRecord.external_id == filters.external_id)
    return conditions


def _listing_bounds(filters: LogFilter) -> Tuple[List[Any], bool]:
    """Pagination bounds for ``get_logs``: ``lt_id`` wins, then ``gt_id``, then timestamps.

    Returns the conditions and whether the page is fetched newest first.
    """
    if filters.lt_id:
        return [LogRecord.id < filters.lt_id], True
    if filters.gt_id:
        return [LogRecord.id > filters.gt_id], False

    conditions: List[Any] = []
    descending = True
    if filters.lte_timestamp:
        conditions.append(LogRecord.timestamp <= to_utc(filters.lte_timestamp))
        descending = True
    if filters.gte_timestamp:
        conditions.append(LogRecord.timestamp >= to_utc(filters.gte_timestamp))
        descending = False
    return conditions, descending


def _search_bounds(filters: LogFilter, window: timedelta) -> Tuple[List[Any], bool]:
    """Pagination bounds for ``search_logs``.

    Every bound given applies and the last one given sets the order. A lone
    timestamp bound gets its counterpart ``window`` away, written back into
    ``filters`` so callers see the effective range; the synthesized bound
    does not change the order.
    """
    conditions: List[Any] = []
    descending = True
    if filters.lt_id:
        conditions.append(LogRecord.id < filters.lt_id)
        descending = True
    if filters.gt_id:
        conditions.append(LogRecord.id > filters.gt_id)
        descending = False

    if filters.lte_timestamp or filters.gte_timestamp:
        if filters.lte_timestamp and not filters.gte_timestamp:
            filters.lte_timestamp = to_utc(filters.lte_timestamp)
            filters.gte_timestamp = filters.lte_timestamp - window
            conditions.append(LogRecord.timestamp <= filters.lte_timestamp)
            conditions.append(LogRecord.timestamp >= filters.gte_timestamp)
            descending = True
        elif filters.gte_timestamp and not filters.lte_timestamp:
            filters.gte_timestamp = to_utc(filters.gte_timestamp)
            filters.lte_timestamp = filters.gte_timestamp + window
            conditions.append(LogRecord.timestamp >= filters.gte_timestamp)
            conditions.append(LogRecord.timestamp <= filters.lte_timestamp)
            descending = False
        else:
            conditions.append(LogRecord.timestamp <= to_utc(filters.lte_timestamp))
            conditions.append(LogRecord.timestamp >= to_utc(filters.gte_timestamp))
            descending = False
    return conditions, descending


class QueryEngine:
    def __init__(
        self,
        sessionmaker: async_sessionmaker[AsyncSession],
        *,
        default_limit: int = 100,
        search_window: timedelta = timedelta(hours=24),
    ) -> None:
        self._sessionmaker = sessionmaker
        self._default_limit = default_limit
        self._search_window = search_window

    async def _fetch(self, conditions: Sequence[Any], descending: bool, limit: int) -> List[LogItem]:
        order = LogRecord.id.desc() if descending else LogRecord.id.asc()
        stmt = select(*LIST_COLUMNS).where(*conditions).order_by(order).limit(limit)
        async with self._sessionmaker() as session:
            rows = (await session.execute(stmt)).all()
        items = [LogItem.model_validate(dict(row._mapping)) for row in rows]
        if descending:
            items.reverse()
        return items

    async def get_logs(self, filters: FilterInput = None) -> Dict[str, Any]:
        filters = _coerce_filters(filters)
        filters.limit = filters.limit or self._default_limit

        bounds, descending = _listing_bounds(filters)
        conditions = _attribute_conditions(filters) + bounds
        return {"items": await self._fetch(conditions, descending, filters.limit)}

    async def search_logs(self, terms: Optional[Sequence[str]], filters: FilterInput = None) -> Dict[str, Any]:
        filters = _coerce_filters(filters)
        filters.limit = filters.limit or self._default_limit

        conditions = [LogRecord.message.contains(term, autoescape=True) for term in terms or [] if term]
        conditions += _attribute_conditions(filters)
        bounds, descending = _search_bounds(filters, self._search_window)
        conditions += bounds
        items = await self._fetch(conditions, descending, filters.limit)
        return {"items": items, "filters": filters}

    async def get_meta(self, log_id: int) -> Dict[str, Any]:
        if not log_id:
            raise ValidationError("Log id is required.")
        async with self._sessionmaker() as session:
            row = (await session.execute(select(LogRecord.id, LogRecord.meta).where(LogRecord.id == log_id))).first()
        if row is None:
            raise NotFoundError("Log entry not found.")
        return {"item": LogMeta.model_validate(dict(row._mapping))}

    async def get_hostnames(self) -> Dict[str, Any]:
        stmt = (
            select(distinct(LogRecord.hostname))
            .where(LogRecord.hostname.is_not(None), LogRecord.hostname != "")
            .order_by(LogRecord.hostname)
        )
        async with self._sessionmaker() as session:
            hostnames = (await session.scalars(stmt)).all()
        return {"items": list(hostnames)}

    async def delete_all_logs(self) -> Dict[str, Any]:
        async with self._sessionmaker() as session:
            result = await session.execute(delete(LogRecord))
            await session.commit()
        logger.info("Deleted all %d log entries", result.rowcount)
        return {}


__all__ = ["QueryEngine"]
