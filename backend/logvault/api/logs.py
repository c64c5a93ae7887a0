from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from logvault.api import deps
from logvault.schemas.logs import LogEntryIn, LogFilter, SearchRequest, SourceLevel
from logvault.storage import LogStorage

router = APIRouter(prefix="/logs", tags=["logs"])


def _parse_level_json(values: List[str]) -> List[SourceLevel]:
    # "source:level" pairs
    pairs = []
    for value in values:
        source, _, level = value.partition(":")
        if source and level:
            pairs.append(SourceLevel(source=source, level=level))
    return pairs


@router.post("", status_code=status.HTTP_202_ACCEPTED)
async def post_logs(entries: List[LogEntryIn], storage: LogStorage = Depends(deps.get_storage)) -> dict:
    return storage.post_logs(entries)


@router.get("")
async def list_logs(
    hostname: Optional[str] = None,
    hostnames: Optional[List[str]] = Query(None),
    pid: Optional[int] = None,
    sources: Optional[List[str]] = Query(None),
    levels: Optional[List[str]] = Query(None),
    level_json: Optional[List[str]] = Query(None),
    external_id: Optional[int] = None,
    lt_id: Optional[int] = None,
    gt_id: Optional[int] = None,
    lte_timestamp: Optional[datetime] = None,
    gte_timestamp: Optional[datetime] = None,
    limit: Optional[int] = Query(None, ge=1),
    storage: LogStorage = Depends(deps.get_storage),
) -> dict:
    filters = LogFilter(
        hostname=hostname,
        hostnames=hostnames or [],
        pid=pid,
        sources=sources or [],
        levels=levels or [],
        level_json=_parse_level_json(level_json or []),
        external_id=external_id,
        lt_id=lt_id,
        gt_id=gt_id,
        lte_timestamp=lte_timestamp,
        gte_timestamp=gte_timestamp,
        limit=limit,
    )
    return await storage.get_logs(filters)


@router.post("/search")
async def search_logs(payload: SearchRequest, storage: LogStorage = Depends(deps.get_storage)) -> dict:
    return await storage.search_logs(payload.terms, payload.filters)


@router.get("/hostnames")
async def list_hostnames(storage: LogStorage = Depends(deps.get_storage)) -> dict:
    return await storage.get_hostnames()


@router.get("/{log_id}/meta")
async def get_meta(log_id: int, storage: LogStorage = Depends(deps.get_storage)) -> dict:
    return await storage.get_meta(log_id)


@router.delete("")
async def delete_all_logs(storage: LogStorage = Depends(deps.get_storage)) -> dict:
    return await storage.delete_all_logs()
