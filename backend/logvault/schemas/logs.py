from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from logvault.utils.time import utc_now


INT32_MAX = 2**31 - 1
INT64_MAX = 2**63 - 1


class LogEntryIn(BaseModel):
    timestamp: datetime = Field(default_factory=utc_now)
    hostname: Optional[str] = None
    pid: Optional[int] = Field(None, ge=-INT32_MAX - 1, le=INT32_MAX)
    source: Optional[str] = None
    level: str = "info"
    message: Optional[str] = None
    meta: Optional[str] = None
    external_id: Optional[int] = Field(None, ge=-INT64_MAX - 1, le=INT64_MAX)


class SourceLevel(BaseModel):
    source: str
    level: str


class LogFilter(BaseModel):
    hostname: Optional[str] = None
    hostnames: List[str] = Field(default_factory=list)
    pid: Optional[int] = None
    source: Optional[str] = None
    sources: List[str] = Field(default_factory=list)
    level: Optional[str] = None
    levels: List[str] = Field(default_factory=list)
    level_json: List[SourceLevel] = Field(default_factory=list)
    external_id: Optional[int] = None
    lt_id: Optional[int] = None
    gt_id: Optional[int] = None
    lte_timestamp: Optional[datetime] = None
    gte_timestamp: Optional[datetime] = None
    limit: Optional[int] = Field(None, ge=1)


class LogItem(BaseModel):
    id: int
    hostname: Optional[str] = None
    pid: Optional[int] = None
    source: Optional[str] = None
    timestamp: datetime
    level: str
    message: Optional[str] = None
    external_id: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)


class LogMeta(BaseModel):
    id: int
    meta: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class SearchRequest(BaseModel):
    terms: List[str] = Field(default_factory=list)
    filters: LogFilter = Field(default_factory=LogFilter)
