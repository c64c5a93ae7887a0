from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class NotificationIn(BaseModel):
    external_id: Optional[int] = None
    hostname: Optional[str] = None
    hashed_message: str


class NotificationItem(BaseModel):
    id: int
    external_id: Optional[int] = None
    hostname: Optional[str] = None
    hashed_message: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
