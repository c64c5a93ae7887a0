from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class ConfigItem(BaseModel):
    id: int
    key: str
    value: str

    model_config = ConfigDict(from_attributes=True)


class ConfigPayload(BaseModel):
    value: str
