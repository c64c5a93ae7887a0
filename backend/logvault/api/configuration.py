from __future__ import annotations

from fastapi import APIRouter, Depends

from logvault.api import deps
from logvault.schemas.config import ConfigPayload
from logvault.storage import LogStorage

router = APIRouter(prefix="/config", tags=["config"])


@router.get("/{key}")
async def get_config(key: str, storage: LogStorage = Depends(deps.get_storage)) -> dict:
    return await storage.get_config(key)


@router.put("/{key}")
async def set_config(key: str, payload: ConfigPayload, storage: LogStorage = Depends(deps.get_storage)) -> dict:
    return await storage.set_config(key, payload.value)


@router.delete("/{key}")
async def delete_config(key: str, storage: LogStorage = Depends(deps.get_storage)) -> dict:
    return await storage.delete_config(key)
