from __future__ import annotations

from fastapi import APIRouter, Depends, status

from logvault.api import deps
from logvault.schemas.users import ChangePasswordRequest, UserCreate, UserUpdate, VerifyRequest
from logvault.storage import LogStorage

router = APIRouter(prefix="/users", tags=["users"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_user(payload: UserCreate, storage: LogStorage = Depends(deps.get_storage)) -> dict:
    return await storage.create_user(payload)


@router.get("")
async def list_users(storage: LogStorage = Depends(deps.get_storage)) -> dict:
    return await storage.get_all_users()


@router.get("/count")
async def count_users(storage: LogStorage = Depends(deps.get_storage)) -> dict:
    return await storage.get_user_count()


@router.post("/verify")
async def verify_user(payload: VerifyRequest, storage: LogStorage = Depends(deps.get_storage)) -> dict:
    return await storage.verify_user(payload.email, payload.password)


@router.get("/{email}")
async def get_user(email: str, storage: LogStorage = Depends(deps.get_storage)) -> dict:
    return await storage.get_user_by_email(email)


@router.patch("/{email}")
async def update_user(email: str, payload: UserUpdate, storage: LogStorage = Depends(deps.get_storage)) -> dict:
    return await storage.update_user_by_email(email, payload.model_dump(exclude_unset=True))


@router.post("/{email}/password")
async def change_password(
    email: str,
    payload: ChangePasswordRequest,
    storage: LogStorage = Depends(deps.get_storage),
) -> dict:
    return await storage.update_password(email, payload.current_password, payload.new_password)


@router.delete("/id/{user_id}")
async def delete_user(user_id: int, storage: LogStorage = Depends(deps.get_storage)) -> dict:
    return await storage.delete_user(user_id)
