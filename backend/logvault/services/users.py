from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Union

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from logvault.core.errors import AuthenticationError, ConflictError, NotFoundError, ValidationError
from logvault.core.security import hash_password_async, verify_password_async
from logvault.models.users import User
from logvault.schemas.users import UserCreate, UserItem


logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("name", "email", "role")


class UserStore:
    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]) -> None:
        self._sessionmaker = sessionmaker

    async def _find_by_email(self, session: AsyncSession, email: str) -> User:
        user = await session.scalar(select(User).where(User.email == email))
        if user is None:
            raise NotFoundError("User not found.")
        return user

    async def create_user(self, user: Union[UserCreate, Mapping[str, Any]]) -> Dict[str, Any]:
        if not isinstance(user, UserCreate):
            data = dict(user or {})
            if not data.get("email") or not data.get("password") or not data.get("role"):
                raise ValidationError("Email, password and role are required.")
            try:
                user = UserCreate.model_validate(data)
            except PydanticValidationError as exc:
                raise ValidationError(str(exc)) from exc

        hashed_password = await hash_password_async(user.password)
        record = User(name=user.name, email=user.email, hashed_password=hashed_password, role=user.role)
        async with self._sessionmaker() as session:
            session.add(record)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise ConflictError("A user with the provided email already exists.") from exc
        logger.info("Created user %s with role %s", record.email, record.role)
        return {"item": UserItem.model_validate(record)}

    async def verify_user(self, email: str, password: str) -> Dict[str, Any]:
        if not email or not password:
            raise ValidationError("Both email and password are required for verification.")
        async with self._sessionmaker() as session:
            user = await self._find_by_email(session, email)
        if not await verify_password_async(password, user.hashed_password):
            raise AuthenticationError("Incorrect password.")
        return {"item": UserItem.model_validate(user)}

    async def get_user_count(self) -> Dict[str, Any]:
        async with self._sessionmaker() as session:
            count = await session.scalar(select(func.count()).select_from(User))
        return {"count": count or 0}

    async def get_all_users(self) -> Dict[str, Any]:
        async with self._sessionmaker() as session:
            users = (await session.scalars(select(User).order_by(User.id))).all()
        return {"items": [UserItem.model_validate(user) for user in users]}

    async def get_user_by_email(self, email: str) -> Dict[str, Any]:
        if not email:
            raise ValidationError("Email is required.")
        async with self._sessionmaker() as session:
            user = await self._find_by_email(session, email)
        return {"item": UserItem.model_validate(user)}

    async def update_user_by_email(self, email: str, updates: Mapping[str, Any]) -> Dict[str, Any]:
        if not email:
            raise ValidationError("Email is required.")
        values = {key: value for key, value in dict(updates or {}).items() if key in UPDATABLE_FIELDS}
        if not values:
            raise ValidationError("No updates provided.")

        async with self._sessionmaker() as session:
            try:
                result = await session.execute(update(User).where(User.email == email).values(**values))
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise ConflictError("A user with the provided email already exists.") from exc
        if result.rowcount == 0:
            raise NotFoundError("No updates applied.")
        return await self.get_user_by_email(values.get("email") or email)

    async def update_password(self, email: str, current_password: str, new_password: str) -> Dict[str, Any]:
        if not email or not current_password or not new_password:
            raise ValidationError("Email, current password, and new password are required.")

        async with self._sessionmaker() as session:
            user = await self._find_by_email(session, email)
            if not await verify_password_async(current_password, user.hashed_password):
                raise AuthenticationError("Current password is incorrect.")
            hashed_password = await hash_password_async(new_password)
            result = await session.execute(
                update(User).where(User.email == email).values(hashed_password=hashed_password)
            )
            await session.commit()
            if result.rowcount == 0:
                raise NotFoundError("Password update failed.")
            await session.refresh(user)
        return {"item": UserItem.model_validate(user)}

    async def delete_user(self, user_id: int) -> Dict[str, Any]:
        if not user_id:
            raise ValidationError("User ID is required.")
        async with self._sessionmaker() as session:
            result = await session.execute(delete(User).where(User.id == user_id))
            await session.commit()
        if result.rowcount == 0:
            raise NotFoundError("User not found.")
        return {}


__all__ = ["UPDATABLE_FIELDS", "UserStore"]
