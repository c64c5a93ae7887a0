from __future__ import annotations

import asyncio

from passlib.context import CryptContext


pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed_password: str) -> bool:
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(password, hashed_password)
    except ValueError:
        return False


async def hash_password_async(password: str) -> str:
    """Hash ``password`` off the event loop; bcrypt is deliberately slow."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, get_password_hash, password)


async def verify_password_async(password: str, hashed_password: str) -> bool:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, verify_password, password, hashed_password)


__all__ = [
    "get_password_hash",
    "hash_password_async",
    "pwd_context",
    "verify_password",
    "verify_password_async",
]
