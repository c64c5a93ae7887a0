from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, constr


class UserCreate(BaseModel):
    name: Optional[str] = None
    email: constr(strip_whitespace=True, min_length=1)
    password: constr(min_length=1)
    role: constr(strip_whitespace=True, min_length=1)


class UserUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[constr(strip_whitespace=True, min_length=1)] = None
    role: Optional[constr(strip_whitespace=True, min_length=1)] = None


class UserItem(BaseModel):
    id: int
    name: Optional[str] = None
    email: str
    role: str

    model_config = ConfigDict(from_attributes=True)


class VerifyRequest(BaseModel):
    email: str
    password: str


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: constr(min_length=1)
