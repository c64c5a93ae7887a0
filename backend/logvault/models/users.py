from __future__ import annotations

from sqlalchemy import Column, String

from .base import Base, BigIntegerId


class User(Base):
    __tablename__ = "logvault_users"

    id = Column(BigIntegerId, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=False, unique=True)
    hashed_password = Column(String(255), nullable=False)
    role = Column(String(255), nullable=False)
