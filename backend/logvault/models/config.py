from __future__ import annotations

from sqlalchemy import Column, String, Text

from .base import Base, BigIntegerId


class ConfigRecord(Base):
    __tablename__ = "logvault_config"

    id = Column(BigIntegerId, primary_key=True, autoincrement=True)
    key = Column(String(255), nullable=False, unique=True)
    value = Column(Text, nullable=False)
