from __future__ import annotations

from sqlalchemy import BigInteger, Column, Index, String

from logvault.utils.time import utc_now

from .base import Base, BigIntegerId, UtcDateTime


class Notification(Base):
    __tablename__ = "logvault_notifications"
    __table_args__ = (
        Index("ix_logvault_notifications_hostname_hash_created", "hostname", "hashed_message", "created_at"),
        Index("ix_logvault_notifications_created_at", "created_at"),
    )

    id = Column(BigIntegerId, primary_key=True, autoincrement=True)
    external_id = Column(BigInteger, nullable=True)
    hostname = Column(String(255), nullable=True)
    hashed_message = Column(String(255), nullable=False)
    created_at = Column(UtcDateTime, nullable=False, default=utc_now)
    updated_at = Column(UtcDateTime, nullable=False, default=utc_now, onupdate=utc_now)
