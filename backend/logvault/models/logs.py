from __future__ import annotations

from sqlalchemy import BigInteger, Column, Index, Integer, String, Text

from logvault.utils.time import utc_now

from .base import Base, BigIntegerId, UtcDateTime


class LogRecord(Base):
    __tablename__ = "logvault_logs"
    __table_args__ = (
        Index("ix_logvault_logs_source_level_id", "source", "level", "id"),
        Index("ix_logvault_logs_source_level_timestamp", "source", "level", "timestamp"),
        Index("ix_logvault_logs_hostname_pid_id", "hostname", "pid", "id"),
        Index("ix_logvault_logs_external_id", "external_id"),
        Index("ix_logvault_logs_timestamp", "timestamp"),
    )

    id = Column(BigIntegerId, primary_key=True, autoincrement=True)
    hostname = Column(String(255), nullable=True)
    pid = Column(Integer, nullable=True)
    source = Column(String(255), nullable=True)
    timestamp = Column(UtcDateTime, nullable=False, default=utc_now)
    level = Column(String(255), nullable=False, default="info")
    message = Column(Text, nullable=True)
    meta = Column(Text, nullable=True)
    external_id = Column(BigInteger, nullable=True)
