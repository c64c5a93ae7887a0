from __future__ import annotations

from sqlalchemy import BigInteger, DateTime, Integer
from sqlalchemy.dialects import mysql
from sqlalchemy.orm import declarative_base


Base = declarative_base()

# SQLite only auto-increments INTEGER PRIMARY KEY columns.
BigIntegerId = BigInteger().with_variant(Integer, "sqlite")

# MySQL DATETIME defaults to whole seconds; keep milliseconds.
UtcDateTime = DateTime(timezone=True).with_variant(mysql.DATETIME(fsp=3), "mysql")
