from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_LOGS_TTL_MS = 30 * 24 * 60 * 60 * 1000


class Settings(BaseSettings):
    app_name: str = "logvault"
    database_url: str = "sqlite+aiosqlite:///./logvault.db"

    api_host: str = "127.0.0.1"
    api_port: int = Field(8000, ge=1, le=65535)

    log_level: str = "INFO"
    log_file: Optional[str] = None

    batch_size: int = Field(100, ge=1)
    flush_interval_ms: int = Field(1000, ge=1)
    max_pending_logs: int = Field(100_000, ge=1)
    flush_chunk_rows: int = Field(1000, ge=1)
    delivery_policy: Literal["at_most_once", "at_least_once"] = "at_most_once"

    default_logs_ttl_ms: int = Field(DEFAULT_LOGS_TTL_MS, ge=0)
    retention_batch_size: int = Field(1000, ge=1)
    retention_batch_delay_seconds: float = Field(10.0, ge=0)
    retention_cron_minute: int = Field(0, ge=0, le=59)
    scheduler_timezone: str = "UTC"

    sort_buffer_size: int = 8 * 1024 * 1024
    default_logs_limit: int = Field(100, ge=1)
    search_window_hours: int = Field(24, ge=1)

    model_config = SettingsConfigDict(env_prefix="LOGVAULT_", env_file=".env", case_sensitive=False, extra="ignore")

    @field_validator("database_url", mode="before")
    def expand_sqlite_path(cls, v: str) -> str:
        if v.startswith("sqlite") and "///" in v and not v.endswith("///:memory:") and "////" not in v:
            prefix, path = v.split("///", 1)
            if path and not path.startswith("/"):
                abs_path = Path(os.getcwd()) / path
                return f"{prefix}///{abs_path}"
        return v

    @property
    def flush_interval_seconds(self) -> float:
        return self.flush_interval_ms / 1000


@lru_cache()
def get_settings() -> Settings:
    return Settings()
