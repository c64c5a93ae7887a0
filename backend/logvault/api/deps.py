from __future__ import annotations

from fastapi import Request

from logvault.storage import LogStorage


def get_storage(request: Request) -> LogStorage:
    return request.app.state.storage


__all__ = ["get_storage"]
