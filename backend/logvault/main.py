from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from logvault.api import configuration, logs, users
from logvault.core.config import get_settings
from logvault.core.errors import AuthenticationError, ConflictError, NotFoundError, ValidationError
from logvault.core.logging import setup_logging
from logvault.storage import LogStorage


ERROR_STATUS = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ConflictError: status.HTTP_409_CONFLICT,
    ValidationError: status.HTTP_400_BAD_REQUEST,
    AuthenticationError: status.HTTP_401_UNAUTHORIZED,
}


def _register_error_handlers(app: FastAPI) -> None:
    for error_class, status_code in ERROR_STATUS.items():

        async def handler(request: Request, exc: Exception, status_code: int = status_code) -> JSONResponse:
            return JSONResponse(status_code=status_code, content={"detail": str(exc)})

        app.add_exception_handler(error_class, handler)


def create_app(storage: Optional[LogStorage] = None) -> FastAPI:
    settings = storage.settings if storage is not None else get_settings()
    setup_logging(settings.log_level, settings.log_file)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.storage = storage or LogStorage(settings)
        await app.state.storage.initialize()
        try:
            yield
        finally:
            await app.state.storage.close()

    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    _register_error_handlers(app)

    @app.get("/")
    def root():
        return {"app": settings.app_name}

    app.include_router(logs.router)
    app.include_router(configuration.router)
    app.include_router(users.router)
    return app


def main() -> None:
    settings = get_settings()
    uvicorn.run("logvault.main:create_app", factory=True, host=settings.api_host, port=settings.api_port)


if __name__ == "__main__":
    main()
