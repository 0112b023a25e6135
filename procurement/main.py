from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from procurement.api.v1.router import v1_router
from procurement.core.config import Settings, get_settings
from procurement.core.errors import register_error_handlers
from procurement.core.logging import configure_logging
from procurement.core.middleware import RequestIdMiddleware
from procurement.db.session import Database
from procurement.services.file_storage import LocalFileStorage

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings)

    database = Database(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if settings.auto_create_schema:
            database.create_schema()
        logger.info("startup complete", extra={"environment": settings.environment})
        yield
        database.dispose()

    app = FastAPI(
        title=settings.app_name,
        version="0.1.0",
        lifespan=lifespan,
    )

    # store handle, config and uploads travel on app.state
    app.state.settings = settings
    app.state.database = database
    app.state.file_storage = LocalFileStorage(settings.upload_dir, settings.max_upload_bytes)

    # Middleware: Request ID
    app.add_middleware(RequestIdMiddleware, header_name=settings.request_id_header)

    register_error_handlers(app)

    # API v1
    app.include_router(v1_router, prefix=settings.api_prefix)

    return app


_app: Optional[FastAPI] = None


def __getattr__(name: str):
    # `uvicorn procurement.main:app` builds the app on first access, so
    # importing this module does not require a configured environment
    global _app
    if name == "app":
        if _app is None:
            _app = create_app()
        return _app
    raise AttributeError(name)
