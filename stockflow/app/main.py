from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from stockflow.app.api.v1.router import router as v1_router
from stockflow.app.core.config import Settings, get_settings
from stockflow.app.core.logging_setup import configure_logging
from stockflow.app.db.session import Database
from stockflow.services.exceptions import (
    Conflict,
    ImageStoreError,
    InsufficientStock,
    InvalidArgument,
    NotFound,
    PathNotAllowed,
    StockflowError,
    StorageError,
)
from stockflow.services.images import ImageStore

logger = logging.getLogger(__name__)

# du plus spécifique au plus générique
ERROR_STATUS = [
    (NotFound, 404),
    (InvalidArgument, 400),
    (InsufficientStock, 409),
    (Conflict, 409),
    (PathNotAllowed, 403),
    (StorageError, 503),
    (ImageStoreError, 500),
]


def status_for(exc: StockflowError) -> int:
    for cls, status in ERROR_STATUS:
        if isinstance(exc, cls):
            return status
    return 500


async def stockflow_error_handler(request: Request, exc: StockflowError) -> JSONResponse:
    status = status_for(exc)
    if status >= 500:
        logger.error("%s %s -> %s: %s", request.method, request.url.path, status, exc.message)
    return JSONResponse(status_code=status, content=exc.to_dict())


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.LOG_LEVEL)

    upload_dir = Path(settings.UPLOAD_DIR)
    upload_dir.mkdir(parents=True, exist_ok=True)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        db = Database(
            settings.DATABASE_URL,
            echo=settings.DB_ECHO,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
        )
        if settings.DB_CREATE_ALL:
            db.create_all()
        app.state.db = db
        logger.info("%s %s démarré", settings.APP_NAME, settings.APP_VERSION)
        try:
            yield
        finally:
            db.dispose()

    app = FastAPI(title=settings.APP_NAME, version=settings.APP_VERSION, lifespan=lifespan)
    app.state.settings = settings
    app.state.image_store = ImageStore(
        upload_dir,
        url_prefix=settings.UPLOAD_URL_PREFIX,
        max_size=settings.MAX_UPLOAD_SIZE,
        allowed_extensions=settings.ALLOWED_IMAGE_EXTENSIONS,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(StockflowError, stockflow_error_handler)

    app.include_router(v1_router, prefix="/v1")
    app.mount(settings.UPLOAD_URL_PREFIX, StaticFiles(directory=upload_dir), name="uploads")
    return app
