"""Store Audit API: FastAPI application factory."""


import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from storeaudit import __version__
from storeaudit.core.config import settings
from storeaudit.core.exceptions import register_exception_handlers
from storeaudit.db.base import init_models
from storeaudit.middleware.request_log import RequestLogMiddleware
from storeaudit.schemas.common import HealthResponse

# v1 routers
from storeaudit.routers.v1.audits import router as audits_v1_router
from storeaudit.routers.v1.images import router as images_v1_router
from storeaudit.routers.v1.stores import router as stores_v1_router

logger = logging.getLogger(__name__)


def _configure_logging() -> None:
    """Set up structured logging for the application."""
    level = logging.DEBUG if settings.app_env == "development" else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
        force=True,
    )
    # Quiet noisy libraries
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("PIL").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Local SQLite databases are created on first start; elsewhere run Alembic
    if settings.database_url.startswith("sqlite"):
        await init_models()
    logger.info("%s %s started (env=%s)", settings.app_name, __version__, settings.app_env)
    yield


def create_app() -> FastAPI:
    _configure_logging()

    app = FastAPI(
        title=settings.app_name,
        version=__version__,
        docs_url="/docs" if settings.app_env == "development" else None,
        redoc_url="/redoc" if settings.app_env == "development" else None,
        lifespan=lifespan,
    )

    # --- CORS ---
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    # --- Request logging ---
    app.add_middleware(RequestLogMiddleware)

    # --- Global exception handlers ---
    register_exception_handlers(app)

    # --- v1 API routes (/api/v1/*) ---
    app.include_router(stores_v1_router, prefix="/api/v1")
    app.include_router(audits_v1_router, prefix="/api/v1")
    app.include_router(images_v1_router, prefix="/api/v1")

    # --- Watermarked photos ---
    media_root = Path(settings.media_dir)
    media_root.mkdir(parents=True, exist_ok=True)
    app.mount("/media", StaticFiles(directory=media_root), name="media")

    # --- Health check ---
    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health():
        return HealthResponse(app=settings.app_name, env=settings.app_env)

    return app


app = create_app()
