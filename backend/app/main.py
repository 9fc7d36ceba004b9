"""
Video Ingest API - FastAPI Application Entry Point.

Wires the upload and read routers under ``/api``, serves stored thumbnails
from ``/assets``, and manages startup/shutdown of the video catalog.

Run locally with:
    uvicorn app.main:app --reload --port 8091
"""

import logging

from contextlib import asynccontextmanager
from datetime import UTC, datetime

import uvicorn

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from app import __version__
from app.api.v1 import api_router
from app.config import get_settings
from app.core.errors import register_exception_handlers
from app.services.asset_store import LocalAssetStore
from app.services.catalog_service import close_catalog, init_catalog
from app.utils.logger import setup_logging


logger = logging.getLogger(__name__)


# =============================================================================
# Application Lifespan Management
# =============================================================================


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """
    Startup: configure logging, create the assets directory, connect the catalog.
    Shutdown: close the catalog.
    """
    settings = get_settings()
    setup_logging(settings.log_level, json_logs=settings.json_logs)

    logger.info("Starting %s (%s) on %s:%s", settings.app_name, settings.app_env, settings.host, settings.port)
    logger.info(
        "Video URL mode: %s",
        f"CDN ({settings.s3_cf_distribution})" if settings.is_cdn_enabled else "private bucket",
    )

    LocalAssetStore.from_settings(settings).ensure_root()

    try:
        await init_catalog(settings)
    except Exception as e:
        logger.exception("Failed to initialize video catalog")
        raise RuntimeError(f"Video catalog initialization failed: {e}") from e

    yield

    logger.info("Shutting down %s", settings.app_name)
    await close_catalog()


# =============================================================================
# FastAPI Application Instance
# =============================================================================

_settings = get_settings()

app = FastAPI(
    title=_settings.app_name,
    version=__version__,
    description="Authenticated thumbnail and video upload ingest",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)


@app.get("/", tags=["root"])
async def root() -> dict:
    return {
        "name": _settings.app_name,
        "version": __version__,
        "docs": "/docs",
    }


@app.get("/health", tags=["health"])
async def health_check() -> dict:
    """Liveness probe; does not check the catalog or object store."""
    return {
        "status": "healthy",
        "timestamp": datetime.now(UTC).isoformat(),
        "service": _settings.app_name,
    }


app.include_router(api_router, prefix="/api")

# The directory is created during startup, hence check_dir=False
app.mount(
    "/assets",
    StaticFiles(directory=_settings.assets_root, check_dir=False),
    name="assets",
)


if __name__ == "__main__":
    uvicorn.run(
        "app.main:app",
        host=_settings.host,
        port=_settings.port,
        reload=_settings.debug,
        log_level=_settings.log_level,
    )
