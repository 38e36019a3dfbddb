"""
FastAPI application entrypoint for the X video uploader.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from x_uploader.api.routes import router as api_router
from x_uploader.core.config import get_settings
from x_uploader.core.logging import configure_logging
from x_uploader.dependencies import get_upload_orchestrator


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    # Uploads still running at shutdown are cancelled and recorded as failed.
    if get_upload_orchestrator.cache_info().currsize:
        await get_upload_orchestrator().shutdown()


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="X Video Uploader",
        version="0.1.0",
        description="Upload videos to X in the background and track their status.",
        lifespan=lifespan,
    )
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()

__all__ = ["app", "create_app"]
