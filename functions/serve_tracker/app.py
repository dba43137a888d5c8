"""
FastAPI application entry point for the serve tracker backend.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from serve_tracker.config import get_settings
from serve_tracker.dependencies import get_orchestrator, get_sync_poller
from serve_tracker.routes import router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    get_orchestrator().load()
    poller = get_sync_poller()
    if poller is not None:
        poller.start()
    try:
        yield
    finally:
        if poller is not None:
            poller.stop()


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title="Serve Tracker Backend", version="0.1.0", lifespan=lifespan)
    app.include_router(router, prefix=settings.api_prefix)
    return app


app = create_app()
