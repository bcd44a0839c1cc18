"""FastAPI application factory."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from relay.config import get_settings
from relay.db import db_manager
from relay.infra.logging_config import LoggingConfig
from relay.routers import health, webhooks

logger = logging.getLogger(__name__)


def create_app(testing: bool = False) -> FastAPI:
    settings = get_settings()
    if not testing:
        LoggingConfig()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owns_engine = False
        if not testing and not db_manager.is_initialized:
            db_manager.init()
            owns_engine = True
            logger.info("Database initialized for %s", settings.app_name)
        yield
        if owns_engine:
            db_manager.dispose()

    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "X-Hub-Signature", "X-Hub-Signature-256"],
    )
    app.include_router(health.router)
    app.include_router(webhooks.router)
    return app


app = create_app()
