"""Main FastAPI application for the adsdesk API."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from adsdesk.admin.router import router as admin_router
from adsdesk.auth.middleware import JWTAuthMiddleware
from adsdesk.constants import APP_DESCRIPTION, APP_TITLE, APP_VERSION, Routes, ServiceName
from adsdesk.dependencies import db_manager
from adsdesk.logging import configure_logging
from adsdesk.middleware import RequestIDMiddleware, SecurityHeadersMiddleware
from adsdesk.rbac.router import router as me_router
from adsdesk.rbac.sweeper import ExpiredAssignmentSweeper
from adsdesk.settings import get_settings
from adsdesk_shared.logging import DBLogHandler


class AdsDeskApp:
    """Application container — configures middleware, routers, and lifespan."""

    app: FastAPI

    def __init__(self) -> None:
        configure_logging(ServiceName.API)
        self.app = FastAPI(
            title=APP_TITLE,
            description=APP_DESCRIPTION,
            version=APP_VERSION,
            lifespan=self._lifespan,
        )
        self._setup_middleware()
        self._setup_routers()

    @staticmethod
    @asynccontextmanager
    async def _lifespan(app: FastAPI) -> AsyncGenerator[None]:
        """Start the DB log handler and the expired-assignment sweeper; stop both on shutdown."""
        settings = get_settings()
        db_log_handler = DBLogHandler(db_manager, service=ServiceName.API)
        await db_log_handler.start()
        logging.getLogger().addHandler(db_log_handler)
        sweeper = ExpiredAssignmentSweeper(db_manager, interval_seconds=settings.ROLE_SWEEP_INTERVAL_SECONDS)
        await sweeper.start()
        try:
            yield
        finally:
            await sweeper.stop()
            logging.getLogger().removeHandler(db_log_handler)
            await db_log_handler.stop()
            await db_manager.dispose()

    def _setup_middleware(self) -> None:
        settings = get_settings()

        # JWT authentication (extracts user context from tokens)
        self.app.add_middleware(JWTAuthMiddleware)

        # Security headers
        self.app.add_middleware(SecurityHeadersMiddleware)

        # Request-ID (generates/propagates X-Request-ID)
        self.app.add_middleware(RequestIDMiddleware)

        # CORS
        origins = [o.strip() for o in settings.CORS_ALLOWED_ORIGINS.split(",") if o.strip()]
        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    def _setup_routers(self) -> None:
        self.app.include_router(admin_router, prefix=Routes.ADMIN.prefix, tags=[Routes.ADMIN.tag])
        self.app.include_router(me_router, prefix=Routes.ME.prefix, tags=[Routes.ME.tag])

        @self.app.get(Routes.HEALTH)
        async def health_check() -> dict[str, str]:
            """Health check endpoint."""
            return {"status": "healthy"}

        @self.app.get("/")
        async def root() -> dict[str, str]:
            """Root endpoint."""
            return {"message": APP_TITLE, "version": APP_VERSION}


_application = AdsDeskApp()
app: FastAPI = _application.app
