"""Medication reminder FastAPI application."""

from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded

from medreminder import __version__
from medreminder.config import settings, validate_bot_api_key
from medreminder.container import ServiceContainer
from medreminder.database import close_database, get_engine
from medreminder.logging_config import get_logger, setup_logging
from medreminder.middleware import (
    CorrelationIdMiddleware,
    limiter,
    rate_limit_exceeded_handler,
)
from medreminder.routers import auth, health, link, notify, push, reminders, users

setup_logging(
    log_format=settings.log_format,
    log_level=settings.log_level,
    service_name=settings.service_name,
)
logger = get_logger(__name__)


def create_app(container: ServiceContainer | None = None) -> FastAPI:
    """Build the application.

    With no container, one is built against the configured database on
    startup and torn down on shutdown. A supplied container is installed
    immediately and its lifecycle left to the caller.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Migrations are applied by `alembic upgrade head` before startup
        owned = container is None
        if owned:
            validate_bot_api_key()
            app.state.container = ServiceContainer.build(settings, get_engine())

        app.state.container.start()
        logger.info("Medication reminder API started")

        yield

        logger.info("Shutting down medication reminder API...")
        app.state.container.stop()
        if owned:
            await close_database()
        logger.info("Medication reminder API shutdown complete")

    app = FastAPI(
        title="Medication Reminder API",
        description="Sessions, account linking and real-time push for medication reminders",
        version=__version__,
        lifespan=lifespan,
    )
    if container is not None:
        app.state.container = container

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

    # Middleware (order matters: first added = last executed)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(CorrelationIdMiddleware)

    app.include_router(health.router)
    app.include_router(auth.router)
    app.include_router(users.router)
    app.include_router(link.router)
    app.include_router(reminders.router)
    app.include_router(notify.router)
    app.include_router(push.router)

    @app.get("/")
    async def root() -> dict[str, Any]:
        """Root endpoint."""
        return {
            "name": "Medication Reminder API",
            "version": __version__,
            "docs": "/docs",
        }

    return app


app = create_app()
