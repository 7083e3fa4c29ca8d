"""FastAPI application factory and lifespan management."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from designcoach.config import settings
from designcoach.db.engine import create_db_engine, create_session_factory, create_tables
from designcoach.logging_config import configure_logging
from designcoach.telemetry.sink import TelemetrySink
from designcoach.workers.queue import create_queue

# Configure logging at import time
configure_logging(log_level=settings.log_level, json_output=settings.json_logs and not settings.local_mode)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the store, queue and telemetry sink; close them in reverse order."""
    db_url = settings.effective_database_url
    engine = create_db_engine(db_url)

    # Auto-create tables for SQLite (local dev, no managed migrations)
    if "sqlite" in db_url:
        await create_tables(engine)
        logger.info("SQLite tables created (local mode)")

    app.state.db_engine = engine
    app.state.db_session_factory = create_session_factory(engine)

    app.state.queue = await create_queue(settings).open()
    app.state.telemetry = TelemetrySink(
        app.state.db_session_factory,
        sample_rate=settings.effective_sample_rate,
        error_buffer_size=settings.telemetry_error_buffer_size,
    )

    logger.info(
        "designcoach API started (db=%s, queue=%s)",
        "sqlite" if "sqlite" in db_url else "postgresql",
        "in-memory" if settings.local_mode else "redis",
    )
    yield

    # Shutdown
    await app.state.telemetry.aclose(timeout=settings.telemetry_drain_timeout_seconds)
    await app.state.queue.close()
    await engine.dispose()
    logger.info("designcoach API shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="System Design Coach API",
        version="0.1.0",
        description="Asynchronous grading and load simulation for architecture designs.",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Add middleware (order matters: last added = first executed)
    from designcoach.api.middleware.auth import AuthMiddleware
    from designcoach.api.middleware.request_id import RequestIdMiddleware
    from designcoach.api.middleware.security_headers import SecurityHeadersMiddleware
    from designcoach.api.middleware.telemetry import TelemetryMiddleware
    app.add_middleware(AuthMiddleware)
    app.add_middleware(TelemetryMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestIdMiddleware)

    # Register error handlers
    from designcoach.errors.handlers import register_exception_handlers
    register_exception_handlers(app)

    # Import and mount routers
    from designcoach.api.router import api_router
    app.include_router(api_router)

    return app


app = create_app()
