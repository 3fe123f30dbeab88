"""Foundry FastAPI application entry point.

Configures the FastAPI app with:
- CORS middleware
- Lifespan events for the database pool and the background task runner
- Route registration (health, jobs, sources, mappings, exports)
- Error handlers mapping pipeline errors onto HTTP status codes
- OpenAPI documentation at /docs (debug mode only)
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from foundry import __version__
from foundry.api.errors import register_error_handlers
from foundry.api.routes import exports, health, jobs, mappings, sources
from foundry.core.config import get_settings
from foundry.core.database import create_engine
from foundry.core.logging_config import configure_logging
from foundry.core.tasks import TaskRunner
from foundry.processing.orchestrator import ProcessingJobWorker, ProcessingOrchestrator
from foundry.processing.store import SqlJobStore

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application startup and shutdown.

    On startup: initialize the database pool and the task runner.
    On shutdown: cancel running jobs and close connections.
    """
    settings = get_settings()

    # -- PostgreSQL ---
    engine, session_factory = create_engine(settings)
    app.state.db_engine = engine
    app.state.db_session_factory = session_factory
    logger.info("PostgreSQL connection pool initialized")

    # -- Background Tasks ---
    runner = TaskRunner()
    orchestrator = ProcessingOrchestrator(SqlJobStore(session_factory), settings=settings)
    runner.register_worker(ProcessingJobWorker(orchestrator))
    app.state.task_runner = runner
    logger.info("Task runner started")

    yield

    # -- Shutdown ---
    await runner.shutdown()
    await engine.dispose()
    logger.info("All connections closed")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()
    configure_logging(settings)

    app = FastAPI(
        title=settings.app_name,
        description="Data-processing pipeline turning support conversations into AI training data",
        version=__version__,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Accept", "X-Organization-Id", "X-User-Id"],
    )

    # -- Routes ---
    app.include_router(health.router)
    app.include_router(jobs.router)
    app.include_router(sources.router)
    app.include_router(mappings.router)
    app.include_router(exports.router)

    register_error_handlers(app)
    return app


# Application instance used by uvicorn
app = create_app()
