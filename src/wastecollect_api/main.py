"""FastAPI application factory.

Creates the FastAPI app with lifespan management and OpenAPI
metadata. The report worker pool, storage, and data source are
created at startup from the app's settings and kept on ``app.state``.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from loguru import logger

from wastecollect_api.core.config import Settings, get_settings
from wastecollect_api.core.database import dispose_engine, get_session_factory, init_engine
from wastecollect_api.core.logging import setup_logging
from wastecollect_api.core.reporting import create_report_data_source, create_report_runner, create_report_storage


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Manage application lifecycle: start the report pool on startup, drain it on shutdown."""
    settings: Settings = app.state.settings
    setup_logging(settings.log_level, settings.log_dir)
    init_engine(settings.database_url, echo=False)

    storage = create_report_storage(settings)
    data_source = create_report_data_source(settings)
    runner = create_report_runner(
        settings,
        session_factory=get_session_factory(),
        storage=storage,
        data_source=data_source,
    )
    app.state.report_storage = storage
    app.state.report_runner = runner
    logger.info("Report worker pool started with {} slots", runner.pool_size)

    yield

    # No cancellation: let in-flight and queued jobs reach a terminal state
    runner.close()
    await runner.drain()
    await data_source.close()
    await dispose_engine()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Application settings; loaded from the environment when omitted.

    Returns:
        Configured FastAPI application instance.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="WasteCollect Report API",
        description="Asynchronous report generation for the WasteCollect platform",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings

    # Register middleware and routers
    from wastecollect_api.api.router import create_router, setup_middleware

    setup_middleware(app, settings)
    app.include_router(create_router(settings))

    return app
