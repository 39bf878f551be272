"""Root API router with the versioned prefix and middleware registration."""

from fastapi import APIRouter, FastAPI

from wastecollect_api.api.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware, setup_cors
from wastecollect_api.core.config import Settings


def create_router(settings: Settings) -> APIRouter:
    """Create the root API router with all sub-routers included.

    Args:
        settings: Application settings.

    Returns:
        Configured API router.
    """
    from wastecollect_api.api.v1.reports import reports_router

    root_router = APIRouter(prefix=settings.api_v1_prefix)
    root_router.include_router(reports_router)

    return root_router


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register all middleware on the FastAPI app.

    Args:
        app: The FastAPI application.
        settings: Application settings.
    """
    setup_cors(app, settings)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
