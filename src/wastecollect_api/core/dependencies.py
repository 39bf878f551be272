"""FastAPI dependency injection for sessions, settings, auth, and report services.

Provides get_async_session, get_current_user, and role-based access control
factories, plus accessors for the report storage and worker pool created at
startup and kept on ``app.state``.
"""

from collections.abc import AsyncGenerator, Callable
from typing import Annotated, Any

import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from wastecollect_api.core.background import BackgroundTaskRunner
from wastecollect_api.core.config import Settings
from wastecollect_api.core.database import get_session_factory
from wastecollect_api.core.security import Actor, decode_access_token
from wastecollect_api.lib.reports import ReportStorage

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="api/v1/auth/login")


async def get_async_session() -> AsyncGenerator[AsyncSession]:
    """Yield an async database session with per-request lifecycle."""
    factory = get_session_factory()
    async with factory() as session:
        yield session


def get_app_settings(request: Request) -> Settings:
    """Return the settings the application was created with."""
    return request.app.state.settings


def get_report_storage(request: Request) -> ReportStorage:
    """Return the artifact storage backend created at startup."""
    return request.app.state.report_storage


def get_report_runner(request: Request) -> BackgroundTaskRunner:
    """Return the report worker pool created at startup."""
    return request.app.state.report_runner


async def get_current_user(
    token: Annotated[str, Depends(oauth2_scheme)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> Actor:
    """Decode the bearer token and return the authenticated actor.

    Args:
        token: The JWT bearer token.
        settings: Application settings.

    Returns:
        The actor named by the token.

    Raises:
        HTTPException: If the token is invalid or expired.
    """
    try:
        return decode_access_token(token, settings.jwt_secret_key, settings.jwt_algorithm)
    except jwt.InvalidTokenError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc


def require_role(*roles: str) -> Callable[..., Any]:
    """Factory that creates a dependency requiring specific user roles.

    Args:
        *roles: Allowed role names (e.g., "admin").

    Returns:
        A FastAPI dependency function that validates the actor's role.
    """

    async def role_checker(
        current_user: Annotated[Actor, Depends(get_current_user)],
    ) -> Actor:
        if current_user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Role '{current_user.role}' does not have access to this resource",
            )
        return current_user

    return role_checker
