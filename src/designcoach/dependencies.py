"""FastAPI dependency injection providers."""

import hmac
from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from designcoach.config import settings
from designcoach.errors.exceptions import AuthenticationError
from designcoach.services.orchestrator import EvaluationOrchestrator
from designcoach.services.share_gateway import ShareGateway


async def get_db(request: Request) -> AsyncGenerator:
    """Yield a database session from the app's session factory."""
    session_factory = request.app.state.db_session_factory
    async with session_factory() as session:
        yield session


def get_queue(request: Request):
    """Return the evaluation queue client opened at startup."""
    return request.app.state.queue


def get_telemetry(request: Request):
    return request.app.state.telemetry


def get_request_id(request: Request) -> str:
    """Extract request_id from request state (set by middleware)."""
    return getattr(request.state, "request_id", "unknown")


async def get_current_user(request: Request) -> dict:
    """Return the authenticated user dict or raise 401."""
    user = getattr(request.state, "user", {})
    if "_auth_error" in (user or {}):
        raise AuthenticationError(user["_auth_error"])
    if not user or user.get("sub") in ("anonymous", ""):
        raise AuthenticationError("Authentication required")
    return user


async def require_worker_token(x_worker_token: Annotated[str | None, Header()] = None) -> None:
    """Guard for internal worker callbacks; disabled when no token is configured."""
    expected = settings.worker_callback_token
    if not expected:
        raise AuthenticationError("Worker callbacks are disabled")
    if not x_worker_token or not hmac.compare_digest(x_worker_token, expected):
        raise AuthenticationError("Invalid worker token")


def get_orchestrator(
    db: Annotated[AsyncSession, Depends(get_db)],
    queue=Depends(get_queue),
    telemetry=Depends(get_telemetry),
) -> EvaluationOrchestrator:
    return EvaluationOrchestrator(db, queue, telemetry)


def get_share_gateway(db: Annotated[AsyncSession, Depends(get_db)]) -> ShareGateway:
    return ShareGateway(db)


# Type aliases for dependency injection
DBSession = Annotated[AsyncSession, Depends(get_db)]
RequestId = Annotated[str, Depends(get_request_id)]
CurrentUser = Annotated[dict, Depends(get_current_user)]
Orchestrator = Annotated[EvaluationOrchestrator, Depends(get_orchestrator)]
SharedReports = Annotated[ShareGateway, Depends(get_share_gateway)]
WorkerToken = Depends(require_worker_token)
