"""Health check endpoint with database connectivity and blacklist statistics."""

from fastapi import APIRouter, Request, Response, status
from pydantic import BaseModel

from app.core import check_db_connection
from app.core.config import Settings
from app.services.token_blacklist import ReplayGuard

router = APIRouter(tags=["health"])


class BlacklistHealth(BaseModel):
    total_entries: int
    active_entries: int


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    database: str
    blacklist: BlacklistHealth


@router.get(
    "/health",
    response_model=HealthResponse,
    responses={
        status.HTTP_200_OK: {"description": "Service is healthy"},
        status.HTTP_503_SERVICE_UNAVAILABLE: {"description": "Service is unhealthy"},
    },
)
async def health_check(request: Request, response: Response) -> HealthResponse:
    """
    Health check endpoint.

    Returns 503 if the database is unavailable.
    """
    db_healthy = await check_db_connection()
    if not db_healthy:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    config: Settings = request.app.state.settings
    replay_guard: ReplayGuard = request.app.state.replay_guard
    stats = await replay_guard.stats()

    return HealthResponse(
        status="healthy" if db_healthy else "unhealthy",
        version=config.app_version,
        database="connected" if db_healthy else "disconnected",
        blacklist=BlacklistHealth(
            total_entries=stats.total_entries,
            active_entries=stats.active_entries,
        ),
    )
