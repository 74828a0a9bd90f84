"""Health check endpoints for container orchestration."""

from typing import Any

from fastapi import APIRouter, Response, status
from fastapi.responses import JSONResponse

from medreminder.core.auth import Container
from medreminder.database import check_database_connection

router = APIRouter(tags=["Health"])


def _websocket_status(container: Container) -> dict[str, Any]:
    return {
        "active": True,
        "total_connections": container.registry.total_connections(),
        "users": container.registry.user_count(),
    }


@router.get("/health", response_model=None)
async def health_check(container: Container) -> Response:
    """
    Health check endpoint with database and push channel status.

    Returns 200 with ``"status": "healthy"`` when the database answers,
    503 with ``"status": "degraded"`` otherwise. The websocket block is
    reported either way.
    """
    db_connected = await check_database_connection(container.engine)

    return JSONResponse(
        status_code=(
            status.HTTP_200_OK if db_connected else status.HTTP_503_SERVICE_UNAVAILABLE
        ),
        content={
            "status": "healthy" if db_connected else "degraded",
            "database": "connected" if db_connected else "disconnected",
            "websocket": _websocket_status(container),
        },
    )


@router.get("/health/live")
async def liveness_probe() -> dict[str, Any]:
    """Liveness probe. Does not touch the database."""
    return {"status": "alive"}


@router.get("/health/ready", response_model=None)
async def readiness_probe(container: Container) -> Response:
    """Readiness probe: ready once the database is reachable."""
    if await check_database_connection(container.engine):
        return JSONResponse(
            status_code=status.HTTP_200_OK,
            content={"status": "ready", "database": "connected"},
        )
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": "not_ready", "database": "disconnected"},
    )
