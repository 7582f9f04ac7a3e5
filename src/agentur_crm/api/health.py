"""Health check endpoints."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from agentur_crm import __version__
from agentur_crm.config import get_settings
from agentur_crm.db.session import get_db_context


router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    timestamp: str
    version: str
    environment: str
    checks: dict[str, Any]


class ReadinessResponse(BaseModel):
    """Readiness check response."""

    status: str
    checks: dict[str, str]


@router.get("/health")
async def health_check() -> HealthResponse:
    """Perform health check.

    Components checked:
    - API: Always ok if reachable
    - Database: Connectivity test via SELECT 1
    """
    settings = get_settings()
    checks: dict[str, Any] = {
        "api": "ok",
        "database": await _check_database(),
    }

    return HealthResponse(
        status="healthy" if checks["database"] == "ok" else "degraded",
        timestamp=datetime.now(timezone.utc).isoformat(),
        version=__version__,
        environment=settings.environment,
        checks=checks,
    )


@router.get("/ready")
async def readiness_check() -> ReadinessResponse:
    """Ready means the database answers."""
    db_status = await _check_database()
    checks = {
        "database": db_status if isinstance(db_status, str) else db_status.get("status", "error"),
    }
    return ReadinessResponse(
        status="ready" if checks["database"] == "ok" else "not_ready",
        checks=checks,
    )


@router.get("/live")
async def liveness_check() -> dict[str, str]:
    """Check if the service is alive."""
    return {"status": "alive"}


async def _check_database() -> str | dict[str, Any]:
    """Execute SELECT 1 against the configured database.

    Returns:
        "ok" if connected, error details otherwise
    """
    try:
        async with get_db_context() as db:
            result = await db.execute(text("SELECT 1"))
            result.fetchone()
        return "ok"
    except (SQLAlchemyError, OSError) as e:
        return {
            "status": "error",
            "message": str(e),
        }
