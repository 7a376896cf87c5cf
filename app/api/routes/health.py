"""
Health Check Endpoints

Provides health, readiness, and liveness probes for monitoring,
load balancers, and container orchestrators.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from app.config import settings
from app.core.flows import get_flow_cache

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["Health"])

# Track application start time for uptime calculation
_start_time: Optional[datetime] = None


def set_start_time() -> None:
    """Set application start time. Called once on startup."""
    global _start_time
    _start_time = datetime.now(timezone.utc)


def get_uptime_seconds() -> Optional[float]:
    """Get application uptime in seconds."""
    if _start_time is None:
        return None
    return (datetime.now(timezone.utc) - _start_time).total_seconds()


class HealthResponse(BaseModel):
    """Basic health check response."""
    status: str
    timestamp: datetime
    version: str
    environment: str


class ReadyResponse(BaseModel):
    """Readiness check response with dependency status."""
    status: str
    timestamp: datetime
    checks: dict[str, str]


class LiveResponse(BaseModel):
    """Liveness check response."""
    status: str
    timestamp: datetime
    uptime_seconds: Optional[float] = None


@router.get(
    "",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Basic health check",
    description="Returns 200 if the application is running. Does not check configuration.",
)
async def health() -> HealthResponse:
    """
    Basic health check.

    Always returns 200 if the application is running.
    Use /health/ready for configuration checks.
    """
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc),
        version="1.0.0",
        environment=settings.app_env,
    )


@router.get(
    "/ready",
    response_model=ReadyResponse,
    summary="Readiness probe",
    description="Checks the default tenant's flow loads and a WhatsApp token is set.",
    responses={
        200: {"description": "Ready to answer messages"},
        503: {"description": "Configuration is missing or invalid"},
    },
)
async def ready() -> ReadyResponse:
    """
    Readiness probe.

    Checks:
    - The default tenant's flow.json loads and validates
    - WHATSAPP_TOKEN is configured

    Returns 503 if any check fails.
    """
    checks = {}
    all_ok = True

    # Check default tenant flow
    try:
        await get_flow_cache().get_or_load_async(settings.default_tenant)
        checks["flow"] = "ok"
    except Exception as e:
        checks["flow"] = "error"
        all_ok = False
        logger.error(f"Readiness check: flow for {settings.default_tenant} failed - {e}")

    # Check WhatsApp token
    if settings.whatsapp_token:
        checks["whatsapp_token"] = "ok"
    else:
        checks["whatsapp_token"] = "missing"
        all_ok = False
        logger.warning("Readiness check: WHATSAPP_TOKEN not set")

    response = ReadyResponse(
        status="ready" if all_ok else "not_ready",
        timestamp=datetime.now(timezone.utc),
        checks=checks,
    )

    # Return 503 if not ready
    if not all_ok:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=response.model_dump(mode="json"),
        )

    return response


@router.get(
    "/live",
    response_model=LiveResponse,
    status_code=status.HTTP_200_OK,
    summary="Liveness probe",
    description="Returns 200 if the process is alive. Used for container restart decisions.",
)
async def live() -> LiveResponse:
    """
    Liveness probe.

    Always returns 200 if the process is running.
    """
    return LiveResponse(
        status="alive",
        timestamp=datetime.now(timezone.utc),
        uptime_seconds=get_uptime_seconds(),
    )
