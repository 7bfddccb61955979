"""
Liveness and readiness probes.

/health answers as long as the process is up. /health/ready also
checks configuration and that ffmpeg/ffprobe can be found, since
every video upload shells out to them.
"""

import logging
from typing import Any

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ... import __version__
from ...infrastructure.video.processor import ffmpeg_available
from ..dependencies import SettingsDep

logger = logging.getLogger(__name__)

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str
    details: dict[str, Any] = {}


class ReadinessCheck(BaseModel):
    """Individual readiness check result."""
    name: str
    status: str  # "ok" or "error"
    error: str | None = None


class ReadinessResponse(BaseModel):
    """Readiness check response with details."""
    status: str  # "ready" or "not_ready"
    version: str
    checks: list[ReadinessCheck]


@router.get(
    "",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Basic health check",
    description="Returns 200 if the service is running. Does not check dependencies.",
)
async def health_check(settings: SettingsDep) -> HealthResponse:
    """Always 200 while the process runs; reports which backends are mocked."""
    return HealthResponse(
        status="ok",
        version=__version__,
        details={
            "mock_mode": {
                "snowflake": settings.snowflake_mock_mode,
                "s3": settings.s3_mock_mode,
                "ffmpeg": settings.ffmpeg_mock_mode,
            }
        }
    )


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    summary="Readiness check",
    description="Returns 200 if the service can handle uploads, 503 otherwise.",
    responses={
        503: {
            "description": "Service not ready",
            "model": ReadinessResponse,
        }
    },
)
async def readiness_check(settings: SettingsDep):
    """503 when configuration is incomplete or the FFmpeg binaries are missing."""
    checks: list[ReadinessCheck] = []

    missing_fields = settings.validate_required_fields()
    if missing_fields:
        checks.append(ReadinessCheck(
            name="configuration",
            status="error",
            error=f"Missing required fields: {', '.join(missing_fields)}"
        ))
    else:
        checks.append(ReadinessCheck(name="configuration", status="ok"))

    if settings.ffmpeg_mock_mode:
        checks.append(ReadinessCheck(name="ffmpeg", status="ok", error="mock mode"))
    elif ffmpeg_available(settings.ffmpeg_path, settings.ffprobe_path):
        checks.append(ReadinessCheck(name="ffmpeg", status="ok"))
    else:
        checks.append(ReadinessCheck(
            name="ffmpeg",
            status="error",
            error=f"{settings.ffmpeg_path} or {settings.ffprobe_path} not found on PATH"
        ))

    checks.append(ReadinessCheck(
        name="storage",
        status="ok",
        error="mock mode" if settings.s3_mock_mode else None,
    ))

    all_ok = all(check.status == "ok" for check in checks)

    response = ReadinessResponse(
        status="ready" if all_ok else "not_ready",
        version=__version__,
        checks=checks,
    )

    if not all_ok:
        logger.warning(
            "Readiness check failed",
            extra={
                "checks": [
                    {"name": c.name, "status": c.status, "error": c.error}
                    for c in checks
                ]
            }
        )

    return JSONResponse(
        status_code=status.HTTP_200_OK if all_ok else status.HTTP_503_SERVICE_UNAVAILABLE,
        content=response.model_dump(),
    )
