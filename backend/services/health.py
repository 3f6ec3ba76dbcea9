"""
Health check service for the device registrar.

Checks database connectivity and tracks uptime.  Returns structured health
responses with per-component status.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from database import AsyncSessionLocal

logger = logging.getLogger(__name__)

# Captured at module load, used to compute uptime
_start_time = time.monotonic()


class ComponentHealth(BaseModel):
    name: str
    status: str  # "ok" | "degraded" | "error"
    message: Optional[str] = None
    response_time_ms: Optional[float] = None


class HealthResponse(BaseModel):
    status: str  # "healthy" | "degraded" | "unhealthy"
    app: str
    version: str
    uptime_seconds: float
    plugins: list[str]
    checks: list[ComponentHealth]
    timestamp: str


async def check_database(db: Optional[AsyncSession] = None) -> ComponentHealth:
    """Check database connectivity by running SELECT 1."""
    start = time.perf_counter()
    try:
        if db is not None:
            await db.execute(text("SELECT 1"))
        else:
            async with AsyncSessionLocal() as session:
                await session.execute(text("SELECT 1"))
        elapsed = (time.perf_counter() - start) * 1000
        return ComponentHealth(
            name="database",
            status="ok",
            response_time_ms=round(elapsed, 1),
        )
    except Exception as e:
        elapsed = (time.perf_counter() - start) * 1000
        logger.error(f"Database health check failed: {e}")
        return ComponentHealth(
            name="database",
            status="error",
            message=str(e),
            response_time_ms=round(elapsed, 1),
        )


def check_plugins(plugin_tags: list[str]) -> ComponentHealth:
    """A registry without plugins still works, but every device is type-less."""
    if not plugin_tags:
        return ComponentHealth(
            name="plugins",
            status="degraded",
            message="No identification plugins registered",
        )
    return ComponentHealth(name="plugins", status="ok")


async def run_health_checks(
    plugin_tags: Optional[list[str]] = None,
    db: Optional[AsyncSession] = None,
) -> HealthResponse:
    """Run all health checks and return aggregated status."""
    plugin_tags = plugin_tags or []
    checks = [
        await check_database(db),
        check_plugins(plugin_tags),
    ]

    # Database is critical: if it is down, the service is unhealthy.
    critical_names = {"database"}
    has_critical_error = any(
        c.status == "error" and c.name in critical_names for c in checks
    )
    has_any_problem = any(c.status != "ok" for c in checks)

    if has_critical_error:
        overall = "unhealthy"
    elif has_any_problem:
        overall = "degraded"
    else:
        overall = "healthy"

    return HealthResponse(
        status=overall,
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        uptime_seconds=round(time.monotonic() - _start_time, 1),
        plugins=plugin_tags,
        checks=checks,
        timestamp=datetime.now(timezone.utc).isoformat(),
    )
