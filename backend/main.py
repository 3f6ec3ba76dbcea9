import time
import uuid
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from database import init_db, close_db, get_db
from plugins.registry import PluginRegistry, build_default_registry
from routers import devices_router
from services.errors import (
    RegistrationConflict,
    RegistrationError,
    RegistrationFailed,
    RegistrationRejected,
)
from services.health import run_health_checks
from services.registration import RegistrationOrchestrator
from utils.logging_utils import setup_logging, get_logger
from utils.audit import audit

# Configure logging: INFO by default, override with LOG_LEVEL
setup_logging(level=settings.LOG_LEVEL)
logger = get_logger(__name__)

# Status code per engine error; anything else derived from RegistrationError is a 500
_ERROR_STATUS = {
    RegistrationRejected: status.HTTP_422_UNPROCESSABLE_ENTITY,
    RegistrationConflict: status.HTTP_409_CONFLICT,
    RegistrationFailed: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle startup and shutdown events."""
    logger.info("=" * 60)
    logger.info("DEVICE REGISTRAR STARTING UP")
    logger.info(f"App: {settings.APP_NAME} v{settings.APP_VERSION}")

    start = time.perf_counter()
    await init_db()
    logger.info(
        f"Database initialized in {(time.perf_counter() - start) * 1000:.1f}ms"
    )

    health = await run_health_checks(app.state.plugin_registry.tags())
    for check in health.checks:
        status_icon = "+" if check.status == "ok" else "!"
        detail = f" ({check.message})" if check.message else ""
        logger.info(f"  {status_icon} {check.name}: {check.status}{detail}")
    if health.status != "healthy":
        logger.warning(f"STARTUP HEALTH: {health.status.upper()} - some checks failed")

    logger.info("STARTUP COMPLETE - Ready to accept registrations")
    logger.info("=" * 60)

    yield

    logger.info("DEVICE REGISTRAR SHUTTING DOWN")
    await close_db()
    logger.info("Shutdown complete")


def create_app(registry: Optional[PluginRegistry] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        registry: Plugin registry to register devices with.  Defaults to
            the built-in registry.
    """
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        lifespan=lifespan,
    )

    registry = registry or build_default_registry(settings.DEFAULT_PLUGIN_TAG)
    app.state.plugin_registry = registry
    app.state.orchestrator = RegistrationOrchestrator(registry)

    # ── Error handlers ────────────────────────────────────────────────

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        """Return per-field error messages when request parsing fails."""
        errors = []
        for error in exc.errors():
            loc_parts = [str(x) for x in error.get("loc", [])]
            if loc_parts and loc_parts[0] in ("body", "query", "path"):
                loc_parts = loc_parts[1:]
            field = ".".join(loc_parts) if loc_parts else "unknown"

            msg = error.get("msg", "Validation error")
            if msg.startswith("Value error, "):
                msg = msg[len("Value error, "):]

            errors.append({
                "field": field,
                "message": msg,
                "type": error.get("type", "unknown"),
            })

        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "detail": "Validation failed",
                "reason": "invalid_request",
                "errors": errors,
            },
        )

    @app.exception_handler(RegistrationError)
    async def registration_exception_handler(
        request: Request, exc: RegistrationError
    ):
        """Render engine errors with their reason code."""
        status_code = _ERROR_STATUS.get(
            type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR
        )
        if status_code >= 500:
            logger.error(f"Registration error on {request.url.path}: {exc.message}")
        return JSONResponse(status_code=status_code, content=exc.to_dict())

    # ── Request ID + request logging middleware ───────────────────────

    @app.middleware("http")
    async def request_lifecycle(request: Request, call_next):
        """Assign a request ID, log timing, and add the ID to response headers."""
        request_id = str(uuid.uuid4())
        audit.set_request_id(request_id)

        start_time = time.perf_counter()
        logger.debug(f"→ {request.method} {request.url.path}")

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        status_indicator = "+" if response.status_code < 400 else "!"
        logger.info(
            f"{status_indicator} {request.method} {request.url.path} "
            f"[{response.status_code}] {duration_ms:.1f}ms rid={request_id[:8]}"
        )

        response.headers["X-Request-ID"] = request_id
        return response

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
        allow_methods=settings.CORS_ALLOW_METHODS,
        allow_headers=settings.CORS_ALLOW_HEADERS,
    )

    app.include_router(devices_router)

    @app.get("/health", tags=["health"])
    async def health_check(db: AsyncSession = Depends(get_db)):
        """Health check endpoint with component status breakdown."""
        health = await run_health_checks(app.state.plugin_registry.tags(), db)
        status_code = 200 if health.status in ("healthy", "degraded") else 503
        return JSONResponse(content=health.model_dump(), status_code=status_code)

    @app.get("/api", tags=["root"])
    async def api_root():
        """API root endpoint."""
        return {
            "name": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "docs": "/docs",
            "openapi": "/openapi.json",
            "device_types": app.state.plugin_registry.tags(),
            "endpoints": {
                "register": "/api/devices/register",
                "devices": "/api/devices/{device_id}",
            },
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )
