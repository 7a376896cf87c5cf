"""
Flowly Orchestrator API

FastAPI application entry point that ties all components together.
"""

import asyncio
import contextlib
import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError

from app.config import settings
from app.api.routes import health, sessions, webhook
from app.core.session import get_session_store
from app.infra.whatsapp import close_http_client


def setup_logging() -> None:
    """Configure logging based on environment."""
    log_level = logging.DEBUG if settings.debug else logging.INFO
    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
    )

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("googleapiclient.discovery").setLevel(logging.WARNING)


logger = logging.getLogger(__name__)


async def sweep_sessions(interval: int) -> None:
    """Drop expired sessions every ``interval`` seconds until cancelled."""
    store = get_session_store()
    while True:
        await asyncio.sleep(interval)
        try:
            store.sweep()
        except Exception as e:
            logger.error(f"Session sweep failed: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Handles startup and shutdown events.
    """
    # === STARTUP ===
    setup_logging()
    logger.info(f"Starting {settings.app_name} in {settings.app_env} mode")

    # Set health check start time
    health.set_start_time()

    if not settings.whatsapp_token:
        logger.warning("WHATSAPP_TOKEN not set - inbound messages will not be answered")
    if settings.effective_force_to:
        logger.warning(f"WHATSAPP_FORCE_TO active: every reply goes to {settings.effective_force_to}")

    # Session expiry
    sweeper = None
    if settings.session_ttl_seconds > 0 and settings.session_sweep_interval > 0:
        sweeper = asyncio.create_task(sweep_sessions(settings.session_sweep_interval))
        logger.info(
            f"Session sweeper started (ttl={settings.session_ttl_seconds}s, "
            f"every {settings.session_sweep_interval}s)"
        )

    logger.info(f"Application ready at http://{settings.host}:{settings.port}")

    yield

    # === SHUTDOWN ===
    logger.info("Shutting down application...")

    if sweeper is not None:
        sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper

    # Let in-flight deliveries finish before closing the HTTP client
    await webhook.drain_tasks()

    await close_http_client()
    logger.info("WhatsApp HTTP client closed")

    logger.info("Shutdown complete")


app = FastAPI(
    title="Flowly Orchestrator API",
    description="""
    Multi-tenant WhatsApp conversation orchestrator.

    ## Features
    - Declarative per-tenant flows (configs/<tenant>/flow.json)
    - Interactive list and text prompts via the WhatsApp Cloud API
    - Appointment slots and booking against Google Calendar

    ## Webhook
    Configure `GET/POST /webhook` as the WhatsApp Cloud API callback URL.
    """,
    version="1.0.0",
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
    openapi_url="/openapi.json" if settings.is_development else None,
    lifespan=lifespan,
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Handle Pydantic validation errors."""
    logger.warning(f"Validation error: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "Validation error",
            "detail": exc.errors(),
        },
    )


@app.exception_handler(Exception)
async def generic_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Handle uncaught exceptions."""
    logger.exception(f"Unhandled exception: {exc}")

    # Don't expose internal errors in production
    detail = str(exc) if settings.is_development else "Internal server error"

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "detail": detail,
        },
    )


@app.middleware("http")
async def request_timing_middleware(request: Request, call_next):
    """Log request duration in debug mode."""
    start_time = time.time()

    try:
        return await call_next(request)
    finally:
        if settings.debug:
            duration = time.time() - start_time
            logger.debug(
                f"{request.method} {request.url.path} "
                f"completed in {duration:.3f}s"
            )


app.include_router(health.router)
app.include_router(webhook.router)
app.include_router(sessions.router)


@app.get("/", tags=["Root"])
async def root() -> dict:
    """
    Root endpoint.

    Returns basic API information.
    """
    return {
        "name": settings.app_name,
        "version": "1.0.0",
        "status": "running",
        "environment": settings.app_env,
        "docs": "/docs" if settings.is_development else None,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
        log_level="debug" if settings.debug else "info",
    )
