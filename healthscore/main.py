"""
Health Score API.

Serves the daily scoring trigger for the scheduler and read endpoints for
the dashboard. Engine failures surface through the handlers registered in
_register_exception_handlers().
"""

import time
import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from healthscore import __version__
from healthscore.config import ConfigurationError, get_settings
from healthscore.routers import scores, system
from healthscore.storage import StorageError, get_storage
from healthscore.utils.logging import configure_logging, get_logger

configure_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Open storage (creating the schema) and report which sources are configured."""
    settings = get_settings()

    storage = get_storage()
    logger.info(
        "application_startup",
        version=app.version,
        db_path=str(storage.db_path),
        search_console=bool(settings.gsc_site_url),
        analytics=bool(settings.ga4_property_id),
        pagespeed=settings.pagespeed_enabled,
        alerts_enabled=settings.alerts_enabled,
    )
    if not settings.cron_secret:
        logger.warning("cron_secret_missing", detail="POST /api/v1/scores/run will return 500")

    yield

    logger.info("application_shutdown")


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(request: Request, exc: ConfigurationError):
        logger.error("configuration_error", path=request.url.path, error=str(exc))
        return JSONResponse(status_code=500, content={"success": False, "error": str(exc)})

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError):
        # Driver messages can leak paths; log them, return a generic body
        logger.error("storage_error", path=request.url.path, error=str(exc))
        return JSONResponse(
            status_code=500, content={"success": False, "error": "Storage operation failed"}
        )


def create_app() -> FastAPI:
    """Build the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Health Score API",
        description="Daily 0-1000 search visibility and health score with remediation actions",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )

    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        started = time.perf_counter()

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id, method=request.method, path=request.url.path
        )

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        logger.info(
            "request_completed",
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 1),
        )
        return response

    _register_exception_handlers(app)

    @app.get("/health", tags=["System"])
    async def health_check():
        """Liveness probe; does not touch storage."""
        return {"status": "healthy", "version": app.version}

    app.include_router(scores.router, prefix="/api/v1/scores", tags=["Scores"])
    app.include_router(system.router, prefix="/api/v1/system", tags=["System"])

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "healthscore.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
        log_level=settings.log_level.lower(),
    )
