"""
FastAPI application entry point.

For local development (no AWS or Snowflake needed):
    S3_MOCK_MODE=true SNOWFLAKE_MOCK_MODE=true uvicorn s3field.main:app --reload

For production:
    gunicorn s3field.main:app -w 4 -k uvicorn.workers.UvicornWorker
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api.routes import files, gateway, health
from .config.settings import get_settings
from .core.files import ConfigurationError

# Configure logging
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log startup configuration and report what is missing."""
    settings = get_settings()
    logging.getLogger().setLevel(settings.log_level.upper())

    logger.info(
        "S3 file field API starting",
        extra={
            "version": settings.api_version,
            "fields": settings.file_fields_list,
            "mock_mode": {
                "snowflake": settings.snowflake_mock_mode,
                "s3": settings.s3_mock_mode,
            }
        }
    )

    missing_fields = settings.validate_required_fields()
    if missing_fields:
        # Requests touching the missing backend fail with 503 until fixed
        logger.error(
            "Missing required configuration",
            extra={"missing_fields": missing_fields}
        )

    yield

    logger.info("S3 file field API shutting down")


def create_app() -> FastAPI:
    """
    Application factory.

    Called once at startup in production, and per test where a test needs
    a different configuration.
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="""
        File fields whose bytes live in Amazon S3.

        ## Workflow

        1. **Register an owner**: `POST /api/v1/owners/{owner_id}`
        2. **Upload**: `POST /api/v1/owners/{owner_id}/fields/{field}/files`
           - The file is stored in S3 under a collision-free key
        3. **Link**: each file's `url` points at `/s3wrapper/`
           - Following it redirects to a time-limited signed S3 URL
        4. **Delete**: `DELETE /api/v1/owners/{owner_id}/fields/{field}/files/{basename}`
           - `DELETE /api/v1/owners/{owner_id}/fields/{field}` empties the whole field
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(
        health.router,
        prefix="/health",
        tags=["Health"],
    )

    app.include_router(
        gateway.router,
        tags=["Gateway"],
    )

    app.include_router(
        files.router,
        prefix="/api/v1/owners",
        tags=["Files"],
    )

    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "message": "S3 File Field API",
            "version": settings.api_version,
            "docs": "/docs",
            "health": "/health",
        }

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Missing or malformed parameters are client errors, reported as 400."""
        errors = exc.errors()
        message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
        location = ".".join(str(part) for part in errors[0].get("loc", ())) if errors else ""
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "error": {
                    "code": "invalid_request",
                    "message": f"{location}: {message}" if location else message,
                }
            },
        )

    @app.exception_handler(ConfigurationError)
    async def configuration_exception_handler(request: Request, exc: ConfigurationError):
        logger.error(
            "Service misconfigured",
            extra={"path": request.url.path, "error": str(exc)}
        )
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": f"Service misconfigured: {exc}"}
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """
        Catch-all exception handler.

        Logs the full error server-side but returns a generic message.
        """
        logger.error(
            "Unhandled exception",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error": str(exc),
            },
            exc_info=exc,
        )

        return JSONResponse(
            status_code=500,
            content={
                "detail": "Internal server error. Please contact support if this persists."
            }
        )

    logger.info(
        "FastAPI application created",
        extra={
            "title": settings.api_title,
            "version": settings.api_version,
        }
    )

    return app


# Create the application instance
# This is what uvicorn/gunicorn will import
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "s3field.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=settings.log_level.lower(),
    )
