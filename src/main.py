"""
FastAPI application entry point.

This module creates and configures the FastAPI application with an
application factory (create_app), so tests can build fresh instances
with different settings.

For local development:
    uvicorn src.main:app --reload

For production:
    gunicorn src.main:app -w 4 -k uvicorn.workers.UvicornWorker
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api.routes import explorer, health, uploads
from .config.settings import ConfigurationError, get_settings
from .core.explorer.pager import (
    AccessDeniedError,
    BucketNotFoundError,
    InvalidCredentialsError,
    ListingError,
)
from .infrastructure.storage.client import StorageError

# Configure logging
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO,
)

# Reduce noise from third-party libraries
for _noisy in ("boto3", "botocore", "urllib3", "s3transfer"):
    logging.getLogger(_noisy).setLevel(logging.WARNING)

logger = logging.getLogger(__name__)

LISTING_ERROR_STATUS = {
    AccessDeniedError: status.HTTP_403_FORBIDDEN,
    BucketNotFoundError: status.HTTP_404_NOT_FOUND,
    InvalidCredentialsError: status.HTTP_401_UNAUTHORIZED,
}


def listing_error_status(exc: ListingError) -> int:
    """HTTP status for a listing failure; transient failures map to 502."""
    for error_type, http_status in LISTING_ERROR_STATUS.items():
        if isinstance(exc, error_type):
            return http_status
    return status.HTTP_502_BAD_GATEWAY


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Logs startup configuration and warns about missing settings.
    """
    # Startup
    settings = get_settings()
    logging.getLogger().setLevel(settings.log_level.upper())

    logger.info(
        "Bucket Explorer API starting",
        extra={
            "version": settings.api_version,
            "bucket": settings.bucket_name,
            "mock_mode": {
                "storage": settings.s3_mock_mode,
            }
        }
    )

    # Validate configuration
    missing_fields = settings.validate_required_fields()
    if missing_fields:
        # A bucket can still be configured at runtime via PUT /api/v1/bucket/config
        logger.error(
            "Missing required configuration",
            extra={"missing_fields": missing_fields}
        )

    yield

    # Shutdown
    logger.info("Bucket Explorer API shutting down")


def create_app() -> FastAPI:
    """
    Application factory.

    Creates and configures the FastAPI application.
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="""
        Browse an object-storage bucket as a folder tree.

        ## Authentication

        All endpoints except health checks require an API key provided in
        the `X-API-Key` header.

        ## Workflow

        1. **Configure**: `PUT /api/v1/bucket/config` (or set S3_* env vars)
        2. **Browse**: `GET /api/v1/bucket/folders?key=documents/`
        3. **Inspect**: `GET /api/v1/bucket/objects?key=documents/report.docx`
        4. **Upload**: `POST /api/v1/uploads` with a file and `folder_key`,
           or `POST /api/v1/uploads/presigned` and PUT to the returned URL,
           then `POST /api/v1/bucket/refresh`
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # CORS middleware
    # Configure allowed origins via CORS_ORIGINS environment variable
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
        explorer.router,
        prefix="/api/v1/bucket",
        tags=["Bucket"],
    )

    app.include_router(
        uploads.router,
        prefix="/api/v1/uploads",
        tags=["Uploads"],
    )

    # Root endpoint
    @app.get("/", include_in_schema=False)
    async def root():
        """Root endpoint - points to docs."""
        return {
            "message": "Bucket Explorer API",
            "version": settings.api_version,
            "docs": "/docs",
            "health": "/health",
        }

    @app.exception_handler(ListingError)
    async def listing_error_handler(request: Request, exc: ListingError):
        """Report a failed bucket listing with its error kind."""
        logger.warning(
            "Bucket listing failed",
            extra={
                "path": request.url.path,
                "bucket": exc.bucket,
                "error_type": type(exc).__name__,
                "code": exc.code,
            },
        )
        return JSONResponse(
            status_code=listing_error_status(exc),
            content={
                "detail": str(exc),
                "error_type": type(exc).__name__,
            },
        )

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError):
        logger.warning(
            "Storage operation failed",
            extra={"path": request.url.path, "code": exc.code, "error": str(exc)},
        )
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={"detail": str(exc)},
        )

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(request: Request, exc: ConfigurationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "detail": str(exc),
                "missing_fields": exc.missing_fields,
            },
        )

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request, exc):
        """
        Catch-all exception handler.

        Logs the full error server-side but returns a generic message,
        so stack traces never reach clients.
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


# For debugging/development
if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "src.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=settings.log_level.lower(),
    )
