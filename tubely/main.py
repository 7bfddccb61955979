"""
Tubely HTTP service.

Builds the FastAPI app and maps VideoServiceError to JSON error
bodies. Tests build their own instance with create_app(settings) and
override dependencies on it.

For local development:
    uvicorn tubely.main:app --reload

For production:
    gunicorn tubely.main:app -w 4 -k uvicorn.workers.UvicornWorker
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api.limits import UploadSizeLimitMiddleware
from .api.routes import health, uploads, videos
from .config.settings import Settings, get_settings
from .core.videos.errors import VideoServiceError

# Configure logging
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Apply the log level and report missing configuration at startup."""
    settings = get_settings()
    logging.getLogger().setLevel(settings.log_level.upper())

    logger.info(
        "Tubely API starting",
        extra={
            "version": settings.api_version,
            "mock_mode": {
                "snowflake": settings.snowflake_mock_mode,
                "s3": settings.s3_mock_mode,
                "ffmpeg": settings.ffmpeg_mock_mode,
            }
        }
    )

    missing_fields = settings.validate_required_fields()
    if missing_fields:
        logger.error(
            "Missing required configuration",
            extra={"missing_fields": missing_fields}
        )

    yield

    logger.info("Tubely API shutting down")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build a configured app instance."""
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="""
        Video hosting backend.

        ## Workflow

        1. **Create a draft**: `POST /api/videos`
        2. **Upload the file**: `POST /api/video_upload/{video_id}` (multipart field `video`, MP4 only)
           - The file is rewritten for fast-start playback and stored privately
        3. **Optionally add a thumbnail**: `POST /api/thumbnail_upload/{video_id}`
        4. **Fetch**: `GET /api/videos/{video_id}` returns short-lived presigned URLs

        ## Authentication

        All endpoints require a bearer JWT in the `Authorization` header.
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # Must sit inside CORSMiddleware, so it is added first
    app.add_middleware(
        UploadSizeLimitMiddleware,
        limits={
            "/api/video_upload/": settings.max_upload_bytes,
            "/api/thumbnail_upload/": settings.max_thumbnail_bytes,
        },
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(
        health.router,
        prefix="/health",
        tags=["Health"],
    )

    app.include_router(
        videos.router,
        prefix="/api/videos",
        tags=["Videos"],
    )

    app.include_router(
        uploads.router,
        prefix="/api",
        tags=["Uploads"],
    )

    @app.get("/", include_in_schema=False)
    async def root():
        """Service banner with pointers to docs and health."""
        return {
            "message": "Tubely API",
            "version": settings.api_version,
            "docs": "/docs",
            "health": "/health",
        }

    @app.exception_handler(VideoServiceError)
    async def video_service_exception_handler(request: Request, exc: VideoServiceError):
        """
        Map service errors to their status codes.

        Only the message goes to the client; the chained cause (tool
        stderr, storage error) has already been logged by the pipeline.
        """
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.message},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Anything unexpected becomes a generic 500; details stay in the log."""
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
                "error": "Internal server error. Please contact support if this persists."
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


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "tubely.main:app",
        host="0.0.0.0",
        port=8091,
        reload=True,
        log_level=settings.log_level.lower(),
    )
