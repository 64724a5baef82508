"""FastAPI application entry point."""

import os
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Optional

import httpx
from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.utils import get_openapi

from clipvariants.core.config import Settings, settings as default_settings
from clipvariants.core.logging import setup_logging
from clipvariants.core.metrics import get_content_type, get_metrics, set_app_info
from clipvariants.core.middleware import (
    CorrelationIdMiddleware,
    MetricsMiddleware,
    RequestLoggingMiddleware,
)
from clipvariants.modules.integration.mixpost import MixpostClient
from clipvariants.modules.integration.router import router as integration_router
from clipvariants.modules.job.retention import RetentionSweeper
from clipvariants.modules.job.router import router as job_router
from clipvariants.modules.job.service import JobCoordinator
from clipvariants.modules.job.storage import OutputStore
from clipvariants.modules.job.store import JobStore
from clipvariants.modules.transcoding.ffmpeg import Encoder, FFmpegEncoder, HIGH_QUALITY_PROFILE
from clipvariants.modules.transcoding.router import router as preset_router
from clipvariants.modules.transcoding.worker import VersionWorker
from clipvariants.modules.video.router import router as video_router

DESCRIPTION = """
## Clip Variants API

Upload one video and receive several visually distinct, high-quality
versions of it, encoded concurrently.

### Flow

1. `POST /videos/upload` with a multipart `file` and keep the `video_id`
2. `POST /jobs` with the `video_id` and a `version_count`
3. Poll `GET /jobs/{job_id}` until the job is `completed` or `failed`
4. Download single versions, or everything at once as a ZIP archive
"""


def create_app(
    app_settings: Optional[Settings] = None,
    encoder: Optional[Encoder] = None,
    mixpost_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """Build the application.

    Args:
        app_settings: Settings to use instead of the environment-loaded ones
        encoder: Encoder to use instead of ffmpeg
        mixpost_transport: Transport for the Mixpost client
    """
    config = app_settings or default_settings
    environment = "development" if config.DEBUG else "production"

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        os.makedirs(config.UPLOAD_DIR, exist_ok=True)

        store = JobStore()
        output_store = OutputStore(store, config.OUTPUT_DIR)
        output_store.ensure_directory()

        worker = VersionWorker(
            app.state.encoder,
            output_width=config.OUTPUT_WIDTH,
            output_height=config.OUTPUT_HEIGHT,
            timeout=config.encode_timeout,
        )
        coordinator = JobCoordinator(
            store,
            worker,
            output_store,
            min_versions=config.MIN_VERSION_COUNT,
            max_versions=config.MAX_VERSION_COUNT,
            source_delete_grace=config.SOURCE_DELETE_GRACE_SECONDS,
        )
        sweeper = RetentionSweeper(
            store,
            output_store,
            job_retention=timedelta(hours=config.JOB_RETENTION_HOURS),
            file_max_age=timedelta(hours=config.FILE_MAX_AGE_HOURS),
            interval=config.SWEEP_INTERVAL_SECONDS,
            directories=[config.UPLOAD_DIR, config.OUTPUT_DIR],
        )

        app.state.store = store
        app.state.output_store = output_store
        app.state.coordinator = coordinator
        app.state.sweeper = sweeper

        sweeper.start()
        try:
            yield
        finally:
            await sweeper.stop()
            await coordinator.shutdown()

    app = FastAPI(
        title=config.PROJECT_NAME,
        version=config.VERSION,
        description=DESCRIPTION,
        openapi_url=f"{config.API_V1_PREFIX}/openapi.json",
        lifespan=lifespan,
        openapi_tags=[
            {"name": "health", "description": "Health check and metrics endpoints"},
            {"name": "videos", "description": "Source video upload"},
            {"name": "jobs", "description": "Version jobs - submission, status, downloads"},
            {"name": "presets", "description": "Preset catalog"},
            {"name": "integrations", "description": "Publishing versions to Mixpost"},
        ],
    )

    app.state.settings = config
    app.state.encoder = encoder or FFmpegEncoder(config.FFMPEG_PATH, config.FFPROBE_PATH)
    app.state.mixpost = MixpostClient(
        config.MIXPOST_BASE_URL,
        config.MIXPOST_API_KEY,
        timeout=config.MIXPOST_TIMEOUT_SECONDS,
        transport=mixpost_transport,
    )

    set_app_info(version=config.VERSION, environment=environment)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(CorrelationIdMiddleware)
    app.add_middleware(MetricsMiddleware)

    def custom_openapi() -> dict:
        """Generate custom OpenAPI schema."""
        if app.openapi_schema:
            return app.openapi_schema

        openapi_schema = get_openapi(
            title=app.title,
            version=app.version,
            description=app.description,
            routes=app.routes,
            tags=app.openapi_tags,
        )
        openapi_schema["servers"] = [
            {"url": "http://localhost:8000", "description": "Development server"},
        ]

        app.openapi_schema = openapi_schema
        return app.openapi_schema

    app.openapi = custom_openapi

    @app.get("/health", tags=["health"])
    async def health_check() -> dict:
        """Health check endpoint.

        Reports encoder availability, the fixed quality profile and whether
        Mixpost publishing is configured.
        """
        current_encoder = app.state.encoder
        available = (
            current_encoder.is_available()
            if isinstance(current_encoder, FFmpegEncoder)
            else True
        )
        profile = HIGH_QUALITY_PROFILE
        return {
            "status": "healthy" if available else "degraded",
            "encoder": "available" if available else "unavailable",
            "mixpost": "configured" if config.mixpost_configured else "not configured",
            "quality": {
                "resolution": f"{config.OUTPUT_WIDTH}x{config.OUTPUT_HEIGHT}",
                "crf": profile.crf,
                "preset": profile.preset,
                "video_bitrate": profile.max_bitrate,
                "audio_bitrate": profile.audio_bitrate,
            },
        }

    @app.get("/metrics", tags=["health"], include_in_schema=False)
    async def metrics() -> Response:
        """Prometheus metrics endpoint."""
        return Response(content=get_metrics(), media_type=get_content_type())

    # Include routers
    app.include_router(video_router, prefix=config.API_V1_PREFIX)
    app.include_router(job_router, prefix=config.API_V1_PREFIX)
    app.include_router(preset_router, prefix=config.API_V1_PREFIX)
    app.include_router(integration_router, prefix=config.API_V1_PREFIX)

    return app


# Set up logging with correlation IDs
setup_logging(
    level="DEBUG" if default_settings.DEBUG else "INFO",
    json_format=default_settings.LOG_JSON,
    include_stack_trace=True,
)

app = create_app()
