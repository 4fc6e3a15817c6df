"""
Application factory for the Audio Studio API.

This module builds a configured FastAPI instance. Every component gets its
directories and credentials from the ``AppConfig`` passed in, so tests can point
an app at throwaway directories.
"""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import httpx
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse

from .. import __version__
from ..core.orchestrator import GenerationOrchestrator
from ..infrastructure.config.settings import AppConfig, load_config
from ..infrastructure.monitoring.logging import get_logger
from ..infrastructure.monitoring.metrics import MetricsCollector
from ..services.artifacts import ArtifactStore
from ..services.provider import ProviderClient
from ..services.uploads import TemporaryUploadStore
from ..utils.exceptions import AudioStudioError
from .rest.app import (
    handle_app_error,
    handle_request_validation,
    handle_unexpected,
    router,
    system_router,
)

logger = get_logger(__name__)


def _mount_frontend(app: FastAPI, dist_dir: Optional[str]) -> None:
    """Serve a built web client, or API info when there is none."""
    dist_path = Path(dist_dir) if dist_dir else None

    if dist_path is None or not dist_path.is_dir():

        @app.get("/", include_in_schema=False)
        async def api_info():
            return {
                "message": "Audio Studio API Server",
                "status": "running",
                "endpoints": {"health": "/api/health", "audio": "/api/audio/*"},
                "note": "Frontend not built.",
            }

        return

    root = dist_path.resolve()

    @app.get("/{full_path:path}", include_in_schema=False)
    async def serve_frontend(full_path: str):
        if full_path.startswith("api/"):
            raise HTTPException(status_code=404, detail="API endpoint not found")
        candidate = (root / full_path).resolve()
        if full_path and candidate.is_file() and root in candidate.parents:
            return FileResponse(candidate)
        index = root / "index.html"
        if not index.is_file():
            raise HTTPException(status_code=404, detail="Frontend not found")
        # Client-side routing: unknown paths get the SPA shell
        return FileResponse(index)


def create_app(
    config: Optional[AppConfig] = None,
    provider_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """
    Create and configure a FastAPI application instance.

    Args:
        config: Application configuration; loaded from YAML/env when omitted
        provider_transport: Optional httpx transport for the provider client

    Returns:
        FastAPI: Configured application instance
    """
    config = config or load_config()

    metrics = MetricsCollector()
    provider = ProviderClient(
        api_key=config.provider.api_key,
        base_url=config.provider.base_url,
        text_timeout=config.provider.text_timeout,
        audio_timeout=config.provider.audio_timeout,
        transport=provider_transport,
        metrics=metrics,
    )
    artifacts = ArtifactStore(config.storage.output_dir, url_prefix=f"{router.prefix}/download")
    uploads = TemporaryUploadStore(config.storage.temp_dir, max_bytes=config.max_upload_bytes)
    orchestrator = GenerationOrchestrator(
        provider, artifacts, uploads, default_model=config.provider.default_model, metrics=metrics
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan management."""
        logger.info(
            "server_starting",
            environment=config.environment,
            uploads_dir=str(artifacts.base_path),
            temp_uploads_dir=str(uploads.temp_dir),
            provider_configured=provider.is_configured,
        )
        if not provider.is_configured:
            logger.warning("provider_key_missing", hint="set STABILITY_API_KEY")

        yield

        await provider.aclose()
        logger.info("server_stopped")

    app = FastAPI(
        title="Audio Studio API",
        description="Prompt-driven audio generation with a local gallery",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.config = config
    app.state.metrics = metrics
    app.state.provider = provider
    app.state.artifacts = artifacts
    app.state.uploads = uploads
    app.state.orchestrator = orchestrator

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.api.cors_origins,
        allow_credentials="*" not in config.api.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(AudioStudioError, handle_app_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation)
    app.add_exception_handler(Exception, handle_unexpected)

    app.include_router(router)
    app.include_router(system_router)
    _mount_frontend(app, config.frontend.dist_dir)

    return app
