"""
REST routes for Audio Studio.

Generation endpoints proxy to the provider through the orchestrator; the gallery
endpoints read straight from the artifact store.
"""

import asyncio
import json
from typing import Optional

from fastapi import APIRouter, File, Form, Request, UploadFile, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import FileResponse, JSONResponse, PlainTextResponse

from ...core.orchestrator import GenerationOrchestrator
from ...infrastructure.monitoring.logging import get_logger
from ...services.artifacts import ArtifactStore
from ...utils.exceptions import AudioStudioError, ValidationError, get_error_summary

logger = get_logger(__name__)

router = APIRouter(prefix="/api/audio", tags=["audio"])
system_router = APIRouter(tags=["system"])


def _orchestrator(request: Request) -> GenerationOrchestrator:
    return request.app.state.orchestrator


def _artifacts(request: Request) -> ArtifactStore:
    return request.app.state.artifacts


@router.post("/generate")
async def generate_audio(request: Request):
    """Generate audio from a text prompt."""
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise ValidationError("body", "Request body must be valid JSON")
    if not isinstance(body, dict):
        raise ValidationError("body", "Request body must be a JSON object")

    result = await _orchestrator(request).generate(body)
    return result.to_response()


@router.post("/generate-a2a")
async def generate_audio_to_audio(
    request: Request,
    prompt: Optional[str] = Form(None),
    audio: Optional[UploadFile] = File(None),
    duration: Optional[str] = Form(None),
    output_format: Optional[str] = Form(None),
    strength: Optional[str] = Form(None),
    model: Optional[str] = Form(None),
):
    """Transform an uploaded clip guided by a prompt."""
    fields = {
        "prompt": prompt,
        "duration": duration,
        "output_format": output_format,
        "strength": strength,
        "model": model,
    }
    result = await _orchestrator(request).transform(fields, audio)
    return result.to_response()


@router.post("/generate-inpaint")
async def generate_inpaint(
    request: Request,
    prompt: Optional[str] = Form(None),
    audio: Optional[UploadFile] = File(None),
    duration: Optional[str] = Form(None),
    output_format: Optional[str] = Form(None),
    mask_start: Optional[str] = Form(None),
    mask_end: Optional[str] = Form(None),
    seed: Optional[str] = Form(None),
    steps: Optional[str] = Form(None),
    model: Optional[str] = Form(None),
):
    """Regenerate the masked range of an uploaded clip."""
    fields = {
        "prompt": prompt,
        "duration": duration,
        "output_format": output_format,
        "mask_start": mask_start,
        "mask_end": mask_end,
        "seed": seed,
        "steps": steps,
        "model": model,
    }
    result = await _orchestrator(request).inpaint(fields, audio)
    return result.to_response()


@router.get("/files")
async def list_files(request: Request):
    """List generated files, newest first."""
    loop = asyncio.get_event_loop()
    summaries = await loop.run_in_executor(None, lambda: list(_artifacts(request).list_artifacts()))
    files = [summary.model_dump(mode="json", exclude_none=True) for summary in summaries]
    return {"files": files}


@router.get("/download/{filename}")
async def download_file(filename: str, request: Request):
    """Serve a generated audio file."""
    loop = asyncio.get_event_loop()
    stored = await loop.run_in_executor(None, _artifacts(request).retrieve, filename)
    return FileResponse(
        stored.path,
        media_type=stored.media_type,
        filename=stored.filename,
        content_disposition_type="attachment",
    )


@system_router.get("/health", status_code=status.HTTP_200_OK)
@system_router.get("/api/health", status_code=status.HTTP_200_OK, include_in_schema=False)
async def health_check(request: Request):
    """Health check endpoint."""
    config = request.app.state.config
    return {
        "status": "healthy",
        "service": "audiostudio-api",
        "version": request.app.version,
        "environment": config.environment,
        "uploads_dir": str(request.app.state.artifacts.base_path),
        "temp_uploads_dir": str(request.app.state.uploads.temp_dir),
        "port": config.api.port,
        "provider_configured": request.app.state.provider.is_configured,
    }


@system_router.get("/metrics", response_class=PlainTextResponse)
async def get_metrics(request: Request):
    """Prometheus metrics."""
    return PlainTextResponse(request.app.state.metrics.get_metrics())


async def handle_app_error(request: Request, exc: AudioStudioError) -> JSONResponse:
    summary = get_error_summary(exc)
    if exc.http_status >= 500:
        logger.error("request_failed", path=request.url.path, **summary)
    else:
        logger.warning("request_rejected", path=request.url.path, **summary)
    return JSONResponse(status_code=exc.http_status, content=exc.to_payload())


async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    location = errors[0].get("loc", ()) if errors else ()
    field = str(location[-1]) if location else "body"
    return await handle_app_error(request, ValidationError(field, f"Invalid value for {field}"))


async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_error", path=request.url.path, error=str(exc))
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error", "code": "internal_error", "details": str(exc)},
    )
