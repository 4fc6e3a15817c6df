"""
End-to-end generation: validate, stage the source audio, call the provider,
persist the result.

Per request the flow is

    Validating -> AwaitingUpload -> CallingProvider -> Persisting -> Done

and any step may end in Failed. A staged upload is released on every path.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from ..infrastructure.monitoring.logging import get_logger
from ..infrastructure.monitoring.metrics import MetricsCollector
from ..services.artifacts import ArtifactStore
from ..services.provider import ProviderClient
from ..services.uploads import TemporaryUploadStore, UploadSource
from ..utils.exceptions import AudioStudioError, StorageError
from .models import DEFAULT_MODEL, ArtifactMetadata, GenerationResult, OperationKind, UploadDescriptor
from .validation import validate_request

logger = get_logger(__name__)


class GenerationOrchestrator:
    """Composes validation, upload staging, the provider call and persistence."""

    def __init__(
        self,
        provider: ProviderClient,
        artifacts: ArtifactStore,
        uploads: TemporaryUploadStore,
        default_model: str = DEFAULT_MODEL,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.provider = provider
        self.artifacts = artifacts
        self.uploads = uploads
        self.default_model = default_model
        self.metrics = metrics

    async def generate(self, fields: Mapping[str, Any]) -> GenerationResult:
        """Text-to-audio."""
        return await self.run(OperationKind.TEXT_TO_AUDIO, fields)

    async def transform(self, fields: Mapping[str, Any], audio: Optional[UploadSource]) -> GenerationResult:
        """Audio-to-audio."""
        return await self.run(OperationKind.AUDIO_TO_AUDIO, fields, audio)

    async def inpaint(self, fields: Mapping[str, Any], audio: Optional[UploadSource]) -> GenerationResult:
        """Audio inpainting."""
        return await self.run(OperationKind.INPAINT, fields, audio)

    async def run(
        self, kind: OperationKind, fields: Mapping[str, Any], audio: Optional[UploadSource] = None
    ) -> GenerationResult:
        try:
            result = await self._run(kind, fields, audio)
        except AudioStudioError as e:
            self._record(kind, e.error_code)
            raise
        except Exception:
            self._record(kind, "internal_error")
            raise
        self._record(kind, "completed")
        return result

    async def _run(
        self, kind: OperationKind, fields: Mapping[str, Any], audio: Optional[UploadSource]
    ) -> GenerationResult:
        descriptor = None
        if audio is not None and audio.filename:
            descriptor = UploadDescriptor(filename=audio.filename, content_type=audio.content_type)

        request = validate_request(kind, fields, descriptor, default_model=self.default_model)
        self.provider.ensure_configured()

        logger.info(
            "generation_started",
            kind=kind.value,
            prompt=request.prompt,
            output_format=request.output_format,
            duration=request.duration,
        )

        if not kind.requires_audio:
            data = await self.provider.generate(request)
            return await self._persist(request, data)

        async with self.uploads.staged(audio) as staged:
            data = await self.provider.generate(request, staged)
            return await self._persist(request, data)

    async def _persist(self, request, data: bytes) -> GenerationResult:
        metadata = ArtifactMetadata.from_request(request, created=datetime.now(timezone.utc))
        try:
            # Run in executor to avoid blocking
            loop = asyncio.get_event_loop()
            stored = await loop.run_in_executor(
                None, lambda: self.artifacts.persist(request.operation, data, request.output_format, metadata)
            )
        except StorageError:
            logger.error("generated_audio_lost", kind=request.kind, size=len(data))
            raise

        logger.info("generation_completed", kind=request.kind, filename=stored.filename)
        return GenerationResult(
            filename=stored.filename,
            identifier=stored.identifier,
            url=self.artifacts.url_for(stored.filename),
            parameters=request.echo(),
        )

    def _record(self, kind: OperationKind, status: str) -> None:
        if self.metrics is not None:
            self.metrics.record_generation_request(kind.value, status)
