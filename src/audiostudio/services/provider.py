"""
Client for the external audio generation provider.

Builds the multipart payload for each operation, attaches the API key and makes
exactly one call per request. There are no retries: generation is billed per call
and is not idempotent.
"""

import asyncio
import time
from typing import List, Optional, Tuple

import httpx

from ..core.models import OperationKind
from ..infrastructure.monitoring.logging import get_logger
from ..infrastructure.monitoring.metrics import MetricsCollector
from ..utils.exceptions import ConfigurationError, ProviderError, ProviderTimeoutError
from .uploads import StagedUpload

logger = get_logger(__name__)

DEFAULT_BASE_URL = "https://api.stability.ai/v2beta/audio/stable-audio-2"


def _form_value(value) -> str:
    if isinstance(value, float) and value.is_integer():
        # 30.0 -> "30"; the provider parses numbers from text parts
        return str(int(value))
    return str(value)


class ProviderClient:
    """Sends generation requests to the provider and returns raw audio bytes."""

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = DEFAULT_BASE_URL,
        text_timeout: float = 60.0,
        audio_timeout: float = 120.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.text_timeout = text_timeout
        self.audio_timeout = audio_timeout
        self.metrics = metrics

        # HTTP client with connection pooling; timeouts are set per call
        self.client = httpx.AsyncClient(
            transport=transport,
            timeout=httpx.Timeout(audio_timeout),
            limits=httpx.Limits(max_keepalive_connections=10, max_connections=50),
        )

    async def aclose(self):
        """Cleanup resources"""
        await self.client.aclose()

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def ensure_configured(self) -> None:
        if not self.api_key:
            raise ConfigurationError("Stability API key not configured")

    def timeout_for(self, kind: OperationKind) -> float:
        return self.text_timeout if kind is OperationKind.TEXT_TO_AUDIO else self.audio_timeout

    def url_for(self, kind: OperationKind) -> str:
        return f"{self.base_url}/{kind.endpoint}"

    def build_multipart(self, request, source: Optional[StagedUpload] = None, audio_file=None) -> List[Tuple]:
        """Build the multipart parts for ``request``.

        Text fields are sent as parts without a filename so that every call,
        including text-to-audio, goes out as multipart/form-data.
        """
        parts: List[Tuple] = [("prompt", (None, request.prompt))]
        if audio_file is not None:
            parts.append(
                ("audio", (source.filename, audio_file, source.content_type or "application/octet-stream"))
            )
        for name, value in request.provider_fields().items():
            if name == "prompt":
                continue
            parts.append((name, (None, _form_value(value))))
        return parts

    async def generate(self, request, source: Optional[StagedUpload] = None) -> bytes:
        """
        Call the provider for one validated request.

        Args:
            request: A typed request variant from ``validate_request``
            source: Staged source audio for audio-to-audio and inpainting

        Returns:
            The raw audio bytes of a 200 response, whatever its content type

        Raises:
            ConfigurationError: if no API key is configured (before any network call)
            ProviderTimeoutError: if the call exceeds the operation's timeout
            ProviderError: on a non-200 response or a transport failure
        """
        self.ensure_configured()
        kind = request.operation
        if kind.requires_audio and source is None:
            raise ValueError(f"{kind.value} requires a staged source upload")

        headers = {"Authorization": f"Bearer {self.api_key}", "Accept": "audio/*"}
        timeout = self.timeout_for(kind)
        url = self.url_for(kind)

        logger.info("provider_request", kind=kind.value, url=url, timeout=timeout)
        start_time = time.monotonic()
        try:
            # httpx applies its timeout per connect/read/write; the budget covers the whole call
            response = await asyncio.wait_for(
                self._post(url, request, source, headers, timeout), timeout=timeout
            )
        except (httpx.TimeoutException, asyncio.TimeoutError) as e:
            logger.error("provider_timeout", kind=kind.value, timeout=timeout)
            raise ProviderTimeoutError(
                "Request timeout - audio generation took too long", details={"timeout": timeout}
            ) from e
        except httpx.RequestError as e:
            logger.error("provider_unreachable", kind=kind.value, error=str(e))
            raise ProviderError(f"Could not reach generation provider: {e}") from e
        finally:
            if self.metrics is not None:
                self.metrics.record_provider_duration(kind.value, time.monotonic() - start_time)

        if response.status_code != 200:
            body = response.content.decode("utf-8", errors="replace")
            logger.error("provider_error", kind=kind.value, status=response.status_code, body=body[:500])
            raise ProviderError(
                f"API Error: {response.status_code}", status_code=response.status_code, body=body
            )

        logger.info("provider_response", kind=kind.value, size=len(response.content))
        return response.content

    async def _post(self, url: str, request, source: Optional[StagedUpload], headers, timeout: float) -> httpx.Response:
        if source is None:
            return await self.client.post(
                url, files=self.build_multipart(request), headers=headers, timeout=timeout
            )
        with open(source.path, "rb") as audio_file:
            return await self.client.post(
                url,
                files=self.build_multipart(request, source, audio_file),
                headers=headers,
                timeout=timeout,
            )
