"""
Typed data model for generation requests and stored artifacts.

Downstream components only ever see these types; raw request fields are turned
into them by :mod:`audiostudio.core.validation`.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class OperationKind(str, Enum):
    """The three operations the provider supports."""

    TEXT_TO_AUDIO = "text-to-audio"
    AUDIO_TO_AUDIO = "audio-to-audio"
    INPAINT = "audio-inpainting"

    @property
    def prefix(self) -> str:
        """Identifier prefix; doubles as a fallback signal when the sidecar is gone."""
        return _PREFIXES[self]

    @property
    def endpoint(self) -> str:
        """Provider endpoint path segment."""
        return _ENDPOINTS[self]

    @property
    def requires_audio(self) -> bool:
        return self is not OperationKind.TEXT_TO_AUDIO

    @property
    def max_duration(self) -> int:
        return 120 if self is OperationKind.TEXT_TO_AUDIO else 190

    @property
    def default_duration(self) -> int:
        return 190 if self is OperationKind.INPAINT else 20

    @classmethod
    def from_prefix(cls, identifier: str) -> "OperationKind":
        """Infer the kind from an identifier; anything unrecognized is text-to-audio."""
        if identifier.startswith("a2a_"):
            return cls.AUDIO_TO_AUDIO
        if identifier.startswith("inpaint_"):
            return cls.INPAINT
        return cls.TEXT_TO_AUDIO


_PREFIXES = {
    OperationKind.TEXT_TO_AUDIO: "audio",
    OperationKind.AUDIO_TO_AUDIO: "a2a",
    OperationKind.INPAINT: "inpaint",
}

_ENDPOINTS = {
    OperationKind.TEXT_TO_AUDIO: "text-to-audio",
    OperationKind.AUDIO_TO_AUDIO: "audio-to-audio",
    OperationKind.INPAINT: "inpaint",
}

OUTPUT_FORMATS = ("mp3", "wav")
DEFAULT_MODEL = "stable-audio-2.5"


class UploadDescriptor(BaseModel):
    """What validation needs to know about a bound source-audio upload."""

    model_config = ConfigDict(frozen=True)

    filename: str
    content_type: Optional[str] = None


class _BaseRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    prompt: str
    duration: int
    output_format: Literal["mp3", "wav"] = "mp3"
    model: str = DEFAULT_MODEL

    @property
    def operation(self) -> OperationKind:
        return OperationKind(self.kind)

    def provider_fields(self) -> Dict[str, Any]:
        """Fields sent to the provider, in the order it documents them."""
        return {
            "prompt": self.prompt,
            "output_format": self.output_format,
            "duration": self.duration,
            "model": self.model,
        }

    def echo(self) -> Dict[str, Any]:
        """Parameters echoed back to the caller and recorded in the sidecar."""
        return {**self.provider_fields(), "type": self.kind}


class TextToAudioRequest(_BaseRequest):
    kind: Literal["text-to-audio"] = "text-to-audio"


class AudioToAudioRequest(_BaseRequest):
    kind: Literal["audio-to-audio"] = "audio-to-audio"
    strength: float = 0.7
    source_filename: Optional[str] = None

    def provider_fields(self) -> Dict[str, Any]:
        fields = super().provider_fields()
        fields["strength"] = self.strength
        return fields


class InpaintRequest(_BaseRequest):
    kind: Literal["audio-inpainting"] = "audio-inpainting"
    mask_start: float = 30.0
    mask_end: float = 190.0
    seed: int = 0
    steps: int = 8
    source_filename: Optional[str] = None

    def provider_fields(self) -> Dict[str, Any]:
        fields = super().provider_fields()
        fields.update(
            mask_start=self.mask_start, mask_end=self.mask_end, seed=self.seed, steps=self.steps
        )
        return fields


GenerationRequest = Annotated[
    Union[TextToAudioRequest, AudioToAudioRequest, InpaintRequest], Field(discriminator="kind")
]


class ArtifactMetadata(BaseModel):
    """Sidecar contents stored next to every artifact."""

    model_config = ConfigDict(extra="ignore")

    type: OperationKind = OperationKind.TEXT_TO_AUDIO
    prompt: Optional[str] = None
    duration: Optional[int] = None
    output_format: Optional[str] = None
    model: Optional[str] = None
    strength: Optional[float] = None
    source_filename: Optional[str] = None
    mask_start: Optional[float] = None
    mask_end: Optional[float] = None
    seed: Optional[int] = None
    steps: Optional[int] = None
    created: Optional[datetime] = None

    @classmethod
    def from_request(cls, request: "_BaseRequest", created: datetime) -> "ArtifactMetadata":
        data = request.echo()
        source_filename = getattr(request, "source_filename", None)
        if source_filename:
            data["source_filename"] = source_filename
        return cls(**data, created=created)


class ArtifactSummary(BaseModel):
    """One entry of the gallery listing."""

    filename: str
    identifier: str
    url: str
    created: datetime
    size_bytes: int
    type: OperationKind
    prompt: Optional[str] = None
    duration: Optional[int] = None
    output_format: Optional[str] = None
    model: Optional[str] = None
    strength: Optional[float] = None
    source_filename: Optional[str] = None
    mask_start: Optional[float] = None
    mask_end: Optional[float] = None
    seed: Optional[int] = None
    steps: Optional[int] = None


class GenerationResult(BaseModel):
    """What a completed generation returns to the caller."""

    success: bool = True
    filename: str
    identifier: str
    url: str
    parameters: Dict[str, Any]

    def to_response(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "filename": self.filename,
            "url": self.url,
            **self.parameters,
        }
