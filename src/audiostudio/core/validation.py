"""
Request validation for the three generation operations.

Turns loosely typed request fields (JSON values or multipart strings) into one of
the typed request variants. The checks run in a fixed order and the first
violation wins:

    prompt -> source audio (when required) -> output_format -> kind-specific fields

Nothing here touches the filesystem or the network.
"""

import math
from typing import Any, Mapping, Optional, Union

from ..utils.exceptions import ValidationError
from .models import (
    DEFAULT_MODEL,
    OUTPUT_FORMATS,
    AudioToAudioRequest,
    InpaintRequest,
    OperationKind,
    TextToAudioRequest,
    UploadDescriptor,
)

STRENGTH_RANGE = (0.01, 1.0)
MASK_RANGE = (0.0, 190.0)
SEED_RANGE = (0, 4294967294)
STEPS_RANGE = (4, 8)

DEFAULT_OUTPUT_FORMAT = "mp3"
DEFAULT_STRENGTH = 0.7
DEFAULT_MASK_START = 30.0
DEFAULT_MASK_END = 190.0
DEFAULT_SEED = 0
DEFAULT_STEPS = 8


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def parse_int(field: str, value: Any, low: int, high: int, default: int) -> int:
    """Parse an integer field, falling back to ``default`` when it is absent."""
    if _is_blank(value):
        return default
    if isinstance(value, bool):
        raise ValidationError(field, f"{field} must be an integer")

    parsed: Optional[int] = None
    if isinstance(value, int):
        parsed = value
    elif isinstance(value, float) and value.is_integer():
        parsed = int(value)
    elif isinstance(value, str):
        text = value.strip()
        try:
            parsed = int(text)
        except ValueError:
            try:
                as_float = float(text)
            except ValueError:
                as_float = math.nan
            if as_float.is_integer():
                parsed = int(as_float)

    if parsed is None:
        raise ValidationError(field, f"{field} must be an integer")
    if not low <= parsed <= high:
        raise ValidationError(
            field,
            f"{field} must be between {low} and {high}",
            details={"value": parsed, "min": low, "max": high},
        )
    return parsed


def parse_float(field: str, value: Any, low: float, high: float, default: float) -> float:
    """Parse a floating point field, falling back to ``default`` when it is absent."""
    if _is_blank(value):
        return default
    if isinstance(value, bool):
        raise ValidationError(field, f"{field} must be a number")
    try:
        parsed = float(value.strip() if isinstance(value, str) else value)
    except (TypeError, ValueError):
        raise ValidationError(field, f"{field} must be a number")
    if math.isnan(parsed) or not low <= parsed <= high:
        raise ValidationError(
            field,
            f"{field} must be between {low} and {high}",
            details={"value": value if isinstance(value, str) else parsed, "min": low, "max": high},
        )
    return parsed


def validate_prompt(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("prompt", "Prompt is required")
    return value


def validate_audio(kind: OperationKind, audio: Optional[UploadDescriptor]) -> None:
    if not kind.requires_audio:
        return
    if audio is None or not audio.filename:
        raise ValidationError("audio", "Audio file is required")
    content_type = (audio.content_type or "").lower()
    if not content_type.startswith("audio/"):
        raise ValidationError(
            "audio",
            "Only audio files are allowed",
            details={"content_type": audio.content_type},
        )


def validate_output_format(value: Any) -> str:
    if _is_blank(value):
        return DEFAULT_OUTPUT_FORMAT
    if value not in OUTPUT_FORMATS:
        raise ValidationError("output_format", "Invalid output format. Must be mp3 or wav.")
    return value


def validate_model(value: Any, default_model: str) -> str:
    if _is_blank(value):
        return default_model
    if not isinstance(value, str):
        raise ValidationError("model", "model must be a string")
    return value.strip()


def validate_request(
    kind: Union[OperationKind, str],
    fields: Mapping[str, Any],
    audio: Optional[UploadDescriptor] = None,
    default_model: str = DEFAULT_MODEL,
):
    """
    Validate raw request fields for one operation kind.

    Args:
        kind: Operation to validate for
        fields: Raw request fields; absent or blank optional fields take defaults
        audio: Descriptor of the bound source-audio upload, if any
        default_model: Model used when the request does not name one

    Returns:
        A TextToAudioRequest, AudioToAudioRequest or InpaintRequest

    Raises:
        ValidationError: naming the first offending field
    """
    kind = OperationKind(kind)

    prompt = validate_prompt(fields.get("prompt"))
    validate_audio(kind, audio)
    output_format = validate_output_format(fields.get("output_format"))
    duration = parse_int(
        "duration", fields.get("duration"), 1, kind.max_duration, kind.default_duration
    )
    common = {
        "prompt": prompt,
        "duration": duration,
        "output_format": output_format,
        "model": validate_model(fields.get("model"), default_model),
    }

    if kind is OperationKind.TEXT_TO_AUDIO:
        return TextToAudioRequest(**common)

    source_filename = audio.filename if audio else None

    if kind is OperationKind.AUDIO_TO_AUDIO:
        strength = parse_float("strength", fields.get("strength"), *STRENGTH_RANGE, DEFAULT_STRENGTH)
        return AudioToAudioRequest(**common, strength=strength, source_filename=source_filename)

    mask_start = parse_float("mask_start", fields.get("mask_start"), *MASK_RANGE, DEFAULT_MASK_START)
    mask_end = parse_float("mask_end", fields.get("mask_end"), *MASK_RANGE, DEFAULT_MASK_END)
    if mask_start >= mask_end:
        raise ValidationError(
            "mask_start",
            "mask_start must be less than mask_end",
            details={"mask_start": mask_start, "mask_end": mask_end},
        )
    seed = parse_int("seed", fields.get("seed"), *SEED_RANGE, DEFAULT_SEED)
    steps = parse_int("steps", fields.get("steps"), *STEPS_RANGE, DEFAULT_STEPS)
    return InpaintRequest(
        **common,
        mask_start=mask_start,
        mask_end=mask_end,
        seed=seed,
        steps=steps,
        source_filename=source_filename,
    )
