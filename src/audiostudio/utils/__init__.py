"""
Shared utilities and helpers.

Contains the exception taxonomy used across the application.
"""

from .exceptions import (
    ArtifactNotFoundError,
    AudioStudioError,
    ConfigurationError,
    ProviderError,
    ProviderTimeoutError,
    StorageError,
    ValidationError,
)

__all__ = [
    "AudioStudioError",
    "ValidationError",
    "ConfigurationError",
    "ProviderError",
    "ProviderTimeoutError",
    "StorageError",
    "ArtifactNotFoundError",
]
