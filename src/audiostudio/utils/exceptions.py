"""Custom exceptions for Audio Studio.

Every failure a request can hit maps onto one of these classes. Each class knows
the HTTP status it is reported with, so the API layer needs a single handler.
"""

from typing import Any, Dict, Optional


class AudioStudioError(Exception):
    """Base exception for all Audio Studio errors."""

    status_code: int = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None, error_code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.error_code = error_code or self.__class__.default_code()

    @classmethod
    def default_code(cls) -> str:
        return "internal_error"

    @property
    def http_status(self) -> int:
        return self.status_code

    def to_payload(self) -> Dict[str, Any]:
        """Render the error as the JSON body returned to API clients."""
        payload: Dict[str, Any] = {"error": self.message, "code": self.error_code}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(AudioStudioError):
    """A request field is missing, malformed or out of range."""

    status_code = 400

    def __init__(self, field: str, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details=details)
        self.field = field

    @classmethod
    def default_code(cls) -> str:
        return "validation_error"

    def to_payload(self) -> Dict[str, Any]:
        payload = super().to_payload()
        payload["field"] = self.field
        return payload


class ConfigurationError(AudioStudioError):
    """The server is missing configuration it needs (e.g. the provider API key)."""

    @classmethod
    def default_code(cls) -> str:
        return "configuration_error"


class ProviderError(AudioStudioError):
    """The generation provider answered with a non-200 status or could not be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        super().__init__(message, details={"upstream_status": status_code} if status_code else None)
        self.upstream_status = status_code
        self.body = body

    @classmethod
    def default_code(cls) -> str:
        return "provider_error"

    @property
    def http_status(self) -> int:
        # Transport failures have no upstream status
        return self.upstream_status or 502

    def to_payload(self) -> Dict[str, Any]:
        return {"error": self.message, "code": self.error_code, "details": self.body}


class ProviderTimeoutError(AudioStudioError):
    """The provider call exceeded its timeout budget."""

    status_code = 408

    @classmethod
    def default_code(cls) -> str:
        return "timeout"


class StorageError(AudioStudioError):
    """Reading or writing the artifact directory failed."""

    @classmethod
    def default_code(cls) -> str:
        return "storage_error"


class ArtifactNotFoundError(AudioStudioError):
    """The requested artifact does not exist."""

    status_code = 404

    @classmethod
    def default_code(cls) -> str:
        return "not_found"


def get_error_summary(error: Exception) -> Dict[str, Any]:
    """Get a loggable summary of an error.

    Args:
        error: The exception to summarize
    """
    summary: Dict[str, Any] = {"error_type": type(error).__name__, "message": str(error)}
    if isinstance(error, AudioStudioError):
        summary["error_code"] = error.error_code
        summary["status"] = error.http_status
        if error.details:
            summary["details"] = error.details
    return summary
