"""Custom exception hierarchy."""

from datetime import datetime
from enum import Enum
from typing import List, Optional


class AppError(Exception):
    """Base exception for application errors."""
    def __init__(self, message: str, original_error: Exception = None):
        super().__init__(message)
        self.original_error = original_error


class APIClientError(AppError):
    """Raised when an external API call fails."""
    def __init__(
        self,
        message: str,
        original_error: Exception = None,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None,
    ):
        super().__init__(message, original_error)
        self.status_code = status_code
        self.error_code = error_code


class APITimeoutError(APIClientError):
    """Raised when an external API call times out."""
    pass


class DatabaseError(AppError):
    """Raised when a database operation fails."""
    pass


class ValidationError(AppError):
    """Raised when input validation fails."""
    pass


class ConfigurationError(AppError):
    """Raised when configuration is invalid or missing."""
    pass


class PipelineError(AppError):
    """Base exception for pipeline errors."""
    pass


class GenerationError(PipelineError):
    """Analysis generation failed after the attempt budget was spent.

    ``reason`` is ``"schema_validation_failed"`` when the model never produced
    a conforming document and ``"timeout"`` when the final attempt timed out.
    """

    SCHEMA_VALIDATION_FAILED = "schema_validation_failed"
    TIMEOUT = "timeout"

    def __init__(self, reason: str, attempts: int = 0, original_error: Exception = None):
        super().__init__(reason, original_error)
        self.reason = reason
        self.attempts = attempts


class RateLimitedError(PipelineError):
    """Raised when a user has exhausted the daily analysis quota."""
    def __init__(self, message: str, reset_at: Optional[datetime] = None):
        super().__init__(message)
        self.reset_at = reset_at


class InsufficientDataError(PipelineError):
    """Raised when there is not enough history to analyse."""
    pass


class NoMeasurementsFoundError(PipelineError):
    """Raised when an extraction produced no usable measurements."""
    def __init__(self, message: str = "No valid measurements found in image", warnings: Optional[List[str]] = None):
        super().__init__(message)
        self.warnings = warnings or []


class UpstreamErrorKind(str, Enum):
    """Known causes of text/vision provider failures."""
    QUOTA_EXCEEDED = "quota_exceeded"
    AUTH_FAILED = "auth_failed"
    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"
    UNKNOWN = "unknown"


UPSTREAM_ERROR_MESSAGES = {
    UpstreamErrorKind.QUOTA_EXCEEDED: "AI service quota exceeded. Please try again later.",
    UpstreamErrorKind.AUTH_FAILED: "AI service authentication failed.",
    UpstreamErrorKind.TIMEOUT: "AI service did not respond in time. Please try again.",
    UpstreamErrorKind.RATE_LIMITED: "Rate limit exceeded. Please wait a moment and try again.",
    UpstreamErrorKind.UNKNOWN: "AI service is currently unavailable.",
}


class UpstreamServiceError(PipelineError):
    """Raised when the text or vision provider is unavailable."""
    def __init__(self, kind: UpstreamErrorKind, original_error: Exception = None):
        super().__init__(UPSTREAM_ERROR_MESSAGES[kind], original_error)
        self.kind = kind


_QUOTA_CODES = {"insufficient_quota", "quota_exceeded", "billing_hard_limit_reached"}
_AUTH_CODES = {"invalid_api_key", "model_not_found", "unauthorized", "permission_denied"}


def classify_upstream_error(error: Exception) -> UpstreamErrorKind:
    """Map a provider failure onto one of the known causes.

    Args:
        error: Exception raised by an LLM client call

    Returns:
        UpstreamErrorKind: Matching cause, UNKNOWN when nothing matches
    """
    if isinstance(error, APITimeoutError):
        return UpstreamErrorKind.TIMEOUT
    if not isinstance(error, APIClientError):
        return UpstreamErrorKind.UNKNOWN

    code = (error.error_code or "").lower()
    if code in _QUOTA_CODES:
        return UpstreamErrorKind.QUOTA_EXCEEDED
    if code in _AUTH_CODES or error.status_code in (401, 403):
        return UpstreamErrorKind.AUTH_FAILED
    if error.status_code == 429:
        return UpstreamErrorKind.RATE_LIMITED
    return UpstreamErrorKind.UNKNOWN


class ImageDownloadError(AppError):
    """Raised when a report image cannot be fetched."""
    def __init__(self, message: str, original_error: Exception = None, status_code: Optional[int] = None):
        super().__init__(message, original_error)
        self.status_code = status_code
