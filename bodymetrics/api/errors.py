"""Translate pipeline exceptions into problem-detail HTTP errors."""

from typing import Dict, Optional, Tuple

from fastapi import HTTPException, Request, status

from bodymetrics.core.exceptions import (
    AppError,
    ConfigurationError,
    GenerationError,
    ImageDownloadError,
    InsufficientDataError,
    NoMeasurementsFoundError,
    RateLimitedError,
    UpstreamErrorKind,
    UpstreamServiceError,
    ValidationError,
)
from bodymetrics.utils.responses import create_error_detail

_UPSTREAM_STATUS: Dict[UpstreamErrorKind, int] = {
    UpstreamErrorKind.QUOTA_EXCEEDED: status.HTTP_503_SERVICE_UNAVAILABLE,
    UpstreamErrorKind.AUTH_FAILED: status.HTTP_502_BAD_GATEWAY,
    UpstreamErrorKind.TIMEOUT: status.HTTP_504_GATEWAY_TIMEOUT,
    UpstreamErrorKind.RATE_LIMITED: status.HTTP_429_TOO_MANY_REQUESTS,
    UpstreamErrorKind.UNKNOWN: status.HTTP_502_BAD_GATEWAY,
}


def _classify(error: AppError) -> Tuple[int, str, str]:
    """Return (status, title, code) for a known application error."""
    if isinstance(error, RateLimitedError):
        return status.HTTP_429_TOO_MANY_REQUESTS, "Rate Limited", "rate_limited"
    if isinstance(error, NoMeasurementsFoundError):
        return status.HTTP_400_BAD_REQUEST, "No Measurements Found", "no_measurements_found"
    if isinstance(error, InsufficientDataError):
        return status.HTTP_400_BAD_REQUEST, "Insufficient Data", "insufficient_data"
    if isinstance(error, ValidationError):
        return status.HTTP_422_UNPROCESSABLE_ENTITY, "Validation Error", "validation_error"
    if isinstance(error, GenerationError):
        if error.reason == GenerationError.TIMEOUT:
            return status.HTTP_504_GATEWAY_TIMEOUT, "Analysis Timed Out", error.reason
        return status.HTTP_502_BAD_GATEWAY, "Analysis Generation Failed", error.reason
    if isinstance(error, UpstreamServiceError):
        return _UPSTREAM_STATUS[error.kind], "AI Service Error", error.kind.value
    if isinstance(error, ImageDownloadError):
        return status.HTTP_502_BAD_GATEWAY, "Image Download Failed", "image_download_failed"
    if isinstance(error, ConfigurationError):
        return status.HTTP_503_SERVICE_UNAVAILABLE, "Service Not Configured", "configuration_error"
    return status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal Server Error", "internal_error"


def to_http_exception(error: AppError, request: Optional[Request] = None) -> HTTPException:
    """Build the HTTPException the API raises for an application error."""
    status_code, title, code = _classify(error)
    error_detail = create_error_detail(
        title=title,
        status=status_code,
        detail=str(error),
        request=request,
        code=code,
    )
    body = error_detail.model_dump(mode="json")

    if isinstance(error, RateLimitedError) and error.reset_at is not None:
        body["reset_at"] = error.reset_at.isoformat()
    if isinstance(error, NoMeasurementsFoundError) and error.warnings:
        body["warnings"] = list(error.warnings)
    return HTTPException(status_code=status_code, detail=body)
