"""Measurement ingestion and health analysis endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, status

from bodymetrics.api.dependencies import (
    get_analysis_service,
    get_extraction_service,
    get_ingestion_service,
)
from bodymetrics.api.errors import to_http_exception
from bodymetrics.core.auth import get_current_user
from bodymetrics.core.config import settings
from bodymetrics.core.exceptions import AppError
from bodymetrics.schemas.auth import CurrentUser
from bodymetrics.schemas.common import ApiResponse
from bodymetrics.schemas.measurements import (
    ExtractRequest,
    IngestRequest,
    SaveMeasurementsRequest,
)
from bodymetrics.services.analysis.analysis_service import AnalysisService
from bodymetrics.services.ingestion.image_fetcher import fetch_image
from bodymetrics.services.ingestion.ingestion_service import IngestionService
from bodymetrics.utils.logging import get_logger
from bodymetrics.utils.responses import create_api_response

LOGGER = get_logger(__name__)

router = APIRouter()


@router.post(
    "/extract",
    response_model=ApiResponse,
    summary="Extract measurements from a report image",
    operation_id="extract_measurements",
)
async def extract_measurements(
    request: Request,
    body: ExtractRequest,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    ingestion_service: Annotated[IngestionService, Depends(get_extraction_service)],
) -> ApiResponse:
    """Download the image, run vision extraction and return reviewable rows.

    Nothing is persisted; the client confirms rows via ``POST /``.
    """
    try:
        image_bytes, content_type = await fetch_image(
            body.image_url, timeout=settings.image_fetch_timeout
        )
        result = await ingestion_service.extract_and_ingest(
            current_user.id, image_bytes, content_type
        )
    except AppError as e:
        LOGGER.warning(
            f"Extraction failed: {e}",
            extra={"user_id": str(current_user.id), "error_type": type(e).__name__}
        )
        raise to_http_exception(e, request) from e

    return create_api_response(
        data=result,
        message=f"Extracted {len(result.processed)} measurements",
        request=request
    )


@router.post(
    "/ingest",
    response_model=ApiResponse,
    summary="Normalize and validate already extracted measurements",
    operation_id="ingest_measurements",
)
async def ingest_measurements(
    request: Request,
    body: IngestRequest,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    ingestion_service: Annotated[IngestionService, Depends(get_ingestion_service)],
) -> ApiResponse:
    """Run the ingestion pipeline over raw extracted items."""
    result = await ingestion_service.ingest(current_user.id, body.measurements)

    return create_api_response(
        data=result,
        message=f"Processed {len(result.processed)} of {len(body.measurements)} measurements",
        request=request
    )


@router.post(
    "/",
    response_model=ApiResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Save confirmed measurements",
    operation_id="save_measurements",
)
async def save_measurements(
    request: Request,
    body: SaveMeasurementsRequest,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    ingestion_service: Annotated[IngestionService, Depends(get_ingestion_service)],
) -> ApiResponse:
    """Persist measurements keyed by catalog metric."""
    try:
        stored = await ingestion_service.save_measurements(current_user.id, body.measurements)
    except AppError as e:
        raise to_http_exception(e, request) from e

    return create_api_response(
        data={"measurements": [m.model_dump(mode="json") for m in stored]},
        message=f"Saved {len(stored)} measurements",
        request=request
    )


@router.post(
    "/analyze",
    response_model=ApiResponse,
    summary="Request a health analysis",
    operation_id="request_health_analysis",
)
async def request_health_analysis(
    request: Request,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    analysis_service: Annotated[AnalysisService, Depends(get_analysis_service)],
) -> ApiResponse:
    """Return the fresh cached analysis or generate a new one."""
    try:
        result = await analysis_service.request_analysis(
            current_user.id, is_admin=current_user.is_admin
        )
    except AppError as e:
        LOGGER.warning(
            f"Analysis request failed: {e}",
            extra={"user_id": str(current_user.id), "error_type": type(e).__name__}
        )
        raise to_http_exception(e, request) from e

    message = "Returning cached analysis" if result.status == "cached" else "Analysis completed"
    return create_api_response(data=result, message=message, request=request)
