"""Health check API endpoints."""

from fastapi import APIRouter
from pydantic import BaseModel, Field
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from bodymetrics.core.config import settings
from bodymetrics.core.database import get_session_maker
from bodymetrics.utils.logging import get_logger

LOGGER = get_logger(__name__)

router = APIRouter()


class HealthCheckResponse(BaseModel):
    status: str = Field(..., description="Health check status")
    version: str = Field(..., description="Running application version")
    service: str = Field(..., description="Service name")


async def database_is_healthy() -> bool:
    try:
        async with get_session_maker()() as session:
            await session.execute(text("SELECT 1"))
        return True
    except (SQLAlchemyError, OSError) as e:
        LOGGER.warning(f"Database health check failed: {e}")
        return False


@router.get(
    "/",
    response_model=HealthCheckResponse,
    summary="Health check endpoint",
    description="Check if the service is running and healthy",
    operation_id="get_service_health_status",
)
async def health_check() -> HealthCheckResponse:
    """Health check endpoint."""
    db_ok = await database_is_healthy()

    return HealthCheckResponse(
        status="healthy" if db_ok else "degraded",
        version=settings.app_version,
        service=settings.app_name,
    )
