from fastapi import APIRouter

from bodymetrics.api.v1.endpoints import measurements

# Create API router
api_router = APIRouter()

# Include routers
api_router.include_router(measurements.router, prefix="/measurements", tags=["Measurements"])

__all__ = ["api_router"]
