"""FastAPI application entry point."""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncGenerator
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError

from bodymetrics.api.dependencies import build_cache
from bodymetrics.api.v1.endpoints import health
from bodymetrics.api.v1.router import api_router
from bodymetrics.core.config import settings
from bodymetrics.core.database import close_database, init_database
from bodymetrics.utils.logging import get_logger, set_package_log_level

LOGGER = get_logger(__name__, level=settings.log_level)


class RootResponse(BaseModel):
    """Root endpoint response payload."""

    message: str = Field(..., description="Service status message")
    version: str = Field(..., description="Running application version")
    docs: str = Field(..., description="Path to the interactive API docs")
    health: str = Field(..., description="Path to the health check endpoint")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    # Startup
    set_package_log_level(settings.log_level)
    LOGGER.info("Validating configuration...")
    if not settings.llm.api_key:
        LOGGER.error("LLM_API_KEY is missing; extraction and analysis will be unavailable")

    LOGGER.info(
        "Starting application",
        extra={
            "app_name": settings.app_name,
            "version": settings.app_version,
            "environment": settings.environment,
        },
    )

    app.state.cache = build_cache()

    if settings.db.auto_create_tables:
        LOGGER.info("Starting database initialization...")
        try:
            await asyncio.wait_for(init_database(), timeout=settings.db.init_timeout)
            LOGGER.info("Database initialized successfully")
        except asyncio.TimeoutError:
            LOGGER.error(f"Database initialization timed out after {settings.db.init_timeout}s")
        except (SQLAlchemyError, OSError) as e:
            LOGGER.error(f"Database initialization failed: {e}", exc_info=True)

    yield

    # Shutdown
    LOGGER.info("Shutting down application")
    app.state.cache.clear()

    try:
        await close_database()
    except SQLAlchemyError as e:
        LOGGER.error(
            "Error closing database",
            exc_info=True,
            extra={"error": str(e)}
        )


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Body-composition measurement ingestion and AI health analysis",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)


# Request ID middleware; the ID is echoed in every response envelope
@app.middleware("http")
async def add_request_id(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID", str(uuid4()))
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)

# Include routers
app.include_router(api_router, prefix=settings.api_v1_prefix)
app.include_router(health.router, prefix="/health", tags=["Health"])


# Root endpoint
@app.get(
    "/",
    response_model=RootResponse,
    tags=["Root"],
    summary="Root endpoint",
    description="Get basic information about the API",
    operation_id="get_public_root_metadata",
)
async def root() -> RootResponse:
    """Root endpoint.

    Returns:
        RootResponse: Basic API information
    """
    return RootResponse(
        message="Server is running",
        version=settings.app_version,
        docs="/docs",
        health="/health",
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "bodymetrics.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
