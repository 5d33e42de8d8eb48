"""Centralized dependency injection for the FastAPI application.

Process-wide objects (the cache service and the model client) live on
``app.state`` and are created by the lifespan handler; per-request services
are assembled here from the request's database session.
"""

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from bodymetrics.api.errors import to_http_exception
from bodymetrics.core.config import settings
from bodymetrics.core.database import get_async_session
from bodymetrics.core.exceptions import ConfigurationError
from bodymetrics.core.llm_client import ChatCompletionClient, create_llm_client_from_settings
from bodymetrics.repositories.analysis_repository import AnalysisRepository
from bodymetrics.repositories.catalog_repository import CatalogRepository
from bodymetrics.repositories.measurement_repository import MeasurementRepository
from bodymetrics.repositories.profile_repository import ProfileRepository
from bodymetrics.services.analysis.analysis_service import AnalysisService
from bodymetrics.services.analysis.gate import AnalysisGate
from bodymetrics.services.analysis.generator import AnalysisGenerator
from bodymetrics.services.cache import CacheService
from bodymetrics.services.catalog_service import CatalogService
from bodymetrics.services.ingestion.duplicate_detector import DuplicateDetector
from bodymetrics.services.ingestion.ingestion_service import IngestionService
from bodymetrics.services.ingestion.vision_extractor import VisionExtractor


def build_cache() -> CacheService:
    return CacheService(max_size=settings.pipeline.cache_max_size)


def build_llm_client() -> ChatCompletionClient:
    """Create the chat completion client from settings.

    Raises:
        ConfigurationError: If the provider or API key is not configured
    """
    llm = settings.llm
    try:
        return create_llm_client_from_settings(
            provider=llm.provider,
            api_key=llm.api_key,
            model=llm.analysis_model,
            api_url=llm.api_url,
            timeout=llm.timeout,
            max_retries=llm.max_retries,
            retry_delay=llm.retry_delay,
        )
    except ValueError as e:
        raise ConfigurationError(str(e), original_error=e) from e


def get_cache(request: Request) -> CacheService:
    """Get the application-wide cache service."""
    cache = getattr(request.app.state, "cache", None)
    if cache is None:
        cache = build_cache()
        request.app.state.cache = cache
    return cache


def get_llm_client(request: Request) -> ChatCompletionClient:
    """Get the application-wide model client, creating it on first use."""
    client = getattr(request.app.state, "llm_client", None)
    if client is None:
        try:
            client = build_llm_client()
        except ConfigurationError as e:
            raise to_http_exception(e, request) from e
        request.app.state.llm_client = client
    return client


async def get_catalog_service(
    db_session: Annotated[AsyncSession, Depends(get_async_session)],
    cache: Annotated[CacheService, Depends(get_cache)],
) -> CatalogService:
    return CatalogService(
        CatalogRepository(db_session), cache, ttl=settings.pipeline.catalog_cache_ttl
    )


def _ingestion_service(
    db_session: AsyncSession,
    cache: CacheService,
    catalog_service: CatalogService,
    vision_extractor: VisionExtractor = None,
) -> IngestionService:
    pipeline = settings.pipeline
    return IngestionService(
        catalog_service=catalog_service,
        measurement_repository=MeasurementRepository(db_session),
        cache=cache,
        duplicate_detector=DuplicateDetector(
            high_threshold=pipeline.duplicate_high_threshold,
            medium_threshold=pipeline.duplicate_medium_threshold,
            low_threshold=pipeline.duplicate_low_threshold,
        ),
        vision_extractor=vision_extractor,
        fuzzy_threshold=pipeline.fuzzy_match_threshold,
        lookback_limit=pipeline.duplicate_lookback_limit,
    )


async def get_ingestion_service(
    db_session: Annotated[AsyncSession, Depends(get_async_session)],
    cache: Annotated[CacheService, Depends(get_cache)],
    catalog_service: Annotated[CatalogService, Depends(get_catalog_service)],
) -> IngestionService:
    """Get an ingestion service without vision extraction."""
    return _ingestion_service(db_session, cache, catalog_service)


async def get_extraction_service(
    db_session: Annotated[AsyncSession, Depends(get_async_session)],
    cache: Annotated[CacheService, Depends(get_cache)],
    catalog_service: Annotated[CatalogService, Depends(get_catalog_service)],
    client: Annotated[ChatCompletionClient, Depends(get_llm_client)],
) -> IngestionService:
    """Get an ingestion service wired to the vision model."""
    llm = settings.llm
    extractor = VisionExtractor(
        client,
        model=llm.vision_model,
        max_tokens=llm.vision_max_tokens,
        temperature=llm.vision_temperature,
    )
    return _ingestion_service(db_session, cache, catalog_service, extractor)


async def get_analysis_service(
    db_session: Annotated[AsyncSession, Depends(get_async_session)],
    cache: Annotated[CacheService, Depends(get_cache)],
    client: Annotated[ChatCompletionClient, Depends(get_llm_client)],
) -> AnalysisService:
    """Get the analysis service for the current request."""
    pipeline = settings.pipeline
    analysis_repository = AnalysisRepository(db_session)
    gate = AnalysisGate(
        analysis_repository,
        cache,
        freshness_seconds=pipeline.analysis_freshness_seconds,
        daily_quota=pipeline.analysis_daily_quota,
        window_seconds=pipeline.rate_limit_window_seconds,
        lookup_ttl=pipeline.analysis_lookup_ttl,
    )
    generator = AnalysisGenerator(
        client,
        model=settings.llm.analysis_model,
        max_attempts=pipeline.generation_max_attempts,
        timeout_seconds=pipeline.generation_timeout_seconds,
    )
    return AnalysisService(
        gate=gate,
        generator=generator,
        analysis_repository=analysis_repository,
        measurement_repository=MeasurementRepository(db_session),
        profile_repository=ProfileRepository(db_session),
        ai_provider=settings.llm.provider,
        min_measurements=pipeline.min_measurements_for_analysis,
        history_limit=pipeline.analysis_history_limit,
        max_values_per_metric=pipeline.csv_max_values_per_metric,
        prompt_cost_per_1k=pipeline.prompt_cost_per_1k,
        completion_cost_per_1k=pipeline.completion_cost_per_1k,
    )
