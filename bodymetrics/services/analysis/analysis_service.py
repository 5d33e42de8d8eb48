"""Health analysis orchestration.

gate -> load history -> CSV projector -> generator -> expander -> persist

The gate always runs first: cached and rate-limited requests never load
history or touch the generator.
"""

from typing import List, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from bodymetrics.core.exceptions import (
    GenerationError,
    InsufficientDataError,
    RateLimitedError,
    UpstreamServiceError,
)
from bodymetrics.repositories.analysis_repository import COMPLETED, FAILED, AnalysisRepository
from bodymetrics.repositories.measurement_repository import MeasurementRepository
from bodymetrics.repositories.profile_repository import ProfileRepository
from bodymetrics.schemas.analysis import (
    AnalysisResponse,
    HealthAnalysisRecord,
    Profile,
)
from bodymetrics.schemas.measurements import StoredMeasurement
from bodymetrics.services.analysis.csv_projector import project
from bodymetrics.services.analysis.expander import expand
from bodymetrics.services.analysis.gate import AnalysisGate
from bodymetrics.services.analysis.generator import AnalysisGenerator, compute_cost
from bodymetrics.utils.datetime_utils import ensure_utc
from bodymetrics.utils.logging import get_logger

LOGGER = get_logger(__name__)


class AnalysisService:
    """Serves ``request_analysis`` for the API layer."""

    def __init__(
        self,
        gate: AnalysisGate,
        generator: AnalysisGenerator,
        analysis_repository: AnalysisRepository,
        measurement_repository: MeasurementRepository,
        profile_repository: ProfileRepository,
        ai_provider: str = "openai",
        min_measurements: int = 5,
        history_limit: int = 1000,
        max_values_per_metric: int = 15,
        prompt_cost_per_1k: float = 0.0025,
        completion_cost_per_1k: float = 0.01,
    ):
        self.gate = gate
        self.generator = generator
        self.analysis_repository = analysis_repository
        self.measurement_repository = measurement_repository
        self.profile_repository = profile_repository
        self.ai_provider = ai_provider
        self.min_measurements = min_measurements
        self.history_limit = history_limit
        self.max_values_per_metric = max_values_per_metric
        self.prompt_cost_per_1k = prompt_cost_per_1k
        self.completion_cost_per_1k = completion_cost_per_1k

    async def request_analysis(self, user_id: UUID, is_admin: bool = False) -> AnalysisResponse:
        """Return a cached analysis or generate and persist a new one.

        Args:
            user_id: Requesting user
            is_admin: Admins are exempt from the daily quota

        Returns:
            AnalysisResponse with status "cached" or "completed"

        Raises:
            RateLimitedError: Daily quota reached and nothing fresh cached
            InsufficientDataError: Too few stored measurements
            GenerationError: Model output never conformed, or timed out
            UpstreamServiceError: Provider unavailable
        """
        decision = await self.gate.gate(user_id, is_admin)

        if decision.decision == "return_cached":
            cached = decision.cached
            return AnalysisResponse(
                status="cached",
                document=cached.full_response or {},
                analysis_id=cached.id,
                created_at=cached.created_at,
            )

        if decision.decision == "rate_limited":
            raise RateLimitedError(
                f"Daily analysis limit of {self.gate.daily_quota} reached",
                reset_at=decision.reset_at,
            )

        measurements = await self.measurement_repository.get_user_measurements(
            user_id, limit=self.history_limit
        )
        if len(measurements) < self.min_measurements:
            raise InsufficientDataError(
                f"Need at least {self.min_measurements} measurements to generate analysis"
            )

        profile = await self.profile_repository.get_profile(user_id)
        csv = project(profile, measurements, self.max_values_per_metric)
        record = self._base_record(user_id, profile, measurements, csv)

        try:
            result = await self.generator.generate(csv)
        except (GenerationError, UpstreamServiceError) as e:
            await self._record_failure(record, e)
            raise

        document = expand(result.document).model_dump(mode="json")
        record.status = COMPLETED
        record.model_version = result.model_id
        record.prompt_tokens = result.usage.prompt_tokens
        record.completion_tokens = result.usage.completion_tokens
        record.total_cost = compute_cost(
            result.usage, self.prompt_cost_per_1k, self.completion_cost_per_1k
        )
        record.full_response = document

        stored = await self.analysis_repository.insert_analysis(record)
        self.gate.invalidate(user_id)

        LOGGER.info(
            f"Health analysis completed: {stored.id}",
            extra={
                "user_id": str(user_id),
                "metrics_count": record.metrics_count,
                "attempts": result.attempts,
                "total_cost": record.total_cost,
            }
        )
        return AnalysisResponse(
            status="completed",
            document=document,
            analysis_id=stored.id,
            created_at=stored.created_at,
        )

    def _base_record(
        self,
        user_id: UUID,
        profile: Optional[Profile],
        measurements: List[StoredMeasurement],
        csv: str,
    ) -> HealthAnalysisRecord:
        dates = [ensure_utc(m.measured_at) for m in measurements]
        return HealthAnalysisRecord(
            user_id=user_id,
            status=FAILED,
            user_age=profile.age if profile else None,
            user_sex=profile.sex if profile else None,
            measurements_snapshot=csv,
            metrics_count=len({m.metric for m in measurements}),
            date_range_start=min(dates),
            date_range_end=max(dates),
            ai_provider=self.ai_provider,
            model_version=self.generator.model,
        )

    async def _record_failure(self, record: HealthAnalysisRecord, error: Exception) -> None:
        """Persist a failed attempt for auditing. Failed rows are never served."""
        record.status = FAILED
        record.error_message = getattr(error, "reason", None) or str(error)
        try:
            await self.analysis_repository.insert_analysis(record)
        except SQLAlchemyError:
            LOGGER.error(
                "Could not persist failed analysis record",
                exc_info=True,
                extra={"user_id": str(record.user_id)}
            )
