"""Cache/rate gate evaluated before any analysis generation.

Order matters:
    1. a completed analysis younger than the freshness window is returned
       as-is (repeat requests inside the window never reach the generator)
    2. non-admins at or above the daily quota are rate limited
    3. otherwise generation may proceed

A fresh cached analysis is served even to a user who is at their quota.
"""

from datetime import datetime, timedelta
from typing import Callable, Optional
from uuid import UUID

from bodymetrics.repositories.analysis_repository import AnalysisRepository
from bodymetrics.schemas.analysis import GateResult, HealthAnalysisRecord
from bodymetrics.services.cache import CacheService, latest_analysis_key
from bodymetrics.utils.datetime_utils import ensure_utc, utcnow
from bodymetrics.utils.logging import get_logger

LOGGER = get_logger(__name__)


class AnalysisGate:
    """Decides between returning a cached analysis, rejecting, or proceeding."""

    def __init__(
        self,
        repository: AnalysisRepository,
        cache: CacheService,
        freshness_seconds: int = 3600,
        daily_quota: int = 5,
        window_seconds: int = 86400,
        lookup_ttl: int = 300,
        now: Callable[[], datetime] = utcnow,
    ):
        self.repository = repository
        self.cache = cache
        self.freshness = timedelta(seconds=freshness_seconds)
        self.daily_quota = daily_quota
        self.window = timedelta(seconds=window_seconds)
        self.lookup_ttl = lookup_ttl
        self._now = now

    async def gate(self, user_id: UUID, is_admin: bool = False) -> GateResult:
        """Evaluate the gate for one request.

        Args:
            user_id: Requesting user
            is_admin: Admins bypass the daily quota (not the cache)

        Returns:
            GateResult with ``decision`` and, for ``return_cached``, the record
        """
        now = self._now()

        latest = await self._latest_completed(user_id)
        if latest is not None and latest.created_at is not None:
            age = now - ensure_utc(latest.created_at)
            if age < self.freshness:
                LOGGER.info(
                    f"Returning cached analysis {latest.id}",
                    extra={"user_id": str(user_id), "age_seconds": int(age.total_seconds())}
                )
                return GateResult(decision="return_cached", cached=latest)

        if not is_admin:
            since = now - self.window
            # Recomputed on every request; the count itself is never cached
            count = await self.repository.count_completed_since(user_id, since)
            if count >= self.daily_quota:
                oldest = await self.repository.get_oldest_completed_since(user_id, since)
                reset_at = (
                    ensure_utc(oldest.created_at) + self.window
                    if oldest is not None and oldest.created_at is not None
                    else None
                )
                LOGGER.info(
                    "Analysis rate limited",
                    extra={"user_id": str(user_id), "count": count, "quota": self.daily_quota}
                )
                return GateResult(decision="rate_limited", recent_count=count, reset_at=reset_at)
            return GateResult(decision="proceed", recent_count=count)

        return GateResult(decision="proceed")

    def invalidate(self, user_id: UUID) -> None:
        """Forget the cached latest-analysis lookup after a new record is stored."""
        self.cache.delete(latest_analysis_key(user_id))

    async def _latest_completed(self, user_id: UUID) -> Optional[HealthAnalysisRecord]:
        return await self.cache.get_or_set(
            latest_analysis_key(user_id),
            lambda: self.repository.get_latest_completed(user_id),
            self.lookup_ttl,
        )
