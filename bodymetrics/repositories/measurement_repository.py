from datetime import datetime, timezone
from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from bodymetrics.database.models import Measurement
from bodymetrics.repositories.base_repository import BaseRepository
from bodymetrics.schemas.measurements import MeasurementCreate, StoredMeasurement
from bodymetrics.utils.datetime_utils import ensure_utc


def _to_schema(row: Measurement) -> StoredMeasurement:
    stored = StoredMeasurement.model_validate(row)
    stored.measured_at = ensure_utc(stored.measured_at)
    stored.created_at = ensure_utc(stored.created_at)
    stored.updated_at = ensure_utc(stored.updated_at)
    return stored


class MeasurementRepository(BaseRepository[Measurement]):
    """Repository for a user's measurement time series."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Measurement)

    async def get_recent_measurements(
        self,
        user_id: UUID,
        metric_keys: Sequence[str],
        limit: int = 200,
    ) -> List[StoredMeasurement]:
        """Get the newest measurements for a set of metrics.

        Args:
            user_id: Owner of the measurements
            metric_keys: Catalog keys to include
            limit: Maximum number of rows

        Returns:
            Stored measurements, newest first
        """
        if not metric_keys:
            return []
        try:
            query = (
                select(Measurement)
                .where(Measurement.user_id == user_id, Measurement.metric.in_(list(metric_keys)))
                .order_by(Measurement.measured_at.desc(), Measurement.created_at.desc())
                .limit(limit)
            )
            result = await self.session.execute(query)
            return [_to_schema(row) for row in result.scalars().all()]
        except SQLAlchemyError as e:
            self.logger.error(
                f"Error retrieving recent measurements for user {user_id}: {str(e)}",
                exc_info=True
            )
            raise

    async def get_user_measurements(
        self, user_id: UUID, limit: Optional[int] = 1000
    ) -> List[StoredMeasurement]:
        """Get a user's full history, newest first."""
        rows = await self.get_all(
            limit=limit,
            filters={"user_id": user_id},
            order_by=(Measurement.measured_at.desc(),),
        )
        return [_to_schema(row) for row in rows]

    async def insert_measurements(
        self, user_id: UUID, rows: Sequence[MeasurementCreate]
    ) -> List[StoredMeasurement]:
        """Persist confirmed measurements for a user.

        Rows without ``measured_at`` are stamped with the current time.
        """
        if not rows:
            return []
        now = datetime.now(timezone.utc)
        created = await self.create_many([
            {
                "user_id": user_id,
                "metric": row.metric,
                "value": row.value,
                "unit": row.unit,
                "measured_at": row.measured_at or now,
                "source": row.source,
                "confidence": row.confidence,
                "notes": row.notes,
                "image_url": row.image_url,
            }
            for row in rows
        ])
        self.logger.info(
            f"Inserted {len(created)} measurements",
            extra={"user_id": str(user_id)}
        )
        return [_to_schema(row) for row in created]
