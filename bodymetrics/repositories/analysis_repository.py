from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from bodymetrics.database.models import HealthAnalysis
from bodymetrics.repositories.base_repository import BaseRepository
from bodymetrics.schemas.analysis import FullDocument, HealthAnalysisRecord
from bodymetrics.utils.datetime_utils import ensure_utc

COMPLETED = "completed"
FAILED = "failed"


def _to_schema(row: HealthAnalysis) -> HealthAnalysisRecord:
    record = HealthAnalysisRecord.model_validate(row)
    record.created_at = ensure_utc(record.created_at)
    record.date_range_start = ensure_utc(record.date_range_start)
    record.date_range_end = ensure_utc(record.date_range_end)
    return record


class AnalysisRepository(BaseRepository[HealthAnalysis]):
    """Repository for health analysis records."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, HealthAnalysis)

    async def get_recent_analyses(
        self,
        user_id: UUID,
        limit: int = 10,
        status: Optional[str] = None,
    ) -> List[HealthAnalysisRecord]:
        """Get a user's analyses, newest first.

        Args:
            user_id: Owner of the analyses
            limit: Maximum number of records
            status: Optional status filter ("completed" or "failed")

        Returns:
            Analysis records
        """
        filters = {"user_id": user_id}
        if status:
            filters["status"] = status
        rows = await self.get_all(
            limit=limit,
            filters=filters,
            order_by=(HealthAnalysis.created_at.desc(),),
        )
        return [_to_schema(row) for row in rows]

    async def get_latest_completed(self, user_id: UUID) -> Optional[HealthAnalysisRecord]:
        """Get the newest completed analysis for a user, if any."""
        records = await self.get_recent_analyses(user_id, limit=1, status=COMPLETED)
        return records[0] if records else None

    async def count_completed_since(self, user_id: UUID, since: datetime) -> int:
        """Count completed analyses created at or after ``since``."""
        return await self.count(
            HealthAnalysis.user_id == user_id,
            HealthAnalysis.status == COMPLETED,
            HealthAnalysis.created_at >= since,
        )

    async def get_oldest_completed_since(
        self, user_id: UUID, since: datetime
    ) -> Optional[HealthAnalysisRecord]:
        """Get the oldest completed analysis inside a window.

        Used to tell a rate-limited caller when the window rolls over.
        """
        try:
            query = (
                select(HealthAnalysis)
                .where(
                    HealthAnalysis.user_id == user_id,
                    HealthAnalysis.status == COMPLETED,
                    HealthAnalysis.created_at >= since,
                )
                .order_by(HealthAnalysis.created_at.asc())
                .limit(1)
            )
            result = await self.session.execute(query)
            row = result.scalar_one_or_none()
            return _to_schema(row) if row else None
        except SQLAlchemyError as e:
            self.logger.error(
                f"Error retrieving oldest analysis for user {user_id}: {str(e)}",
                exc_info=True
            )
            raise

    async def insert_analysis(self, record: HealthAnalysisRecord) -> HealthAnalysisRecord:
        """Persist an analysis record.

        The expanded document in ``full_response`` is also spread into its
        own columns so completed analyses can be queried field by field.
        """
        fields = record.model_dump(exclude={"id", "created_at"})
        if record.created_at is not None:
            fields["created_at"] = record.created_at
        if record.full_response:
            document = FullDocument.model_validate(record.full_response).model_dump(mode="json")
            fields.update(document)

        row = await self.create(**fields)
        self.logger.info(
            f"Inserted {record.status} health analysis {row.id}",
            extra={"user_id": str(record.user_id), "status": record.status}
        )
        return _to_schema(row)
