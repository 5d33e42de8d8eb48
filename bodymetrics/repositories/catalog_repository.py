from typing import List

from sqlalchemy.ext.asyncio import AsyncSession

from bodymetrics.database.models import MetricCatalog
from bodymetrics.repositories.base_repository import BaseRepository
from bodymetrics.schemas.measurements import CatalogEntry


class CatalogRepository(BaseRepository[MetricCatalog]):
    """Read access to the metric catalog."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, MetricCatalog)

    async def get_catalog(self) -> List[CatalogEntry]:
        """Return every catalog entry ordered for display."""
        rows = await self.get_all(
            limit=None,
            order_by=(MetricCatalog.sort_order, MetricCatalog.key),
        )
        return [CatalogEntry.model_validate(row) for row in rows]
