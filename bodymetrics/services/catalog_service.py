from typing import Dict, List, Optional

from bodymetrics.repositories.catalog_repository import CatalogRepository
from bodymetrics.schemas.measurements import CatalogEntry
from bodymetrics.services.cache import CATALOG_KEY, CacheService
from bodymetrics.utils.logging import get_logger

LOGGER = get_logger(__name__)


class CatalogService:
    """Read-through cached access to the metric catalog."""

    def __init__(self, repository: CatalogRepository, cache: CacheService, ttl: int = 900):
        self.repository = repository
        self.cache = cache
        self.ttl = ttl

    async def get_catalog(self) -> List[CatalogEntry]:
        return await self.cache.get_or_set(CATALOG_KEY, self._load, self.ttl) or []

    async def get_catalog_index(self) -> Dict[str, CatalogEntry]:
        """Catalog keyed by metric key."""
        return {entry.key: entry for entry in await self.get_catalog()}

    def invalidate(self) -> None:
        """Drop the cached catalog after an administrative change."""
        self.cache.delete(CATALOG_KEY)

    async def _load(self) -> Optional[List[CatalogEntry]]:
        catalog = await self.repository.get_catalog()
        LOGGER.info(f"Loaded metric catalog with {len(catalog)} entries")
        # An empty catalog is not cached so a freshly seeded one shows up at once
        return catalog or None
