"""In-process TTL cache service.

Holds the read-mostly lookups the pipeline shares across requests (the metric
catalog, each user's latest completed analysis). Instances are created once
per application and passed to the services that need them; tests build their
own with a fake clock.

Keys:
    metrics:catalog:v2                  Full metric catalog
    analysis:latest:{user_id}           Latest completed analysis for a user
    measurements:{user_id}:*            Per-user measurement views
"""

import fnmatch
import time
from collections import OrderedDict
from typing import Any, Awaitable, Callable, Optional, Tuple

from bodymetrics.utils.logging import get_logger

LOGGER = get_logger(__name__)

CATALOG_KEY = "metrics:catalog:v2"


def latest_analysis_key(user_id: Any) -> str:
    return f"analysis:latest:{user_id}"


def user_measurements_pattern(user_id: Any) -> str:
    return f"measurements:{user_id}:*"


class CacheService:
    """TTL cache with size-bounded eviction and pattern invalidation.

    ``None`` is never stored: a loader returning ``None`` counts as a miss so
    absent rows are re-read on the next call.
    """

    DEFAULT_TTL = 300

    def __init__(
        self,
        max_size: int = 1000,
        default_ttl: int = DEFAULT_TTL,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the cache.

        Args:
            max_size: Entries kept before the oldest is evicted
            default_ttl: TTL in seconds when ``set`` is called without one
            clock: Monotonic time source in seconds
        """
        self.max_size = max_size
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: "OrderedDict[str, Tuple[Any, float]]" = OrderedDict()

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        if value is None:
            return
        if key in self._entries:
            del self._entries[key]
        elif len(self._entries) >= self.max_size:
            evicted, _ = self._entries.popitem(last=False)
            LOGGER.debug(f"Cache full, evicted {evicted}")
        expires_at = self._clock() + (ttl if ttl is not None else self.default_ttl)
        self._entries[key] = (value, expires_at)

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def invalidate_pattern(self, pattern: str) -> int:
        """Delete every key matching a ``*`` glob pattern.

        Returns:
            Number of keys removed
        """
        matched = [key for key in self._entries if fnmatch.fnmatchcase(key, pattern)]
        for key in matched:
            del self._entries[key]
        if matched:
            LOGGER.debug(f"Invalidated {len(matched)} cache keys for {pattern}")
        return len(matched)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    async def get_or_set(
        self,
        key: str,
        loader: Callable[[], Awaitable[Any]],
        ttl: Optional[int] = None,
    ) -> Any:
        """Return the cached value or await ``loader`` and cache its result."""
        cached = self.get(key)
        if cached is not None:
            return cached
        value = await loader()
        self.set(key, value, ttl)
        return value
