"""Flag extracted values that look like re-extractions of stored values.

The detector compares each normalized measurement with the most recent stored
value of the same metric. It is advisory: candidates are returned to the
caller, nothing is blocked.

Similarity:
    closeness  = clamp(1 - |new - old| / max(|old|, eps), 0, 1)
    similarity = 0.8 * closeness + 0.2 * (1 if units agree else 0)

An exact repeat scores 1.0; the same value in a different unit scores 0.8,
which still surfaces as a low-confidence candidate.
"""

from typing import Dict, List, Mapping, Optional, Sequence

from bodymetrics.schemas.measurements import (
    CatalogEntry,
    DuplicateCandidate,
    ExistingRef,
    ExtractedRef,
    NormalizedMeasurement,
    StoredMeasurement,
)
from bodymetrics.services.normalization.aliases import canonical_unit
from bodymetrics.utils.logging import get_logger

LOGGER = get_logger(__name__)

EPSILON = 1e-9
VALUE_WEIGHT = 0.8
UNIT_WEIGHT = 0.2

_BAND_ORDER = {"high": 0, "medium": 1, "low": 2}


class DuplicateDetector:
    """Scores new measurements against recent history."""

    def __init__(
        self,
        high_threshold: float = 0.95,
        medium_threshold: float = 0.85,
        low_threshold: float = 0.70,
    ):
        self.high_threshold = high_threshold
        self.medium_threshold = medium_threshold
        self.low_threshold = low_threshold

    @staticmethod
    def value_closeness(new: float, old: float) -> float:
        closeness = 1.0 - abs(new - old) / max(abs(old), EPSILON)
        return min(1.0, max(0.0, closeness))

    @staticmethod
    def units_equal(a: str, b: str) -> bool:
        ca, cb = canonical_unit(a), canonical_unit(b)
        if ca and cb:
            return ca == cb
        return (a or "").strip().lower() == (b or "").strip().lower()

    def similarity(self, new_value: float, new_unit: str, old_value: float, old_unit: str) -> float:
        closeness = self.value_closeness(new_value, old_value)
        unit_term = 1.0 if self.units_equal(new_unit, old_unit) else 0.0
        return VALUE_WEIGHT * closeness + UNIT_WEIGHT * unit_term

    def band(self, similarity: float) -> Optional[str]:
        if similarity >= self.high_threshold:
            return "high"
        if similarity >= self.medium_threshold:
            return "medium"
        if similarity >= self.low_threshold:
            return "low"
        return None

    def detect_duplicates(
        self,
        normalized: Sequence[NormalizedMeasurement],
        recent_existing: Sequence[StoredMeasurement],
        catalog: Optional[Mapping[str, CatalogEntry]] = None,
    ) -> List[DuplicateCandidate]:
        """Find likely re-extractions.

        Args:
            normalized: Measurements whose ``metric`` is a catalog key
            recent_existing: The user's stored measurements for those keys
            catalog: Optional catalog index used for display names

        Returns:
            Candidates ordered by band (high first) then similarity
        """
        latest = self._latest_per_metric(recent_existing)
        candidates: List[DuplicateCandidate] = []

        for index, item in enumerate(normalized):
            existing = latest.get(item.metric)
            if existing is None:
                continue

            score = round(self.similarity(item.value, item.unit, existing.value, existing.unit), 6)
            confidence = self.band(score)
            if confidence is None:
                continue

            entry = catalog.get(item.metric) if catalog else None
            candidates.append(
                DuplicateCandidate(
                    extracted=ExtractedRef(
                        metric=item.metric, value=item.value, unit=item.unit, index=index
                    ),
                    existing=ExistingRef(
                        metric=existing.metric,
                        display_name=entry.display_name if entry else existing.metric,
                        latest_value=existing.value,
                        unit=existing.unit,
                    ),
                    similarity=score,
                    confidence=confidence,
                )
            )

        candidates.sort(key=lambda c: (_BAND_ORDER[c.confidence], -c.similarity))
        if candidates:
            LOGGER.info(
                f"Detected {len(candidates)} potential duplicate measurements",
                extra={"high": sum(1 for c in candidates if c.confidence == "high")}
            )
        return candidates

    @staticmethod
    def _latest_per_metric(rows: Sequence[StoredMeasurement]) -> Dict[str, StoredMeasurement]:
        latest: Dict[str, StoredMeasurement] = {}
        for row in rows:
            current = latest.get(row.metric)
            if current is None or row.measured_at > current.measured_at:
                latest[row.metric] = row
        return latest
