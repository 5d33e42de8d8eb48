"""Ingestion orchestrator.

normalize -> validate -> collapse in-batch repeats -> detect duplicates

Per-item problems never raise. Each one becomes a warning string so a batch
of N extracted values degrades item by item instead of failing as a whole.
"""

import math
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError

from bodymetrics.core.exceptions import NoMeasurementsFoundError, ValidationError
from bodymetrics.repositories.measurement_repository import MeasurementRepository
from bodymetrics.schemas.measurements import (
    CatalogEntry,
    ExtractedMeasurement,
    IngestionResult,
    MeasurementCreate,
    NormalizedMeasurement,
    StoredMeasurement,
)
from bodymetrics.services.cache import CacheService, latest_analysis_key, user_measurements_pattern
from bodymetrics.services.catalog_service import CatalogService
from bodymetrics.services.ingestion.duplicate_detector import DuplicateDetector
from bodymetrics.services.ingestion.validator import validate
from bodymetrics.services.ingestion.vision_extractor import VisionExtractor
from bodymetrics.services.normalization.metric_normalizer import MetricNormalizer
from bodymetrics.utils.logging import get_logger

LOGGER = get_logger(__name__)

RawMeasurement = Union[ExtractedMeasurement, Mapping[str, Any]]


def _clean_raw(raw: Mapping[str, Any]) -> Dict[str, Any]:
    """Undo the formatting slips vision models commonly make."""
    data = dict(raw)
    value = data.get("value")
    if isinstance(value, str):
        data["value"] = value.strip().replace(",", ".")
    confidence = data.get("confidence")
    if confidence is not None:
        try:
            confidence = float(confidence)
        except (TypeError, ValueError):
            confidence = None
        # Unusable confidences are dropped rather than failing the item
        if confidence is None or not math.isfinite(confidence) or not 0.0 <= confidence <= 1.0:
            data["confidence"] = None
    if data.get("unit") is None:
        data["unit"] = ""
    return data


def _effective_confidence(confidence: Optional[float]) -> float:
    # A missing confidence counts as certain
    return 1.0 if confidence is None else confidence


def _halve(confidence: Optional[float]) -> float:
    return round(_effective_confidence(confidence) / 2, 4)


def _rank(measurement: NormalizedMeasurement) -> Tuple[bool, float]:
    """Unflagged items outrank flagged ones, then higher confidence wins."""
    return not measurement.flags, _effective_confidence(measurement.confidence)


class IngestionService:
    """Turns raw extracted measurements into catalog-conformant records."""

    def __init__(
        self,
        catalog_service: CatalogService,
        measurement_repository: MeasurementRepository,
        cache: CacheService,
        duplicate_detector: Optional[DuplicateDetector] = None,
        vision_extractor: Optional[VisionExtractor] = None,
        fuzzy_threshold: float = 0.85,
        lookback_limit: int = 200,
    ):
        """Initialize the ingestion service.

        Args:
            catalog_service: Cached catalog access
            measurement_repository: Reads history, writes confirmed rows
            cache: Shared cache, invalidated when measurements are saved
            duplicate_detector: Detector to use, defaults to standard bands
            vision_extractor: Needed only by ``extract_and_ingest``
            fuzzy_threshold: Minimum similarity for fuzzy label matches
            lookback_limit: Max history rows fetched for duplicate detection
        """
        self.catalog_service = catalog_service
        self.measurement_repository = measurement_repository
        self.cache = cache
        self.duplicate_detector = duplicate_detector or DuplicateDetector()
        self.vision_extractor = vision_extractor
        self.fuzzy_threshold = fuzzy_threshold
        self.lookback_limit = lookback_limit

    async def ingest(self, user_id: UUID, raw_extracted: Sequence[RawMeasurement]) -> IngestionResult:
        """Normalize, validate and dedupe a batch of extracted measurements.

        Args:
            user_id: Owner of the measurements
            raw_extracted: Model output items or ExtractedMeasurement objects

        Returns:
            IngestionResult with processed items, duplicate candidates and warnings
        """
        catalog = await self.catalog_service.get_catalog()
        index = {entry.key: entry for entry in catalog}
        normalizer = MetricNormalizer(catalog, self.fuzzy_threshold)
        warnings: List[str] = []

        normalized: List[NormalizedMeasurement] = []
        for position, raw in enumerate(raw_extracted):
            item = self._coerce(raw, position, warnings)
            if item is None:
                continue
            measurement = self._normalize(item, normalizer, warnings)
            if measurement is None:
                continue
            if self._apply_validation(measurement, index[measurement.metric], warnings):
                normalized.append(measurement)

        processed = self._collapse_repeats(normalized, warnings)

        metric_keys = sorted({item.metric for item in processed})
        recent: List[StoredMeasurement] = []
        if metric_keys:
            recent = await self.measurement_repository.get_recent_measurements(
                user_id, metric_keys, self.lookback_limit
            )
        duplicates = self.duplicate_detector.detect_duplicates(processed, recent, index)

        LOGGER.info(
            f"Ingested {len(processed)}/{len(raw_extracted)} measurements",
            extra={
                "user_id": str(user_id),
                "duplicates": len(duplicates),
                "warnings": len(warnings),
            }
        )
        return IngestionResult(processed=processed, duplicates=duplicates, warnings=warnings)

    async def extract_and_ingest(
        self, user_id: UUID, image_bytes: bytes, content_type: str = "image/png"
    ) -> IngestionResult:
        """Run vision extraction on an image and ingest the result.

        Raises:
            NoMeasurementsFoundError: If nothing usable came out of the image
            UpstreamServiceError: If the vision provider is unavailable
        """
        if self.vision_extractor is None:
            raise RuntimeError("IngestionService was created without a vision extractor")

        items = await self.vision_extractor.extract_from_image(image_bytes, content_type)
        if not items:
            raise NoMeasurementsFoundError()

        result = await self.ingest(user_id, items)
        if not result.processed:
            raise NoMeasurementsFoundError(warnings=result.warnings)
        return result

    async def save_measurements(
        self, user_id: UUID, rows: Sequence[MeasurementCreate]
    ) -> List[StoredMeasurement]:
        """Persist measurements the caller has confirmed.

        Every metric must be a catalog key; the whole batch is rejected
        otherwise so nothing outside the catalog reaches storage.

        Raises:
            ValidationError: If any metric is not a catalog key
        """
        index = await self.catalog_service.get_catalog_index()
        unknown = sorted({row.metric for row in rows if row.metric not in index})
        if unknown:
            raise ValidationError(f"Unknown metric keys: {', '.join(unknown)}")

        stored = await self.measurement_repository.insert_measurements(user_id, rows)
        self.cache.invalidate_pattern(user_measurements_pattern(user_id))
        self.cache.delete(latest_analysis_key(user_id))
        return stored

    @staticmethod
    def _coerce(raw: RawMeasurement, position: int, warnings: List[str]) -> Optional[ExtractedMeasurement]:
        if isinstance(raw, ExtractedMeasurement):
            return raw
        if not isinstance(raw, Mapping):
            warnings.append(f"Skipped item {position}: not a measurement object")
            return None
        try:
            return ExtractedMeasurement.model_validate(_clean_raw(raw))
        except PydanticValidationError as e:
            fields = ", ".join(sorted({str(err["loc"][0]) for err in e.errors() if err.get("loc")}))
            label = raw.get("metric") or f"item {position}"
            warnings.append(f'Skipped malformed measurement "{label}" (invalid: {fields or "value"})')
            return None

    @staticmethod
    def _normalize(
        item: ExtractedMeasurement, normalizer: MetricNormalizer, warnings: List[str]
    ) -> Optional[NormalizedMeasurement]:
        result = normalizer.normalize(item.metric)
        if result.confidence == "unmatched":
            warnings.append(f'Metric "{item.metric}" is unmatched - no catalog entry, skipped')
            return None

        data = item.model_dump()
        data.update(
            metric=result.key,
            normalized_from=item.metric if item.metric != result.key else None,
            match=result.confidence,
        )
        return NormalizedMeasurement(**data)

    @staticmethod
    def _apply_validation(
        measurement: NormalizedMeasurement, entry: CatalogEntry, warnings: List[str]
    ) -> bool:
        """Validate in place. Returns False when the item must be dropped."""
        outcome = validate(measurement, entry)
        if outcome.ok:
            return True
        if outcome.reason == "not_finite":
            warnings.append(f'Dropped "{measurement.metric}": {outcome.detail}')
            return False

        measurement.flags.append(outcome.reason)
        measurement.confidence = _halve(measurement.confidence)
        warnings.append(f'"{measurement.metric}" flagged {outcome.reason}: {outcome.detail}')
        return True

    @staticmethod
    def _collapse_repeats(
        items: List[NormalizedMeasurement], warnings: List[str]
    ) -> List[NormalizedMeasurement]:
        groups: Dict[str, List[NormalizedMeasurement]] = {}
        for item in items:
            groups.setdefault(item.metric, []).append(item)

        processed: List[NormalizedMeasurement] = []
        for metric, group in groups.items():
            # max() keeps the first item on equal rank
            winner = max(group, key=_rank)
            processed.append(winner)
            if len(group) > 1:
                warnings.append(
                    f'Multiple extractions for "{metric}" - kept highest confidence value '
                    f"({winner.value:g} {winner.unit})"
                )
        return processed
