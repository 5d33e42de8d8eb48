"""Unit tests for the ingestion orchestrator."""

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from bodymetrics.core.exceptions import NoMeasurementsFoundError, ValidationError
from bodymetrics.schemas.measurements import ExtractedMeasurement, MeasurementCreate
from bodymetrics.services.cache import latest_analysis_key
from bodymetrics.services.catalog_service import CatalogService
from bodymetrics.services.ingestion.ingestion_service import IngestionService
from fakes import NOW, FakeCatalogRepository, FakeMeasurementRepository


@pytest.fixture
def measurement_repository():
    return FakeMeasurementRepository()


@pytest.fixture
def catalog_repository(catalog):
    return FakeCatalogRepository(catalog)


@pytest.fixture
def service(catalog_repository, measurement_repository, cache):
    return IngestionService(
        catalog_service=CatalogService(catalog_repository, cache),
        measurement_repository=measurement_repository,
        cache=cache,
    )


class TestIngest:

    @pytest.mark.asyncio
    async def test_translated_and_unknown_labels(self, service, user_id):
        result = await service.ingest(user_id, [
            {"metric": "Waga", "value": 82.5, "unit": "kg", "confidence": 0.95},
            {"metric": "unknown_xyz", "value": 1.0, "unit": "kg", "confidence": 0.9},
        ])

        assert len(result.processed) == 1
        weight = result.processed[0]
        assert weight.metric == "weight"
        assert weight.normalized_from == "Waga"
        assert weight.match == "fuzzy"
        assert weight.value == 82.5
        assert any('"unknown_xyz" is unmatched' in w for w in result.warnings)
        assert result.duplicates == []

    @pytest.mark.asyncio
    async def test_exact_key_has_no_normalized_from(self, service, user_id):
        result = await service.ingest(user_id, [{"metric": "weight", "value": 80, "unit": "kg"}])

        assert result.processed[0].normalized_from is None
        assert result.processed[0].match == "exact"

    @pytest.mark.asyncio
    async def test_accepts_model_objects(self, service, user_id):
        item = ExtractedMeasurement(metric="bmi", value=24.1, unit="kg/m2", confidence=0.9)

        result = await service.ingest(user_id, [item])

        assert result.processed[0].metric == "bmi"

    @pytest.mark.asyncio
    async def test_comma_decimal_is_repaired(self, service, user_id):
        result = await service.ingest(user_id, [{"metric": "weight", "value": "82,5", "unit": "kg"}])

        assert result.processed[0].value == 82.5

    @pytest.mark.asyncio
    async def test_malformed_items_become_warnings(self, service, user_id):
        result = await service.ingest(user_id, [
            {"metric": "weight", "value": "heavy", "unit": "kg"},
            "not a dict",
            {"value": 10, "unit": "kg"},
            {"metric": "bmi", "value": 24.0, "unit": "kg/m2"},
        ])

        assert [m.metric for m in result.processed] == ["bmi"]
        assert len(result.warnings) == 3

    @pytest.mark.asyncio
    async def test_unusable_confidence_is_dropped(self, service, user_id):
        result = await service.ingest(user_id, [
            {"metric": "weight", "value": 80, "unit": "kg", "confidence": "very"},
            {"metric": "bmi", "value": 24, "unit": "kg/m2", "confidence": 7},
        ])

        assert [m.confidence for m in result.processed] == [None, None]

    @pytest.mark.asyncio
    async def test_flagged_items_are_kept_with_halved_confidence(self, service, user_id):
        result = await service.ingest(user_id, [
            {"metric": "weight", "value": 500, "unit": "kg", "confidence": 0.9},
            {"metric": "bmi", "value": 24, "unit": "", "confidence": None},
        ])

        weight, bmi = result.processed
        assert weight.flags == ["out_of_range"]
        assert weight.confidence == pytest.approx(0.45)
        assert bmi.flags == ["unit_mismatch"]
        assert bmi.confidence == pytest.approx(0.5)
        assert len(result.warnings) == 2

    @pytest.mark.asyncio
    async def test_non_finite_value_is_dropped(self, service, user_id):
        result = await service.ingest(user_id, [{"metric": "weight", "value": float("nan"), "unit": "kg"}])

        assert result.processed == []
        assert any("Dropped" in w for w in result.warnings)

    @pytest.mark.asyncio
    async def test_in_batch_repeats_keep_highest_confidence(self, service, user_id):
        result = await service.ingest(user_id, [
            {"metric": "Weight", "value": 82.0, "unit": "kg", "confidence": 0.6},
            {"metric": "Waga", "value": 82.5, "unit": "kg", "confidence": 0.9},
        ])

        assert len(result.processed) == 1
        assert result.processed[0].value == 82.5
        assert 'Multiple extractions for "weight" - kept highest confidence value (82.5 kg)' in (
            result.warnings
        )

    @pytest.mark.asyncio
    async def test_in_batch_repeats_prefer_in_range_value(self, service, user_id):
        # Neither item carries a confidence; the misread 771 kg is flagged out of range
        result = await service.ingest(user_id, [
            {"metric": "weight", "value": 77.1, "unit": "kg"},
            {"metric": "weight", "value": 771, "unit": "kg"},
        ])

        assert len(result.processed) == 1
        assert result.processed[0].value == 77.1
        assert result.processed[0].flags == []

    @pytest.mark.asyncio
    async def test_flagged_repeat_loses_despite_higher_confidence(self, service, user_id):
        result = await service.ingest(user_id, [
            {"metric": "weight", "value": 771, "unit": "kg", "confidence": 0.95},
            {"metric": "weight", "value": 77.1, "unit": "kg", "confidence": 0.4},
        ])

        assert [m.value for m in result.processed] == [77.1]

    @pytest.mark.asyncio
    async def test_repeat_of_stored_value_is_flagged_not_blocked(
        self, service, measurement_repository, user_id
    ):
        measurement_repository.add("weight", 82.5, "kg", NOW - timedelta(days=2))

        result = await service.ingest(user_id, [{"metric": "weight", "value": 82.5, "unit": "kg"}])

        assert len(result.processed) == 1
        assert result.duplicates[0].confidence == "high"

    @pytest.mark.asyncio
    async def test_history_not_read_when_nothing_processed(
        self, service, measurement_repository, user_id
    ):
        await service.ingest(user_id, [{"metric": "unknown_xyz", "value": 1, "unit": "kg"}])

        assert measurement_repository.recent_calls == 0

    @pytest.mark.asyncio
    async def test_catalog_is_cached_between_batches(self, service, catalog_repository, user_id):
        await service.ingest(user_id, [{"metric": "weight", "value": 80, "unit": "kg"}])
        await service.ingest(user_id, [{"metric": "weight", "value": 81, "unit": "kg"}])

        assert catalog_repository.calls == 1


class TestExtractAndIngest:

    @pytest.mark.asyncio
    async def test_empty_extraction_raises(self, service, user_id):
        service.vision_extractor = AsyncMock()
        service.vision_extractor.extract_from_image.return_value = []

        with pytest.raises(NoMeasurementsFoundError) as exc_info:
            await service.extract_and_ingest(user_id, b"image")

        assert str(exc_info.value) == "No valid measurements found in image"

    @pytest.mark.asyncio
    async def test_nothing_usable_raises_with_warnings(self, service, user_id):
        service.vision_extractor = AsyncMock()
        service.vision_extractor.extract_from_image.return_value = [
            {"metric": "unknown_xyz", "value": 1, "unit": "kg"}
        ]

        with pytest.raises(NoMeasurementsFoundError) as exc_info:
            await service.extract_and_ingest(user_id, b"image")

        assert exc_info.value.warnings

    @pytest.mark.asyncio
    async def test_extracted_items_are_ingested(self, service, user_id):
        service.vision_extractor = AsyncMock()
        service.vision_extractor.extract_from_image.return_value = [
            {"metric": "Tłuszcz trzewny", "value": 9, "unit": "level", "confidence": 0.8}
        ]

        result = await service.extract_and_ingest(user_id, b"image", "image/jpeg")

        assert result.processed[0].metric == "visceral_fat_level"
        service.vision_extractor.extract_from_image.assert_awaited_once_with(b"image", "image/jpeg")


class TestSaveMeasurements:

    @pytest.mark.asyncio
    async def test_unknown_keys_reject_the_batch(self, service, measurement_repository, user_id):
        rows = [
            MeasurementCreate(metric="weight", value=80, unit="kg"),
            MeasurementCreate(metric="Waga", value=80, unit="kg"),
        ]

        with pytest.raises(ValidationError, match="Waga"):
            await service.save_measurements(user_id, rows)

        assert measurement_repository.rows == []

    @pytest.mark.asyncio
    async def test_saves_and_invalidates_user_cache(self, service, cache, user_id):
        cache.set(latest_analysis_key(user_id), "cached analysis")
        cache.set(f"measurements:{user_id}:recent", ["rows"])
        cache.set("measurements:someone-else:recent", ["rows"])

        stored = await service.save_measurements(
            user_id, [MeasurementCreate(metric="weight", value=80, unit="kg", measured_at=NOW)]
        )

        assert len(stored) == 1
        assert stored[0].metric == "weight"
        assert cache.get(latest_analysis_key(user_id)) is None
        assert cache.get(f"measurements:{user_id}:recent") is None
        assert cache.get("measurements:someone-else:recent") == ["rows"]
