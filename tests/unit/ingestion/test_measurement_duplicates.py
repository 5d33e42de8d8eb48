"""Unit tests for DuplicateDetector.

Tests value/unit similarity scoring of new measurements against history.
"""

from datetime import timedelta

import pytest

from bodymetrics.schemas.measurements import NormalizedMeasurement
from bodymetrics.services.ingestion.duplicate_detector import DuplicateDetector
from fakes import NOW, FakeMeasurementRepository


def _new(metric: str, value: float, unit: str) -> NormalizedMeasurement:
    return NormalizedMeasurement(metric=metric, value=value, unit=unit)


class TestSimilarity:

    @pytest.fixture
    def detector(self):
        return DuplicateDetector()

    def test_exact_repeat_scores_one(self, detector):
        assert detector.similarity(82.5, "kg", 82.5, "kg") == pytest.approx(1.0)

    def test_unit_disagreement_costs_the_unit_weight(self, detector):
        assert detector.similarity(82.5, "kg", 82.5, "lb") == pytest.approx(0.8)

    def test_unit_spellings_compare_canonically(self, detector):
        assert detector.units_equal("KG", "kilograms") is True

    def test_closeness_is_clamped(self, detector):
        assert detector.value_closeness(300, 100) == 0.0
        assert detector.value_closeness(100, 100) == 1.0

    def test_zero_previous_value(self, detector):
        assert detector.value_closeness(0.0, 0.0) == 1.0
        assert detector.value_closeness(1.0, 0.0) == 0.0

    @pytest.mark.parametrize("score,band", [
        (1.0, "high"),
        (0.95, "high"),
        (0.9, "medium"),
        (0.85, "medium"),
        (0.7, "low"),
        (0.69, None),
    ])
    def test_bands(self, detector, score, band):
        assert detector.band(score) == band


class TestDetectDuplicates:

    @pytest.fixture
    def detector(self):
        return DuplicateDetector(high_threshold=0.95, medium_threshold=0.85, low_threshold=0.70)

    def test_exact_repeat_is_high(self, detector):
        history = FakeMeasurementRepository()
        history.add("weight", 82.5, "kg", NOW - timedelta(days=1))

        candidates = detector.detect_duplicates([_new("weight", 82.5, "kg")], history.rows)

        assert len(candidates) == 1
        assert candidates[0].confidence == "high"
        assert candidates[0].similarity >= 0.95
        assert candidates[0].existing.latest_value == 82.5

    def test_no_history_gives_no_candidate(self, detector):
        assert detector.detect_duplicates([_new("weight", 82.5, "kg")], []) == []

    def test_compares_against_latest_value_only(self, detector):
        history = FakeMeasurementRepository()
        history.add("weight", 82.5, "kg", NOW - timedelta(days=30))
        history.add("weight", 60.0, "kg", NOW - timedelta(days=1))

        candidates = detector.detect_duplicates([_new("weight", 82.5, "kg")], history.rows)

        # 82.5 vs 60.0 is far outside every band
        assert candidates == []

    def test_display_name_from_catalog(self, detector, catalog):
        history = FakeMeasurementRepository()
        history.add("body_fat_percent", 18.0, "%", NOW)
        index = {entry.key: entry for entry in catalog}

        candidates = detector.detect_duplicates(
            [_new("body_fat_percent", 18.0, "%")], history.rows, index
        )

        assert candidates[0].existing.display_name == "Body Fat Percentage"

    def test_sorted_by_band_then_similarity(self, detector):
        history = FakeMeasurementRepository()
        history.add("weight", 100.0, "kg", NOW)
        history.add("skeletal_muscle_mass", 40.0, "kg", NOW)
        history.add("bmi", 25.0, "kg/m2", NOW)

        batch = [
            _new("weight", 90.0, "kg"),                 # 0.8*0.9 + 0.2 = 0.92 medium
            _new("skeletal_muscle_mass", 40.0, "kg"),   # 1.0 high
            _new("bmi", 25.0, "%"),                     # 0.8 low
        ]
        candidates = detector.detect_duplicates(batch, history.rows)

        assert [c.confidence for c in candidates] == ["high", "medium", "low"]
        assert [c.extracted.index for c in candidates] == [1, 0, 2]
