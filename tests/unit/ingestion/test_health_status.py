"""Unit tests for the four-tier health status."""

import pytest

from bodymetrics.schemas.measurements import CatalogEntry
from bodymetrics.services.health_status import health_status, healthy_range


@pytest.fixture
def body_fat():
    return CatalogEntry(
        key="body_fat_percent", display_name="Body Fat Percentage", unit="%",
        validation_min=2, validation_max=70,
        healthy_min_male=10, healthy_max_male=20,
        healthy_min_female=20, healthy_max_female=30,
    )


class TestHealthStatus:

    @pytest.mark.parametrize("value,expected", [
        (15, "healthy"),
        (11, "healthy"),
        (19, "healthy"),
        (10.5, "near_boundary"),
        (10, "near_boundary"),
        (20, "near_boundary"),
        (9.9, "moderately_exceeded"),
        (5, "moderately_exceeded"),
        (25, "moderately_exceeded"),
        (4.9, "critically_exceeded"),
        (25.1, "critically_exceeded"),
    ])
    def test_tiers_for_male_range(self, body_fat, value, expected):
        assert health_status(value, body_fat, sex="male") == expected

    def test_unknown_sex_uses_male_range(self, body_fat):
        assert health_status(15, body_fat) == "healthy"

    def test_female_range_is_selected(self, body_fat):
        assert health_status(15, body_fat, sex="Female") == "moderately_exceeded"
        assert health_status(25, body_fat, sex="female") == "healthy"

    def test_falls_back_to_validation_range(self):
        entry = CatalogEntry(key="weight", display_name="Weight", unit="kg",
                             validation_min=20, validation_max=300, healthy_min_male=50)

        assert healthy_range(entry, "male") == (20, 300)
        assert health_status(160, entry, "male") == "healthy"

    def test_no_range_gives_none(self):
        entry = CatalogEntry(key="mood", display_name="Mood", unit="score")

        assert health_status(5, entry) is None

    def test_non_finite_value_gives_none(self, body_fat):
        assert health_status(float("nan"), body_fat) is None
