"""Unit tests for the measurement CSV projector."""

from datetime import timedelta

from bodymetrics.schemas.analysis import Profile
from bodymetrics.services.analysis.csv_projector import CSV_HEADER, project, select_recent
from fakes import NOW, FakeMeasurementRepository


def _csv_rows(text: str):
    lines = text.splitlines()
    start = lines.index(CSV_HEADER)
    return lines[start + 1:]


class TestCsvProjector:

    def test_profile_header(self):
        repo = FakeMeasurementRepository()
        repo.add("weight", 82.54, "kg", NOW)

        text = project(Profile(age=34, sex="male"), repo.rows)

        assert text.startswith("User Profile:\nAge: 34\nSex: male\n\n")
        assert "Measurements (CSV format, last 15 values per metric, newest first):" in text
        assert _csv_rows(text) == ["weight,82.5,kg,2026-03-01"]

    def test_missing_profile_fields(self):
        text = project(None, [])

        assert "Age: not provided" in text
        assert "Sex: not provided" in text
        assert _csv_rows(text) == []

    def test_partial_profile(self):
        text = project(Profile(age=None, sex="female"), [])

        assert "Age: not provided" in text
        assert "Sex: female" in text

    def test_caps_values_per_metric_keeping_newest(self):
        repo = FakeMeasurementRepository()
        for day in range(20):
            repo.add("weight", 80 + day, "kg", NOW - timedelta(days=day))
        repo.add("bmi", 24.0, "kg/m2", NOW)

        rows = _csv_rows(project(None, repo.rows))

        weight_rows = [r for r in rows if r.startswith("weight,")]
        assert len(weight_rows) == 15
        assert weight_rows[0] == "weight,80.0,kg,2026-03-01"
        assert weight_rows[-1] == "weight,94.0,kg,2026-02-15"
        assert "bmi,24.0,kg/m2,2026-03-01" in rows

    def test_custom_cap_is_reported(self):
        text = project(None, [], max_per_metric=3)

        assert "last 3 values per metric" in text

    def test_select_recent_orders_newest_first(self):
        repo = FakeMeasurementRepository()
        old = repo.add("weight", 80, "kg", NOW - timedelta(days=5))
        new = repo.add("weight", 81, "kg", NOW)

        assert select_recent(repo.rows, 15) == [new, old]

    def test_cells_with_commas_are_quoted(self):
        repo = FakeMeasurementRepository()
        repo.add("weight", 80, "kg, scale", NOW)

        assert _csv_rows(project(None, repo.rows)) == ['weight,80.0,"kg, scale",2026-03-01']
