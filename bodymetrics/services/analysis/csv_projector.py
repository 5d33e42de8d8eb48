"""Compress a measurement history into the prompt the analysis model sees.

Output size is bounded by (number of metrics x per-metric cap) regardless of
how long the history is, while keeping the newest values of every metric.
"""

from collections import OrderedDict
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from bodymetrics.schemas.analysis import Profile
from bodymetrics.schemas.measurements import StoredMeasurement
from bodymetrics.utils.datetime_utils import ensure_utc

CSV_HEADER = "metric,value,unit,date"
NOT_PROVIDED = "not provided"
DEFAULT_MAX_PER_METRIC = 15


def _date(value: datetime) -> str:
    return ensure_utc(value).date().isoformat()


def _cell(text: str) -> str:
    """Quote a CSV cell when it contains a delimiter."""
    if any(ch in text for ch in (",", '"', "\n")):
        return '"' + text.replace('"', '""') + '"'
    return text


def select_recent(
    measurements: Sequence[StoredMeasurement], max_per_metric: int = DEFAULT_MAX_PER_METRIC
) -> List[StoredMeasurement]:
    """Newest ``max_per_metric`` rows of each metric, metrics in first-seen order."""
    grouped: Dict[str, List[StoredMeasurement]] = OrderedDict()
    for row in measurements:
        grouped.setdefault(row.metric, []).append(row)

    selected: List[StoredMeasurement] = []
    for rows in grouped.values():
        # sorted() is stable, so rows sharing a timestamp keep their input order
        rows = sorted(rows, key=lambda r: ensure_utc(r.measured_at), reverse=True)
        selected.extend(rows[:max_per_metric])
    return selected


def project(
    profile: Optional[Profile],
    measurements: Sequence[StoredMeasurement],
    max_per_metric: int = DEFAULT_MAX_PER_METRIC,
) -> str:
    """Render the profile header and the bounded CSV table.

    Args:
        profile: User demographics, may be None
        measurements: Full or partial history in any order
        max_per_metric: Cap on values kept per metric

    Returns:
        Prompt text with ``Age``/``Sex`` lines followed by the CSV
    """
    age = profile.age if profile and profile.age else None
    sex = profile.sex if profile and profile.sex else None

    lines = [CSV_HEADER]
    for row in select_recent(measurements, max_per_metric):
        lines.append(
            ",".join((_cell(row.metric), f"{row.value:.1f}", _cell(row.unit), _date(row.measured_at)))
        )
    csv = "\n".join(lines)

    return (
        "User Profile:\n"
        f"Age: {age if age is not None else NOT_PROVIDED}\n"
        f"Sex: {sex or NOT_PROVIDED}\n"
        "\n"
        f"Measurements (CSV format, last {max_per_metric} values per metric, newest first):\n"
        f"{csv}"
    )
