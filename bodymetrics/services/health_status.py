"""Four-tier health status of a value against its catalog ranges."""

import math
from typing import Optional, Tuple

from bodymetrics.schemas.measurements import CatalogEntry, HealthStatus

# Fractions of the range width
_INNER_MARGIN = 0.1
_OUTER_MARGIN = 0.5


def healthy_range(entry: CatalogEntry, sex: Optional[str] = None) -> Optional[Tuple[float, float]]:
    """Pick the bounds a value is judged against.

    The sex-specific healthy range is preferred (male when sex is unknown),
    falling back to the validation range. Returns None when neither range is
    complete.
    """
    if (sex or "").strip().lower() == "female":
        low, high = entry.healthy_min_female, entry.healthy_max_female
    else:
        low, high = entry.healthy_min_male, entry.healthy_max_male

    if low is None or high is None:
        low, high = entry.validation_min, entry.validation_max
    if low is None or high is None:
        return None
    return low, high


def health_status(
    value: float, entry: CatalogEntry, sex: Optional[str] = None
) -> Optional[HealthStatus]:
    """Classify a value against the entry's healthy range.

    * ``healthy``: inside the range, at least 10% of its width from either edge
    * ``near_boundary``: inside the range but within that 10% band
    * ``moderately_exceeded``: outside, by no more than half the range width
    * ``critically_exceeded``: further out than that

    All bounds are inclusive.

    Args:
        value: Measured value in the catalog unit
        entry: Catalog entry for the metric
        sex: Profile sex, selects the female healthy range when "female"

    Returns:
        HealthStatus, or None when the entry has no usable range or the value
        is not finite
    """
    bounds = healthy_range(entry, sex)
    if bounds is None or value is None or not math.isfinite(value):
        return None

    low, high = bounds
    width = high - low
    inner = width * _INNER_MARGIN
    outer = width * _OUTER_MARGIN

    if low + inner <= value <= high - inner:
        return "healthy"
    if low <= value <= high:
        return "near_boundary"
    if low - outer <= value <= high + outer:
        return "moderately_exceeded"
    return "critically_exceeded"
