"""Per-measurement checks against the catalog entry."""

import math

from bodymetrics.schemas.measurements import CatalogEntry, ExtractedMeasurement, ValidationOutcome
from bodymetrics.services.normalization.aliases import canonical_unit


def _format(value: float) -> str:
    return f"{value:g}"


def validate(measurement: ExtractedMeasurement, entry: CatalogEntry) -> ValidationOutcome:
    """Check a normalized measurement against its catalog entry.

    Checks run in order and the first failure is reported:

    * ``not_finite``: value is NaN or infinite
    * ``unit_mismatch``: unit is empty, not a recognised unit token, or a
      different unit than the catalog declares
    * ``out_of_range``: value outside ``[validation_min, validation_max]``
      (bounds inclusive, value never clamped)

    Args:
        measurement: Measurement whose ``metric`` is ``entry.key``
        entry: Catalog entry for that metric

    Returns:
        ValidationOutcome
    """
    value = measurement.value
    if value is None or not math.isfinite(value):
        return ValidationOutcome(
            ok=False, reason="not_finite", detail=f"value {value!r} is not a finite number"
        )

    unit = (measurement.unit or "").strip()
    token = canonical_unit(unit)
    if not token:
        detail = "unit is missing" if not unit else f"unrecognised unit '{unit}'"
        return ValidationOutcome(ok=False, reason="unit_mismatch", detail=detail)

    expected = canonical_unit(entry.unit)
    if expected and token != expected:
        return ValidationOutcome(
            ok=False,
            reason="unit_mismatch",
            detail=f"unit '{unit}' does not match expected '{entry.unit}'",
        )

    if entry.validation_min is not None and value < entry.validation_min:
        return ValidationOutcome(
            ok=False,
            reason="out_of_range",
            detail=f"{_format(value)} is below minimum {_format(entry.validation_min)}",
        )
    if entry.validation_max is not None and value > entry.validation_max:
        return ValidationOutcome(
            ok=False,
            reason="out_of_range",
            detail=f"{_format(value)} is above maximum {_format(entry.validation_max)}",
        )

    return ValidationOutcome(ok=True)
