"""Pydantic schemas for catalog entries and the ingestion pipeline."""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


MatchConfidence = Literal["exact", "fuzzy", "unmatched"]
ValidationReason = Literal["unit_mismatch", "out_of_range", "not_finite"]
DuplicateBand = Literal["high", "medium", "low"]
MeasurementSource = Literal["ocr", "manual"]
HealthStatus = Literal["healthy", "near_boundary", "moderately_exceeded", "critically_exceeded"]


class CatalogEntry(BaseModel):
    """A canonical metric known to the system."""

    model_config = ConfigDict(from_attributes=True)

    key: str
    display_name: str
    unit: str
    category: str = "other"
    validation_min: Optional[float] = None
    validation_max: Optional[float] = None
    healthy_min_male: Optional[float] = None
    healthy_max_male: Optional[float] = None
    healthy_min_female: Optional[float] = None
    healthy_max_female: Optional[float] = None
    sort_order: int = 0


class ExtractedMeasurement(BaseModel):
    """A measurement as proposed by the vision extractor or the client."""

    metric: str = Field(..., min_length=1)
    value: float
    unit: str = ""
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    raw_text: Optional[str] = None


class NormalizedMeasurement(ExtractedMeasurement):
    """An extracted measurement whose ``metric`` is a catalog key.

    Attributes:
        normalized_from: Original label when it differed from the catalog key
        match: How the label was resolved
        flags: Validation reasons that were kept as annotations
    """

    normalized_from: Optional[str] = None
    match: Literal["exact", "fuzzy"] = "exact"
    flags: List[ValidationReason] = Field(default_factory=list)


class StoredMeasurement(BaseModel):
    """A persisted measurement row."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    metric: str
    value: float
    unit: str
    measured_at: datetime
    source: MeasurementSource = "manual"
    confidence: Optional[float] = None
    notes: Optional[str] = None
    image_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class MeasurementCreate(BaseModel):
    """A confirmed measurement the caller wants persisted."""

    metric: str = Field(..., min_length=1)
    value: float
    unit: str = Field(..., min_length=1)
    measured_at: Optional[datetime] = None
    source: MeasurementSource = "ocr"
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    notes: Optional[str] = None
    image_url: Optional[str] = None


class NormalizationResult(BaseModel):
    """Outcome of mapping a free-text label onto the catalog.

    ``key`` is empty when ``confidence`` is ``"unmatched"``.
    """

    key: str = ""
    confidence: MatchConfidence
    score: float = 0.0


class ValidationOutcome(BaseModel):
    """Result of checking one measurement against its catalog entry."""

    ok: bool
    reason: Optional[ValidationReason] = None
    detail: str = ""


class ExtractedRef(BaseModel):
    metric: str
    value: float
    unit: str
    index: int


class ExistingRef(BaseModel):
    metric: str
    display_name: str
    latest_value: float
    unit: str


class DuplicateCandidate(BaseModel):
    """A likely re-extraction of an already stored value. Advisory only."""

    extracted: ExtractedRef
    existing: ExistingRef
    similarity: float = Field(..., ge=0.0, le=1.0)
    confidence: DuplicateBand


class IngestionResult(BaseModel):
    """What the ingestion pipeline hands back to its caller."""

    processed: List[NormalizedMeasurement] = Field(default_factory=list)
    duplicates: List[DuplicateCandidate] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


class ExtractRequest(BaseModel):
    """Body of the image extraction endpoint."""

    image_url: str = Field(..., min_length=1, description="URL of the uploaded report image")


class IngestRequest(BaseModel):
    """Already-extracted raw items, e.g. from a client-side OCR step."""

    measurements: List[Dict[str, Any]] = Field(default_factory=list)


class SaveMeasurementsRequest(BaseModel):
    """Measurements the user confirmed for storage."""

    measurements: List[MeasurementCreate] = Field(..., min_length=1)
