"""SQLAlchemy models for all database tables."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from bodymetrics.core.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


JSONType = JSON().with_variant(JSONB(), "postgresql")


class Profile(Base):
    """User profile with the demographics used by the analysis prompt."""

    __tablename__ = "profiles"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    age: Mapped[int | None] = mapped_column(Integer, nullable=True)
    sex: Mapped[str | None] = mapped_column(String(16), nullable=True)  # male | female
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )


class MetricCatalog(Base):
    """Canonical metric definitions. Managed by administrators only."""

    __tablename__ = "metrics_catalog"

    key: Mapped[str] = mapped_column(String(100), primary_key=True)
    display_name: Mapped[str] = mapped_column(String(200), nullable=False)
    unit: Mapped[str] = mapped_column(String(32), nullable=False)
    category: Mapped[str] = mapped_column(String(64), nullable=False, default="other")
    validation_min: Mapped[float | None] = mapped_column(Float, nullable=True)
    validation_max: Mapped[float | None] = mapped_column(Float, nullable=True)
    healthy_min_male: Mapped[float | None] = mapped_column(Float, nullable=True)
    healthy_max_male: Mapped[float | None] = mapped_column(Float, nullable=True)
    healthy_min_female: Mapped[float | None] = mapped_column(Float, nullable=True)
    healthy_max_female: Mapped[float | None] = mapped_column(Float, nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class Measurement(Base):
    """A single value in a user's time series.

    Rows repeating (user_id, metric, measured_at) are allowed.
    """

    __tablename__ = "measurements"
    __table_args__ = (
        Index("ix_measurements_user_metric_measured", "user_id", "metric", "measured_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    metric: Mapped[str] = mapped_column(
        String(100), ForeignKey("metrics_catalog.key"), nullable=False
    )
    value: Mapped[float] = mapped_column(Float, nullable=False)
    unit: Mapped[str] = mapped_column(String(32), nullable=False)
    measured_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    source: Mapped[str] = mapped_column(String(16), nullable=False, default="manual")  # ocr | manual
    confidence: Mapped[float | None] = mapped_column(Float, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )


class HealthAnalysis(Base):
    """An immutable analysis generation record."""

    __tablename__ = "health_analyses"
    __table_args__ = (
        Index("ix_health_analyses_user_status_created", "user_id", "status", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    status: Mapped[str] = mapped_column(String(16), nullable=False)  # completed | failed

    user_age: Mapped[int | None] = mapped_column(Integer, nullable=True)
    user_sex: Mapped[str | None] = mapped_column(String(16), nullable=True)
    measurements_snapshot: Mapped[str] = mapped_column(Text, nullable=False, default="")
    metrics_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    date_range_start: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    date_range_end: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    ai_provider: Mapped[str] = mapped_column(String(32), nullable=False, default="")
    model_version: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    prompt_tokens: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completion_tokens: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_cost: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    full_response: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Expanded document fields, denormalised for querying
    summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    qc_issues: Mapped[list | None] = mapped_column(JSONType, nullable=True)
    normalization_notes: Mapped[list | None] = mapped_column(JSONType, nullable=True)
    derived_metrics: Mapped[list | None] = mapped_column(JSONType, nullable=True)
    current_state: Mapped[list | None] = mapped_column(JSONType, nullable=True)
    trends: Mapped[list | None] = mapped_column(JSONType, nullable=True)
    correlations: Mapped[list | None] = mapped_column(JSONType, nullable=True)
    paradoxes: Mapped[list | None] = mapped_column(JSONType, nullable=True)
    hypotheses: Mapped[list | None] = mapped_column(JSONType, nullable=True)
    risk_assessment: Mapped[list | None] = mapped_column(JSONType, nullable=True)
    recommendations_next_steps: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    uncertainties: Mapped[list | None] = mapped_column(JSONType, nullable=True)
    data_gaps: Mapped[list | None] = mapped_column(JSONType, nullable=True)
