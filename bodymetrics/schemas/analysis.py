"""Schemas for health analysis generation.

Two shapes live here:

* the abbreviated document the model is asked to produce (short keys keep
  completion tokens down), validated strictly on types but leniently on a few
  sub-shapes models are known to vary;
* the full document that is persisted and served to clients.
"""

import json
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _rationale_text(value: Any) -> Any:
    """Accept ``{"rationale": "..."}`` where a plain string is expected."""
    if isinstance(value, dict):
        return value.get("rationale") or ""
    return value


def _action_text(value: Any) -> Any:
    """Accept ``{"text": ...}`` or ``{"action": ...}`` list items."""
    if isinstance(value, dict):
        return value.get("text") or value.get("action") or json.dumps(value)
    return value


class _AbbreviatedModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class QualityCheck(_AbbreviatedModel):
    item: str = ""
    type: str = ""
    detail: str = ""


class DerivedMetric(_AbbreviatedModel):
    name: str = ""
    val: Optional[float] = None
    unit: str = ""
    meth: str = ""
    inputs: List[str] = Field(default_factory=list)
    ok: bool = True
    note: str = ""


class CurrentState(_AbbreviatedModel):
    metric: str = ""
    val: Optional[float] = None
    unit: str = ""
    date: str = ""
    interp: str = ""


class Trend(_AbbreviatedModel):
    metric: str = ""
    dir: str = ""
    d_abs: Optional[float] = None
    d_pct: Optional[float] = None
    start: str = ""
    end: str = ""
    cmt: str = ""


class Relation(_AbbreviatedModel):
    between: List[str] = Field(default_factory=list)
    strength: str = ""
    pattern: str = ""
    phys: str = ""


class Paradox(_AbbreviatedModel):
    finding: str = ""
    why: str = ""
    expl: List[str] = Field(default_factory=list)


class Hypothesis(_AbbreviatedModel):
    claim: str = ""
    ev: List[str] = Field(default_factory=list)
    alt: List[str] = Field(default_factory=list)


class Risk(_AbbreviatedModel):
    area: str = ""
    lvl: str = ""
    why: str

    @field_validator("why", mode="before")
    @classmethod
    def coerce_why(cls, value: Any) -> Any:
        return _rationale_text(value)


class LabStep(_AbbreviatedModel):
    test: str = ""
    why: str = ""
    when: str = ""

    @field_validator("why", mode="before")
    @classmethod
    def coerce_why(cls, value: Any) -> Any:
        return _rationale_text(value)


class NextSteps(_AbbreviatedModel):
    labs: List[LabStep] = Field(default_factory=list)
    life: List[str] = Field(default_factory=list)
    clinic: List[str] = Field(default_factory=list)

    @field_validator("life", "clinic", mode="before")
    @classmethod
    def coerce_action_items(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [_action_text(item) for item in value]
        return value


class AbbreviatedAnalysis(_AbbreviatedModel):
    """The compact document returned by the model.

    ``sum`` is the only required key; every list must hold items of the
    declared shape when present. A reply without ``sum`` (even an otherwise
    well-formed one) is a schema failure, so it gets the retry directive
    instead of being stored with an empty summary.
    """

    sum: str
    qc: List[QualityCheck] = Field(default_factory=list)
    norm: List[str] = Field(default_factory=list)
    drv: List[DerivedMetric] = Field(default_factory=list)
    state: List[CurrentState] = Field(default_factory=list)
    tr: List[Trend] = Field(default_factory=list)
    rel: List[Relation] = Field(default_factory=list)
    px: List[Paradox] = Field(default_factory=list)
    hyp: List[Hypothesis] = Field(default_factory=list)
    risk: List[Risk] = Field(default_factory=list)
    next: NextSteps = Field(default_factory=NextSteps)
    unc: List[str] = Field(default_factory=list)
    gaps: List[str] = Field(default_factory=list)


# Full (persisted) document


class QCIssue(BaseModel):
    item: str = ""
    type: str = ""
    detail: str = ""


class FullDerivedMetric(BaseModel):
    name: str = ""
    value: Optional[float] = None
    unit: str = ""
    method: str = ""
    input_used: List[str] = Field(default_factory=list)
    valid: bool = True
    note: str = ""


class FullCurrentState(BaseModel):
    metric: str = ""
    latest_value: Optional[float] = None
    unit: str = ""
    date: str = ""
    interpretation: str = ""


class FullTrend(BaseModel):
    metric: str = ""
    direction: str = ""
    delta_abs: Optional[float] = None
    delta_pct: Optional[float] = None
    start_date: str = ""
    end_date: str = ""
    comment: str = ""


class FullCorrelation(BaseModel):
    between: List[str] = Field(default_factory=list)
    strength: str = ""
    pattern: str = ""
    physiology: str = ""


class FullParadox(BaseModel):
    finding: str = ""
    why_paradoxical: str = ""
    possible_explanations: List[str] = Field(default_factory=list)


class FullHypothesis(BaseModel):
    claim: str = ""
    evidence: List[str] = Field(default_factory=list)
    alt_explanations: List[str] = Field(default_factory=list)


class FullRisk(BaseModel):
    area: str = ""
    level: str = ""
    rationale: str = ""


class FullLabStep(BaseModel):
    test: str = ""
    why: str = ""
    timing: str = ""


class FullNextSteps(BaseModel):
    labs_to_repeat_or_add: List[FullLabStep] = Field(default_factory=list)
    lifestyle_focus: List[str] = Field(default_factory=list)
    clinical_followup: List[str] = Field(default_factory=list)


class FullDocument(BaseModel):
    """Stable analysis shape persisted in ``full_response``."""

    summary: str = ""
    qc_issues: List[QCIssue] = Field(default_factory=list)
    normalization_notes: List[str] = Field(default_factory=list)
    derived_metrics: List[FullDerivedMetric] = Field(default_factory=list)
    current_state: List[FullCurrentState] = Field(default_factory=list)
    trends: List[FullTrend] = Field(default_factory=list)
    correlations: List[FullCorrelation] = Field(default_factory=list)
    paradoxes: List[FullParadox] = Field(default_factory=list)
    hypotheses: List[FullHypothesis] = Field(default_factory=list)
    risk_assessment: List[FullRisk] = Field(default_factory=list)
    recommendations_next_steps: FullNextSteps = Field(default_factory=FullNextSteps)
    uncertainties: List[str] = Field(default_factory=list)
    data_gaps: List[str] = Field(default_factory=list)


# Generation and gating results


class Profile(BaseModel):
    """Demographics that accompany the measurement CSV."""

    model_config = ConfigDict(from_attributes=True)

    id: Optional[UUID] = None
    age: Optional[int] = None
    sex: Optional[str] = None


class TokenUsage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0


class GenerationResult(BaseModel):
    """A validated abbreviated document plus accounting metadata."""

    model_config = ConfigDict(protected_namespaces=())

    document: AbbreviatedAnalysis
    usage: TokenUsage = Field(default_factory=TokenUsage)
    model_id: str = ""
    attempts: int = 1


class HealthAnalysisRecord(BaseModel):
    """A persisted analysis row."""

    model_config = ConfigDict(from_attributes=True, protected_namespaces=())

    id: Optional[UUID] = None
    user_id: UUID
    created_at: Optional[datetime] = None
    status: Literal["completed", "failed"] = "completed"
    user_age: Optional[int] = None
    user_sex: Optional[str] = None
    measurements_snapshot: str = ""
    metrics_count: int = 0
    date_range_start: Optional[datetime] = None
    date_range_end: Optional[datetime] = None
    ai_provider: str = ""
    model_version: str = ""
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_cost: float = 0.0
    full_response: Optional[Dict[str, Any]] = None
    error_message: Optional[str] = None


GateDecision = Literal["return_cached", "rate_limited", "proceed"]


class GateResult(BaseModel):
    """Decision of the analysis cache/rate gate."""

    decision: GateDecision
    cached: Optional[HealthAnalysisRecord] = None
    recent_count: int = 0
    reset_at: Optional[datetime] = None


class AnalysisResponse(BaseModel):
    """What ``request_analysis`` returns."""

    status: Literal["cached", "completed"]
    document: Dict[str, Any]
    analysis_id: Optional[UUID] = None
    created_at: Optional[datetime] = None
