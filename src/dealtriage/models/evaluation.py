"""Evaluation run and history models."""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from .lead import EvaluationTier
from .valuation import ArvValidationResult, ComparableSale, ValuationEstimate


class TriggerSource(str, Enum):
    """What started an evaluation run."""

    MANUAL = "manual"
    INGESTION = "ingestion"
    CONSOLIDATION = "consolidation"


class ProviderField(str, Enum):
    """Which part of an evaluation a provider produces."""

    ARV = "arv"
    REHAB = "rehab"
    RENT = "rent"
    NEIGHBORHOOD = "neighborhood"
    SUMMARY = "summary"


class ProviderSnapshot(BaseModel):
    """Audit record of one provider call."""

    provider_name: str
    field: ProviderField
    prompt: str | None = None
    raw_response: str | None = None
    parsed_result: dict[str, Any] | None = None
    cost: float = Field(default=0, ge=0)
    duration_ms: int = Field(default=0, ge=0)
    error: str | None = None


class ProviderErrorRecord(BaseModel):
    provider: str
    error: str


class EvaluationSummary(BaseModel):
    """Outcome of an evaluation as reported to callers."""

    score: float | None = None
    mao: int | None = None
    mao_spread_percent: float | None = None
    is_disqualified: bool = False
    disqualify_reason: str | None = None
    tier: EvaluationTier
    missing: list[str] = Field(
        default_factory=list, description="Fields no provider could supply"
    )


class EvaluationHistoryItem(BaseModel):
    """One evaluation run. Append-only."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    lead_id: str
    evaluated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    tier: EvaluationTier
    trigger_source: TriggerSource
    correlation_id: str | None = None
    total_cost: float = Field(default=0, ge=0)
    duration_ms: int = Field(default=0, ge=0)
    snapshots: list[ProviderSnapshot] = Field(default_factory=list)
    errors: list[ProviderErrorRecord] = Field(default_factory=list)
    summary: EvaluationSummary | None = None

    model_config = {
        "frozen": True,
    }


class EvaluationOutcome(BaseModel):
    """Everything an evaluation run produced, before it is persisted."""

    lead_id: str
    tier: EvaluationTier
    estimates: list[ValuationEstimate] = Field(default_factory=list)
    comparables: list[ComparableSale] = Field(default_factory=list)
    arv_validation: ArvValidationResult | None = None
    neighborhood_grade: str | None = None
    summary: EvaluationSummary
    history: EvaluationHistoryItem


class EvaluationUpdate(BaseModel):
    """Manual corrections to a lead's estimates, each with an optional note."""

    arv: float | None = Field(default=None, ge=0)
    arv_note: str | None = None
    rehab_estimate: float | None = Field(default=None, ge=0)
    rehab_note: str | None = None
    rent_estimate: float | None = Field(default=None, ge=0)
    rent_note: str | None = None


class LeadMetrics(BaseModel):
    """Server-computed figures returned after an evaluation change."""

    arv: float | None = None
    rehab_estimate: float | None = None
    rent_estimate: float | None = None
    mao: int | None = None
    spread_percent: float | None = None
    lead_score: float | None = None
    is_disqualified: bool = False


class EvaluationUpdateResult(BaseModel):
    id: str
    metrics: LeadMetrics
    updated_at: datetime
    version: int


class EvaluationHistoryPage(BaseModel):
    items: list[EvaluationHistoryItem]
    total: int
