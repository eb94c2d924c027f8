"""Valuation estimate, comparable sale and ARV validation models."""

import uuid
from datetime import date, datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field


class ValuationKind(str, Enum):
    """Quantity being estimated."""

    ARV = "arv"
    REHAB = "rehab"
    RENT = "rent"


class ValuationSource(str, Enum):
    """Provenance of an estimate."""

    AI = "ai"
    MANUAL = "manual"
    VERIFIED = "verified"


class ConfidenceLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class DeviationSeverity(str, Enum):
    """How far an ARV sits from its benchmark."""

    ACCEPTABLE = "acceptable"
    CAUTION = "caution"
    FLAGGED = "flagged"


class CompQuality(str, Enum):
    GOOD = "good"
    CAUTION = "caution"
    POOR = "poor"


class ComparableSale(BaseModel):
    """A comparable sale supplied by a provider.

    Screening never drops a comp; it only sets the is_suspicious and
    is_stale flags so the comp stays visible with a warning.
    """

    address: str
    sale_price: float = Field(..., ge=0)
    price_per_sqft: float | None = Field(default=None, ge=0)
    sale_date: date | None = None
    distance_miles: float | None = Field(default=None, ge=0)
    source: ValuationSource = ValuationSource.AI

    is_suspicious: bool = False
    is_stale: bool = False


class ArvValidationResult(BaseModel):
    """Cross-check of an ARV against benchmark values."""

    benchmark_verified: float | None = Field(
        default=None, description="Third-party verified market estimate"
    )
    benchmark_static: float | None = Field(
        default=None, description="Static area-average estimate"
    )
    deviation_percent: float | None = Field(
        default=None, description="Signed deviation from the primary benchmark"
    )
    deviation_severity: DeviationSeverity | None = None
    validation_flags: list[str] = Field(default_factory=list)
    comp_quality_score: int = Field(default=0, ge=0, le=100)
    comp_quality: CompQuality = CompQuality.POOR
    comparables: list[ComparableSale] = Field(default_factory=list)
    original_arv: float = Field(..., ge=0, description="ARV as produced")
    adjusted_arv: float | None = Field(
        default=None, ge=0, description="Down-adjusted ARV, if adjusted"
    )

    @property
    def was_adjusted(self) -> bool:
        return self.adjusted_arv is not None

    @property
    def effective_arv(self) -> float:
        return self.adjusted_arv if self.adjusted_arv is not None else self.original_arv


def _new_id() -> str:
    return uuid.uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ValuationEstimate(BaseModel):
    """One estimated number with its provenance.

    Immutable: a correction is a new estimate, so history is preserved.
    The confidence is either a level or a legacy 0-100 percentage.
    """

    id: str = Field(default_factory=_new_id)
    lead_id: str | None = None
    kind: ValuationKind
    value: float = Field(..., ge=0)
    source: ValuationSource
    confidence_level: ConfidenceLevel | None = None
    confidence_percentage: float | None = Field(default=None, ge=0, le=100)
    note: str | None = None
    raw_prompt: str | None = None
    raw_response: str | None = None
    provider: str | None = None
    validation: ArvValidationResult | None = None
    created_at: datetime = Field(default_factory=_utcnow)

    model_config = {
        "frozen": True,
    }
