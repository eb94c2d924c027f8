"""Lead ingestion request and result models."""

from typing import Any

from pydantic import BaseModel, Field

from .evaluation import EvaluationSummary
from .lead import Lead


class IngestLeadRequest(BaseModel):
    """A lead candidate arriving from any source."""

    address: str = Field(..., min_length=1)
    listing_price: float = Field(..., ge=0)
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    seller_phone: str | None = None
    seller_email: str | None = None
    agent_name: str | None = None
    square_footage: int | None = Field(default=None, gt=0)
    bedrooms: int | None = Field(default=None, ge=0)
    bathrooms: float | None = Field(default=None, ge=0)
    year_built: int | None = Field(default=None, ge=1800, le=2100)
    units: int | None = Field(default=None, ge=1)
    verified_market_value: float | None = Field(default=None, ge=0)
    notes: str | None = None
    tags: list[str] = Field(default_factory=list)
    metadata: list[dict[str, Any]] = Field(default_factory=list)
    source: str = "manual"
    send_first_message: bool = False

    model_config = {
        "str_strip_whitespace": True,
    }


class ConsolidationSummary(BaseModel):
    """Before/after view of a lead that absorbed a duplicate."""

    old_price: float
    new_price: float
    price_change_percent: float | None = None
    is_price_dropped: bool = False
    is_material_change: bool = False
    was_revived: bool = False
    old_score: float | None = None
    new_score: float | None = None


class IngestResult(BaseModel):
    lead: Lead
    evaluation: EvaluationSummary | None = None
    was_consolidated: bool = False
    consolidation: ConsolidationSummary | None = None
    auto_message_triggered: bool = False
    auto_message_error: str | None = None
