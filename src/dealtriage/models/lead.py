"""Lead and lead-queue data models."""

import uuid
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field

from .metadata import LeadMetadata


class LeadStatus(str, Enum):
    """Lifecycle of a prospective deal."""

    NEW = "New"
    CONTACTED = "Contacted"
    RESPONDING = "Responding"
    NEGOTIATING = "Negotiating"
    UNDER_CONTRACT = "UnderContract"
    CLOSED = "Closed"
    LOST = "Lost"


class QueueType(str, Enum):
    ACTION_NOW = "action_now"
    FOLLOW_UP = "follow_up"
    NEGOTIATING = "negotiating"
    ALL = "all"
    ARCHIVED = "archived"


class Priority(str, Enum):
    """Attention level of a lead; declaration order is urgency order."""

    URGENT = "urgent"
    HIGH = "high"
    MEDIUM = "medium"
    NORMAL = "normal"


class EvaluationTier(str, Enum):
    """Evaluation depth: quick is AI-only, full adds verified comps."""

    QUICK = "quick"
    FULL = "full"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Lead(BaseModel):
    """A prospective property not yet converted to ownership."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)

    # Location
    address: str = Field(..., min_length=1)
    normalized_address: str = ""
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None

    # Pricing
    listing_price: float = Field(..., ge=0)
    original_listing_price: float | None = Field(
        default=None, ge=0, description="First price seen, kept across drops"
    )

    # Contact
    seller_phone: str | None = None
    seller_email: str | None = None
    agent_name: str | None = None

    # Property facts
    square_footage: int | None = Field(default=None, gt=0)
    bedrooms: int | None = Field(default=None, ge=0)
    bathrooms: float | None = Field(default=None, ge=0)
    year_built: int | None = Field(default=None, ge=1800, le=2100)
    units: int | None = Field(default=1, ge=1)

    # Pipeline state
    status: LeadStatus = LeadStatus.NEW
    last_contact_date: datetime | None = None
    responded_date: datetime | None = None
    follow_up_date: datetime | None = None
    follow_up_reason: str | None = None
    archived: bool = False

    # Evaluation results
    arv: float | None = Field(default=None, ge=0)
    rehab_estimate: float | None = Field(default=None, ge=0)
    rent_estimate: float | None = Field(default=None, ge=0)
    lead_score: float | None = Field(default=None, ge=0, le=10)
    mao: int | None = None
    spread_percent: float | None = None
    is_disqualified: bool = False
    disqualify_reason: str | None = None
    neighborhood_grade: str | None = None
    verified_market_value: float | None = Field(
        default=None, ge=0, description="Third-party market estimate"
    )
    last_evaluated_at: datetime | None = None
    evaluation_tier: EvaluationTier | None = None

    # Free-form
    notes: str | None = None
    tags: list[str] = Field(default_factory=list)
    metadata: list[LeadMetadata] = Field(default_factory=list)

    # Ingestion tracking
    source: str = "manual"
    sources: list[str] = Field(default_factory=list)
    consolidation_count: int = Field(default=0, ge=0)
    last_consolidated_at: datetime | None = None
    last_consolidated_source: str | None = None

    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    version: int = Field(default=1, ge=1)

    model_config = {
        "str_strip_whitespace": True,
        "validate_assignment": True,
    }


class QueueCounts(BaseModel):
    action_now: int = 0
    follow_up: int = 0
    negotiating: int = 0
    all: int = 0
    archived: int = 0


class Pagination(BaseModel):
    page: int = Field(..., ge=1)
    page_size: int = Field(..., ge=1)
    total_items: int = Field(..., ge=0)
    total_pages: int = Field(..., ge=0)


class LeadQueueItem(BaseModel):
    """A lead as shown in a queue, with its derived priority."""

    lead: Lead
    priority: Priority
    queues: list[QueueType]


class QueuePage(BaseModel):
    leads: list[LeadQueueItem]
    queue_counts: QueueCounts
    pagination: Pagination
