"""Property and investment analysis data models."""

from enum import Enum

from pydantic import BaseModel, Field, computed_field


class PropertyStatus(str, Enum):
    """Lifecycle of a property on the opportunity/portfolio board.

    Declaration order is the board's sort priority.
    """

    OPPORTUNITY = "Opportunity"
    SOFT_OFFER = "Soft Offer"
    HARD_OFFER = "Hard Offer"
    SELLING = "Selling"
    REHAB = "Rehab"
    NEEDS_TENANT = "Needs Tenant"
    OPERATIONAL = "Operational"


# Statuses of owned properties that earn, or are being readied to earn, income
OPERATIONAL_STATUSES = frozenset(
    {
        PropertyStatus.SELLING,
        PropertyStatus.REHAB,
        PropertyStatus.NEEDS_TENANT,
        PropertyStatus.OPERATIONAL,
    }
)


class MonthlyExpenses(BaseModel):
    """Actual monthly operating expenses of an owned property."""

    mortgage: float = Field(default=0, ge=0)
    taxes: float = Field(default=0, ge=0)
    insurance: float = Field(default=0, ge=0)
    utilities: float = Field(default=0, ge=0)
    property_management: float = Field(default=0, ge=0)
    other: float = Field(default=0, ge=0)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total(self) -> float:
        return (
            self.mortgage
            + self.taxes
            + self.insurance
            + self.utilities
            + self.property_management
            + self.other
        )


class CapitalCosts(BaseModel):
    """One-time capital outlays for an acquisition."""

    closing_costs: float = Field(default=0, ge=0)
    upfront_repairs: float = Field(
        default=0, ge=0, description="Repairs paid in cash before refinance"
    )
    other: float = Field(default=0, ge=0)


class Property(BaseModel):
    """A property under evaluation or in the portfolio.

    All monetary inputs are non-negative. A property with arv == 0 yields
    ARV ratios of 0 rather than dividing by zero.
    """

    id: str | None = Field(default=None, description="Storage identifier")
    address: str = Field(..., min_length=1, description="Street address")
    status: PropertyStatus = Field(default=PropertyStatus.OPPORTUNITY)

    listing_price: float = Field(default=0, ge=0, description="Asking price")
    offer_price: float = Field(default=0, ge=0, description="Planned offer")
    rehab_costs: float = Field(default=0, ge=0, description="Rehab budget")
    potential_rent: float = Field(
        default=0, ge=0, description="Expected total monthly rent"
    )
    arv: float = Field(default=0, ge=0, description="After-repair value")

    square_footage: int | None = Field(default=None, gt=0)
    units: int = Field(default=1, ge=1, description="Number of rentable units")

    # Owned/operational properties
    actual_rent: float | None = Field(
        default=None, ge=0, description="Rent currently collected per month"
    )
    monthly_expenses: MonthlyExpenses | None = None
    capital_costs: CapitalCosts | None = None
    current_house_value: float | None = Field(
        default=None, ge=0, description="Current market value; ARV if unset"
    )
    current_loan_value: float | None = Field(
        default=None, ge=0, description="Outstanding loan balance"
    )

    property_lead_id: str | None = Field(
        default=None, description="Lead this property originated from (not owned)"
    )
    archived: bool = False

    model_config = {
        "str_strip_whitespace": True,
        "validate_assignment": True,
    }


class PropertyMetrics(BaseModel):
    """Ratios and financing figures derived from a Property."""

    rent_ratio: float = Field(..., description="Rent / (offer + rehab)")
    arv_ratio: float = Field(..., description="(Offer + rehab) / ARV")
    discount: float = Field(..., description="(Listing - offer) / listing")

    total_investment: float = Field(..., ge=0, description="Offer + rehab")
    down_payment: float
    loan_amount: float
    cash_remaining: float
    new_loan: float
    new_loan_percent: float
    cash_to_pull_out: float
    home_equity: float

    monthly_mortgage: float = Field(..., ge=0)
    monthly_operating_expenses: float = Field(..., ge=0)
    monthly_cashflow: float

    refinance_new_loan: float
    refinance_home_equity: float
    refinance_cashflow: float

    mao: int = Field(..., description="Maximum allowable offer")
    spread_percent: float = Field(..., description="(Listing - MAO) / listing * 100")

    total_capital_required: float = Field(..., ge=0)
    roi_projection: float = Field(
        ..., description="Annual cashflow / total capital required"
    )

    model_config = {
        "validate_assignment": True,
    }

    @computed_field  # type: ignore[prop-decorator]
    @property
    def annual_cashflow(self) -> float:
        return self.monthly_cashflow * 12

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_positive_cash_flow(self) -> bool:
        return self.monthly_cashflow > 0


class ScoringVariant(str, Enum):
    """Which point table produced a score."""

    DUAL = "dual"
    LEGACY = "legacy"


class HoldScoreBreakdown(BaseModel):
    """Hold (buy-and-hold) score with the inputs that produced it."""

    total_score: int = Field(..., ge=0, le=10)
    cashflow_score: int = Field(..., ge=0, le=8)
    rent_ratio_score: int = Field(..., ge=0, le=2)
    monthly_cashflow: float
    cashflow_per_unit: float
    rent_ratio: float
    units: int = Field(..., ge=1)


class FlipScoreBreakdown(BaseModel):
    """Flip score with the inputs that produced it.

    Home equity is reported for display; it does not contribute points.
    """

    total_score: int = Field(..., ge=0, le=10)
    arv_ratio_score: int = Field(..., ge=0, le=10)
    arv_ratio: float
    home_equity: float


class LegacyScoreBreakdown(BaseModel):
    """Historical single score (rent ratio 4, ARV ratio 4, equity 2)."""

    total_score: int = Field(..., ge=1, le=10)
    rent_ratio_score: int = Field(..., ge=0, le=4)
    arv_ratio_score: int = Field(..., ge=0, le=4)
    equity_score: int = Field(..., ge=0, le=2)
    rent_ratio: float
    arv_ratio: float
    home_equity: float


class InvestmentAnalysis(BaseModel):
    """Full evaluation of a Property: metrics, scores and deal suggestions."""

    address: str
    variant: ScoringVariant = ScoringVariant.DUAL
    metrics: PropertyMetrics
    hold: HoldScoreBreakdown | None = None
    flip: FlipScoreBreakdown | None = None
    legacy: LegacyScoreBreakdown | None = None
    perfect_rent: float | None = Field(
        default=None, description="Minimum rent for a Hold score of 10"
    )
    perfect_arv: float | None = Field(
        default=None, description="ARV at which the Flip score reaches 10"
    )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def hold_score(self) -> int | None:
        return self.hold.total_score if self.hold else None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def flip_score(self) -> int | None:
        return self.flip.total_score if self.flip else None
