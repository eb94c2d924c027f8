"""Portfolio cashflow and asset report models."""

from datetime import datetime, timezone

from pydantic import BaseModel, Field, computed_field

from .property import PropertyStatus


class ExpenseBreakdown(BaseModel):
    """Monthly expenses of one property, or summed over a portfolio."""

    mortgage: float = 0
    property_tax: float = 0
    insurance: float = 0
    property_management: float = 0
    maintenance: float = 0
    vacancy: float = 0
    other: float = 0

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total(self) -> float:
        return (
            self.mortgage
            + self.property_tax
            + self.insurance
            + self.property_management
            + self.maintenance
            + self.vacancy
            + self.other
        )

    def __add__(self, other: "ExpenseBreakdown") -> "ExpenseBreakdown":
        return ExpenseBreakdown(
            **{
                name: getattr(self, name) + getattr(other, name)
                for name in ExpenseBreakdown.model_fields
            }
        )


class PropertyCashFlow(BaseModel):
    """Current (actual rent) and potential (projected rent) monthly cashflow."""

    id: str | None = None
    address: str
    status: PropertyStatus
    is_operational: bool

    current_rent: float = 0
    current_expenses: ExpenseBreakdown = Field(default_factory=ExpenseBreakdown)
    potential_rent: float = 0
    potential_expenses: ExpenseBreakdown = Field(default_factory=ExpenseBreakdown)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def current_net_cashflow(self) -> float:
        return self.current_rent - self.current_expenses.total

    @computed_field  # type: ignore[prop-decorator]
    @property
    def potential_net_cashflow(self) -> float:
        return self.potential_rent - self.potential_expenses.total


class PropertyAssets(BaseModel):
    """Value, debt and equity of one property."""

    id: str | None = None
    address: str
    status: PropertyStatus
    is_operational: bool
    current_value: float
    loan_value: float

    @computed_field  # type: ignore[prop-decorator]
    @property
    def equity(self) -> float:
        return self.current_value - self.loan_value

    @computed_field  # type: ignore[prop-decorator]
    @property
    def equity_percent(self) -> float:
        if self.current_value <= 0:
            return 0.0
        return self.equity / self.current_value * 100


class ReportError(BaseModel):
    """A property left out of a report because its figures failed."""

    property_id: str | None = None
    address: str
    message: str


class CashFlowSummary(BaseModel):
    current_total_rent: float = 0
    current_total_expenses: ExpenseBreakdown = Field(default_factory=ExpenseBreakdown)
    current_total_net_cashflow: float = 0
    potential_total_rent: float = 0
    potential_total_expenses: ExpenseBreakdown = Field(default_factory=ExpenseBreakdown)
    potential_total_net_cashflow: float = 0
    properties_count: int = 0


class AssetSummary(BaseModel):
    total_property_value: float = 0
    total_loan_value: float = 0
    total_equity: float = 0
    average_equity_percent: float = Field(
        default=0, description="Total equity / total value * 100"
    )
    properties_count: int = 0


class CashFlowReport(BaseModel):
    """Monthly cashflow of the operational properties in a portfolio."""

    properties: list[PropertyCashFlow] = Field(default_factory=list)
    summary: CashFlowSummary = Field(default_factory=CashFlowSummary)
    errors: list[ReportError] = Field(default_factory=list)
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @computed_field  # type: ignore[prop-decorator]
    @property
    def has_warnings(self) -> bool:
        return bool(self.errors)


class AssetReport(BaseModel):
    """Value, debt and equity of the operational properties in a portfolio."""

    properties: list[PropertyAssets] = Field(default_factory=list)
    summary: AssetSummary = Field(default_factory=AssetSummary)
    errors: list[ReportError] = Field(default_factory=list)
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @computed_field  # type: ignore[prop-decorator]
    @property
    def has_warnings(self) -> bool:
        return bool(self.errors)
