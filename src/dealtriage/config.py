"""Configuration system for DealTriage.

Uses pydantic-settings to load configuration from environment variables
and .env files. Every policy constant used by the evaluation engine
(financing assumptions, validator thresholds, ingestion policy) lives here
so it can be tuned without code changes.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be overridden via environment variables or .env file.
    Environment variables are prefixed with DEALTRIAGE_
    (e.g., DEALTRIAGE_MORTGAGE_RATE=0.065).

    Settings are constructed explicitly and passed to the services that
    need them; there is no module-level instance.
    """

    model_config = SettingsConfigDict(
        env_prefix="DEALTRIAGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Financing policy
    down_payment_pct: float = Field(
        default=0.25,
        ge=0,
        le=1,
        description="Share of offer + rehab paid in cash at purchase",
    )
    cash_remaining: float = Field(
        default=20000,
        ge=0,
        description="Target cash left in the deal after refinance",
    )
    mortgage_rate: float = Field(
        default=0.07,
        ge=0,
        description="Annual mortgage interest rate used for cashflow",
    )
    mortgage_term_years: int = Field(
        default=30,
        ge=1,
        description="Mortgage amortization term in years",
    )
    refinance_ltv: float = Field(
        default=0.75,
        ge=0,
        le=1,
        description="Loan-to-value used by the refinancing variant",
    )

    # Operating expenses
    management_fee_pct: float = Field(
        default=0.12,
        ge=0,
        lt=1,
        description="Property management fee as share of monthly rent",
    )
    property_tax_pct: float = Field(
        default=0.025,
        ge=0,
        description="Annual property tax as share of offer price",
    )
    fixed_monthly_expenses: float = Field(
        default=130,
        ge=0,
        description="Other fixed monthly expenses (insurance, utilities)",
    )
    maintenance_reserve_pct: float = Field(
        default=0.05,
        ge=0,
        lt=1,
        description="Maintenance reserve as share of rent (portfolio reports)",
    )
    vacancy_allowance_pct: float = Field(
        default=0.08,
        ge=0,
        lt=1,
        description="Vacancy allowance as share of rent (portfolio reports)",
    )

    # Offer policy
    mao_arv_pct: float = Field(
        default=0.70,
        ge=0,
        le=1,
        description="Share of ARV used for the maximum allowable offer",
    )
    mao_fee: float = Field(
        default=5000,
        ge=0,
        description="Fixed assignment/holding fee subtracted from MAO",
    )
    static_price_per_sqft: float = Field(
        default=160,
        gt=0,
        description="Area-average $/sqft used for the static ARV benchmark",
    )

    # Valuation validation
    deviation_acceptable_pct: float = Field(
        default=25.0,
        ge=0,
        description="Max |deviation| from benchmark considered acceptable",
    )
    deviation_caution_pct: float = Field(
        default=40.0,
        ge=0,
        description="Max |deviation| from benchmark before flagging",
    )
    auto_adjust_arv: bool = Field(
        default=True,
        description="Down-adjust flagged AI ARVs toward the benchmark",
    )
    comp_max_age_days: int = Field(
        default=365,
        ge=1,
        description="Comparable sales older than this are flagged stale",
    )

    # Input bounds
    max_price: float = Field(
        default=50_000_000,
        gt=0,
        description="Upper bound for any price or valuation input",
    )
    max_monthly_rent: float = Field(
        default=100_000,
        gt=0,
        description="Upper bound for monthly rent input",
    )

    # Ingestion policy
    revive_archived_on_ingest: bool = Field(
        default=True,
        description="Re-ingesting an archived lead un-archives it",
    )
    material_price_change_pct: float = Field(
        default=1.0,
        ge=0,
        description="Price change (in %) that triggers re-evaluation",
    )
    default_ingest_tier: Literal["quick", "full"] = Field(
        default="quick",
        description="Evaluation tier run for newly ingested leads",
    )

    # Evaluation runs
    provider_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout for a single valuation provider call",
    )
    evaluation_write_retries: int = Field(
        default=3,
        ge=1,
        description="Merge attempts for automated evaluation writes",
    )

    # Background polling
    unread_poll_interval_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Interval between unread-count polls",
    )

    # Data paths
    data_dir: Path = Field(
        default=Path.home() / ".dealtriage",
        description="Directory holding the lead database",
    )
    db_name: str = Field(
        default="leads.db",
        description="SQLite database file name",
    )

    @property
    def db_path(self) -> Path:
        return self.data_dir / self.db_name
