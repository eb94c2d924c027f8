"""Pytest fixtures and test utilities."""

import asyncio
from datetime import datetime, timezone
from typing import Optional

import pytest

from dealtriage.analysis import LeadPrioritizer, MetricCalculator, ScoreEngine
from dealtriage.config import Settings
from dealtriage.errors import ProviderError
from dealtriage.evaluation import EvaluationRunner, ProviderResult, ValuationProvider
from dealtriage.models import (
    ComparableSale,
    Lead,
    ProviderField,
    Property,
)
from dealtriage.services import LeadService
from dealtriage.storage import LeadStore
from dealtriage.valuation import ValuationValidator

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


class StaticProvider(ValuationProvider):
    """Provider returning a fixed result, or raising, after an optional delay."""

    def __init__(
        self,
        name: str,
        field: ProviderField,
        result: Optional[ProviderResult] = None,
        error: Optional[str] = None,
        verified: bool = False,
        delay: float = 0,
    ):
        self.name = name
        self.field = field
        self.result = result or ProviderResult()
        self.error = error
        self.verified = verified
        self.delay = delay
        self.calls = 0

    async def estimate(self, lead: Lead) -> ProviderResult:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise ProviderError(self.name, self.error)
        return self.result


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings writing to a temporary directory."""
    return Settings(data_dir=tmp_path)


@pytest.fixture
def bare_settings(tmp_path) -> Settings:
    """Settings with no operating expenses, so cashflow = rent - mortgage."""
    return Settings(
        data_dir=tmp_path,
        management_fee_pct=0,
        property_tax_pct=0,
        fixed_monthly_expenses=0,
    )


@pytest.fixture
def calculator(settings: Settings) -> MetricCalculator:
    """MetricCalculator with default policy."""
    return MetricCalculator(settings)


@pytest.fixture
def engine(calculator: MetricCalculator) -> ScoreEngine:
    """ScoreEngine with default policy."""
    return ScoreEngine(calculator)


@pytest.fixture
def validator(settings: Settings) -> ValuationValidator:
    return ValuationValidator(settings)


@pytest.fixture
def prioritizer() -> LeadPrioritizer:
    """Prioritizer with a frozen clock."""
    return LeadPrioritizer(clock=lambda: NOW)


@pytest.fixture
def store(tmp_path) -> LeadStore:
    return LeadStore(tmp_path / "leads.db")


@pytest.fixture
def flip_property() -> Property:
    """Property with an ARV ratio of exactly 80%."""
    return Property(
        address="18 Harbor View Rd",
        listing_price=195000,
        offer_price=180000,
        rehab_costs=20000,
        potential_rent=2000,
        arv=250000,
        square_footage=1400,
    )


def make_lead(**overrides) -> Lead:
    """Build a lead with sensible defaults."""
    fields = {
        "address": "100 Cedar Ln",
        "listing_price": 180000,
        "created_at": NOW,
        "updated_at": NOW,
    }
    fields.update(overrides)
    return Lead(**fields)


@pytest.fixture
def ai_providers() -> list[StaticProvider]:
    """AI providers for ARV, rehab and rent."""
    return [
        StaticProvider(
            "ai_arv",
            ProviderField.ARV,
            ProviderResult(value=250000, confidence_percentage=72, cost=0.02),
        ),
        StaticProvider(
            "ai_rehab",
            ProviderField.REHAB,
            ProviderResult(value=20000, confidence_level="medium", cost=0.01),
        ),
        StaticProvider(
            "ai_rent",
            ProviderField.RENT,
            ProviderResult(value=2000, confidence_percentage=55, cost=0.01),
        ),
    ]


@pytest.fixture
def verified_provider() -> StaticProvider:
    """Paid comps provider, full tier only."""
    return StaticProvider(
        "rentcast",
        ProviderField.ARV,
        ProviderResult(
            value=245000,
            comparables=[
                ComparableSale(
                    address="22 Birch Ave",
                    sale_price=240000,
                    sale_date=NOW.date(),
                    distance_miles=0.4,
                ),
            ],
            cost=0.5,
        ),
        verified=True,
    )


@pytest.fixture
def runner(settings, ai_providers, verified_provider) -> EvaluationRunner:
    return EvaluationRunner([*ai_providers, verified_provider], settings=settings)


@pytest.fixture
def service(store, runner, settings) -> LeadService:
    return LeadService(store, runner=runner, settings=settings)
