"""Tests for portfolio cashflow and asset reports."""

import pytest

from dealtriage.analysis import MetricCalculator, PortfolioAggregator
from dealtriage.models import MonthlyExpenses, Property, PropertyStatus


def flat_mortgage(principal: float) -> float:
    if principal > 1_000_000:
        raise ZeroDivisionError("rate table has no entry for jumbo loans")
    return 1000.0


@pytest.fixture
def aggregator(settings) -> PortfolioAggregator:
    """Aggregator with a flat $1,000 mortgage payment."""
    return PortfolioAggregator(MetricCalculator(settings, mortgage_fn=flat_mortgage))


@pytest.fixture
def rental() -> Property:
    """Operating rental: offer 180k + rehab 20k, so the post-refinance loan is 180k."""
    return Property(
        id="p-1",
        address="14 Maple Ct",
        status=PropertyStatus.OPERATIONAL,
        offer_price=180000,
        rehab_costs=20000,
        potential_rent=2000,
        actual_rent=1800,
        arv=250000,
        current_house_value=260000,
    )


@pytest.fixture
def portfolio(rental) -> list[Property]:
    return [
        rental,
        Property(
            id="p-2",
            address="3 Birch Rd",
            status=PropertyStatus.NEEDS_TENANT,
            offer_price=200000,
            rehab_costs=40000,
            potential_rent=2400,
            arv=300000,
            current_loan_value=150000,
        ),
        Property(
            id="p-3",
            address="9 Pine St",
            status=PropertyStatus.SOFT_OFFER,
            offer_price=120000,
            potential_rent=1500,
            arv=190000,
        ),
    ]


class TestPropertyCashFlow:
    """Tests for per-property current and potential cashflow."""

    def test_potential_uses_estimates(self, aggregator, rental):
        cashflow = aggregator.property_cashflow(rental)

        expenses = cashflow.potential_expenses
        assert expenses.mortgage == 1000
        # 2.5% of 180k per year
        assert expenses.property_tax == pytest.approx(375)
        assert expenses.insurance == 130
        assert expenses.property_management == pytest.approx(240)
        assert expenses.maintenance == pytest.approx(100)
        assert expenses.vacancy == pytest.approx(160)
        assert expenses.total == pytest.approx(2005)
        assert cashflow.potential_net_cashflow == pytest.approx(-5)

    def test_current_uses_actual_rent(self, aggregator, rental):
        cashflow = aggregator.property_cashflow(rental)

        assert cashflow.current_rent == 1800
        # 1000 + 375 + 130 + 12% / 5% / 8% of 1800
        assert cashflow.current_expenses.total == pytest.approx(1955)
        assert cashflow.current_net_cashflow == pytest.approx(-155)

    def test_current_uses_recorded_expenses(self, aggregator, rental):
        rental.monthly_expenses = MonthlyExpenses(
            mortgage=900, taxes=300, insurance=100, utilities=50, property_management=150
        )

        cashflow = aggregator.property_cashflow(rental)

        expenses = cashflow.current_expenses
        assert expenses.mortgage == 900
        assert expenses.other == 50
        assert expenses.maintenance == pytest.approx(90)
        assert expenses.vacancy == pytest.approx(144)
        assert cashflow.current_net_cashflow == pytest.approx(66)
        # Projections still use policy estimates
        assert cashflow.potential_expenses.mortgage == 1000

    def test_no_actual_rent(self, aggregator, rental):
        rental.actual_rent = None

        cashflow = aggregator.property_cashflow(rental)

        assert cashflow.current_rent == 0
        assert cashflow.current_net_cashflow == pytest.approx(-1505)

    def test_non_operational_is_zero(self, aggregator, portfolio):
        cashflow = aggregator.property_cashflow(portfolio[2])

        assert not cashflow.is_operational
        assert cashflow.potential_rent == 0
        assert cashflow.potential_net_cashflow == 0


class TestPropertyAssets:
    """Tests for per-property value, loan and equity."""

    def test_current_value_and_derived_loan(self, aggregator, rental):
        assets = aggregator.property_assets(rental)

        assert assets.current_value == 260000
        assert assets.loan_value == 180000
        assert assets.equity == 80000
        assert assets.equity_percent == pytest.approx(30.769, abs=1e-3)

    def test_arv_and_recorded_loan(self, aggregator, portfolio):
        assets = aggregator.property_assets(portfolio[1])

        assert assets.current_value == 300000
        assert assets.loan_value == 150000
        assert assets.equity_percent == pytest.approx(50)

    def test_acquisition_stage_has_no_loan(self, aggregator, portfolio):
        assets = aggregator.property_assets(portfolio[2])

        assert not assets.is_operational
        assert assets.loan_value == 0
        assert assets.equity == 190000

    def test_zero_value(self, aggregator):
        assets = aggregator.property_assets(
            Property(address="1 Empty Lot", status=PropertyStatus.REHAB)
        )

        assert assets.equity_percent == 0


class TestReports:
    """Tests for portfolio-wide totals."""

    def test_cashflow_report_skips_acquisitions(self, aggregator, portfolio):
        report = aggregator.cashflow_report(portfolio)

        assert [p.id for p in report.properties] == ["p-1", "p-2"]
        summary = report.summary
        assert summary.properties_count == 2
        assert summary.current_total_rent == 1800
        assert summary.potential_total_rent == 4400
        assert summary.potential_total_expenses.mortgage == 2000
        assert summary.potential_total_expenses.total == pytest.approx(
            sum(p.potential_expenses.total for p in report.properties)
        )
        assert summary.current_total_net_cashflow == pytest.approx(
            sum(p.current_net_cashflow for p in report.properties)
        )
        assert not report.has_warnings

    def test_asset_report(self, aggregator, portfolio):
        report = aggregator.asset_report(portfolio)

        summary = report.summary
        assert summary.properties_count == 2
        assert summary.total_property_value == 560000
        assert summary.total_loan_value == 330000
        assert summary.total_equity == 230000
        assert summary.average_equity_percent == pytest.approx(41.071, abs=1e-3)

    def test_failed_property_is_reported(self, aggregator, portfolio):
        portfolio.append(
            Property(
                id="p-4",
                address="1 Estate Dr",
                status=PropertyStatus.OPERATIONAL,
                offer_price=2_000_000,
                potential_rent=9000,
            )
        )

        report = aggregator.cashflow_report(portfolio)

        assert report.summary.properties_count == 2
        assert report.has_warnings
        assert report.errors[0].property_id == "p-4"
        assert "jumbo" in report.errors[0].message

    def test_empty_portfolio(self, aggregator):
        report = aggregator.asset_report([])

        assert report.summary.total_equity == 0
        assert report.summary.average_equity_percent == 0
