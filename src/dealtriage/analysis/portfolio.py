"""Portfolio cashflow and equity reports for owned properties.

Only operational properties (selling, in rehab, needing a tenant or
operating) are reported. Acquisition-stage properties have no income or
debt yet and are left out.
"""

import logging
from typing import Optional

from ..models.portfolio import (
    AssetReport,
    AssetSummary,
    CashFlowReport,
    CashFlowSummary,
    ExpenseBreakdown,
    PropertyAssets,
    PropertyCashFlow,
    ReportError,
)
from ..models.property import OPERATIONAL_STATUSES, Property
from .calculator import MetricCalculator

logger = logging.getLogger(__name__)


def is_operational(prop: Property) -> bool:
    return prop.status in OPERATIONAL_STATUSES


class PortfolioAggregator:
    """Build cashflow and asset reports across a set of properties.

    Cashflow is reported for two scenarios: current, from the rent actually
    collected, and potential, from the projected rent. Fixed costs are
    shared between them; management, maintenance and vacancy scale with
    the scenario's rent.

    Example:
        aggregator = PortfolioAggregator()

        report = aggregator.cashflow_report(properties)
        print(f"Net: ${report.summary.current_total_net_cashflow:,.0f}/mo")
    """

    def __init__(self, calculator: Optional[MetricCalculator] = None):
        self.calc = calculator or MetricCalculator()

    # =========================================================================
    # Per property
    # =========================================================================

    def estimated_expenses(self, prop: Property, rent: float) -> ExpenseBreakdown:
        """Policy-estimated monthly expenses at a given rent.

        The mortgage is the post-refinance payment, taxes are charged on
        the offer price, and the fixed monthly amount stands in for
        insurance.
        """
        s = self.calc.settings
        return ExpenseBreakdown(
            mortgage=self.calc.monthly_mortgage(
                self.calc.new_loan(prop.offer_price, prop.rehab_costs)
            ),
            property_tax=prop.offer_price * s.property_tax_pct / 12,
            insurance=s.fixed_monthly_expenses,
            property_management=rent * s.management_fee_pct,
            maintenance=rent * s.maintenance_reserve_pct,
            vacancy=rent * s.vacancy_allowance_pct,
        )

    def actual_expenses(self, prop: Property, rent: float) -> ExpenseBreakdown:
        """Recorded monthly expenses plus rent-based reserves.

        Falls back to estimates when no expenses were recorded.
        """
        if prop.monthly_expenses is None:
            return self.estimated_expenses(prop, rent)
        s = self.calc.settings
        recorded = prop.monthly_expenses
        return ExpenseBreakdown(
            mortgage=recorded.mortgage,
            property_tax=recorded.taxes,
            insurance=recorded.insurance,
            property_management=recorded.property_management,
            maintenance=rent * s.maintenance_reserve_pct,
            vacancy=rent * s.vacancy_allowance_pct,
            other=recorded.utilities + recorded.other,
        )

    def property_cashflow(self, prop: Property) -> PropertyCashFlow:
        """Current and potential monthly cashflow of one property.

        Non-operational properties report all zeros.
        """
        if not is_operational(prop):
            return PropertyCashFlow(
                id=prop.id, address=prop.address, status=prop.status, is_operational=False
            )

        current_rent = prop.actual_rent or 0
        return PropertyCashFlow(
            id=prop.id,
            address=prop.address,
            status=prop.status,
            is_operational=True,
            current_rent=current_rent,
            current_expenses=self.actual_expenses(prop, current_rent),
            potential_rent=prop.potential_rent,
            potential_expenses=self.estimated_expenses(prop, prop.potential_rent),
        )

    def property_assets(self, prop: Property) -> PropertyAssets:
        """Value, loan and equity of one property.

        Value is the current house value when known, else the ARV. The loan
        is the recorded balance when known; an operational property without
        one is assumed to carry its post-refinance loan.
        """
        operational = is_operational(prop)
        value = prop.current_house_value or prop.arv
        if prop.current_loan_value:
            loan = prop.current_loan_value
        elif operational:
            loan = max(0.0, self.calc.new_loan(prop.offer_price, prop.rehab_costs))
        else:
            loan = 0.0
        return PropertyAssets(
            id=prop.id,
            address=prop.address,
            status=prop.status,
            is_operational=operational,
            current_value=value,
            loan_value=loan,
        )

    # =========================================================================
    # Reports
    # =========================================================================

    def cashflow_report(self, properties: list[Property]) -> CashFlowReport:
        """Sum current and potential cashflow over operational properties."""
        rows: list[PropertyCashFlow] = []
        errors: list[ReportError] = []
        for prop in filter(is_operational, properties):
            try:
                rows.append(self.property_cashflow(prop))
            except (ValueError, ArithmeticError) as e:
                logger.warning(f"Cashflow for {prop.address} failed: {e}")
                errors.append(ReportError(property_id=prop.id, address=prop.address, message=str(e)))

        current_expenses = sum((r.current_expenses for r in rows), ExpenseBreakdown())
        potential_expenses = sum((r.potential_expenses for r in rows), ExpenseBreakdown())
        summary = CashFlowSummary(
            current_total_rent=sum(r.current_rent for r in rows),
            current_total_expenses=current_expenses,
            current_total_net_cashflow=sum(r.current_net_cashflow for r in rows),
            potential_total_rent=sum(r.potential_rent for r in rows),
            potential_total_expenses=potential_expenses,
            potential_total_net_cashflow=sum(r.potential_net_cashflow for r in rows),
            properties_count=len(rows),
        )
        return CashFlowReport(properties=rows, summary=summary, errors=errors)

    def asset_report(self, properties: list[Property]) -> AssetReport:
        """Sum value, debt and equity over operational properties."""
        rows: list[PropertyAssets] = []
        errors: list[ReportError] = []
        for prop in filter(is_operational, properties):
            try:
                rows.append(self.property_assets(prop))
            except (ValueError, ArithmeticError) as e:
                logger.warning(f"Assets for {prop.address} failed: {e}")
                errors.append(ReportError(property_id=prop.id, address=prop.address, message=str(e)))

        total_value = sum(r.current_value for r in rows)
        total_equity = sum(r.equity for r in rows)
        summary = AssetSummary(
            total_property_value=total_value,
            total_loan_value=sum(r.loan_value for r in rows),
            total_equity=total_equity,
            average_equity_percent=total_equity / total_value * 100 if total_value > 0 else 0.0,
            properties_count=len(rows),
        )
        return AssetReport(properties=rows, summary=summary, errors=errors)
