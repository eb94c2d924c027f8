"""Deal metrics calculator for acquisition analysis.

This module converts raw property numbers (offer, rehab, rent, ARV) into
the ratios and financing figures that the score engine and the lead
evaluation consume. Every function is total over non-negative finite
inputs: a zero denominator yields 0 instead of raising.
"""

import logging
import math
from typing import Callable, Optional

from ..config import Settings
from ..models.property import Property, PropertyMetrics

logger = logging.getLogger(__name__)

MortgageFn = Callable[[float], float]


def amortized_payment(principal: float, annual_rate: float, years: int) -> float:
    """Standard monthly payment for a fully amortizing fixed-rate loan.

    Payment = P × r(1+r)^n / ((1+r)^n - 1), with r the monthly rate and
    n the number of monthly payments.

    Args:
        principal: Loan amount
        annual_rate: Annual interest rate (e.g., 0.07 for 7%)
        years: Amortization period in years

    Returns:
        Monthly payment, 0 for a non-positive principal
    """
    if principal <= 0:
        return 0.0
    n_payments = max(years, 1) * 12
    monthly_rate = annual_rate / 12
    if monthly_rate <= 0:
        return principal / n_payments
    growth = math.pow(1 + monthly_rate, n_payments)
    return principal * (monthly_rate * growth) / (growth - 1)


def make_mortgage_fn(annual_rate: float, years: int) -> MortgageFn:
    """Bind a rate and term into a single-argument mortgage function."""

    def monthly_mortgage(principal: float) -> float:
        return amortized_payment(principal, annual_rate, years)

    return monthly_mortgage


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class MetricCalculator:
    """Calculate deal metrics from a property's monetary fields.

    The mortgage function is injected; by default it is built from the
    configured rate and term.

    Example:
        calc = MetricCalculator()

        ratio = calc.arv_ratio(offer=180000, rehab=20000, arv=250000)
        print(f"ARV ratio: {ratio:.0%}")

        metrics = calc.analyze_property(prop)
        print(f"Cashflow: ${metrics.monthly_cashflow:,.0f}/mo")
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        mortgage_fn: Optional[MortgageFn] = None,
    ):
        """Initialize calculator with financing policy.

        Args:
            settings: Policy constants. Creates new Settings if not provided.
            mortgage_fn: Monthly payment for a principal. Defaults to
                        standard amortization at the configured rate/term.
        """
        self.settings = settings or Settings()
        self._mortgage_fn = mortgage_fn or make_mortgage_fn(
            self.settings.mortgage_rate, self.settings.mortgage_term_years
        )

    # =========================================================================
    # Ratios
    # =========================================================================

    @staticmethod
    def total_investment(offer: float, rehab: float) -> float:
        return offer + rehab

    def rent_ratio(self, rent: float, offer: float, rehab: float) -> float:
        """Monthly rent as a share of total investment.

        Rent Ratio = Rent / (Offer + Rehab), the "1% rule" input.

        Returns:
            Ratio (e.g., 0.01 for 1%), 0 when offer + rehab is 0
        """
        total = self.total_investment(offer, rehab)
        if total <= 0:
            return 0.0
        return rent / total

    def arv_ratio(self, offer: float, rehab: float, arv: float) -> float:
        """Total investment as a share of after-repair value.

        ARV Ratio = (Offer + Rehab) / ARV. Lower is better for a flip.

        Returns:
            Ratio (e.g., 0.75 for 75%), 0 when arv is 0
        """
        if arv <= 0:
            return 0.0
        return self.total_investment(offer, rehab) / arv

    @staticmethod
    def discount(listing: float, offer: float) -> float:
        """Discount of the offer relative to the asking price."""
        if listing <= 0:
            return 0.0
        return (listing - offer) / listing

    # =========================================================================
    # Financing (BRRRR)
    # =========================================================================

    def down_payment(self, offer: float, rehab: float) -> float:
        return self.total_investment(offer, rehab) * self.settings.down_payment_pct

    def loan_amount(self, offer: float, rehab: float) -> float:
        return self.total_investment(offer, rehab) - self.down_payment(offer, rehab)

    def cash_to_pull_out(self, offer: float, rehab: float) -> float:
        """Cash recovered at refinance beyond the target reserve."""
        return self.down_payment(offer, rehab) - self.settings.cash_remaining

    def new_loan(self, offer: float, rehab: float) -> float:
        """Loan balance after refinancing out everything but the reserve."""
        return self.loan_amount(offer, rehab) + self.cash_to_pull_out(offer, rehab)

    def new_loan_percent(self, offer: float, rehab: float, arv: float) -> float:
        if arv <= 0:
            return 0.0
        return self.new_loan(offer, rehab) / arv

    def home_equity(self, offer: float, rehab: float, arv: float) -> float:
        return arv - self.new_loan(offer, rehab)

    def monthly_mortgage(self, principal: float) -> float:
        return self._mortgage_fn(principal)

    # =========================================================================
    # Cashflow
    # =========================================================================

    def operating_expenses(self, rent: float, offer: float) -> float:
        """Monthly operating expenses before debt service.

        Management fee on rent, property tax on the offer price, plus a
        fixed monthly amount for insurance and utilities.
        """
        s = self.settings
        management = rent * s.management_fee_pct
        taxes = offer * s.property_tax_pct / 12
        return management + taxes + s.fixed_monthly_expenses

    def monthly_cashflow(self, rent: float, offer: float, rehab: float) -> float:
        """Monthly cashflow after expenses and the post-refinance mortgage."""
        mortgage = self.monthly_mortgage(self.new_loan(offer, rehab))
        return rent - self.operating_expenses(rent, offer) - mortgage

    def refinance_new_loan(self, arv: float) -> float:
        return arv * self.settings.refinance_ltv

    def refinance_home_equity(self, arv: float) -> float:
        return arv - self.refinance_new_loan(arv)

    def refinance_cashflow(self, rent: float, offer: float, arv: float) -> float:
        """Cashflow when refinancing at a fixed loan-to-value of ARV."""
        mortgage = self.monthly_mortgage(self.refinance_new_loan(arv))
        return rent - self.operating_expenses(rent, offer) - mortgage

    # =========================================================================
    # Offer
    # =========================================================================

    def mao(self, arv: float, rehab: float) -> int:
        """Maximum allowable offer.

        MAO = ARV × 70% - Rehab - Fee, rounded to the nearest dollar.
        """
        s = self.settings
        return round_half_up(arv * s.mao_arv_pct - rehab - s.mao_fee)

    @staticmethod
    def spread_percent(listing: float, mao: float) -> float:
        """How far the asking price sits above the MAO, in percent."""
        if listing <= 0:
            return 0.0
        return (listing - mao) / listing * 100

    def static_arv_estimate(self, square_footage: Optional[int]) -> Optional[float]:
        """Area-average ARV guess from living area."""
        if not square_footage:
            return None
        return square_footage * self.settings.static_price_per_sqft

    # =========================================================================
    # Capital and returns
    # =========================================================================

    def total_capital_required(self, prop: Property) -> float:
        """Cash needed to close: down payment plus one-time capital costs."""
        down = self.down_payment(prop.offer_price, prop.rehab_costs)
        costs = prop.capital_costs
        if costs is None:
            return down
        return down + costs.closing_costs + costs.upfront_repairs + costs.other

    @staticmethod
    def roi_projection(annual_cashflow: float, capital: float) -> float:
        if capital <= 0:
            return 0.0
        return annual_cashflow / capital

    # =========================================================================
    # Full Analysis
    # =========================================================================

    def analyze_property(self, prop: Property) -> PropertyMetrics:
        """Compute every metric for a property.

        Args:
            prop: Property to analyze

        Returns:
            PropertyMetrics with ratios, financing, cashflow and MAO
        """
        offer, rehab = prop.offer_price, prop.rehab_costs
        rent, arv = prop.potential_rent, prop.arv

        new_loan = self.new_loan(offer, rehab)
        mortgage = self.monthly_mortgage(new_loan)
        expenses = self.operating_expenses(rent, offer)
        cashflow = rent - expenses - mortgage
        mao = self.mao(arv, rehab)
        capital = self.total_capital_required(prop)

        metrics = PropertyMetrics(
            rent_ratio=self.rent_ratio(rent, offer, rehab),
            arv_ratio=self.arv_ratio(offer, rehab, arv),
            discount=self.discount(prop.listing_price, offer),
            total_investment=self.total_investment(offer, rehab),
            down_payment=self.down_payment(offer, rehab),
            loan_amount=self.loan_amount(offer, rehab),
            cash_remaining=self.settings.cash_remaining,
            new_loan=new_loan,
            new_loan_percent=self.new_loan_percent(offer, rehab, arv),
            cash_to_pull_out=self.cash_to_pull_out(offer, rehab),
            home_equity=self.home_equity(offer, rehab, arv),
            monthly_mortgage=mortgage,
            monthly_operating_expenses=expenses,
            monthly_cashflow=cashflow,
            refinance_new_loan=self.refinance_new_loan(arv),
            refinance_home_equity=self.refinance_home_equity(arv),
            refinance_cashflow=self.refinance_cashflow(rent, offer, arv),
            mao=mao,
            spread_percent=self.spread_percent(prop.listing_price, mao),
            total_capital_required=capital,
            roi_projection=self.roi_projection(cashflow * 12, capital),
        )
        logger.debug(
            f"Analyzed {prop.address}: arv_ratio={metrics.arv_ratio:.3f}, "
            f"cashflow={cashflow:.0f}"
        )
        return metrics
