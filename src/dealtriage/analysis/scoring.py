"""Hold and Flip acquisition scores.

Each score is built from fixed breakpoint tables. The inverse helpers
walk the same tables to suggest the rent (Hold) or ARV (Flip) that would
earn a perfect 10.
"""

import logging
import math
from typing import Optional

from ..models.property import (
    FlipScoreBreakdown,
    HoldScoreBreakdown,
    InvestmentAnalysis,
    LegacyScoreBreakdown,
    Property,
    ScoringVariant,
)
from .calculator import MetricCalculator

logger = logging.getLogger(__name__)


# (minimum monthly cashflow per unit, points), best first
HOLD_CASHFLOW_TIERS = [
    (200, 8),
    (175, 7),
    (150, 6),
    (125, 5),
    (100, 4),
    (75, 3),
    (50, 2),
    (0, 1),
]

# (minimum rent ratio, points)
HOLD_RENT_RATIO_TIERS = [
    (0.01, 2),
    (0.008, 1),
]

# (maximum ARV ratio, points)
FLIP_ARV_RATIO_TIERS = [
    (0.75, 10),
    (0.80, 7),
    (0.85, 4),
]

# Historical 4/4/2 table, kept for old reports only.
LEGACY_RENT_RATIO_TIERS = [
    (0.01, 4),
    (0.008, 3),
    (0.006, 1),
]
LEGACY_ARV_RATIO_TIERS = [
    (0.75, 4),
    (0.80, 3),
    (0.85, 1),
]
LEGACY_EQUITY_TIERS = [
    (75000, 2),
    (60000, 1),
]

MAX_SCORE = 10
MAX_INVERSE_STEPS = 1000


def points_at_least(value: float, tiers: list[tuple[float, int]]) -> int:
    """Points of the first tier whose threshold value reaches."""
    for threshold, points in tiers:
        if value >= threshold:
            return points
    return 0


def points_at_most(value: float, tiers: list[tuple[float, int]]) -> int:
    """Points of the first tier whose ceiling value stays under."""
    for ceiling, points in tiers:
        if value <= ceiling:
            return points
    return 0


def clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


class ScoreEngine:
    """Score properties for buy-and-hold and fix-and-flip strategies.

    Example:
        engine = ScoreEngine()

        analysis = engine.analyze(prop)
        print(f"Hold {analysis.hold_score}/10, Flip {analysis.flip_score}/10")

        target = engine.perfect_arv_for_flip_score(offer=180000, rehab=20000)
    """

    def __init__(self, calculator: Optional[MetricCalculator] = None):
        """Initialize score engine.

        Args:
            calculator: Optional MetricCalculator instance.
                       Creates new instance if not provided.
        """
        self.calc = calculator or MetricCalculator()

    # =========================================================================
    # Hold Score
    # =========================================================================

    def hold_breakdown(
        self,
        offer: float,
        rehab: float,
        rent: float,
        units: Optional[int] = 1,
    ) -> HoldScoreBreakdown:
        """Score cashflow per unit (8 pts) and rent ratio (2 pts).

        Args:
            offer: Offer price
            rehab: Rehab budget
            rent: Total monthly rent
            units: Number of units (defaults to 1)

        Returns:
            HoldScoreBreakdown with total clamped to [0, 10]
        """
        units = units or 1
        cashflow = self.calc.monthly_cashflow(rent, offer, rehab)
        per_unit = cashflow / units
        rent_ratio = self.calc.rent_ratio(rent, offer, rehab)

        cashflow_score = points_at_least(per_unit, HOLD_CASHFLOW_TIERS)
        rent_ratio_score = points_at_least(rent_ratio, HOLD_RENT_RATIO_TIERS)

        return HoldScoreBreakdown(
            total_score=clamp(cashflow_score + rent_ratio_score, 0, MAX_SCORE),
            cashflow_score=cashflow_score,
            rent_ratio_score=rent_ratio_score,
            monthly_cashflow=cashflow,
            cashflow_per_unit=per_unit,
            rent_ratio=rent_ratio,
            units=units,
        )

    def hold_score(self, offer: float, rehab: float, rent: float, units: Optional[int] = 1) -> int:
        return self.hold_breakdown(offer, rehab, rent, units).total_score

    def perfect_rent_for_hold_score(
        self,
        offer: float,
        rehab: float,
        units: Optional[int] = 1,
    ) -> Optional[float]:
        """Smallest whole-dollar rent that earns a Hold score of 10.

        The rent must clear both the top cashflow-per-unit tier and the top
        rent-ratio tier. Cashflow is linear in rent, so the top cashflow tier
        is solved directly and then confirmed against the table.

        Returns:
            Required monthly rent, or None if 10 is unreachable (no
            investment to compute a rent ratio against)
        """
        units = units or 1
        total = self.calc.total_investment(offer, rehab)
        if total <= 0:
            return None

        s = self.calc.settings
        top_cashflow = HOLD_CASHFLOW_TIERS[0][0]
        top_ratio = HOLD_RENT_RATIO_TIERS[0][0]

        mortgage = self.calc.monthly_mortgage(self.calc.new_loan(offer, rehab))
        fixed_costs = offer * s.property_tax_pct / 12 + s.fixed_monthly_expenses
        cashflow_rent = (top_cashflow * units + fixed_costs + mortgage) / (
            1 - s.management_fee_pct
        )
        ratio_rent = top_ratio * total

        rent = math.ceil(max(cashflow_rent, ratio_rent))
        for _ in range(MAX_INVERSE_STEPS):
            if self.hold_score(offer, rehab, rent, units) == MAX_SCORE:
                return float(rent)
            rent += 1
        logger.warning(f"No perfect rent found for offer={offer}, rehab={rehab}")
        return None

    # =========================================================================
    # Flip Score
    # =========================================================================

    def flip_breakdown(self, offer: float, rehab: float, arv: float) -> FlipScoreBreakdown:
        """Score the ARV ratio (10 pts).

        A property without an ARV (ratio 0) earns no points.
        """
        arv_ratio = self.calc.arv_ratio(offer, rehab, arv)
        arv_ratio_score = (
            points_at_most(arv_ratio, FLIP_ARV_RATIO_TIERS) if arv_ratio > 0 else 0
        )
        return FlipScoreBreakdown(
            total_score=clamp(arv_ratio_score, 0, MAX_SCORE),
            arv_ratio_score=arv_ratio_score,
            arv_ratio=arv_ratio,
            home_equity=self.calc.home_equity(offer, rehab, arv),
        )

    def flip_score(self, offer: float, rehab: float, arv: float) -> int:
        return self.flip_breakdown(offer, rehab, arv).total_score

    def perfect_arv_for_flip_score(self, offer: float, rehab: float) -> Optional[float]:
        """ARV (whole dollars) at which the Flip score reaches 10.

        Any ARV at or above the returned value keeps the ratio inside the top
        tier. Returns None when there is no investment to score.
        """
        total = self.calc.total_investment(offer, rehab)
        if total <= 0:
            return None

        top_ratio = FLIP_ARV_RATIO_TIERS[0][0]
        arv = math.ceil(total / top_ratio)
        for _ in range(MAX_INVERSE_STEPS):
            if self.flip_score(offer, rehab, arv) == MAX_SCORE:
                return float(arv)
            arv += 1
        logger.warning(f"No perfect ARV found for offer={offer}, rehab={rehab}")
        return None

    # =========================================================================
    # Legacy Score
    # =========================================================================

    def legacy_breakdown(
        self,
        offer: float,
        rehab: float,
        rent: float,
        arv: float,
    ) -> LegacyScoreBreakdown:
        """Historical single score: rent ratio 4, ARV ratio 4, equity 2.

        Clamped to [1, 10] as the old reports were.
        """
        rent_ratio = self.calc.rent_ratio(rent, offer, rehab)
        arv_ratio = self.calc.arv_ratio(offer, rehab, arv)
        equity = self.calc.home_equity(offer, rehab, arv)

        rent_points = points_at_least(rent_ratio, LEGACY_RENT_RATIO_TIERS)
        arv_points = (
            points_at_most(arv_ratio, LEGACY_ARV_RATIO_TIERS) if arv_ratio > 0 else 0
        )
        equity_points = points_at_least(equity, LEGACY_EQUITY_TIERS)

        return LegacyScoreBreakdown(
            total_score=clamp(rent_points + arv_points + equity_points, 1, MAX_SCORE),
            rent_ratio_score=rent_points,
            arv_ratio_score=arv_points,
            equity_score=equity_points,
            rent_ratio=rent_ratio,
            arv_ratio=arv_ratio,
            home_equity=equity,
        )

    # =========================================================================
    # Full Analysis
    # =========================================================================

    def analyze(
        self,
        prop: Property,
        variant: ScoringVariant = ScoringVariant.DUAL,
    ) -> InvestmentAnalysis:
        """Compute metrics and the scores for the chosen variant.

        Args:
            prop: Property to analyze
            variant: DUAL (Hold + Flip) or LEGACY (single 4/4/2 score)

        Returns:
            InvestmentAnalysis with metrics, breakdowns and, for DUAL, the
            perfect-score suggestions
        """
        metrics = self.calc.analyze_property(prop)
        offer, rehab = prop.offer_price, prop.rehab_costs

        if variant == ScoringVariant.LEGACY:
            return InvestmentAnalysis(
                address=prop.address,
                variant=variant,
                metrics=metrics,
                legacy=self.legacy_breakdown(
                    offer, rehab, prop.potential_rent, prop.arv
                ),
            )

        return InvestmentAnalysis(
            address=prop.address,
            variant=variant,
            metrics=metrics,
            hold=self.hold_breakdown(offer, rehab, prop.potential_rent, prop.units),
            flip=self.flip_breakdown(offer, rehab, prop.arv),
            perfect_rent=self.perfect_rent_for_hold_score(offer, rehab, prop.units),
            perfect_arv=self.perfect_arv_for_flip_score(offer, rehab),
        )

    def analyze_batch(
        self,
        properties: list[Property],
        variant: ScoringVariant = ScoringVariant.DUAL,
    ) -> list[InvestmentAnalysis]:
        """Analyze several properties, skipping any that fail."""
        results = []
        for prop in properties:
            try:
                results.append(self.analyze(prop, variant))
            except (ValueError, ArithmeticError) as e:
                logger.warning(f"Failed to analyze {prop.address}: {e}")
        return results
