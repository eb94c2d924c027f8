"""Tests for the Hold, Flip and legacy scores."""

import pytest

from dealtriage.analysis import MetricCalculator, ScoreEngine
from dealtriage.models import Property, ScoringVariant


def fixed_mortgage_engine(settings, payment: float) -> ScoreEngine:
    """Engine whose mortgage is a constant, so cashflow = rent - payment."""
    return ScoreEngine(MetricCalculator(settings, mortgage_fn=lambda principal: payment))


class TestHoldScore:
    """Tests for cashflow-per-unit and rent-ratio points."""

    @pytest.mark.parametrize(
        "payment,cashflow_points",
        [
            (800, 8),  # 200/unit
            (801, 7),  # 199/unit
            (825, 7),
            (850, 6),
            (875, 5),
            (900, 4),
            (925, 3),
            (950, 2),
            (1000, 1),  # break-even
            (1001, 0),  # negative cashflow
        ],
    )
    def test_cashflow_tiers(self, bare_settings, payment, cashflow_points):
        engine = fixed_mortgage_engine(bare_settings, payment)

        breakdown = engine.hold_breakdown(offer=100000, rehab=0, rent=1000)

        assert breakdown.cashflow_score == cashflow_points
        assert breakdown.rent_ratio_score == 2
        assert breakdown.total_score == cashflow_points + 2

    @pytest.mark.parametrize(
        "rent,ratio_points",
        [(1000, 2), (999, 1), (800, 1), (799, 0)],
    )
    def test_rent_ratio_tiers(self, bare_settings, rent, ratio_points):
        engine = fixed_mortgage_engine(bare_settings, 0)

        breakdown = engine.hold_breakdown(offer=100000, rehab=0, rent=rent)

        assert breakdown.rent_ratio_score == ratio_points
        assert breakdown.cashflow_score == 8

    def test_cashflow_is_per_unit(self, bare_settings):
        """The same cashflow scores lower when spread over more units."""
        engine = fixed_mortgage_engine(bare_settings, 0)

        assert engine.hold_breakdown(100000, 0, 800, units=4).cashflow_score == 8
        assert engine.hold_breakdown(100000, 0, 800, units=5).cashflow_score == 6

    def test_missing_units_counts_as_one(self, bare_settings):
        engine = fixed_mortgage_engine(bare_settings, 0)

        assert engine.hold_breakdown(100000, 0, 1000, units=None).units == 1


class TestFlipScore:
    """Tests for ARV-ratio points."""

    def test_eighty_percent_is_not_perfect(self, engine):
        """180k + 20k against a 250k ARV is 80%, which earns 7."""
        breakdown = engine.flip_breakdown(180000, 20000, 250000)

        assert breakdown.arv_ratio == pytest.approx(0.8)
        assert breakdown.total_score == 7
        assert breakdown.home_equity == pytest.approx(70000)

    @pytest.mark.parametrize(
        "offer,score",
        [
            (140000, 10),  # 70%
            (150000, 10),  # 75%
            (152000, 7),  # 76%
            (160000, 7),  # 80%
            (170000, 4),  # 85%
            (172000, 0),  # 86%
        ],
    )
    def test_tiers(self, engine, offer, score):
        assert engine.flip_score(offer, 0, 200000) == score

    def test_missing_arv_scores_zero(self, engine):
        assert engine.flip_score(180000, 20000, 0) == 0


class TestPerfectScores:
    """Tests for the inverse helpers."""

    def test_perfect_arv(self, engine):
        """ceil(200000 / 0.75) is the first ARV inside the top tier."""
        arv = engine.perfect_arv_for_flip_score(180000, 20000)

        assert arv == 266667
        assert engine.flip_score(180000, 20000, arv) == 10
        assert engine.flip_score(180000, 20000, arv - 1) < 10

    def test_perfect_arv_without_investment(self, engine):
        assert engine.perfect_arv_for_flip_score(0, 0) is None

    def test_perfect_rent_bare(self, bare_settings):
        """With no expenses the 1% rule binds for one unit."""
        engine = fixed_mortgage_engine(bare_settings, 0)

        assert engine.perfect_rent_for_hold_score(100000, 0) == 1000
        assert engine.perfect_rent_for_hold_score(100000, 0, units=10) == 2000

    def test_perfect_rent_is_minimal(self, engine):
        rent = engine.perfect_rent_for_hold_score(180000, 20000)

        assert rent is not None
        assert engine.hold_score(180000, 20000, rent) == 10
        assert engine.hold_score(180000, 20000, rent - 1) < 10

    def test_perfect_rent_without_investment(self, engine):
        assert engine.perfect_rent_for_hold_score(0, 0) is None


class TestLegacyScore:
    """Tests for the historical 4/4/2 score."""

    def test_breakdown(self, engine):
        """1% rent, 80% ARV and 70k equity."""
        legacy = engine.legacy_breakdown(180000, 20000, rent=2000, arv=250000)

        assert legacy.rent_ratio_score == 4
        assert legacy.arv_ratio_score == 3
        assert legacy.equity_score == 1
        assert legacy.total_score == 8

    def test_floor_of_one(self, engine):
        legacy = engine.legacy_breakdown(180000, 0, rent=0, arv=0)

        assert legacy.total_score == 1


class TestAnalyze:
    """Tests for the full analysis."""

    def test_dual(self, engine, flip_property):
        analysis = engine.analyze(flip_property)

        assert analysis.variant == ScoringVariant.DUAL
        assert analysis.flip_score == 7
        assert analysis.hold_score is not None
        assert analysis.legacy is None
        assert analysis.perfect_arv == 266667

    def test_legacy(self, engine, flip_property):
        analysis = engine.analyze(flip_property, ScoringVariant.LEGACY)

        assert analysis.legacy.total_score == 8
        assert analysis.hold_score is None
        assert analysis.flip_score is None

    def test_batch(self, engine, flip_property):
        results = engine.analyze_batch([flip_property, Property(address="Vacant lot")])

        assert [r.address for r in results] == ["18 Harbor View Rd", "Vacant lot"]
