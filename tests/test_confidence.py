"""Tests for confidence badges and the valuation ledger."""

import pydantic
import pytest

from dealtriage.errors import ValidationError
from dealtriage.models import (
    ConfidenceLevel,
    ValuationEstimate,
    ValuationKind,
    ValuationSource,
)
from dealtriage.valuation import ValuationLedger, confidence_badge, percentage_to_level


def ai_arv(value: float, **kwargs) -> ValuationEstimate:
    return ValuationEstimate(
        kind=ValuationKind.ARV, value=value, source=ValuationSource.AI, **kwargs
    )


class TestConfidenceLevels:
    """Tests for mapping legacy percentages."""

    @pytest.mark.parametrize(
        "percentage,level",
        [
            (None, ConfidenceLevel.LOW),
            (0, ConfidenceLevel.LOW),
            (49, ConfidenceLevel.LOW),
            (50, ConfidenceLevel.MEDIUM),
            (79, ConfidenceLevel.MEDIUM),
            (80, ConfidenceLevel.HIGH),
            (100, ConfidenceLevel.HIGH),
        ],
    )
    def test_percentage_to_level(self, percentage, level):
        assert percentage_to_level(percentage) == level


class TestBadges:
    """Tests for estimate badges."""

    def test_manual_ignores_confidence(self):
        estimate = ValuationEstimate(
            kind=ValuationKind.ARV,
            value=240000,
            source=ValuationSource.MANUAL,
            confidence_level=ConfidenceLevel.HIGH,
            note="Walked the block",
        )
        badge = confidence_badge(estimate)

        assert badge.label == "Manual Override"
        assert badge.level is None
        assert badge.tooltip == "Walked the block"

    def test_verified(self):
        estimate = ValuationEstimate(
            kind=ValuationKind.ARV, value=240000, source=ValuationSource.VERIFIED
        )
        assert confidence_badge(estimate).label == "Verified"

    def test_ai_from_percentage(self):
        badge = confidence_badge(ai_arv(240000, confidence_percentage=85))

        assert badge.label == "High Confidence"
        assert badge.level == ConfidenceLevel.HIGH

    def test_ai_level_wins_over_percentage(self):
        badge = confidence_badge(
            ai_arv(240000, confidence_level=ConfidenceLevel.MEDIUM, confidence_percentage=95)
        )
        assert badge.label == "Medium Confidence"


class TestValuationLedger:
    """Tests for append-only estimate history."""

    def test_override_preserves_prior(self):
        """An override is a new record; the AI estimate is untouched."""
        original = ai_arv(200000)
        ledger = ValuationLedger("lead-1", [original])

        manual = ledger.override(ValuationKind.ARV, 240000, note="Recent flip next door")

        assert len(ledger) == 2
        assert ledger.history(ValuationKind.ARV)[0].value == 200000
        assert ledger.history(ValuationKind.ARV)[0].source == ValuationSource.AI
        assert ledger.current(ValuationKind.ARV) is manual
        assert ledger.value(ValuationKind.ARV) == 240000

    def test_manual_beats_later_ai(self):
        ledger = ValuationLedger("lead-1")
        ledger.override(ValuationKind.ARV, 240000)
        ledger.record(ai_arv(300000))

        assert ledger.value(ValuationKind.ARV) == 240000

    def test_verified_beats_ai(self):
        ledger = ValuationLedger("lead-1")
        ledger.record(
            ValuationEstimate(
                kind=ValuationKind.ARV, value=230000, source=ValuationSource.VERIFIED
            )
        )
        ledger.record(ai_arv(300000))

        assert ledger.value(ValuationKind.ARV) == 230000

    def test_latest_of_same_source_wins(self):
        ledger = ValuationLedger("lead-1", [ai_arv(200000), ai_arv(210000)])

        assert ledger.value(ValuationKind.ARV) == 210000

    def test_resolve_is_stable(self):
        estimate = ai_arv(200000)

        assert ValuationLedger.resolve(estimate) == ValuationLedger.resolve(estimate)

    def test_kinds_are_independent(self):
        ledger = ValuationLedger("lead-1", [ai_arv(200000)])

        assert ledger.value(ValuationKind.REHAB) is None
        assert ledger.current(ValuationKind.RENT) is None

    def test_record_binds_lead(self):
        ledger = ValuationLedger("lead-1")

        assert ledger.record(ai_arv(200000)).lead_id == "lead-1"

    def test_rejects_other_leads_estimate(self):
        ledger = ValuationLedger("lead-1")

        with pytest.raises(ValidationError):
            ledger.record(ai_arv(200000, lead_id="lead-2"))

    def test_negative_override(self):
        ledger = ValuationLedger("lead-1")

        with pytest.raises(ValidationError) as exc_info:
            ledger.override(ValuationKind.REHAB, -1)
        assert exc_info.value.field == "rehab"
        assert len(ledger) == 0

    def test_estimates_are_immutable(self):
        estimate = ai_arv(200000)

        with pytest.raises(pydantic.ValidationError):
            estimate.value = 1
