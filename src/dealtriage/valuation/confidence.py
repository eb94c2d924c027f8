"""Confidence levels, badges and the append-only valuation ledger."""

import logging
from typing import Iterable, Optional

from pydantic import BaseModel

from ..errors import ValidationError
from ..models.valuation import (
    ConfidenceLevel,
    ValuationEstimate,
    ValuationKind,
    ValuationSource,
)

logger = logging.getLogger(__name__)

MEDIUM_CONFIDENCE_MIN = 50
HIGH_CONFIDENCE_MIN = 80

MANUAL_BADGE = "Manual Override"
VERIFIED_BADGE = "Verified"

# Lower wins when picking the effective estimate for a kind
SOURCE_PRECEDENCE = {
    ValuationSource.MANUAL: 0,
    ValuationSource.VERIFIED: 1,
    ValuationSource.AI: 2,
}


def percentage_to_level(percentage: Optional[float]) -> ConfidenceLevel:
    """Map a legacy 0-100 confidence to a level.

    <50 (or missing) is low, 50-79 medium, 80 and up high.
    """
    if not percentage or percentage < MEDIUM_CONFIDENCE_MIN:
        return ConfidenceLevel.LOW
    if percentage < HIGH_CONFIDENCE_MIN:
        return ConfidenceLevel.MEDIUM
    return ConfidenceLevel.HIGH


def estimate_level(estimate: ValuationEstimate) -> ConfidenceLevel:
    if estimate.confidence_level is not None:
        return estimate.confidence_level
    return percentage_to_level(estimate.confidence_percentage)


class ConfidenceBadge(BaseModel):
    """Display badge for an estimate."""

    label: str
    source: ValuationSource
    level: Optional[ConfidenceLevel] = None
    tooltip: Optional[str] = None


def confidence_badge(estimate: ValuationEstimate) -> ConfidenceBadge:
    """Badge for an estimate.

    Manual and verified estimates get a fixed label and ignore confidence.
    AI estimates show their confidence level. A note becomes the tooltip.
    """
    if estimate.source == ValuationSource.MANUAL:
        return ConfidenceBadge(
            label=MANUAL_BADGE, source=estimate.source, tooltip=estimate.note
        )
    if estimate.source == ValuationSource.VERIFIED:
        return ConfidenceBadge(
            label=VERIFIED_BADGE, source=estimate.source, tooltip=estimate.note
        )
    level = estimate_level(estimate)
    return ConfidenceBadge(
        label=f"{level.value.capitalize()} Confidence",
        source=estimate.source,
        level=level,
        tooltip=estimate.note,
    )


class ValuationLedger:
    """Append-only history of a lead's estimates.

    Overrides add a manual estimate; nothing already recorded is changed.
    The effective estimate for a kind is the latest manual one, else the
    latest verified one, else the latest AI one.

    Example:
        ledger = ValuationLedger("lead-1", store.list_estimates("lead-1"))
        ledger.override(ValuationKind.ARV, 240000, note="Walked the comps")
        arv = ledger.value(ValuationKind.ARV)
    """

    def __init__(self, lead_id: str, estimates: Iterable[ValuationEstimate] = ()):
        self.lead_id = lead_id
        self._estimates: list[ValuationEstimate] = []
        for estimate in estimates:
            self.record(estimate)

    def __len__(self) -> int:
        return len(self._estimates)

    def record(self, estimate: ValuationEstimate) -> ValuationEstimate:
        """Append an estimate, binding it to this ledger's lead."""
        if estimate.lead_id is None:
            estimate = estimate.model_copy(update={"lead_id": self.lead_id})
        elif estimate.lead_id != self.lead_id:
            raise ValidationError(
                "lead_id",
                f"estimate belongs to {estimate.lead_id}, not {self.lead_id}",
            )
        self._estimates.append(estimate)
        return estimate

    def override(
        self,
        kind: ValuationKind,
        value: float,
        note: Optional[str] = None,
    ) -> ValuationEstimate:
        """Record a manual value for a kind.

        Raises:
            ValidationError: If value is negative
        """
        if value < 0:
            raise ValidationError(kind.value, "must be non-negative")
        estimate = ValuationEstimate(
            lead_id=self.lead_id,
            kind=kind,
            value=value,
            source=ValuationSource.MANUAL,
            note=note or None,
        )
        logger.info(f"Manual {kind.value} override for {self.lead_id}: {value:,.0f}")
        return self.record(estimate)

    def history(self, kind: Optional[ValuationKind] = None) -> list[ValuationEstimate]:
        if kind is None:
            return list(self._estimates)
        return [e for e in self._estimates if e.kind == kind]

    def current(self, kind: ValuationKind) -> Optional[ValuationEstimate]:
        candidates = [(i, e) for i, e in enumerate(self._estimates) if e.kind == kind]
        if not candidates:
            return None
        _, best = min(
            candidates,
            key=lambda pair: (SOURCE_PRECEDENCE[pair[1].source], -pair[0]),
        )
        return best

    @staticmethod
    def resolve(estimate: ValuationEstimate) -> float:
        """Numeric value of an estimate.

        An adjusted ARV estimate already carries the adjusted value; the
        unadjusted figure stays in its validation result.
        """
        return estimate.value

    def value(self, kind: ValuationKind) -> Optional[float]:
        estimate = self.current(kind)
        if estimate is None:
            return None
        return self.resolve(estimate)
