"""Cross-checks of AI-produced ARVs against benchmarks and comparables.

An ARV is compared to a verified market estimate when one exists, or to
a static area-average estimate otherwise. Large deviations are flagged
and may be adjusted down; the unadjusted figure is always kept.
Comparable sales are screened for placeholder addresses and stale dates
and scored for overall quality.
"""

import logging
from datetime import date, datetime, timedelta, timezone
from statistics import mean
from typing import Iterable, Optional

from ..config import Settings
from ..errors import ValidationError
from ..models.valuation import (
    ArvValidationResult,
    ComparableSale,
    CompQuality,
    DeviationSeverity,
    ValuationEstimate,
    ValuationKind,
    ValuationSource,
)

logger = logging.getLogger(__name__)

SUSPICIOUS_ADDRESS_PATTERNS = (
    "example",
    "sample",
    "test",
    "123 main",
    "456 elm",
    "789 oak",
    "1234 ",
)

# Comp quality weights (sum to 100)
COMP_QUALITY_WEIGHTS = {
    "count": 40,
    "recency": 30,
    "distance": 30,
}
COMP_COUNT_TARGET = 5

# (maximum average distance in miles, share of distance points)
COMP_DISTANCE_TIERS = [
    (0.5, 1.0),
    (1.0, 2 / 3),
    (2.0, 1 / 3),
]

GOOD_COMP_QUALITY_MIN = 70
CAUTION_COMP_QUALITY_MIN = 40


def comp_quality_bucket(score: int) -> CompQuality:
    if score >= GOOD_COMP_QUALITY_MIN:
        return CompQuality.GOOD
    if score >= CAUTION_COMP_QUALITY_MIN:
        return CompQuality.CAUTION
    return CompQuality.POOR


def is_suspicious_address(address: str) -> bool:
    """Whether an address looks like placeholder text from a model."""
    lowered = address.lower()
    return any(pattern in lowered for pattern in SUSPICIOUS_ADDRESS_PATTERNS)


class ValuationValidator:
    """Validate ARVs against benchmarks and comparable sales.

    Example:
        validator = ValuationValidator()

        result = validator.validate(
            arv=320000,
            verified_benchmark=210000,
            comparables=comps,
        )
        if result.deviation_severity == DeviationSeverity.FLAGGED:
            print(result.validation_flags)
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or Settings()

    # =========================================================================
    # Deviation
    # =========================================================================

    @staticmethod
    def deviation(arv: float, benchmark: Optional[float]) -> Optional[float]:
        """Signed percent deviation of an ARV from a benchmark.

        Returns:
            (arv - benchmark) / benchmark × 100, or None without a positive
            benchmark
        """
        if benchmark is None or benchmark <= 0:
            return None
        return (arv - benchmark) / benchmark * 100

    def severity(self, deviation: Optional[float]) -> Optional[DeviationSeverity]:
        """Bucket a deviation by magnitude, regardless of sign."""
        if deviation is None:
            return None
        magnitude = abs(deviation)
        if magnitude <= self.settings.deviation_acceptable_pct:
            return DeviationSeverity.ACCEPTABLE
        if magnitude <= self.settings.deviation_caution_pct:
            return DeviationSeverity.CAUTION
        return DeviationSeverity.FLAGGED

    def static_benchmark(self, square_footage: Optional[int]) -> Optional[float]:
        if not square_footage:
            return None
        return square_footage * self.settings.static_price_per_sqft

    # =========================================================================
    # Comparables
    # =========================================================================

    def is_stale(self, sale_date: Optional[date], as_of: Optional[date] = None) -> bool:
        if sale_date is None:
            return False
        as_of = as_of or datetime.now(timezone.utc).date()
        cutoff = as_of - timedelta(days=self.settings.comp_max_age_days)
        return sale_date < cutoff

    def screen_comparables(
        self,
        comparables: Iterable[ComparableSale],
        as_of: Optional[date] = None,
    ) -> list[ComparableSale]:
        """Flag suspicious and stale comps. Nothing is dropped."""
        screened = []
        for comp in comparables:
            screened.append(
                comp.model_copy(
                    update={
                        "is_suspicious": is_suspicious_address(comp.address),
                        "is_stale": self.is_stale(comp.sale_date, as_of),
                    }
                )
            )
        return screened

    def comp_quality_score(self, comparables: list[ComparableSale]) -> int:
        """Aggregate count, recency and distance of screened comps into 0-100.

        Suspicious comps earn no count points. Comps without a distance are
        ignored for the distance average.
        """
        if not comparables:
            return 0

        usable = [c for c in comparables if not c.is_suspicious]
        count_pts = (
            min(len(usable), COMP_COUNT_TARGET) / COMP_COUNT_TARGET
        ) * COMP_QUALITY_WEIGHTS["count"]

        fresh = [c for c in comparables if not c.is_stale]
        recency_pts = len(fresh) / len(comparables) * COMP_QUALITY_WEIGHTS["recency"]

        distance_pts = 0.0
        distances = [c.distance_miles for c in comparables if c.distance_miles is not None]
        if distances:
            avg = mean(distances)
            for ceiling, share in COMP_DISTANCE_TIERS:
                if avg <= ceiling:
                    distance_pts = share * COMP_QUALITY_WEIGHTS["distance"]
                    break

        return int(round(count_pts + recency_pts + distance_pts))

    # =========================================================================
    # Validation
    # =========================================================================

    def validate(
        self,
        arv: float,
        verified_benchmark: Optional[float] = None,
        square_footage: Optional[int] = None,
        comparables: Iterable[ComparableSale] = (),
        as_of: Optional[date] = None,
        allow_adjustment: bool = True,
    ) -> ArvValidationResult:
        """Validate an ARV.

        Args:
            arv: ARV to check
            verified_benchmark: Third-party market estimate (primary benchmark)
            square_footage: Living area for the static benchmark (fallback)
            comparables: Comparable sales backing the ARV
            as_of: Evaluation date for comp recency (defaults to today)
            allow_adjustment: Whether a flagged ARV may be adjusted down

        Returns:
            ArvValidationResult; adjusted_arv is set only when the ARV was
            flagged above its benchmark and adjustment is enabled
        """
        static = self.static_benchmark(square_footage)
        has_verified = verified_benchmark is not None and verified_benchmark > 0
        benchmark = verified_benchmark if has_verified else static
        benchmark_label = "verified market estimate" if has_verified else "area average"

        deviation = self.deviation(arv, benchmark)
        severity = self.severity(deviation)

        flags: list[str] = []
        if deviation is None:
            flags.append("No benchmark available to validate ARV")
        elif severity == DeviationSeverity.CAUTION:
            flags.append(f"ARV deviates {deviation:+.1f}% from {benchmark_label}")
        elif severity == DeviationSeverity.FLAGGED:
            flags.append(
                f"ARV deviates {deviation:+.1f}% from {benchmark_label} (flagged)"
            )

        comps = self.screen_comparables(comparables, as_of)
        suspicious = sum(1 for c in comps if c.is_suspicious)
        stale = sum(1 for c in comps if c.is_stale)
        if suspicious:
            flags.append(f"{suspicious} comparable(s) have placeholder-looking addresses")
        if stale:
            flags.append(
                f"{stale} comparable(s) sold more than "
                f"{self.settings.comp_max_age_days} days ago"
            )

        quality_score = self.comp_quality_score(comps)
        quality = comp_quality_bucket(quality_score)
        if comps and quality == CompQuality.POOR:
            flags.append(f"Low comparable quality ({quality_score}/100)")

        adjusted = None
        if (
            allow_adjustment
            and self.settings.auto_adjust_arv
            and severity == DeviationSeverity.FLAGGED
            and deviation is not None
            and deviation > 0
        ):
            adjusted = round(benchmark * (1 + self.settings.deviation_acceptable_pct / 100))
            flags.append(f"ARV adjusted from {arv:,.0f} to {adjusted:,.0f}")
            logger.info(f"Adjusted ARV {arv:,.0f} -> {adjusted:,.0f} ({deviation:+.1f}%)")

        return ArvValidationResult(
            benchmark_verified=verified_benchmark if has_verified else None,
            benchmark_static=static,
            deviation_percent=deviation,
            deviation_severity=severity,
            validation_flags=flags,
            comp_quality_score=quality_score,
            comp_quality=quality,
            comparables=comps,
            original_arv=arv,
            adjusted_arv=adjusted,
        )

    def validate_estimate(
        self,
        estimate: ValuationEstimate,
        verified_benchmark: Optional[float] = None,
        square_footage: Optional[int] = None,
        comparables: Iterable[ComparableSale] = (),
        as_of: Optional[date] = None,
    ) -> ValuationEstimate:
        """Return a new ARV estimate carrying its validation result.

        Only AI estimates are ever adjusted; the returned estimate's value is
        the adjusted one and the validation keeps the original.

        Raises:
            ValidationError: If the estimate is not an ARV
        """
        if estimate.kind != ValuationKind.ARV:
            raise ValidationError("kind", f"cannot validate a {estimate.kind.value} estimate as ARV")

        result = self.validate(
            estimate.value,
            verified_benchmark=verified_benchmark,
            square_footage=square_footage,
            comparables=comparables,
            as_of=as_of,
            allow_adjustment=estimate.source == ValuationSource.AI,
        )
        return estimate.model_copy(
            update={"value": result.effective_arv, "validation": result}
        )
