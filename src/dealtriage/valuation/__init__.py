"""Valuation confidence and validation.

Estimates (ARV, rehab, rent) carry their provenance and confidence; the
validator cross-checks AI ARVs against benchmark values and comparables.
"""

from .confidence import (
    ConfidenceBadge,
    ValuationLedger,
    confidence_badge,
    estimate_level,
    percentage_to_level,
)
from .validator import ValuationValidator, comp_quality_bucket, is_suspicious_address

__all__ = [
    "ConfidenceBadge",
    "ValuationLedger",
    "ValuationValidator",
    "comp_quality_bucket",
    "confidence_badge",
    "estimate_level",
    "is_suspicious_address",
    "percentage_to_level",
]
