"""Deal analysis modules for property and lead evaluation.

This package provides the deal-metric calculator, the Hold/Flip score
engine, the lead queue prioritizer and portfolio reports.
"""

from .calculator import MetricCalculator, amortized_payment, make_mortgage_fn
from .portfolio import PortfolioAggregator, is_operational
from .prioritizer import (
    LeadPrioritizer,
    estimate_lead_score,
    score_from_spread,
    sort_properties,
    sort_property_leads,
)
from .scoring import ScoreEngine

__all__ = [
    "LeadPrioritizer",
    "MetricCalculator",
    "PortfolioAggregator",
    "ScoreEngine",
    "amortized_payment",
    "estimate_lead_score",
    "is_operational",
    "make_mortgage_fn",
    "score_from_spread",
    "sort_properties",
    "sort_property_leads",
]
