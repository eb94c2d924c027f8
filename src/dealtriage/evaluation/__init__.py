"""Lead evaluation runs: providers, the tiered runner and its scheduler."""

from .providers import HttpValuationProvider, ProviderResult, ValuationProvider
from .runner import EvaluationRunner
from .scheduler import EvaluationScheduler

__all__ = [
    "EvaluationRunner",
    "EvaluationScheduler",
    "HttpValuationProvider",
    "ProviderResult",
    "ValuationProvider",
]
