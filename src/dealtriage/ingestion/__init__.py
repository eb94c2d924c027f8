"""Lead ingestion: address normalization and duplicate consolidation."""

from .address import normalize_address
from .consolidator import DeduplicationConsolidator, price_change_percent

__all__ = ["DeduplicationConsolidator", "normalize_address", "price_change_percent"]
