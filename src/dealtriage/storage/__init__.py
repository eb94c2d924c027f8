"""Persistent storage for DealTriage."""

from .lead_store import LeadStore

__all__ = ["LeadStore"]
