"""HTTP API for DealTriage."""

from .app import create_app

__all__ = ["create_app"]
