"""API routers."""

from . import leads, properties

__all__ = ["leads", "properties"]
