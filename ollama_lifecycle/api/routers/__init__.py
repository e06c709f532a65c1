"""API routers."""

from . import health, backup

__all__ = ["health", "backup"]
