"""Dependency injection for FastAPI."""

from fastapi import Request

from ..backup import ArchiveManager
from ..health import HealthChecker


async def get_health_checker(request: Request) -> HealthChecker:
    """Get HealthChecker instance from app state."""
    return request.app.state.health_checker


async def get_archive_manager(request: Request) -> ArchiveManager:
    """Get ArchiveManager instance from app state."""
    return request.app.state.archive_manager
