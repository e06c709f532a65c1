"""Health check endpoints."""

from pathlib import Path
from typing import Dict

from fastapi import APIRouter, Depends, HTTPException

from ..config import settings
from ..dependencies import get_health_checker
from ..models import HealthStatus
from ...health import HealthChecker

router = APIRouter(prefix="/health", tags=["health"])


@router.get("", response_model=HealthStatus)
async def health_check(checker: HealthChecker = Depends(get_health_checker)) -> HealthStatus:
    """Critical and advisory checks of the model service."""
    report = await checker.run(include_inference=settings.inference_check)
    return HealthStatus(status=report.status, checks=report.checks, timestamp=report.timestamp)


@router.get("/ready")
async def readiness_probe(checker: HealthChecker = Depends(get_health_checker)) -> Dict[str, str]:
    """Kubernetes readiness probe: API up, models installed and startup finished."""
    report = await checker.run(include_inference=False)
    if not report.healthy:
        raise HTTPException(status_code=503, detail="Service not ready")
    if not Path(checker.config.storage.ready_marker).exists():
        raise HTTPException(status_code=503, detail="Model installation in progress")
    return {"status": "ready"}


@router.get("/live")
async def liveness_probe() -> Dict[str, str]:
    """Kubernetes liveness probe."""
    return {"status": "alive"}
