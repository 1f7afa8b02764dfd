"""Health check endpoint."""

from datetime import UTC, datetime

from fastapi import APIRouter, Depends

from vulnlens import __version__
from vulnlens.analysis.orchestrator import BatchOrchestrator
from vulnlens.api.dependencies import get_orchestrator

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health")
async def health(
    orchestrator: BatchOrchestrator = Depends(get_orchestrator),
) -> dict[str, object]:
    """Basic health check, plus whether a run is in flight."""
    return {
        "status": "healthy",
        "version": __version__,
        "analysis_running": orchestrator.is_running,
        "timestamp": datetime.now(UTC).isoformat(),
    }
