"""Health check endpoint."""

from fastapi import APIRouter

from decision_engine import __version__
from decision_engine.api.models.decision import HealthResponse

router = APIRouter(prefix="/v1", tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    return HealthResponse(status="healthy", version=__version__)
