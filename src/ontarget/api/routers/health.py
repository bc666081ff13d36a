"""Health check endpoint."""

from fastapi import APIRouter

from ... import __version__
from ...config import get_config
from ..models.responses import HealthResponse

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Check API health status."""
    return HealthResponse(
        status="ok",
        version=__version__,
        fhir_base_url=get_config().fhir_base_url,
    )
