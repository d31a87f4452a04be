"""
Health check endpoint.
"""

from fastapi import APIRouter, Request
from pydantic import BaseModel
from codereview.config import settings

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response schema."""
    status: str
    version: str
    mock_mode: bool
    pending_jobs: int


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """
    Health check endpoint.

    Returns:
        HealthResponse with status, version, mock mode indicator and queue depth.
    """
    return HealthResponse(
        status="ok",
        version=settings.app_version,
        mock_mode=settings.use_mock_embeddings,
        pending_jobs=request.app.state.services.jobs.pending,
    )
