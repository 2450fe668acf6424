"""
Liveness endpoint.
"""

from fastapi import APIRouter

from ..core.config import settings

router = APIRouter()


@router.get("/health")
async def health_check() -> dict[str, str]:
    return {"status": "healthy", "environment": settings.environment}
