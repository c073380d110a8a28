"""
app/api/stats.py

Purpose: Per-resource statistics for resource owners

- Counters plus the most recent scans and downloads
- Access gated by the owner's email
"""

from fastapi import APIRouter, Depends, Query

from app.core.logging import get_logger
from app.repositories.dependencies import get_stats_service
from app.schemas.tracking import ResourceStats
from app.services.stats_service import StatsService

logger = get_logger(__name__)
router = APIRouter()


@router.get("/resources/{resource_id}/stats", response_model=ResourceStats)
async def get_resource_stats(
    resource_id: str,
    email: str = Query(..., min_length=3, max_length=320, description="Owner email"),
    stats_service: StatsService = Depends(get_stats_service),
):
    """
    Returns statistics for one resource.
    """
    logger.info("Stats requested", extra={"resource_id": resource_id})
    return await stats_service.resource_stats(resource_id, email)
