"""
app/api/admin.py

Purpose: Operator endpoints

- Global tracking statistics (cached)
- On-demand counter reconciliation, optionally as a dry run
- Guarded by X-Admin-Key when ADMIN_API_KEY is configured
"""

import secrets
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query

from app.core.config import settings
from app.core.logging import get_logger
from app.repositories.dependencies import get_reconciler, get_stats_service
from app.schemas.tracking import GlobalStats, ReconcileResponse, ReconciliationStatus
from app.services.reconciliation_service import CounterReconciler
from app.services.stats_service import StatsService
from utils.constants import ADMIN_KEY_HEADER

logger = get_logger(__name__)
router = APIRouter()


async def require_admin_key(x_admin_key: Optional[str] = Header(None, alias=ADMIN_KEY_HEADER)):
    """
    Verifies the shared admin key. Open when no key is configured (development only).
    """
    expected = settings.ADMIN_API_KEY
    if not expected:
        return

    if not x_admin_key or not secrets.compare_digest(x_admin_key.encode("utf-8"), expected.encode("utf-8")):
        logger.warning("Rejected admin request with invalid key")
        raise HTTPException(status_code=401, detail="Invalid or missing admin key")


@router.get("/stats", response_model=GlobalStats, dependencies=[Depends(require_admin_key)])
async def get_global_stats(stats_service: StatsService = Depends(get_stats_service)):
    """
    Totals across every resource, computed from the tracking log.
    """
    return await stats_service.global_stats()


@router.post("/reconcile", response_model=ReconcileResponse, dependencies=[Depends(require_admin_key)])
async def reconcile_counters(
    dry_run: bool = Query(False, description="Report drift without writing"),
    reconciler: CounterReconciler = Depends(get_reconciler),
    stats_service: StatsService = Depends(get_stats_service),
):
    """
    Recomputes every resource's counters from the tracking log.

    Only drifted or failed resources are listed in the response.
    """
    summary, results = await reconciler.run(dry_run=dry_run)

    if summary.resources_updated:
        stats_service.invalidate()

    reported = [
        result for result in results
        if result.changed or result.status == ReconciliationStatus.UPDATE_FAILED
    ]
    return ReconcileResponse(summary=summary, results=reported)
