"""
app/services/stats_service.py

Purpose: Read-side statistics

- Per-resource stats for the resource owner (counters + recent events)
- Global totals for the admin dashboard, cached in the injected TTL cache
"""

from typing import Optional

from app.core.exceptions import AccessDeniedError, ResourceNotFoundError, TrackingNotPermittedError
from app.core.logging import get_logger
from app.models.tracking_event import TrackingKind
from app.repositories.interfaces import TrackingRepository
from app.schemas.tracking import EventView, GlobalStats, ResourceStats
from app.services.cache_service import TTLCache
from utils.constants import GLOBAL_STATS_CACHE_KEY, STATS_CACHE_PREFIX, WEEKLY_WINDOW_DAYS
from utils.time_utils import utc_now, window_start

logger = get_logger(__name__)


class StatsService:
    def __init__(
        self,
        repository: TrackingRepository,
        cache: Optional[TTLCache] = None,
        recent_limit: int = 50,
        cache_ttl: Optional[float] = None,
    ):
        self.repository = repository
        self.cache = cache
        self.recent_limit = recent_limit
        self.cache_ttl = cache_ttl

    async def resource_stats(self, resource_id: str, owner_email: str) -> ResourceStats:
        """
        Returns counters and recent events for one resource.

        The caller must supply the owner's email (case-insensitive match).

        Raises:
            ResourceNotFoundError, TrackingNotPermittedError, AccessDeniedError
        """
        resource = await self.repository.get_resource(resource_id)
        if resource is None:
            raise ResourceNotFoundError(resource_id=resource_id)

        if not resource.is_publicly_trackable:
            raise TrackingNotPermittedError(
                "This resource does not allow statistics tracking", resource_id=resource_id
            )

        if not resource.owner_email or resource.owner_email.strip().lower() != owner_email.strip().lower():
            logger.warning(
                "Stats access denied: owner email mismatch",
                extra={"resource_id": resource_id}
            )
            raise AccessDeniedError("Access denied - incorrect email", resource_id=resource_id)

        scans = await self.repository.recent_events(resource_id, TrackingKind.SCAN, self.recent_limit)
        downloads = await self.repository.recent_events(resource_id, TrackingKind.DOWNLOAD, self.recent_limit)

        return ResourceStats(
            resource_id=resource.resource_id,
            resource_type=resource.resource_type.value,
            name=resource.name,
            scan_count=resource.scan_count,
            download_count=resource.download_count,
            recent_scans=[EventView.from_event(e) for e in scans],
            recent_downloads=[EventView.from_event(e) for e in downloads],
            created_at=resource.created_at,
        )

    async def global_stats(self) -> GlobalStats:
        """
        Totals over the whole event log, computed from the log (not the counters).
        """
        if self.cache is not None:
            cached = self.cache.get(GLOBAL_STATS_CACHE_KEY)
            if cached is not None:
                return cached

        stats = GlobalStats(
            total_scans=await self.repository.count_events(kind=TrackingKind.SCAN),
            total_downloads=await self.repository.count_events(kind=TrackingKind.DOWNLOAD),
            weekly_scans=await self.repository.count_events(
                kind=TrackingKind.SCAN, since=window_start(WEEKLY_WINDOW_DAYS)
            ),
            total_resources=await self.repository.count_resources(),
            last_updated=utc_now(),
        )

        if self.cache is not None:
            self.cache.set(GLOBAL_STATS_CACHE_KEY, stats, ttl=self.cache_ttl)
        return stats

    def invalidate(self) -> int:
        """Drops cached statistics."""
        if self.cache is None:
            return 0
        return self.cache.invalidate_prefix(STATS_CACHE_PREFIX)
