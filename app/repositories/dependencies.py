"""Dependency injection for the storage layer and the services built on it."""

from typing import Optional

from fastapi import Depends, Request

from app.core.config import settings
from app.core.exceptions import StorageUnavailableError
from app.db.mongo import get_resources_collection, get_tracking_events_collection
from app.repositories.interfaces import TrackingRepository
from app.repositories.memory_impl import MemoryTrackingRepository
from app.repositories.mongo_impl import MongoTrackingRepository
from app.services.cache_service import TTLCache
from app.services.reconciliation_service import CounterReconciler
from app.services.stats_service import StatsService
from app.services.tracking_service import EventRecorder


def build_repository(backend: Optional[str] = None) -> TrackingRepository:
    """
    Create the repository for the configured backend.

    The mongo backend requires connect_to_mongo() to have run.
    """
    backend = backend or settings.STORAGE_BACKEND
    if backend == "memory":
        return MemoryTrackingRepository(page_size=settings.RECONCILE_PAGE_SIZE)
    if backend == "mongo":
        return MongoTrackingRepository(
            get_resources_collection(),
            get_tracking_events_collection(),
            page_size=settings.RECONCILE_PAGE_SIZE,
        )
    raise ValueError(f"Unknown storage backend: {backend}")


def get_repository(request: Request) -> TrackingRepository:
    """Repository created during application startup."""
    repository = getattr(request.app.state, "repository", None)
    if repository is None:
        raise StorageUnavailableError("Storage not initialized", operation="get_repository")
    return repository


def get_cache(request: Request) -> Optional[TTLCache]:
    """Cache owned by the application lifespan (None before startup)."""
    return getattr(request.app.state, "cache", None)


def get_event_recorder(repository: TrackingRepository = Depends(get_repository)) -> EventRecorder:
    return EventRecorder(repository)


def get_reconciler(repository: TrackingRepository = Depends(get_repository)) -> CounterReconciler:
    return CounterReconciler(repository)


def get_stats_service(
    repository: TrackingRepository = Depends(get_repository),
    cache: Optional[TTLCache] = Depends(get_cache),
) -> StatsService:
    return StatsService(
        repository,
        cache=cache,
        recent_limit=settings.RECENT_EVENTS_LIMIT,
        cache_ttl=settings.STATS_CACHE_TTL_SECONDS,
    )
