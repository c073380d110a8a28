"""Abstract storage interface shared by the event recorder and the counter reconciler."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import AsyncIterator, List, Optional

from app.models.resource import Resource
from app.models.tracking_event import TrackingEvent, TrackingKind


class TrackingRepository(ABC):
    """
    Storage contract for resources and the tracking event log.

    Every backend failure must surface as StorageUnavailableError.
    Sequences returned by list_* are lazy and restartable: each call
    starts a fresh scan.
    """

    @abstractmethod
    async def get_resource(self, resource_id: str) -> Optional[Resource]:
        """Get a resource by id, or None."""

    @abstractmethod
    def list_resources(self) -> AsyncIterator[Resource]:
        """Stream every resource."""

    @abstractmethod
    async def save_resource(self, resource: Resource) -> Resource:
        """Insert or replace a resource (resource-owning collaborator only)."""

    @abstractmethod
    async def increment_counter(self, resource_id: str, kind: TrackingKind, by: int = 1) -> Optional[int]:
        """
        Atomically add `by` to the counter for `kind`.

        Must use the backend's own increment primitive. Returns the new
        value, or None when no such resource exists.
        """

    @abstractmethod
    async def set_counters(self, resource_id: str, scan_count: int, download_count: int) -> bool:
        """Overwrite both counters. Returns False when no such resource exists."""

    @abstractmethod
    async def append_event(self, event: TrackingEvent) -> TrackingEvent:
        """Append one event to the log."""

    @abstractmethod
    def list_events(self, resource_id: Optional[str] = None) -> AsyncIterator[TrackingEvent]:
        """Stream the event log, optionally filtered by resource, in pages."""

    @abstractmethod
    async def count_events(
        self,
        resource_id: Optional[str] = None,
        kind: Optional[TrackingKind] = None,
        since: Optional[datetime] = None,
    ) -> int:
        """Count log entries matching the filters."""

    @abstractmethod
    async def recent_events(
        self,
        resource_id: str,
        kind: Optional[TrackingKind] = None,
        limit: int = 50,
    ) -> List[TrackingEvent]:
        """Most recent events for a resource, newest first."""

    @abstractmethod
    async def count_resources(self) -> int:
        """Total number of resources."""

    @abstractmethod
    async def ping(self) -> bool:
        """Backend health check."""
