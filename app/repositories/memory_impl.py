"""In-memory implementation of the tracking storage interface for tests and local runs."""

import threading
from datetime import datetime, timezone
from typing import AsyncIterator, Dict, List, Optional

from app.models.resource import Resource, counter_field
from app.models.tracking_event import TrackingEvent, TrackingKind
from app.repositories.interfaces import TrackingRepository


class MemoryTrackingRepository(TrackingRepository):
    """
    Keeps resources in a dict and the event log in a list.

    All mutations happen under a lock that is never held across an await,
    so increments are atomic for both coroutines and threads.
    """

    def __init__(self, page_size: int = 1000):
        self._lock = threading.Lock()
        self._resources: Dict[str, Resource] = {}
        self._events: List[TrackingEvent] = []
        self._page_size = page_size

    async def get_resource(self, resource_id: str) -> Optional[Resource]:
        with self._lock:
            resource = self._resources.get(resource_id)
            return resource.model_copy() if resource else None

    async def list_resources(self) -> AsyncIterator[Resource]:
        with self._lock:
            resource_ids = sorted(self._resources)

        for resource_id in resource_ids:
            resource = await self.get_resource(resource_id)
            if resource is not None:
                yield resource

    async def save_resource(self, resource: Resource) -> Resource:
        with self._lock:
            self._resources[resource.resource_id] = resource.model_copy()
        return resource

    async def increment_counter(self, resource_id: str, kind: TrackingKind, by: int = 1) -> Optional[int]:
        field = counter_field(kind)
        with self._lock:
            resource = self._resources.get(resource_id)
            if resource is None:
                return None
            new_value = getattr(resource, field) + by
            setattr(resource, field, new_value)
            resource.updated_at = datetime.now(timezone.utc)
            return new_value

    async def set_counters(self, resource_id: str, scan_count: int, download_count: int) -> bool:
        with self._lock:
            resource = self._resources.get(resource_id)
            if resource is None:
                return False
            resource.scan_count = scan_count
            resource.download_count = download_count
            resource.updated_at = datetime.now(timezone.utc)
            return True

    async def append_event(self, event: TrackingEvent) -> TrackingEvent:
        with self._lock:
            self._events.append(event)
        return event

    async def list_events(self, resource_id: Optional[str] = None) -> AsyncIterator[TrackingEvent]:
        offset = 0
        while True:
            with self._lock:
                page = self._events[offset:offset + self._page_size]
            if not page:
                return

            offset += len(page)
            for event in page:
                if resource_id is None or event.resource_id == resource_id:
                    yield event

    async def count_events(
        self,
        resource_id: Optional[str] = None,
        kind: Optional[TrackingKind] = None,
        since: Optional[datetime] = None,
    ) -> int:
        with self._lock:
            events = list(self._events)
        return sum(
            1
            for event in events
            if (resource_id is None or event.resource_id == resource_id)
            and (kind is None or event.kind == TrackingKind(kind))
            and (since is None or event.timestamp >= since)
        )

    async def recent_events(
        self,
        resource_id: str,
        kind: Optional[TrackingKind] = None,
        limit: int = 50,
    ) -> List[TrackingEvent]:
        with self._lock:
            events = [
                event
                for event in self._events
                if event.resource_id == resource_id
                and (kind is None or event.kind == TrackingKind(kind))
            ]
        events.sort(key=lambda event: event.timestamp, reverse=True)
        return events[:limit]

    async def count_resources(self) -> int:
        with self._lock:
            return len(self._resources)

    async def ping(self) -> bool:
        return True
