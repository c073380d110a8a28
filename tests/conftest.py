import asyncio
from typing import List, Optional, Set

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from app.core.exceptions import StorageUnavailableError
from app.main import app
from app.models.resource import Resource, ResourceType
from app.models.tracking_event import TrackingKind
from app.repositories.dependencies import get_cache, get_repository
from app.repositories.memory_impl import MemoryTrackingRepository
from app.services.cache_service import TTLCache


class FaultyRepository(MemoryTrackingRepository):
    """Memory repository with switchable storage failures."""

    def __init__(self, page_size: int = 1000):
        super().__init__(page_size=page_size)
        self.fail_append = False
        self.fail_increment = False
        self.fail_list_events = False
        self.fail_set_counters_for: Set[str] = set()
        # Reads fail once any event has been logged (storage dropping mid-request)
        self.fail_reads_after_append = False

    async def get_resource(self, resource_id: str) -> Optional[Resource]:
        if self.fail_reads_after_append and self._events:
            raise StorageUnavailableError("read failed", resource_id=resource_id, operation="get_resource")
        return await super().get_resource(resource_id)

    async def append_event(self, event):
        if self.fail_append:
            raise StorageUnavailableError("append failed", resource_id=event.resource_id, operation="append_event")
        return await super().append_event(event)

    async def increment_counter(self, resource_id: str, kind: TrackingKind, by: int = 1) -> Optional[int]:
        if self.fail_increment:
            raise StorageUnavailableError("increment failed", resource_id=resource_id, operation="increment_counter")
        return await super().increment_counter(resource_id, kind, by)

    async def set_counters(self, resource_id: str, scan_count: int, download_count: int) -> bool:
        if resource_id in self.fail_set_counters_for:
            raise StorageUnavailableError("write failed", resource_id=resource_id, operation="set_counters")
        return await super().set_counters(resource_id, scan_count, download_count)

    async def list_events(self, resource_id: Optional[str] = None):
        if self.fail_list_events:
            raise StorageUnavailableError("read failed", operation="list_events")
        async for event in super().list_events(resource_id):
            yield event


class InterleavingRepository(FaultyRepository):
    """Yields to the event loop before every write and records the write order."""

    def __init__(self, page_size: int = 1000):
        super().__init__(page_size=page_size)
        self.operations: List[str] = []

    async def append_event(self, event):
        await asyncio.sleep(0)
        self.operations.append("append")
        return await super().append_event(event)

    async def increment_counter(self, resource_id: str, kind: TrackingKind, by: int = 1) -> Optional[int]:
        await asyncio.sleep(0)
        self.operations.append("increment")
        return await super().increment_counter(resource_id, kind, by)


def make_resource(resource_id: str, **overrides) -> Resource:
    fields = {
        "resource_id": resource_id,
        "resource_type": ResourceType.DOCUMENT,
        "owner_id": "owner-1",
        "owner_email": "owner@example.com",
        "name": f"Resource {resource_id}",
    }
    fields.update(overrides)
    return Resource(**fields)


@pytest.fixture
def repository() -> FaultyRepository:
    # Small pages so pagination paths are exercised
    return FaultyRepository(page_size=2)


@pytest_asyncio.fixture
async def seeded_repository(repository):
    await repository.save_resource(make_resource("doc1"))
    await repository.save_resource(make_resource("doc2"))
    await repository.save_resource(make_resource("card1", resource_type=ResourceType.BUSINESS_CARD))
    await repository.save_resource(make_resource("inactive", active=False))
    await repository.save_resource(make_resource("untracked", tracking_enabled=False))
    return repository


@pytest.fixture
def cache() -> TTLCache:
    return TTLCache(default_ttl=60)


@pytest.fixture
def api_repository(repository) -> FaultyRepository:
    for resource in (
        make_resource("doc1"),
        make_resource("card1", resource_type=ResourceType.BUSINESS_CARD),
        make_resource("linked", target_url="https://files.example.com/linked.pdf"),
        make_resource("untracked", tracking_enabled=False),
    ):
        asyncio.run(repository.save_resource(resource))
    return repository


@pytest.fixture
def client(api_repository, cache):
    app.dependency_overrides[get_repository] = lambda: api_repository
    app.dependency_overrides[get_cache] = lambda: cache
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def interleaving_repository():
    repository = InterleavingRepository()
    await repository.save_resource(make_resource("doc2"))
    return repository
