"""MongoDB (Motor) implementation of the tracking storage interface."""

from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import PyMongoError

from app.core.exceptions import StorageUnavailableError
from app.core.logging import get_logger
from app.models.resource import Resource, counter_field
from app.models.tracking_event import TrackingEvent, TrackingKind
from app.repositories.interfaces import TrackingRepository

logger = get_logger(__name__)


def _resource_to_document(resource: Resource) -> Dict[str, Any]:
    doc = resource.model_dump()
    doc["resource_type"] = resource.resource_type.value
    return doc


def _event_to_document(event: TrackingEvent) -> Dict[str, Any]:
    doc = event.model_dump()
    doc["kind"] = event.kind.value
    return doc


def _strip_id(doc: Dict[str, Any]) -> Dict[str, Any]:
    doc.pop("_id", None)
    return doc


class MongoTrackingRepository(TrackingRepository):
    """
    Stores resources and the event log in two collections.

    Counter increments use $inc so concurrent requests never lose updates.
    The event log is read with keyset pagination on _id, which keeps memory
    bounded and lets every scan restart from the beginning.
    """

    def __init__(
        self,
        resources: AsyncIOMotorCollection,
        events: AsyncIOMotorCollection,
        page_size: int = 1000,
    ):
        self._resources = resources
        self._events = events
        self._page_size = page_size

    async def get_resource(self, resource_id: str) -> Optional[Resource]:
        try:
            doc = await self._resources.find_one({"resource_id": resource_id})
        except PyMongoError as e:
            raise StorageUnavailableError(
                f"Failed to load resource: {e}", resource_id=resource_id, operation="get_resource"
            ) from e
        return Resource(**_strip_id(doc)) if doc else None

    async def list_resources(self) -> AsyncIterator[Resource]:
        try:
            cursor = self._resources.find({}).sort("resource_id", ASCENDING).batch_size(self._page_size)
            async for doc in cursor:
                yield Resource(**_strip_id(doc))
        except PyMongoError as e:
            raise StorageUnavailableError(
                f"Failed to list resources: {e}", operation="list_resources"
            ) from e

    async def save_resource(self, resource: Resource) -> Resource:
        try:
            await self._resources.replace_one(
                {"resource_id": resource.resource_id},
                _resource_to_document(resource),
                upsert=True,
            )
        except PyMongoError as e:
            raise StorageUnavailableError(
                f"Failed to save resource: {e}", resource_id=resource.resource_id, operation="save_resource"
            ) from e
        return resource

    async def increment_counter(self, resource_id: str, kind: TrackingKind, by: int = 1) -> Optional[int]:
        field = counter_field(kind)
        try:
            doc = await self._resources.find_one_and_update(
                {"resource_id": resource_id},
                {
                    "$inc": {field: by},
                    "$set": {"updated_at": datetime.now(timezone.utc)},
                },
                projection={field: True},
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as e:
            raise StorageUnavailableError(
                f"Failed to increment counter: {e}",
                resource_id=resource_id,
                kind=TrackingKind(kind).value,
                operation="increment_counter",
            ) from e
        return doc[field] if doc else None

    async def set_counters(self, resource_id: str, scan_count: int, download_count: int) -> bool:
        try:
            result = await self._resources.update_one(
                {"resource_id": resource_id},
                {
                    "$set": {
                        "scan_count": scan_count,
                        "download_count": download_count,
                        "updated_at": datetime.now(timezone.utc),
                    }
                },
            )
        except PyMongoError as e:
            raise StorageUnavailableError(
                f"Failed to set counters: {e}", resource_id=resource_id, operation="set_counters"
            ) from e
        return result.matched_count > 0

    async def append_event(self, event: TrackingEvent) -> TrackingEvent:
        try:
            await self._events.insert_one(_event_to_document(event))
        except PyMongoError as e:
            raise StorageUnavailableError(
                f"Failed to append tracking event: {e}",
                resource_id=event.resource_id,
                kind=event.kind.value,
                operation="append_event",
            ) from e
        return event

    async def list_events(self, resource_id: Optional[str] = None) -> AsyncIterator[TrackingEvent]:
        base_query: Dict[str, Any] = {}
        if resource_id is not None:
            base_query["resource_id"] = resource_id

        last_id = None
        while True:
            query = dict(base_query)
            if last_id is not None:
                query["_id"] = {"$gt": last_id}

            try:
                page = await (
                    self._events.find(query)
                    .sort("_id", ASCENDING)
                    .limit(self._page_size)
                    .to_list(length=self._page_size)
                )
            except PyMongoError as e:
                raise StorageUnavailableError(
                    f"Failed to read tracking events: {e}", resource_id=resource_id, operation="list_events"
                ) from e

            if not page:
                return

            last_id = page[-1]["_id"]
            for doc in page:
                yield TrackingEvent(**_strip_id(doc))

            if len(page) < self._page_size:
                return

    async def count_events(
        self,
        resource_id: Optional[str] = None,
        kind: Optional[TrackingKind] = None,
        since: Optional[datetime] = None,
    ) -> int:
        query: Dict[str, Any] = {}
        if resource_id is not None:
            query["resource_id"] = resource_id
        if kind is not None:
            query["kind"] = TrackingKind(kind).value
        if since is not None:
            query["timestamp"] = {"$gte": since}

        try:
            return await self._events.count_documents(query)
        except PyMongoError as e:
            raise StorageUnavailableError(
                f"Failed to count tracking events: {e}", resource_id=resource_id, operation="count_events"
            ) from e

    async def recent_events(
        self,
        resource_id: str,
        kind: Optional[TrackingKind] = None,
        limit: int = 50,
    ) -> List[TrackingEvent]:
        query: Dict[str, Any] = {"resource_id": resource_id}
        if kind is not None:
            query["kind"] = TrackingKind(kind).value

        try:
            docs = await (
                self._events.find(query)
                .sort("timestamp", DESCENDING)
                .limit(limit)
                .to_list(length=limit)
            )
        except PyMongoError as e:
            raise StorageUnavailableError(
                f"Failed to read recent events: {e}", resource_id=resource_id, operation="recent_events"
            ) from e
        return [TrackingEvent(**_strip_id(doc)) for doc in docs]

    async def count_resources(self) -> int:
        try:
            return await self._resources.count_documents({})
        except PyMongoError as e:
            raise StorageUnavailableError(
                f"Failed to count resources: {e}", operation="count_resources"
            ) from e

    async def ping(self) -> bool:
        try:
            await self._resources.database.client.admin.command("ping")
            return True
        except PyMongoError as e:
            logger.error(f"Storage health check failed: {str(e)}")
            return False
