from unittest.mock import AsyncMock, MagicMock

import pytest
from pymongo import ReturnDocument
from pymongo.errors import AutoReconnect

from app.core.exceptions import StorageUnavailableError
from app.models.tracking_event import TrackingEvent, TrackingKind
from app.repositories.mongo_impl import MongoTrackingRepository

pytestmark = pytest.mark.asyncio


def _repository(resources=None, events=None, page_size=2):
    return MongoTrackingRepository(resources or MagicMock(), events or MagicMock(), page_size=page_size)


class FakeCursor:
    """Minimal find() cursor returning documents filtered by an _id keyset."""

    def __init__(self, docs, query):
        self._docs = docs
        self._query = query
        self._limit = None

    def sort(self, *args):
        return self

    def limit(self, n):
        self._limit = n
        return self

    async def to_list(self, length):
        after = self._query.get("_id", {}).get("$gt")
        docs = [dict(d) for d in self._docs if after is None or d["_id"] > after]
        return docs[:self._limit]


async def test_increment_uses_atomic_inc_and_returns_new_value():
    resources = MagicMock()
    resources.find_one_and_update = AsyncMock(return_value={"_id": 1, "scan_count": 4})
    repository = _repository(resources=resources)

    new_count = await repository.increment_counter("doc1", TrackingKind.SCAN)

    assert new_count == 4
    args, kwargs = resources.find_one_and_update.call_args
    assert args[0] == {"resource_id": "doc1"}
    assert args[1]["$inc"] == {"scan_count": 1}
    assert kwargs["return_document"] == ReturnDocument.AFTER


async def test_increment_on_missing_resource_returns_none():
    resources = MagicMock()
    resources.find_one_and_update = AsyncMock(return_value=None)

    assert await _repository(resources=resources).increment_counter("nope", TrackingKind.DOWNLOAD) is None


async def test_driver_errors_become_storage_unavailable():
    events = MagicMock()
    events.insert_one = AsyncMock(side_effect=AutoReconnect("connection reset"))
    repository = _repository(events=events)

    with pytest.raises(StorageUnavailableError) as exc_info:
        await repository.append_event(TrackingEvent(resource_id="doc1", kind=TrackingKind.SCAN))

    assert exc_info.value.details["operation"] == "append_event"
    assert exc_info.value.details["kind"] == "scan"


async def test_append_stores_kind_as_plain_string():
    events = MagicMock()
    events.insert_one = AsyncMock()
    event = TrackingEvent(resource_id="doc1", kind=TrackingKind.DOWNLOAD)

    await _repository(events=events).append_event(event)

    stored = events.insert_one.call_args.args[0]
    assert stored["kind"] == "download"
    assert stored["event_id"] == event.event_id


async def test_list_events_pages_through_the_whole_log():
    docs = [
        {"_id": i, "event_id": f"e{i}", "kind": "scan", "resource_id": "doc1"}
        for i in range(1, 6)
    ]
    events = MagicMock()
    events.find = MagicMock(side_effect=lambda query: FakeCursor(docs, query))
    repository = _repository(events=events, page_size=2)

    listed = [event.event_id async for event in repository.list_events()]

    assert listed == ["e1", "e2", "e3", "e4", "e5"]
    # 3 pages of at most 2 documents
    assert events.find.call_count == 3

    # Restartable: a second scan starts from the beginning
    again = [event.event_id async for event in repository.list_events()]
    assert again == listed


async def test_set_counters_reports_missing_resource():
    resources = MagicMock()
    resources.update_one = AsyncMock(return_value=MagicMock(matched_count=0))

    assert await _repository(resources=resources).set_counters("gone", 1, 2) is False
