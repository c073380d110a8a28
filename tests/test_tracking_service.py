import asyncio

import pytest

from app.core.config import settings
from app.core.exceptions import (
    ResourceNotFoundError,
    StorageUnavailableError,
    TrackingNotPermittedError,
    ValidationError,
)
from app.models.tracking_event import RequestMetadata, TrackingKind
from app.services.tracking_service import EventRecorder

pytestmark = pytest.mark.asyncio


async def _events(repository, resource_id=None):
    return [event async for event in repository.list_events(resource_id)]


async def test_scan_appends_event_and_increments_counter(seeded_repository):
    recorder = EventRecorder(seeded_repository)
    metadata = RequestMetadata(user_agent="Mozilla/5.0", origin="203.0.113.7")

    outcome = await recorder.record_event("doc1", "scan", metadata)

    assert outcome.accepted is True
    assert outcome.new_count == 1
    assert outcome.counter_synced is True
    assert outcome.kind == TrackingKind.SCAN

    events = await _events(seeded_repository, "doc1")
    assert len(events) == 1
    assert events[0].event_id == outcome.event_id
    assert events[0].user_agent == "Mozilla/5.0"
    assert events[0].origin == "203.0.113.7"
    assert events[0].location is None

    resource = await seeded_repository.get_resource("doc1")
    assert resource.scan_count == 1
    assert resource.download_count == 0


async def test_download_bumps_download_counter_only(seeded_repository):
    recorder = EventRecorder(seeded_repository)

    await recorder.record_download("doc1")
    outcome = await recorder.record_download("doc1")

    assert outcome.new_count == 2
    resource = await seeded_repository.get_resource("doc1")
    assert resource.download_count == 2
    assert resource.scan_count == 0


async def test_missing_resource_is_rejected_without_writes(seeded_repository):
    recorder = EventRecorder(seeded_repository)

    with pytest.raises(ResourceNotFoundError) as exc_info:
        await recorder.record_event("nope", TrackingKind.SCAN)

    assert exc_info.value.details["resource_id"] == "nope"
    assert exc_info.value.details["kind"] == "scan"
    assert await _events(seeded_repository) == []


@pytest.mark.parametrize("resource_id", ["inactive", "untracked"])
async def test_untrackable_resource_is_rejected_without_writes(seeded_repository, resource_id):
    recorder = EventRecorder(seeded_repository)
    before = await seeded_repository.get_resource(resource_id)

    with pytest.raises(TrackingNotPermittedError):
        await recorder.record_event(resource_id, TrackingKind.DOWNLOAD)

    after = await seeded_repository.get_resource(resource_id)
    assert await _events(seeded_repository) == []
    assert after.scan_count == before.scan_count
    assert after.download_count == before.download_count


async def test_unknown_kind_is_a_validation_error(seeded_repository):
    recorder = EventRecorder(seeded_repository)

    with pytest.raises(ValidationError):
        await recorder.record_event("doc1", "view")

    assert await _events(seeded_repository) == []


async def test_append_failure_writes_nothing(seeded_repository):
    seeded_repository.fail_append = True
    recorder = EventRecorder(seeded_repository)

    with pytest.raises(StorageUnavailableError):
        await recorder.record_scan("doc1")

    resource = await seeded_repository.get_resource("doc1")
    assert resource.scan_count == 0


async def test_increment_failure_keeps_event_and_reports_unsynced_counter(seeded_repository):
    seeded_repository.fail_increment = True
    recorder = EventRecorder(seeded_repository)

    outcome = await recorder.record_scan("doc1")

    assert outcome.accepted is True
    assert outcome.new_count is None
    assert outcome.counter_synced is False
    assert len(await _events(seeded_repository, "doc1")) == 1
    resource = await seeded_repository.get_resource("doc1")
    assert resource.scan_count == 0


async def test_concurrent_scans_are_all_counted(seeded_repository):
    recorder = EventRecorder(seeded_repository)
    k = 50

    outcomes = await asyncio.gather(
        *(recorder.record_scan("doc2", RequestMetadata(user_agent=f"agent-{i}")) for i in range(k))
    )

    assert len(outcomes) == k
    assert sorted(o.new_count for o in outcomes) == list(range(1, k + 1))
    assert len(await _events(seeded_repository, "doc2")) == k
    resource = await seeded_repository.get_resource("doc2")
    assert resource.scan_count == k


async def test_repeated_requests_are_not_deduplicated(seeded_repository):
    recorder = EventRecorder(seeded_repository)
    metadata = RequestMetadata(user_agent="same-visitor", origin="198.51.100.1")

    for _ in range(3):
        await recorder.record_scan("doc1", metadata)

    assert len(await _events(seeded_repository, "doc1")) == 3


async def test_metadata_is_bounded_for_direct_callers(seeded_repository):
    recorder = EventRecorder(seeded_repository)
    metadata = RequestMetadata(
        user_agent="A" * 100000,
        origin="9" * 5000,
        location="line\r\nbreak" + "L" * 5000,
    )

    await recorder.record_scan("doc1", metadata)

    event = (await _events(seeded_repository, "doc1"))[0]
    assert len(event.user_agent) == settings.USER_AGENT_MAX_LENGTH
    assert len(event.origin) == settings.ORIGIN_MAX_LENGTH
    assert len(event.location) == settings.LOCATION_MAX_LENGTH
    assert event.location.startswith("linebreak")


async def test_blank_metadata_falls_back_to_unknown():
    metadata = RequestMetadata(user_agent="\x00\x07  ", origin=None, location="   ")

    assert metadata.user_agent == "Unknown"
    assert metadata.origin == "Unknown"
    assert metadata.location is None


async def test_interleaved_scans_are_all_counted(interleaving_repository):
    recorder = EventRecorder(interleaving_repository)
    k = 20

    outcomes = await asyncio.gather(*(recorder.record_scan("doc2") for _ in range(k)))

    # Every task appends before any task increments
    assert interleaving_repository.operations[:k] == ["append"] * k
    assert sorted(o.new_count for o in outcomes) == list(range(1, k + 1))
    assert len(await _events(interleaving_repository, "doc2")) == k
    resource = await interleaving_repository.get_resource("doc2")
    assert resource.scan_count == k


async def test_record_event_with_resource_returns_loaded_resource(seeded_repository):
    recorder = EventRecorder(seeded_repository)

    outcome, resource = await recorder.record_event_with_resource("card1", "scan")

    assert outcome.new_count == 1
    assert resource.resource_id == "card1"
