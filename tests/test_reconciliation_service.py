import pytest

from app.core.exceptions import StorageUnavailableError
from app.models.tracking_event import RequestMetadata, TrackingEvent, TrackingKind
from app.schemas.tracking import ReconciliationStatus
from app.services.reconciliation_service import CounterReconciler
from app.services.tracking_service import EventRecorder

pytestmark = pytest.mark.asyncio


async def _collect(reconciler, **kwargs):
    return {result.resource_id: result async for result in reconciler.reconcile_all(**kwargs)}


async def _append(repository, resource_id, kind, n):
    for _ in range(n):
        await repository.append_event(TrackingEvent(resource_id=resource_id, kind=kind))


async def test_three_scans_reconcile_to_three(seeded_repository):
    recorder = EventRecorder(seeded_repository)
    for agent in ("agent-a", "agent-b", "agent-c"):
        await recorder.record_scan("doc1", RequestMetadata(user_agent=agent))

    results = await _collect(CounterReconciler(seeded_repository))

    resource = await seeded_repository.get_resource("doc1")
    assert resource.scan_count == 3
    assert results["doc1"].status == ReconciliationStatus.UNCHANGED
    events = [
        e async for e in seeded_repository.list_events("doc1")
        if e.kind == TrackingKind.SCAN
    ]
    assert len(events) == 3


async def test_corrupted_counter_is_overwritten_with_log_count(seeded_repository):
    await seeded_repository.set_counters("doc2", scan_count=0, download_count=100)
    await _append(seeded_repository, "doc2", TrackingKind.DOWNLOAD, 2)

    results = await _collect(CounterReconciler(seeded_repository))

    resource = await seeded_repository.get_resource("doc2")
    assert resource.download_count == 2
    assert results["doc2"].status == ReconciliationStatus.UPDATED
    assert results["doc2"].previous_download_count == 100
    assert results["doc2"].download_count == 2


@pytest.mark.parametrize("stored_scans,stored_downloads", [(-5, -1), (999, 3), (0, 0)])
async def test_any_prior_value_is_replaced_by_truth(seeded_repository, stored_scans, stored_downloads):
    await seeded_repository.set_counters("doc1", stored_scans, stored_downloads)
    await _append(seeded_repository, "doc1", TrackingKind.SCAN, 4)
    await _append(seeded_repository, "doc1", TrackingKind.DOWNLOAD, 1)

    await _collect(CounterReconciler(seeded_repository))

    resource = await seeded_repository.get_resource("doc1")
    assert resource.scan_count == 4
    assert resource.download_count == 1


async def test_resources_without_events_reset_to_zero(seeded_repository):
    await seeded_repository.set_counters("card1", 7, 7)

    results = await _collect(CounterReconciler(seeded_repository))

    resource = await seeded_repository.get_resource("card1")
    assert (resource.scan_count, resource.download_count) == (0, 0)
    assert results["card1"].status == ReconciliationStatus.UPDATED


async def test_one_result_per_resource(seeded_repository):
    results = await _collect(CounterReconciler(seeded_repository))

    assert set(results) == {"doc1", "doc2", "card1", "inactive", "untracked"}


async def test_second_pass_is_idempotent(seeded_repository):
    await seeded_repository.set_counters("doc1", 10, 10)
    await _append(seeded_repository, "doc2", TrackingKind.SCAN, 3)
    reconciler = CounterReconciler(seeded_repository)

    await _collect(reconciler)
    second = await _collect(reconciler)

    assert all(not r.changed for r in second.values())
    assert all(r.status == ReconciliationStatus.UNCHANGED for r in second.values())


async def test_write_failure_is_isolated_to_one_resource(seeded_repository):
    await seeded_repository.set_counters("doc1", 5, 0)
    await seeded_repository.set_counters("doc2", 5, 0)
    seeded_repository.fail_set_counters_for = {"doc1"}

    results = await _collect(CounterReconciler(seeded_repository))

    assert results["doc1"].status == ReconciliationStatus.UPDATE_FAILED
    assert results["doc1"].error
    assert results["doc2"].status == ReconciliationStatus.UPDATED
    assert (await seeded_repository.get_resource("doc1")).scan_count == 5
    assert (await seeded_repository.get_resource("doc2")).scan_count == 0


async def test_read_failure_aborts_the_pass(seeded_repository):
    await seeded_repository.set_counters("doc1", 5, 0)
    seeded_repository.fail_list_events = True

    with pytest.raises(StorageUnavailableError):
        await _collect(CounterReconciler(seeded_repository))

    assert (await seeded_repository.get_resource("doc1")).scan_count == 5


async def test_dry_run_reports_drift_without_writing(seeded_repository):
    await seeded_repository.set_counters("doc1", 9, 0)

    summary, results = await CounterReconciler(seeded_repository).run(dry_run=True)

    by_id = {r.resource_id: r for r in results}
    assert by_id["doc1"].status == ReconciliationStatus.DRY_RUN
    assert by_id["doc1"].scan_count == 0
    assert summary.dry_run is True
    assert summary.resources_drifted == 1
    assert summary.resources_updated == 0
    assert (await seeded_repository.get_resource("doc1")).scan_count == 9


async def test_summary_counts_totals_and_orphans(seeded_repository):
    await _append(seeded_repository, "doc1", TrackingKind.SCAN, 3)
    await _append(seeded_repository, "doc2", TrackingKind.DOWNLOAD, 2)
    await _append(seeded_repository, "deleted-doc", TrackingKind.SCAN, 4)
    seeded_repository.fail_set_counters_for = {"doc2"}

    summary, results = await CounterReconciler(seeded_repository).run()

    assert summary.resources_scanned == 5
    assert summary.total_scans == 7
    assert summary.total_downloads == 2
    assert summary.orphan_events == 4
    assert summary.resources_drifted == 2
    assert summary.resources_updated == 1
    assert summary.resources_failed == 1
    assert summary.resources_unchanged == 3
    assert summary.finished_at >= summary.started_at
    assert len(results) == 5


async def test_reconcile_all_is_lazy(seeded_repository):
    await seeded_repository.set_counters("card1", 1, 0)
    await seeded_repository.set_counters("doc1", 1, 0)
    reconciler = CounterReconciler(seeded_repository)

    iterator = reconciler.reconcile_all()
    first = await iterator.__anext__()
    await iterator.aclose()

    # Resources are streamed in id order; only the first one was reconciled
    assert first.resource_id == "card1"
    assert (await seeded_repository.get_resource("card1")).scan_count == 0
    assert (await seeded_repository.get_resource("doc1")).scan_count == 1
