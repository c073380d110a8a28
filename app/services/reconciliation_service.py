"""
app/services/reconciliation_service.py

Purpose: Keep denormalized counters consistent with the tracking log

- Streams the whole event log page by page, counting per resource and kind
- Compares every resource's stored counters with the log-derived counts
- Overwrites drifted counters (any prior value: negative, inflated, zero)
- Isolates per-resource write failures; read failures abort the pass

A pass only ever derives truth from the immutable log, so it is safe to
interrupt and rerun from scratch at any time.
"""

from collections import Counter, defaultdict
from typing import AsyncIterator, Dict, List, Tuple

from app.core.exceptions import StorageUnavailableError, UpdateFailedError
from app.core.logging import get_logger
from app.models.resource import Resource
from app.models.tracking_event import TrackingKind
from app.repositories.interfaces import TrackingRepository
from app.schemas.tracking import (
    ReconciliationResult,
    ReconciliationStatus,
    ReconciliationSummary,
)
from utils.time_utils import utc_now

logger = get_logger(__name__)

EventCounts = Dict[str, Counter]


class CounterReconciler:
    """Recomputes resource counters from the event log."""

    def __init__(self, repository: TrackingRepository):
        self.repository = repository

    async def compute_counts(self) -> EventCounts:
        """
        Aggregates the event log into per-resource counts.

        Only the aggregates are held in memory; events are streamed.

        Raises:
            StorageUnavailableError: The log could not be read
        """
        counts: EventCounts = defaultdict(Counter)
        total = 0
        async for event in self.repository.list_events():
            counts[event.resource_id][event.kind] += 1
            total += 1

        logger.info(f"Aggregated {total} tracking events across {len(counts)} resources")
        return counts

    async def reconcile_all(self, dry_run: bool = False) -> AsyncIterator[ReconciliationResult]:
        """
        Reconciles every resource, yielding one result per resource.

        Each call starts a fresh pass. A second pass with no new events
        yields no changed results.

        Args:
            dry_run: Compute and report drift without writing

        Raises:
            StorageUnavailableError: Events or resources could not be read
        """
        counts = await self.compute_counts()
        async for result in self._reconcile_resources(counts, dry_run):
            yield result

    async def run(self, dry_run: bool = False) -> Tuple[ReconciliationSummary, List[ReconciliationResult]]:
        """
        Runs a full pass and builds a summary.

        Returns:
            (summary, results) with one result per resource
        """
        summary = ReconciliationSummary(started_at=utc_now(), dry_run=dry_run)
        logger.info(f"Starting counter reconciliation (dry_run={dry_run})")

        counts = await self.compute_counts()
        summary.total_scans = sum(c[TrackingKind.SCAN] for c in counts.values())
        summary.total_downloads = sum(c[TrackingKind.DOWNLOAD] for c in counts.values())

        results: List[ReconciliationResult] = []
        async for result in self._reconcile_resources(counts, dry_run):
            results.append(result)
            summary.resources_scanned += 1
            if result.changed:
                summary.resources_drifted += 1
            if result.status == ReconciliationStatus.UPDATED:
                summary.resources_updated += 1
            elif result.status == ReconciliationStatus.UPDATE_FAILED:
                summary.resources_failed += 1
            elif result.status == ReconciliationStatus.UNCHANGED:
                summary.resources_unchanged += 1

        # Whatever was not consumed by a resource belongs to no resource
        summary.orphan_events = sum(sum(c.values()) for c in counts.values())
        if summary.orphan_events:
            logger.warning(
                f"{summary.orphan_events} tracking events reference {len(counts)} unknown resources"
            )

        summary.finished_at = utc_now()
        logger.info(
            f"Reconciliation finished: {summary.resources_scanned} resources, "
            f"{summary.resources_drifted} drifted, {summary.resources_updated} updated, "
            f"{summary.resources_failed} failed",
            extra={"dry_run": dry_run}
        )
        return summary, results

    async def _reconcile_resources(self, counts: EventCounts, dry_run: bool) -> AsyncIterator[ReconciliationResult]:
        # Pops each resource's entry so leftovers identify orphan events
        async for resource in self.repository.list_resources():
            true_counts = counts.pop(resource.resource_id, Counter())
            yield await self._reconcile_resource(resource, true_counts, dry_run)

    async def _reconcile_resource(self, resource: Resource, true_counts: Counter, dry_run: bool) -> ReconciliationResult:
        result = ReconciliationResult(
            resource_id=resource.resource_id,
            previous_scan_count=resource.scan_count,
            previous_download_count=resource.download_count,
            scan_count=true_counts[TrackingKind.SCAN],
            download_count=true_counts[TrackingKind.DOWNLOAD],
            status=ReconciliationStatus.UNCHANGED,
        )

        if not result.changed:
            return result

        if dry_run:
            result.status = ReconciliationStatus.DRY_RUN
            logger.info(
                f"Drift on {resource.resource_id}: scans {result.previous_scan_count} -> {result.scan_count}, "
                f"downloads {result.previous_download_count} -> {result.download_count}",
                extra={"resource_id": resource.resource_id, "dry_run": True}
            )
            return result

        try:
            written = await self.repository.set_counters(
                resource.resource_id, result.scan_count, result.download_count
            )
            if not written:
                raise UpdateFailedError(
                    "Resource disappeared before its counters could be written",
                    resource_id=resource.resource_id,
                )
        except (StorageUnavailableError, UpdateFailedError) as e:
            result.status = ReconciliationStatus.UPDATE_FAILED
            result.error = e.message
            logger.error(
                f"Counter update failed for {resource.resource_id}: {e.message}",
                extra={"resource_id": resource.resource_id, "failure": "update_failed"}
            )
            return result

        result.status = ReconciliationStatus.UPDATED
        logger.info(
            f"Corrected {resource.resource_id}: scans {result.previous_scan_count} -> {result.scan_count}, "
            f"downloads {result.previous_download_count} -> {result.download_count}",
            extra={"resource_id": resource.resource_id}
        )
        return result
