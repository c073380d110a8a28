"""
app/services/tracking_service.py

Purpose: Record scans and downloads

- Validates that the target resource exists and is publicly trackable
- Appends one immutable tracking event per accepted request
- Atomically bumps the resource's denormalized counter

Write order is append-then-increment. A failure between the two leaves the
counter one short, which the counter reconciler repairs from the log. The log
itself can never be rebuilt from the counter.
"""

from typing import Optional, Tuple, Union

from app.core.exceptions import (
    ResourceNotFoundError,
    StorageUnavailableError,
    TrackingNotPermittedError,
    ValidationError,
)
from app.core.logging import get_logger
from app.models.resource import Resource
from app.models.tracking_event import RequestMetadata, TrackingEvent, TrackingKind
from app.repositories.interfaces import TrackingRepository
from app.schemas.tracking import RecordOutcome

logger = get_logger(__name__)


def parse_kind(kind: Union[TrackingKind, str]) -> TrackingKind:
    """
    Normalizes a tracking kind.

    Raises:
        ValidationError: If kind is not "scan" or "download"
    """
    try:
        return TrackingKind(kind)
    except ValueError:
        raise ValidationError(
            f"Unknown tracking kind: {kind!r}",
            details={"kind": str(kind), "allowed": [k.value for k in TrackingKind]},
        ) from None


class EventRecorder:
    """Records tracking events against a storage repository."""

    def __init__(self, repository: TrackingRepository):
        self.repository = repository

    async def record_event(
        self,
        resource_id: str,
        kind: Union[TrackingKind, str],
        metadata: Optional[RequestMetadata] = None,
    ) -> RecordOutcome:
        """
        Records one scan or download.

        Args:
            resource_id: Target resource id
            kind: "scan" or "download"
            metadata: Requester metadata, bounded by RequestMetadata

        Returns:
            RecordOutcome with the new counter value

        Raises:
            ValidationError: Unknown kind
            ResourceNotFoundError: No such resource (nothing written)
            TrackingNotPermittedError: Resource inactive or tracking disabled (nothing written)
            StorageUnavailableError: The event could not be appended (nothing written)
        """
        outcome, _ = await self.record_event_with_resource(resource_id, kind, metadata)
        return outcome

    async def record_event_with_resource(
        self,
        resource_id: str,
        kind: Union[TrackingKind, str],
        metadata: Optional[RequestMetadata] = None,
    ) -> Tuple[RecordOutcome, Resource]:
        """
        Same as record_event, also returning the resource as loaded before the write.

        Callers that need resource fields afterwards (redirect targets) use it
        instead of a second read that could fail after the event is stored.
        """
        kind = parse_kind(kind)
        metadata = metadata or RequestMetadata()

        resource = await self.repository.get_resource(resource_id)
        if resource is None:
            logger.info(
                "Tracking rejected: resource not found",
                extra={"resource_id": resource_id, "kind": kind.value}
            )
            raise ResourceNotFoundError(resource_id=resource_id, kind=kind.value)

        if not resource.is_publicly_trackable:
            logger.info(
                "Tracking rejected: resource not trackable",
                extra={
                    "resource_id": resource_id,
                    "kind": kind.value,
                    "active": resource.active,
                    "tracking_enabled": resource.tracking_enabled,
                }
            )
            raise TrackingNotPermittedError(resource_id=resource_id, kind=kind.value)

        event = TrackingEvent.create(resource_id, kind, metadata)
        await self.repository.append_event(event)

        try:
            new_count = await self.repository.increment_counter(resource_id, kind)
        except StorageUnavailableError as e:
            logger.warning(
                f"Event recorded but counter increment failed: {e.message}",
                extra={"resource_id": resource_id, "kind": kind.value, "event_id": event.event_id}
            )
            new_count = None
        else:
            if new_count is None:
                logger.warning(
                    "Event recorded but resource vanished before increment",
                    extra={"resource_id": resource_id, "kind": kind.value, "event_id": event.event_id}
                )

        logger.info(
            f"Recorded {kind.value} for {resource_id} (count={new_count})",
            extra={"resource_id": resource_id, "kind": kind.value, "event_id": event.event_id}
        )

        outcome = RecordOutcome(
            accepted=True,
            resource_id=resource_id,
            kind=kind,
            event_id=event.event_id,
            new_count=new_count,
            counter_synced=new_count is not None,
        )
        return outcome, resource

    async def record_scan(self, resource_id: str, metadata: Optional[RequestMetadata] = None) -> RecordOutcome:
        return await self.record_event(resource_id, TrackingKind.SCAN, metadata)

    async def record_download(self, resource_id: str, metadata: Optional[RequestMetadata] = None) -> RecordOutcome:
        return await self.record_event(resource_id, TrackingKind.DOWNLOAD, metadata)
