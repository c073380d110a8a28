"""
app/schemas/tracking.py

Purpose: Tracking and reconciliation result schemas

- RecordOutcome returned by the event recorder
- ReconciliationResult / ReconciliationSummary produced by the reconciler
- Response models for the stats and admin endpoints
"""

from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from enum import Enum

from app.models.tracking_event import TrackingKind, TrackingEvent


class RecordOutcome(BaseModel):
    """
    Result of one accepted record_event call.
    new_count is None when the counter increment could not be confirmed.
    """
    accepted: bool = True
    resource_id: str
    kind: TrackingKind
    event_id: str
    new_count: Optional[int] = None
    counter_synced: bool = True


class ReconciliationStatus(str, Enum):
    UNCHANGED = "unchanged"
    UPDATED = "updated"
    UPDATE_FAILED = "update_failed"
    DRY_RUN = "dry_run"


class ReconciliationResult(BaseModel):
    """Per-resource outcome of a reconciliation pass. Not persisted."""
    resource_id: str
    previous_scan_count: int
    previous_download_count: int
    scan_count: int = Field(..., description="Scan count derived from the event log")
    download_count: int = Field(..., description="Download count derived from the event log")
    status: ReconciliationStatus
    error: Optional[str] = None

    @property
    def changed(self) -> bool:
        return (
            self.previous_scan_count != self.scan_count
            or self.previous_download_count != self.download_count
        )


class ReconciliationSummary(BaseModel):
    resources_scanned: int = 0
    resources_updated: int = 0
    resources_unchanged: int = 0
    resources_failed: int = 0
    resources_drifted: int = 0
    total_scans: int = 0
    total_downloads: int = 0
    orphan_events: int = 0
    dry_run: bool = False
    started_at: datetime
    finished_at: Optional[datetime] = None


class ReconcileResponse(BaseModel):
    summary: ReconciliationSummary
    results: List[ReconciliationResult] = Field(
        default_factory=list,
        description="Only resources that drifted or failed"
    )


class DownloadResponse(BaseModel):
    success: bool = True
    resource_id: str
    event_id: str
    new_count: Optional[int] = None


class EventView(BaseModel):
    """Public view of a tracking event (origin is never exposed)."""
    event_id: str
    timestamp: datetime
    user_agent: str
    location: Optional[str] = None

    @classmethod
    def from_event(cls, event: TrackingEvent) -> "EventView":
        return cls(
            event_id=event.event_id,
            timestamp=event.timestamp,
            user_agent=event.user_agent,
            location=event.location,
        )


class ResourceStats(BaseModel):
    resource_id: str
    resource_type: str
    name: Optional[str] = None
    scan_count: int
    download_count: int
    recent_scans: List[EventView] = Field(default_factory=list)
    recent_downloads: List[EventView] = Field(default_factory=list)
    created_at: datetime


class GlobalStats(BaseModel):
    total_scans: int
    total_downloads: int
    weekly_scans: int
    total_resources: int
    last_updated: datetime
