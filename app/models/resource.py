"""
app/models/resource.py

Purpose: Trackable resource model

- A document or a business card exposed behind a public QR link
- Denormalized scan/download counters (advisory, repaired by reconciliation)
- Active and tracking-enabled flags owned by the resource collaborator
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from utils.time_utils import utc_now

from app.models.tracking_event import TrackingKind


class ResourceType(str, Enum):
    DOCUMENT = "document"
    BUSINESS_CARD = "business_card"


# Stored counter field per event kind
COUNTER_FIELDS = {
    TrackingKind.SCAN: "scan_count",
    TrackingKind.DOWNLOAD: "download_count",
}


def counter_field(kind: TrackingKind) -> str:
    return COUNTER_FIELDS[TrackingKind(kind)]


class Resource(BaseModel):
    """A document or business card whose scans and downloads are counted."""

    resource_id: str = Field(..., min_length=1)
    resource_type: ResourceType = ResourceType.DOCUMENT
    owner_id: str
    owner_email: Optional[str] = None
    name: Optional[str] = None
    target_url: Optional[str] = None

    # Stored values are not trusted to be valid; reconciliation repairs them
    scan_count: int = 0
    download_count: int = 0

    active: bool = True
    tracking_enabled: bool = True

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def is_publicly_trackable(self) -> bool:
        """Both the public/active flag and the tracking flag must be set."""
        return self.active and self.tracking_enabled
