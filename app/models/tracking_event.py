"""
app/models/tracking_event.py

Purpose: Tracking event model

- One immutable record per accepted scan or download
- Append-only log, the source of truth for reconciliation
- Requester metadata is untrusted free text, stored bounded
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.core.config import settings
from utils.constants import UNKNOWN_VALUE
from utils.text_utils import sanitize_text
from utils.time_utils import utc_now


class TrackingKind(str, Enum):
    SCAN = "scan"
    DOWNLOAD = "download"


class RequestMetadata(BaseModel):
    """
    Requester metadata attached to an event.

    Values are stripped of control characters and truncated on construction,
    so every caller of the recorder stores bounded text.
    """

    user_agent: str = UNKNOWN_VALUE
    origin: str = UNKNOWN_VALUE
    location: Optional[str] = None

    @field_validator("user_agent", mode="before")
    @classmethod
    def bound_user_agent(cls, v):
        return sanitize_text(v, settings.USER_AGENT_MAX_LENGTH)

    @field_validator("origin", mode="before")
    @classmethod
    def bound_origin(cls, v):
        return sanitize_text(v, settings.ORIGIN_MAX_LENGTH)

    @field_validator("location", mode="before")
    @classmethod
    def bound_location(cls, v):
        return sanitize_text(v, settings.LOCATION_MAX_LENGTH, default=None)


class TrackingEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    event_id: str = Field(default_factory=lambda: uuid4().hex)
    kind: TrackingKind
    resource_id: str
    timestamp: datetime = Field(default_factory=utc_now)
    user_agent: str = "Unknown"
    origin: str = "Unknown"
    location: Optional[str] = None

    @classmethod
    def create(cls, resource_id: str, kind: TrackingKind, metadata: RequestMetadata) -> "TrackingEvent":
        return cls(
            kind=kind,
            resource_id=resource_id,
            user_agent=metadata.user_agent,
            origin=metadata.origin,
            location=metadata.location,
        )
