"""
utils/request_utils.py

Purpose: Request metadata extraction

- Reads user-agent and X-Forwarded-For from inbound requests
- Treats both as untrusted free text
- Bounding happens in RequestMetadata itself
"""

from typing import Mapping, Optional

from app.models.tracking_event import RequestMetadata
from utils.constants import USER_AGENT_HEADER, FORWARDED_FOR_HEADER


def first_forwarded_hop(forwarded_for: Optional[str]) -> Optional[str]:
    """
    Returns the first address of an X-Forwarded-For header.

    Example: "203.0.113.7, 10.0.0.1" -> "203.0.113.7"
    """
    if not forwarded_for:
        return None
    first = forwarded_for.split(",")[0].strip()
    return first or None

def build_request_metadata(
    headers: Mapping[str, str],
    client_host: Optional[str] = None,
    location: Optional[str] = None,
) -> RequestMetadata:
    """
    Builds tracking metadata from request headers.

    Args:
        headers: Request headers (case-insensitive mapping)
        client_host: Socket peer address, used when no forwarded header exists
        location: Optional coarse location supplied by the caller

    Returns:
        RequestMetadata safe to store
    """
    return RequestMetadata(
        user_agent=headers.get(USER_AGENT_HEADER),
        origin=first_forwarded_hop(headers.get(FORWARDED_FOR_HEADER)) or client_host,
        location=location,
    )
