"""
app/api/tracking.py

Purpose: Public scan and download endpoints

- QR codes point at /r/{resource_id}; a scan is recorded and the visitor
  is redirected to the resource page
- Download buttons call /resources/{resource_id}/download before serving the file
- Request metadata (user-agent, forwarded-for) is sanitized before storage
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import RedirectResponse

from app.core.config import settings
from app.core.logging import get_logger
from app.models.resource import Resource, ResourceType
from app.models.tracking_event import TrackingKind
from app.repositories.dependencies import get_event_recorder
from app.schemas.tracking import DownloadResponse
from app.services.tracking_service import EventRecorder
from utils.request_utils import build_request_metadata

logger = get_logger(__name__)

# Short public links (no API prefix)
public_router = APIRouter()
router = APIRouter()


def resolve_redirect_url(resource_id: str, resource: Optional[Resource]) -> str:
    """
    Where a scan lands: the resource's own target URL, else its public page.
    """
    if resource is not None and resource.target_url:
        return resource.target_url

    base = settings.PUBLIC_BASE_URL.rstrip("/")
    if resource is not None and resource.resource_type == ResourceType.BUSINESS_CARD:
        return f"{base}/pro/{resource_id}"
    return f"{base}/document/{resource_id}"


async def _record_scan_and_redirect(
    resource_id: str,
    request: Request,
    location: Optional[str],
    recorder: EventRecorder,
) -> RedirectResponse:
    metadata = build_request_metadata(
        request.headers,
        client_host=request.client.host if request.client else None,
        location=location,
    )
    # Redirect target comes from the resource loaded before the write
    _, resource = await recorder.record_event_with_resource(resource_id, TrackingKind.SCAN, metadata)
    return RedirectResponse(url=resolve_redirect_url(resource_id, resource), status_code=307)


@public_router.api_route("/r/{resource_id}", methods=["GET", "POST"], tags=["Tracking"])
async def short_link_scan(
    resource_id: str,
    request: Request,
    location: Optional[str] = Query(None, description="Optional coarse location"),
    recorder: EventRecorder = Depends(get_event_recorder),
):
    """
    Short public QR link. Records a scan and redirects to the resource.
    """
    return await _record_scan_and_redirect(resource_id, request, location, recorder)


@router.api_route("/resources/{resource_id}/scan", methods=["GET", "POST"])
async def track_scan(
    resource_id: str,
    request: Request,
    location: Optional[str] = Query(None, description="Optional coarse location"),
    recorder: EventRecorder = Depends(get_event_recorder),
):
    """
    Records a QR scan and redirects to the resource.

    GET is accepted as well as POST so mobile scanner apps can open the link directly.
    """
    return await _record_scan_and_redirect(resource_id, request, location, recorder)


@router.api_route(
    "/resources/{resource_id}/download",
    methods=["GET", "POST"],
    response_model=DownloadResponse,
)
async def track_download(
    resource_id: str,
    request: Request,
    location: Optional[str] = Query(None, description="Optional coarse location"),
    recorder: EventRecorder = Depends(get_event_recorder),
):
    """
    Records a download. The caller serves the file itself.
    """
    metadata = build_request_metadata(
        request.headers,
        client_host=request.client.host if request.client else None,
        location=location,
    )
    outcome = await recorder.record_download(resource_id, metadata)

    return DownloadResponse(
        success=outcome.accepted,
        resource_id=outcome.resource_id,
        event_id=outcome.event_id,
        new_count=outcome.new_count,
    )
