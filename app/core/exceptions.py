from typing import Optional, Any, Dict


class QRTrackError(Exception):
    """
    Base exception for the tracking service.
    """
    def __init__(self, message: str, code: str = "INTERNAL_ERROR", status_code: int = 500, details: Optional[Any] = None):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details
        super().__init__(self.message)


def _context(resource_id: Optional[str] = None, kind: Optional[str] = None, **extra) -> Dict[str, Any]:
    details = {"resource_id": resource_id, "kind": kind}
    details.update(extra)
    return {key: value for key, value in details.items() if value is not None}


class ResourceNotFoundError(QRTrackError):
    """
    Raised when the target resource does not exist.
    """
    def __init__(self, message: str = "Resource not found", resource_id: Optional[str] = None, kind: Optional[str] = None):
        super().__init__(
            message,
            code="NOT_FOUND",
            status_code=404,
            details=_context(resource_id, kind, failure="resource_not_found"),
        )


class TrackingNotPermittedError(QRTrackError):
    """
    Raised when a resource exists but is not active or has tracking disabled.
    """
    def __init__(self, message: str = "Tracking not permitted for this resource", resource_id: Optional[str] = None, kind: Optional[str] = None):
        super().__init__(
            message,
            code="TRACKING_NOT_PERMITTED",
            status_code=403,
            details=_context(resource_id, kind, failure="tracking_not_permitted"),
        )


class AccessDeniedError(QRTrackError):
    """
    Raised when a caller is not allowed to read a resource's statistics.
    """
    def __init__(self, message: str = "Access denied", resource_id: Optional[str] = None):
        super().__init__(
            message,
            code="ACCESS_DENIED",
            status_code=403,
            details=_context(resource_id, failure="access_denied"),
        )


class ValidationError(QRTrackError):
    """
    Raised when input validation fails.
    """
    def __init__(self, message: str = "Validation error", details: Optional[Any] = None):
        super().__init__(message, code="VALIDATION_ERROR", status_code=422, details=details)


class StorageUnavailableError(QRTrackError):
    """
    Raised when the storage backend fails. Transient; callers may retry.
    """
    def __init__(self, message: str = "Storage backend unavailable", resource_id: Optional[str] = None, kind: Optional[str] = None, operation: Optional[str] = None):
        super().__init__(
            message,
            code="STORAGE_UNAVAILABLE",
            status_code=503,
            details=_context(resource_id, kind, failure="storage_unavailable", operation=operation),
        )


class UpdateFailedError(QRTrackError):
    """
    Raised when a corrected counter could not be written for one resource.
    """
    def __init__(self, message: str = "Counter update failed", resource_id: Optional[str] = None):
        super().__init__(
            message,
            code="UPDATE_FAILED",
            status_code=500,
            details=_context(resource_id, failure="update_failed"),
        )
