"""
CareLink Service — Domain error taxonomy

Service functions raise these; the API layer renders them as
{"detail": ...} with the mapped HTTP status.
"""
from fastapi import Request, status
from fastapi.responses import JSONResponse


class ServiceError(Exception):
    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ValidationError(ServiceError):
    """Malformed or out-of-range input. Caller-fixable, never retried."""
    status_code = status.HTTP_400_BAD_REQUEST


class NotFound(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND


class Forbidden(ServiceError):
    status_code = status.HTTP_403_FORBIDDEN


class Conflict(ServiceError):
    """State-machine violation. Caller must re-fetch state before retrying."""
    status_code = status.HTTP_409_CONFLICT


class TransientConflict(ServiceError):
    """Concurrent-write collision that survived the bounded retry loop."""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, detail: str = "The resource is busy. Please try again."):
        super().__init__(detail)


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    headers = {"Retry-After": "1"} if isinstance(exc, TransientConflict) else None
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=headers)
