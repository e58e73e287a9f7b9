"""Translation of service errors into HTTP responses."""

from __future__ import annotations

from fastapi import HTTPException, status

from app.services.errors import LeadDeskError

_STATUS_BY_CODE = {
    "404_LEAD_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "404_MESSAGE_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "400_LEAD_NOT_READY": status.HTTP_400_BAD_REQUEST,
    "409_MESSAGE_ALREADY_SENT": status.HTTP_409_CONFLICT,
    "429_RATE_LIMIT": status.HTTP_429_TOO_MANY_REQUESTS,
    "502_LLM_UPSTREAM": status.HTTP_502_BAD_GATEWAY,
    "502_MODEL_OUTPUT": status.HTTP_502_BAD_GATEWAY,
    "502_DELIVERY_FAILED": status.HTTP_502_BAD_GATEWAY,
    "503_DELIVERY_NOT_CONFIGURED": status.HTTP_503_SERVICE_UNAVAILABLE,
    "503_LLM_NOT_CONFIGURED": status.HTTP_503_SERVICE_UNAVAILABLE,
}


def map_error_code(code: str) -> int:
    return _STATUS_BY_CODE.get(code, status.HTTP_500_INTERNAL_SERVER_ERROR)


def to_http_error(exc: LeadDeskError, *, opaque_detail: str | None = None) -> HTTPException:
    """Build the HTTPException for a service error.

    With ``opaque_detail`` set, every non-404 failure reports that string instead
    of the underlying message.
    """
    status_code = map_error_code(exc.code)
    detail = str(exc)
    if opaque_detail and status_code != status.HTTP_404_NOT_FOUND:
        detail = opaque_detail
    return HTTPException(status_code=status_code, detail=detail)
