"""Error taxonomy for the Image Labeler service."""

from typing import Any, Optional

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from googleapiclient.errors import HttpError


class LabelerError(Exception):
    """Base error rendered as a JSON error body."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class AuthenticationError(LabelerError):
    """Missing or rejected token."""
    status_code = status.HTTP_401_UNAUTHORIZED


class BadRequestError(LabelerError):
    """Missing or malformed request fields."""
    status_code = status.HTTP_400_BAD_REQUEST


class UpstreamError(LabelerError):
    """A Google API call failed."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class ServiceUnavailableError(LabelerError):
    """A required integration is not configured."""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


def from_http_error(message: str, error: HttpError) -> LabelerError:
    """
    Convert a Drive API HttpError into a labeler error.

    A 401 from Google means the access token expired or was revoked and is
    surfaced as an authentication error; everything else is an upstream error.
    """
    reason = getattr(error, "reason", None) or str(error)
    if error.resp.status == 401:
        return AuthenticationError(message, details=reason)
    return UpstreamError(message, details=reason)


def error_body(message: str, details: Optional[Any] = None) -> dict:
    body = {"error": message}
    if details:
        body["details"] = details
    return body


async def labeler_error_handler(request: Request, exc: LabelerError) -> JSONResponse:
    headers = None
    if isinstance(exc, AuthenticationError):
        headers = {"WWW-Authenticate": "Bearer"}
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.message, exc.details),
        headers=headers
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    if request.method == "POST" and request.url.path == "/api/labels":
        message = "Missing required labeling data"
    else:
        message = "Invalid request"
    details = [
        {"loc": list(err.get("loc", [])), "msg": err.get("msg", "")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body(message, details)
    )
