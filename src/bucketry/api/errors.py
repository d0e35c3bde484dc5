"""Bucketry API error handling.

The serving layer is the single place where storage outcomes become HTTP
statuses:

- InvalidExpiryError -> 400 (missing or malformed expires)
- InvalidObjectPathError -> 404 (bad bucket/path)
- ObjectNotFoundError -> 404
- ForbiddenError -> 403 (signature mismatch or expired URL)
- any other ObjectStorageError -> 500

Error bodies are a JSON envelope {code, message, request_id}; responses to
HEAD requests carry no body.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

from fastapi import Request, Response
from fastapi.responses import JSONResponse

from bucketry.storage.errors import (
    ForbiddenError,
    InvalidExpiryError,
    InvalidObjectPathError,
    InvalidRequestError,
    ObjectNotFoundError,
    ObjectStorageError,
)

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-Id"


class BucketryHttpError(Exception):
    """Application-level HTTP error raised by the API layer itself.

    Attributes:
        status_code: HTTP status code (e.g., 413).
        code: Machine-readable error code.
        message: Human-readable error message.
    """

    def __init__(self, status_code: int, code: str, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message


def _get_request_id(request: Request) -> str:
    """Return the request ID set by RequestIdMiddleware, or a fresh one."""
    request_id: str | None = getattr(request.state, "request_id", None)
    if request_id is not None:
        return str(request_id)

    header_id: str | None = request.headers.get(REQUEST_ID_HEADER)
    if header_id:
        return header_id

    return str(uuid.uuid4())


def make_error_response(
    request: Request,
    *,
    code: str,
    message: str,
    http_status: int,
) -> Response:
    """Build the error response for a request.

    Args:
        request: The incoming request (for request_id and method).
        code: Machine-readable error code (e.g., "FORBIDDEN").
        message: Human-readable error message.
        http_status: HTTP status code.

    Returns:
        JSONResponse with the error envelope, or an empty Response for HEAD.
    """
    request_id = _get_request_id(request)

    if request.method == "HEAD":
        response: Response = Response(status_code=http_status)
    else:
        body: dict[str, Any] = {
            "code": code,
            "message": message,
            "request_id": request_id,
        }
        response = JSONResponse(status_code=http_status, content=body)

    response.headers[REQUEST_ID_HEADER] = request_id
    return response


def status_for_storage_error(exc: ObjectStorageError) -> tuple[int, str]:
    """Map a storage error to (HTTP status, error code)."""
    if isinstance(exc, InvalidExpiryError):
        return 400, "INVALID_EXPIRES"
    if isinstance(exc, InvalidObjectPathError):
        return 404, "INVALID_PATH"
    if isinstance(exc, ObjectNotFoundError):
        return 404, "NOT_FOUND"
    if isinstance(exc, ForbiddenError):
        return 403, "FORBIDDEN"
    if isinstance(exc, InvalidRequestError):
        return 400, "INVALID_REQUEST"
    return 500, "INTERNAL_ERROR"


async def storage_error_handler(request: Request, exc: Exception) -> Response:
    """FastAPI exception handler for ObjectStorageError."""
    assert isinstance(exc, ObjectStorageError)

    http_status, code = status_for_storage_error(exc)
    if http_status == 500:
        logger.error("Storage failure on %s %s: %s", request.method, request.url.path, exc)
        message = "Internal storage error"
    else:
        if http_status == 403:
            logger.warning(
                "Rejected signed request %s %s: %s",
                request.method,
                request.url.path,
                exc.message,
            )
        message = exc.message

    return make_error_response(request, code=code, message=message, http_status=http_status)


async def bucketry_http_error_handler(request: Request, exc: Exception) -> Response:
    """FastAPI exception handler for BucketryHttpError."""
    assert isinstance(exc, BucketryHttpError)

    return make_error_response(
        request,
        code=exc.code,
        message=exc.message,
        http_status=exc.status_code,
    )


async def generic_exception_handler(request: Request, exc: Exception) -> Response:
    """Catch-all handler: log the failure, never leak internals to the client."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return make_error_response(
        request,
        code="INTERNAL_ERROR",
        message="Internal server error",
        http_status=500,
    )
