"""
Shared error handling for the KV Access Gateway.

Every failure a handler or pipeline stage can produce is one of the
``KeyValueError`` kinds below. ``STATUS_BY_CODE`` is the only place a kind is
tied to an HTTP status and ``render_error`` is the only place an error becomes
a response.
"""

from typing import Dict, Any, Optional

from fastapi.responses import JSONResponse
from opentelemetry import trace
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response format."""

    trace_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = {}


class KeyValueError(Exception):
    """Base exception for gateway failures."""

    code = "INTERNAL_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        trace_id = None
        current_span = trace.get_current_span()
        if current_span and current_span.is_recording():
            span_context = current_span.get_span_context()
            if span_context.trace_id != 0:
                trace_id = f"{span_context.trace_id:032x}"

        return ErrorResponse(
            trace_id=trace_id,
            code=self.code,
            message=self.message,
            details=self.details
        )


class NotFound(KeyValueError):
    """Read or delete of an absent key."""

    code = "NOT_FOUND"

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Unable to find key '{key}'.", {"key": key})


class BackendError(KeyValueError):
    """Any failure talking to the backing store."""

    code = "BACKEND_ERROR"

    def __init__(self, cause: Any):
        self.cause = cause
        super().__init__(f"Unable to perform Redis operation: {cause}.")


class TimedOut(KeyValueError):
    """The request exceeded the pipeline timeout."""

    code = "TIMED_OUT"

    def __init__(self, message: str = "request timed out"):
        super().__init__(message)


class Overloaded(KeyValueError):
    """The request was shed because the concurrency limit is saturated."""

    code = "OVERLOADED"

    def __init__(self, message: str = "service is overloaded, try again later"):
        super().__init__(message)


class Unauthorized(KeyValueError):
    """Missing or invalid bearer credential on the admin sub-tree."""

    code = "UNAUTHORIZED"

    def __init__(self, message: str = "invalid or missing bearer token"):
        super().__init__(message)


class PayloadTooLarge(KeyValueError):
    """Request body larger than the configured maximum."""

    code = "PAYLOAD_TOO_LARGE"

    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(f"payload exceeds {limit} bytes", {"limit": limit})


STATUS_BY_CODE: Dict[str, int] = {
    NotFound.code: 404,
    BackendError.code: 500,
    TimedOut.code: 408,
    Overloaded.code: 503,
    Unauthorized.code: 401,
    PayloadTooLarge.code: 413,
    KeyValueError.code: 500,
}

HEADERS_BY_CODE: Dict[str, Dict[str, str]] = {
    Unauthorized.code: {"WWW-Authenticate": "Bearer"},
}


def status_for(error: KeyValueError) -> int:
    """Look up the transport status for an error kind."""
    return STATUS_BY_CODE.get(error.code, 500)


def render_error(error: KeyValueError) -> JSONResponse:
    """Render an error as its canonical HTTP response."""
    return JSONResponse(
        status_code=status_for(error),
        content=error.to_response().model_dump(),
        headers=HEADERS_BY_CODE.get(error.code),
    )
