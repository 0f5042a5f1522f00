"""
Per-request context shared by every handler.
"""

import time
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from shared.config import Settings
from shared.errors import TimedOut

from .store import KeyValueStore

# Monotonic deadline of the current request, set by the timeout stage.
request_deadline: ContextVar[Optional[float]] = ContextVar("request_deadline", default=None)


@dataclass(frozen=True)
class RequestContext:
    """Read-only bag injected once at assembly time."""

    store: KeyValueStore
    settings: Settings


def get_context(request: Request) -> RequestContext:
    """FastAPI dependency returning the app's request context."""
    return request.app.state.context


def check_deadline() -> None:
    """Raise ``TimedOut`` if the current request's deadline has passed."""
    deadline = request_deadline.get()
    if deadline is not None and time.monotonic() >= deadline:
        raise TimedOut()
