"""
Per-request timeout stage.
"""

import asyncio
import time
from typing import Optional

from starlette.types import ASGIApp, Message, Receive, Scope, Send

from shared.errors import TimedOut
from shared.logging import get_logger
from shared.metrics import MetricsCollector

from ..context import request_deadline


class TimeoutMiddleware:
    """Bound total processing time and cancel downstream work on expiry.

    The deadline is also published through ``request_deadline`` so the store
    refuses to issue a command once it has passed.
    """

    def __init__(self, app: ASGIApp, timeout_seconds: float, metrics: Optional[MetricsCollector] = None):
        self.app = app
        self.timeout_seconds = timeout_seconds
        self.metrics = metrics
        self.logger = get_logger("kv.pipeline.timeout")

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        response_started = False

        async def send_wrapper(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        token = request_deadline.set(time.monotonic() + self.timeout_seconds)
        try:
            await asyncio.wait_for(self.app(scope, receive, send_wrapper), self.timeout_seconds)
        except asyncio.TimeoutError:
            self.logger.warning(
                "Request timed out",
                method=scope.get("method"),
                path=scope.get("path"),
                timeout_seconds=self.timeout_seconds,
                response_started=response_started,
            )
            if self.metrics:
                self.metrics.record_timeout()
            if response_started:
                # Too late for a status; let the server abort the connection.
                raise
            raise TimedOut() from None
        finally:
            request_deadline.reset(token)
