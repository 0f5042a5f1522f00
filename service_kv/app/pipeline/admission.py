"""
Admission control: load shedding in front of a concurrency limiter.
"""

from typing import Optional

from starlette.types import ASGIApp, Receive, Scope, Send

from shared.errors import Overloaded
from shared.logging import get_logger
from shared.metrics import MetricsCollector


class ConcurrencyLimiter:
    """Counts in-flight requests against a fixed limit.

    The counter is only touched from the event loop and there is no await
    between the capacity check and the increment, so admission is atomic.
    """

    def __init__(self, limit: int, metrics: Optional[MetricsCollector] = None):
        if limit < 1:
            raise ValueError("concurrency limit must be at least 1")
        self.limit = limit
        self.metrics = metrics
        self._in_flight = 0

    @property
    def in_flight(self) -> int:
        return self._in_flight

    def has_capacity(self) -> bool:
        return self._in_flight < self.limit

    def try_acquire(self) -> bool:
        """Take a slot without waiting. Returns False when saturated."""
        if self._in_flight >= self.limit:
            return False
        self._in_flight += 1
        self._publish()
        return True

    def release(self) -> None:
        if self._in_flight > 0:
            self._in_flight -= 1
        self._publish()

    def _publish(self) -> None:
        if self.metrics:
            self.metrics.set_in_flight(self._in_flight)


class LoadShedMiddleware:
    """Reject immediately with ``Overloaded`` when the limiter is saturated."""

    def __init__(self, app: ASGIApp, limiter: ConcurrencyLimiter, metrics: Optional[MetricsCollector] = None):
        self.app = app
        self.limiter = limiter
        self.metrics = metrics
        self.logger = get_logger("kv.pipeline.load_shed")

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        if not self.limiter.has_capacity():
            self.logger.warning(
                "Shedding request",
                method=scope.get("method"),
                path=scope.get("path"),
                in_flight=self.limiter.in_flight,
                limit=self.limiter.limit,
            )
            if self.metrics:
                self.metrics.record_shed()
            raise Overloaded()

        await self.app(scope, receive, send)


class ConcurrencyLimitMiddleware:
    """Hold a limiter slot from admission until the response is fully sent."""

    def __init__(self, app: ASGIApp, limiter: ConcurrencyLimiter, metrics: Optional[MetricsCollector] = None):
        self.app = app
        self.limiter = limiter
        self.metrics = metrics

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        # Never block: a saturated limiter goes back to the shedding policy.
        if not self.limiter.try_acquire():
            if self.metrics:
                self.metrics.record_shed()
            raise Overloaded()

        try:
            await self.app(scope, receive, send)
        finally:
            self.limiter.release()
