"""
Observability and error-mapping stages.

``ObservabilityMiddleware`` is the outermost stage; ``ErrorMappingMiddleware``
sits directly inside it, so every request is logged with the status the
client actually received.
"""

import time
from typing import Optional

from starlette.types import ASGIApp, Message, Receive, Scope, Send

from shared.errors import KeyValueError, render_error
from shared.logging import clear_context, get_logger, set_request_id
from shared.metrics import MetricsCollector
from shared.tracing import add_span_attributes, trace_operation


def route_template(scope: Scope) -> str:
    """Return the matched route's path template, or ``unmatched``.

    Raw paths embed keys, so they are never used as metric labels.
    """
    route = scope.get("route")
    return getattr(route, "path", None) or "unmatched"


class ObservabilityMiddleware:
    """Request logging, metrics and tracing. Never alters the exchange."""

    def __init__(self, app: ASGIApp, metrics: Optional[MetricsCollector] = None):
        self.app = app
        self.metrics = metrics
        self.logger = get_logger("kv.pipeline.observability")

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        method = scope.get("method", "")
        path = scope.get("path", "")
        request_id = set_request_id()
        status_code = 500

        async def send_wrapper(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
            await send(message)

        start_time = time.perf_counter()
        self.logger.debug("HTTP request started", method=method, path=path)
        try:
            with trace_operation(f"HTTP {method}", **{"http.method": method, "http.target": path}):
                add_span_attributes(request_id=request_id)
                await self.app(scope, receive, send_wrapper)
                add_span_attributes(**{"http.status_code": status_code, "http.route": route_template(scope)})
        finally:
            self._record(scope, method, path, status_code, time.perf_counter() - start_time)
            clear_context()

    def _record(self, scope: Scope, method: str, path: str, status_code: int, duration: float) -> None:
        try:
            self.logger.info(
                "HTTP request completed",
                method=method,
                path=path,
                status_code=status_code,
                duration_ms=round(duration * 1000, 2),
            )
            if self.metrics:
                self.metrics.record_http_request(method, route_template(scope), status_code, duration)
        except Exception as e:
            # Recording must not fail the request.
            self.logger.warning("Failed to record request", error=str(e))


class ErrorMappingMiddleware:
    """Turn errors raised by inner stages and handlers into responses."""

    def __init__(self, app: ASGIApp, metrics: Optional[MetricsCollector] = None):
        self.app = app
        self.metrics = metrics
        self.logger = get_logger("kv.pipeline.errors")

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

        try:
            await self.app(scope, receive, send_wrapper)
        except KeyValueError as exc:
            if response_started:
                raise
            self.logger.info("Request failed", code=exc.code, message=exc.message)
            if self.metrics:
                self.metrics.record_error(exc.code)
            await render_error(exc)(scope, receive, send)
        except Exception as exc:
            if response_started:
                raise
            self.logger.error("Unhandled exception", error=str(exc), exc_info=True)
            if self.metrics:
                self.metrics.record_error(KeyValueError.code)
            await render_error(KeyValueError(f"Unhandled internal error: {exc}"))(scope, receive, send)
