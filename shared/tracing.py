"""Tracing utilities built on OpenTelemetry.

Spans are always created through the API; without ``configure_tracing`` the
global provider is a no-op and they cost next to nothing.
"""

from typing import Optional, Dict, Any
import os
from contextlib import contextmanager

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.redis import RedisInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.trace import Status, StatusCode


def _build_otlp_exporter_kwargs(endpoint_override: Optional[str] = None) -> Dict[str, Any]:
    endpoint = (
        endpoint_override
        or os.getenv("OTEL_EXPORTER_OTLP_TRACES_ENDPOINT")
        or os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
        or "http://localhost:4317"
    )
    headers_env = os.getenv("OTEL_EXPORTER_OTLP_HEADERS")
    headers: Dict[str, str] = {}
    if headers_env:
        for segment in headers_env.split(","):
            if not segment or "=" not in segment:
                continue
            key, value = segment.split("=", 1)
            key = key.strip()
            if key:
                headers[key] = value.strip()

    exporter_kwargs: Dict[str, Any] = {"endpoint": endpoint}
    if headers:
        exporter_kwargs["headers"] = headers
    if endpoint.startswith("http://"):
        exporter_kwargs["insecure"] = True

    return exporter_kwargs


def configure_tracing(service_name: str, otel_exporter: Optional[str] = None, enable_console: bool = False) -> None:
    """Install an SDK tracer provider exporting over OTLP and instrument Redis."""

    resource = Resource.create({
        "service.name": service_name,
        "service.version": "1.0.0",
        "service.instance.id": os.getenv("HOSTNAME", "unknown"),
    })

    provider = TracerProvider(resource=resource)
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(**_build_otlp_exporter_kwargs(otel_exporter))))
    if enable_console:
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
    trace.set_tracer_provider(provider)

    RedisInstrumentor().instrument()


def get_tracer(name: str):
    """Get a tracer instance."""
    return trace.get_tracer(name)


@contextmanager
def trace_operation(operation_name: str, **attributes):
    """Context manager to trace an operation as the current span."""
    tracer = get_tracer(__name__)
    with tracer.start_as_current_span(operation_name, record_exception=False) as span:
        for key, value in attributes.items():
            span.set_attribute(key, value)

        try:
            yield span
        except BaseException as exc:
            span.set_status(Status(StatusCode.ERROR, str(exc)))
            span.set_attribute("error", True)
            span.set_attribute("error.type", type(exc).__name__)
            raise


def add_span_attributes(**attributes):
    """Add attributes to the current span."""
    current_span = trace.get_current_span()
    if current_span and current_span.is_recording():
        for key, value in attributes.items():
            if value is not None:
                current_span.set_attribute(key, value)
