"""
Shared metrics configuration for the KV Access Gateway.
"""

from typing import Dict, Any, Optional
import threading

from prometheus_client import Counter, Histogram, Gauge, Info, CollectorRegistry, start_http_server


class MetricsCollector:
    """Centralized metrics collector for services.

    Each collector owns its registry so that several apps can live in one
    process (tests build a fresh app per case).
    """

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry if registry is not None else CollectorRegistry()
        self._metrics: Dict[str, Any] = {}
        self._lock = threading.Lock()
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up common metrics for the service."""

        self._metrics["service_info"] = Info(
            "service_info",
            "Service information",
            registry=self.registry
        )
        self._metrics["service_info"].info({
            "service": self.service_name,
            "version": "1.0.0"
        })

        # HTTP metrics
        self._metrics["http_requests_total"] = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["method", "endpoint", "status_code"],
            registry=self.registry
        )

        self._metrics["http_request_duration_seconds"] = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["method", "endpoint"],
            registry=self.registry
        )

        # Error metrics
        self._metrics["errors_total"] = Counter(
            "errors_total",
            "Total errors",
            ["error_type", "service"],
            registry=self.registry
        )

        # Admission control metrics
        self._metrics["requests_in_flight"] = Gauge(
            "requests_in_flight",
            "Requests admitted and not yet completed",
            registry=self.registry
        )

        self._metrics["requests_shed_total"] = Counter(
            "requests_shed_total",
            "Requests rejected by load shedding",
            registry=self.registry
        )

        self._metrics["requests_timed_out_total"] = Counter(
            "requests_timed_out_total",
            "Requests that exceeded the pipeline timeout",
            registry=self.registry
        )

        # Backend metrics
        self._metrics["backend_commands_total"] = Counter(
            "backend_commands_total",
            "Backing store commands issued",
            ["command", "status"],
            registry=self.registry
        )

    def get_metric(self, name: str):
        """Get a metric by name."""
        return self._metrics.get(name)

    def start_metrics_server(self, port: int = 9090):
        """Start the Prometheus exporter for this collector's registry."""
        start_http_server(port, registry=self.registry)

    def record_http_request(self, method: str, endpoint: str, status_code: int, duration: float):
        """Record HTTP request metrics."""
        self._metrics["http_requests_total"].labels(
            method=method,
            endpoint=endpoint,
            status_code=str(status_code)
        ).inc()

        self._metrics["http_request_duration_seconds"].labels(
            method=method,
            endpoint=endpoint
        ).observe(duration)

    def record_error(self, error_type: str, service: Optional[str] = None):
        """Record error metrics."""
        service_name = service or self.service_name
        self._metrics["errors_total"].labels(error_type=error_type, service=service_name).inc()

    def record_backend_command(self, command: str, status: str):
        self._metrics["backend_commands_total"].labels(command=command, status=status).inc()

    def set_in_flight(self, value: int):
        with self._lock:
            self._metrics["requests_in_flight"].set(value)

    def record_shed(self):
        self._metrics["requests_shed_total"].inc()

    def record_timeout(self):
        self._metrics["requests_timed_out_total"].inc()

    def sample(self, name: str, labels: Optional[Dict[str, str]] = None) -> Optional[float]:
        """Read the current value of a sample from this collector's registry."""
        return self.registry.get_sample_value(name, labels or {})


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service."""
    return MetricsCollector(service_name, registry)
