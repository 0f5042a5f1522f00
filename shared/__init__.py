"""
Shared utilities for the KV Access Gateway.

This package aggregates common building blocks consumed by the services:

- config: Service configuration via pydantic-settings
- logging: Structured logging with request correlation
- metrics: Prometheus metrics helpers
- tracing: OpenTelemetry tracing config
- errors: Canonical error types and their HTTP mapping

Do not import from service_* packages into shared/.
"""
