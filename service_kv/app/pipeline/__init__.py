"""
Request pipeline stages for the Key-Value Gateway.

Outermost first:
1. observability    - logging, metrics, tracing
   (error mapping)  - renders failures from every stage below
2. load shedding    - fail fast with 503 when the limiter is saturated
3. concurrency      - at most N requests in flight
4. timeout          - 408 after the configured duration
5. compression      - gzip on GET /{key} only
6. authorization    - bearer token on /admin only
"""

from .admission import ConcurrencyLimiter, ConcurrencyLimitMiddleware, LoadShedMiddleware
from .assembler import PIPELINE_ORDER, build_middleware
from .auth import require_admin_token
from .compression import CompressedRoute
from .observability import ErrorMappingMiddleware, ObservabilityMiddleware
from .payload import read_limited_body
from .timeout import TimeoutMiddleware

__all__ = [
    "ConcurrencyLimiter",
    "ConcurrencyLimitMiddleware",
    "LoadShedMiddleware",
    "PIPELINE_ORDER",
    "build_middleware",
    "require_admin_token",
    "CompressedRoute",
    "ErrorMappingMiddleware",
    "ObservabilityMiddleware",
    "read_limited_body",
    "TimeoutMiddleware",
]
