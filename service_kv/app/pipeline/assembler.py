"""
Composition of the request pipeline.

The app-wide stages are one fixed list, outermost first. Starlette wraps the
first entry around everything after it, so list order is call order.
Compression and authorization are scoped to their route groups instead (see
``app.routes``).
"""

from typing import List, Optional

from starlette.middleware import Middleware

from shared.config import Settings
from shared.metrics import MetricsCollector

from .admission import ConcurrencyLimiter, ConcurrencyLimitMiddleware, LoadShedMiddleware
from .observability import ErrorMappingMiddleware, ObservabilityMiddleware
from .timeout import TimeoutMiddleware

PIPELINE_ORDER = (
    ObservabilityMiddleware,
    ErrorMappingMiddleware,
    LoadShedMiddleware,
    ConcurrencyLimitMiddleware,
    TimeoutMiddleware,
)


def build_middleware(
    settings: Settings,
    limiter: ConcurrencyLimiter,
    metrics: Optional[MetricsCollector] = None,
) -> List[Middleware]:
    """Build the ordered middleware list for the app."""
    options = {
        ObservabilityMiddleware: {"metrics": metrics},
        ErrorMappingMiddleware: {"metrics": metrics},
        LoadShedMiddleware: {"limiter": limiter, "metrics": metrics},
        ConcurrencyLimitMiddleware: {"limiter": limiter, "metrics": metrics},
        TimeoutMiddleware: {"timeout_seconds": settings.timeout_seconds, "metrics": metrics},
    }
    return [Middleware(stage, **options[stage]) for stage in PIPELINE_ORDER]
