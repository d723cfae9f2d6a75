"""
Prometheus metrics middleware for the triage API.

Exposes /metrics with HTTP request counters and latency histograms.
AI-side business metrics are defined in llm.metrics and land in the
same default registry.
"""

import logging
import time

from fastapi import Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

# Request metrics
REQUEST_COUNT = Counter(
    "triage_http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)
REQUEST_LATENCY = Histogram(
    "triage_http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)
ACTIVE_REQUESTS = Gauge(
    "triage_http_active_requests",
    "Currently active HTTP requests",
)


def _endpoint_label(request: Request) -> str:
    """Route template rather than raw path, so ticket ids don't explode cardinality."""
    route = request.scope.get("route")
    return getattr(route, "path", request.url.path)


class MetricsMiddleware(BaseHTTPMiddleware):
    """Middleware that records HTTP request metrics."""

    async def dispatch(self, request: Request, call_next):
        ACTIVE_REQUESTS.inc()
        start = time.time()

        try:
            response = await call_next(request)
        finally:
            ACTIVE_REQUESTS.dec()

        duration = time.time() - start
        endpoint = _endpoint_label(request)

        REQUEST_COUNT.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=response.status_code,
        ).inc()
        REQUEST_LATENCY.labels(
            method=request.method,
            endpoint=endpoint,
        ).observe(duration)

        return response


async def metrics_endpoint(request: Request) -> Response:
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
