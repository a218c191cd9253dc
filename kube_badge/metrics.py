"""
Prometheus metrics for kube-badge.
"""

import time
from typing import Callable

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from starlette.requests import Request
from starlette.responses import Response
from starlette.middleware.base import BaseHTTPMiddleware

# =============================================================================
# METRICS DEFINITIONS
# =============================================================================

cluster_queries_total = Counter(
    "kube_badge_cluster_queries_total",
    "Total list calls sent to the API server",
    ["resource", "result"],
)

# HTTP request metrics for middleware
http_requests_total = Counter(
    "kube_badge_http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

http_request_duration_seconds = Histogram(
    "kube_badge_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)


# =============================================================================
# MIDDLEWARE
# =============================================================================

UNMATCHED_PATH = "unmatched"


def route_label(request: Request) -> str:
    """Route template the request matched, so label values stay bounded."""
    route = request.scope.get("route")
    return getattr(route, "path", None) or UNMATCHED_PATH


class MetricsMiddleware(BaseHTTPMiddleware):
    """Tracks request count and duration per route."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path == "/metrics":
            return await call_next(request)

        start = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start

        # The router fills scope["route"] during call_next
        path = route_label(request)
        http_requests_total.labels(
            method=request.method, path=path, status=response.status_code
        ).inc()
        http_request_duration_seconds.labels(method=request.method, path=path).observe(duration)

        return response


def metrics_middleware(app):
    """Add Prometheus metrics middleware to a FastAPI app."""
    app.add_middleware(MetricsMiddleware)


# =============================================================================
# RESPONSE HELPER
# =============================================================================

def get_metrics_response() -> Response:
    """Return Prometheus metrics in text exposition format."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
