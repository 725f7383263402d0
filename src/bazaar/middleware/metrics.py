"""Prometheus metrics for HTTP traffic, cart sync and checkout."""
import time
from typing import Callable

from prometheus_client import Counter, Gauge, Histogram, generate_latest
from prometheus_client import CONTENT_TYPE_LATEST
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response


# =============================================================================
# Prometheus Metrics Definitions
# =============================================================================

# Request metrics
REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)

REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "endpoint"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_requests_active",
    "Number of active HTTP requests",
)

# Cart metrics
CART_SYNC_FAILURES = Counter(
    "cart_sync_failures_total",
    "Background cart syncs that failed and were rolled back",
    ["operation"],  # add, update_quantity, change_variant, remove
)

# Checkout metrics
CHECKOUT_COUNTER = Counter(
    "checkouts_total",
    "Checkout submissions",
    ["status"],  # success, rejected, failed
)

CHECKOUT_LATENCY = Histogram(
    "checkout_latency_seconds",
    "Checkout transaction latency in seconds",
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0],
)

ORDERS_PER_CHECKOUT = Histogram(
    "orders_per_checkout",
    "Seller orders created by one successful checkout",
    buckets=[1, 2, 3, 5, 8, 13],
)


# =============================================================================
# Metrics Middleware
# =============================================================================

class PrometheusMiddleware(BaseHTTPMiddleware):
    """Middleware to collect Prometheus metrics for all HTTP requests."""

    # Endpoints to normalize for metrics (reduce cardinality)
    ENDPOINT_PATTERNS = {
        "/api/v1/cart": "/api/v1/cart",
        "/api/v1/checkout/quote": "/api/v1/checkout/quote",
        "/api/v1/checkout": "/api/v1/checkout",
        "/api/v1/vouchers": "/api/v1/vouchers",
        "/api/v1/orders": "/api/v1/orders",
    }

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # Skip metrics endpoint to avoid recursion
        if request.url.path == "/metrics":
            return await call_next(request)

        ACTIVE_REQUESTS.inc()
        start_time = time.perf_counter()

        try:
            response = await call_next(request)
            status_code = response.status_code
        except Exception:
            status_code = 500
            raise
        finally:
            ACTIVE_REQUESTS.dec()
            latency = time.perf_counter() - start_time
            endpoint = self._normalize_endpoint(request.url.path)

            REQUEST_COUNT.labels(
                method=request.method,
                endpoint=endpoint,
                status=status_code,
            ).inc()

            REQUEST_LATENCY.labels(
                method=request.method,
                endpoint=endpoint,
            ).observe(latency)

        return response

    def _normalize_endpoint(self, path: str) -> str:
        """Normalize endpoint path to reduce metric cardinality."""
        for pattern, normalized in self.ENDPOINT_PATTERNS.items():
            if path.startswith(pattern):
                return normalized

        if path in ("/health", "/metrics"):
            return path

        return "/other"


# =============================================================================
# Metrics Endpoint
# =============================================================================

async def metrics_endpoint(request: Request) -> Response:
    """Prometheus metrics scrape endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )


# =============================================================================
# Helper Functions for Manual Metric Recording
# =============================================================================

def record_cart_sync_failure(operation: str) -> None:
    CART_SYNC_FAILURES.labels(operation=operation).inc()


def record_checkout(status: str, duration: float | None = None, orders: int = 0) -> None:
    """Record a checkout outcome, its latency and how many orders it created."""
    CHECKOUT_COUNTER.labels(status=status).inc()
    if duration is not None:
        CHECKOUT_LATENCY.observe(duration)
    if orders:
        ORDERS_PER_CHECKOUT.observe(orders)
