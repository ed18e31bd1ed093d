"""Prometheus metrics for the application."""

import time

from prometheus_client import Counter, Gauge, Histogram, Info, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

# --- Metrics ---

APP_INFO = Info("app", "Emotions API application info")
APP_INFO.info({"version": "1.0.0", "name": "emotions_api"})

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30],
)

COMPLETION_OUTCOMES = Counter(
    "gateway_completions_total",
    "Completion gateway calls by outcome",
    ["outcome"],
)

COMPLETION_ATTEMPTS = Counter(
    "gateway_upstream_attempts_total",
    "Outbound attempts to the model provider",
    ["result"],
)

COMPLETION_DURATION = Histogram(
    "gateway_completion_duration_seconds",
    "Duration of one logical completion, retries included",
    buckets=[0.25, 0.5, 1, 2.5, 5, 10, 20, 30, 60],
)

TOKENS_USED = Counter(
    "gateway_tokens_total",
    "Tokens consumed, by direction and model",
    ["direction", "model"],
)

CIRCUIT_STATE = Gauge(
    "gateway_circuit_state",
    "Circuit breaker state (0=closed, 1=half_open, 2=open)",
)


# --- Middleware ---


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Collect HTTP request metrics for Prometheus."""

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.url.path == "/metrics":
            return await call_next(request)

        method = request.method

        start = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start

        # Unknown paths are folded together to keep cardinality bounded
        route = request.scope.get("route")
        path = getattr(route, "path", None) or "unmatched"

        REQUEST_COUNT.labels(method=method, path=path, status=response.status_code).inc()
        REQUEST_DURATION.labels(method=method, path=path).observe(duration)

        return response


def metrics_response() -> Response:
    """Generate Prometheus /metrics response."""
    return Response(
        content=generate_latest(),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
