"""Prometheus metric definitions for the payment simulator."""

from prometheus_client import Counter, Histogram, generate_latest
from starlette.responses import Response


http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["service", "route", "method", "status_code"],
)
http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration seconds",
    ["service", "route", "method"],
)
charge_requests_total = Counter("charge_requests_total", "Total decoded charge requests", ["service"])
charge_outcomes_total = Counter("charge_outcomes_total", "Charge outcomes by result", ["service", "result"])


def metrics_response() -> Response:
    """Expose all registered Prometheus metrics in text format."""

    return Response(content=generate_latest(), media_type="text/plain")
