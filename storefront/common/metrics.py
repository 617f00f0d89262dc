"""Prometheus metric definitions for the storefront services."""

from prometheus_client import Counter, Histogram, generate_latest
from starlette.responses import Response


passcodes_issued_total = Counter("passcodes_issued_total", "Total passcodes issued", ["service"])
passcode_cooldown_rejections_total = Counter(
    "passcode_cooldown_rejections_total",
    "Passcode issue requests rejected by the per-identity cooldown",
    ["service"],
)
passcode_verifications_total = Counter(
    "passcode_verifications_total",
    "Passcode verification attempts by outcome",
    ["service", "outcome"],
)
orders_created_total = Counter("orders_created_total", "Total checkouts materialized", ["service"])
order_lines_created_total = Counter("order_lines_created_total", "Total order lines persisted", ["service"])
order_rejections_total = Counter(
    "order_rejections_total",
    "Order creation attempts rejected before persistence",
    ["service", "reason"],
)
order_status_changes_total = Counter(
    "order_status_changes_total",
    "Admin order status changes",
    ["service", "status"],
)
notifications_total = Counter(
    "notifications_total",
    "Notification dispatch attempts",
    ["service", "kind", "outcome"],
)
notification_latency_seconds = Histogram(
    "notification_latency_seconds",
    "Email channel round-trip seconds",
    ["service", "kind"],
)
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


def metrics_response() -> Response:
    """Expose all registered Prometheus metrics in text format."""

    return Response(content=generate_latest(), media_type="text/plain")
