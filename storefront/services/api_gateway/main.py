"""Public HTTP entrypoint for the order-verification workflow.

`POST /api/order-verification` accepts the tagged action bodies used by the
checkout, tracking and history pages. REST routes expose the same lookups plus
the admin console operations (API key protected).
"""

from contextlib import asynccontextmanager
from time import perf_counter
from uuid import uuid4

import redis
from fastapi import FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from storefront.common.config import settings
from storefront.common.db import Base, SessionLocal, engine
from storefront.common.errors import CooldownActive, StorefrontError, Unauthorized
from storefront.common.logging import configure_logging, logger, trace_id_ctx
from storefront.common.metrics import http_request_duration_seconds, http_requests_total, metrics_response
from storefront.common.startup import log_startup_config
from storefront.common.tracing import instrument_app, setup_tracing
from storefront.services.api_gateway.actions import ActionRequest, GetOrderHistory, TrackOrder
from storefront.services.api_gateway.handlers import build_handlers, order_json
from storefront.services.orders.schemas import OrderStatusUpdate

configure_logging()
setup_tracing(settings.service_name)
log_startup_config(
    settings.service_name,
    [
        "SERVICE_NAME",
        "DATABASE_URL",
        "REDIS_URL",
        "EMAIL_API_URL",
        "EMAIL_API_KEY",
        "ORDER_HISTORY_REQUIRES_VERIFICATION",
    ],
)
rdb = redis.Redis.from_url(settings.redis_url, decode_responses=True)
handlers = build_handlers(SessionLocal, rdb=rdb)


@asynccontextmanager
async def lifespan(_: FastAPI):
    """Optionally create tables for local SQLite runs; production uses Alembic."""

    if settings.create_schema_on_startup:
        Base.metadata.create_all(engine)
    yield


app = FastAPI(title="Storefront Order Verification", lifespan=lifespan)
instrument_app(app)


@app.middleware("http")
async def metrics_middleware(request: Request, call_next):
    """Record request count and latency, and bind a trace id for logging."""

    start = perf_counter()
    route = request.url.path
    method = request.method
    status_code = 500
    trace_id_ctx.set(request.headers.get("x-correlation-id") or str(uuid4()))
    try:
        response = await call_next(request)
        status_code = response.status_code
        route_obj = request.scope.get("route")
        if route_obj is not None and getattr(route_obj, "path", None):
            route = route_obj.path
        return response
    finally:
        elapsed = max(0.0, perf_counter() - start)
        http_request_duration_seconds.labels(
            service=settings.service_name,
            route=route,
            method=method,
        ).observe(elapsed)
        http_requests_total.labels(
            service=settings.service_name,
            route=route,
            method=method,
            status_code=str(status_code),
        ).inc()


@app.exception_handler(StorefrontError)
async def storefront_error_handler(_: Request, exc: StorefrontError):
    """Map domain errors to the uniform failure body."""

    body = {"success": False, "message": exc.public_message}
    if isinstance(exc, CooldownActive):
        body["cooldownRemaining"] = exc.seconds_remaining
    if exc.status_code >= 500:
        logger.error("request_failed error_type=%s error=%s", type(exc).__name__, exc)
    return JSONResponse(status_code=exc.status_code, content=body)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(_: Request, exc: RequestValidationError):
    """Report malformed bodies in the same shape as domain errors."""

    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"Invalid request: {field} {first.get('msg', '')}".strip()
    return JSONResponse(status_code=400, content={"success": False, "message": message})


@app.exception_handler(Exception)
async def unexpected_error_handler(_: Request, exc: Exception):
    """Never leak stack traces to clients."""

    logger.exception("unhandled_error error=%s", exc)
    return JSONResponse(status_code=500, content={"success": False, "message": "Something went wrong"})


@app.post("/api/order-verification")
async def order_verification(req: ActionRequest, x_api_key: str | None = Header(default=None)):
    """Single action endpoint used by the storefront pages."""

    return await handlers.handle(req.root, x_api_key=x_api_key)


@app.get("/orders/{tracking_id}")
def track_order(tracking_id: str):
    """Look up one order by its tracking id."""

    return handlers.track_order(TrackOrder(action="track-order", tracking_id=tracking_id))


@app.get("/orders")
def order_history(email: str):
    """List orders for an email, newest first."""

    return handlers.order_history(GetOrderHistory(action="get-order-history", email=email))


def enforce_api_key(x_api_key: str | None) -> None:
    """Reject requests that do not provide the configured API key."""

    if not handlers.is_admin(x_api_key):
        raise Unauthorized()


@app.get("/admin/orders")
def admin_list_orders(status: str | None = None, limit: int = 100, x_api_key: str | None = Header(default=None)):
    """Admin console order table."""

    enforce_api_key(x_api_key)
    orders = handlers.admin.list_orders(status=status, limit=min(max(limit, 1), 500))
    return {"success": True, "orders": [order_json(order) for order in orders]}


@app.patch("/admin/orders/{tracking_id}")
async def admin_update_order(tracking_id: str, req: OrderStatusUpdate, x_api_key: str | None = Header(default=None)):
    """Change order status (and optionally payment status), emailing the customer."""

    enforce_api_key(x_api_key)
    order = await handlers.admin.update_status(
        tracking_id,
        req.status,
        payment_status=req.payment_status,
        notify=req.notify,
    )
    return {"success": True, "order": order_json(order)}


@app.delete("/admin/orders/{tracking_id}")
def admin_delete_order(tracking_id: str, x_api_key: str | None = Header(default=None)):
    """Hard delete one order line."""

    enforce_api_key(x_api_key)
    handlers.admin.delete_order(tracking_id)
    return {"success": True}


@app.get("/metrics")
def metrics():
    """Prometheus scrape endpoint."""

    return metrics_response()


@app.get("/health")
def health():
    """Container health probe endpoint."""

    return {"ok": True}

