from __future__ import annotations

import re

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.requests import Request


http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)

scope_denied_total = Counter(
    "salescrm_scope_denied_total",
    "Requests rejected by the owner scope resolver or access policy",
    ["resource", "role"],
)

discarded_fields_total = Counter(
    "salescrm_discarded_fields_total",
    "Mutation fields silently dropped by field-level policy",
    ["resource"],
)

ownership_cascades_total = Counter(
    "salescrm_ownership_cascades_total",
    "Ownership graph cascades by operation",
    ["operation"],
)

transfers_total = Counter(
    "salescrm_transfers_total",
    "Completed transfers by type",
    ["transfer_type"],
)

rate_limited_total = Counter(
    "salescrm_rate_limited_total",
    "Mutations rejected by the per-user rate limiter",
    ["route_group"],
)

transferred_records_total = Counter(
    "salescrm_transferred_records_total",
    "Records moved by transfers",
    ["transfer_type"],
)


_UUID_RE = re.compile(
    r"\b[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[1-5][0-9a-fA-F]{3}-[89abAB][0-9a-fA-F]{3}-[0-9a-fA-F]{12}\b"
)
_PATH_PARAM_RE = re.compile(r"\{[^{}]+\}")


def _sanitize_path(path: str) -> str:
    return _UUID_RE.sub("{id}", path)


def resolve_http_path_label(request: Request) -> str:
    route = request.scope.get("route")
    if route is not None:
        route_path = getattr(route, "path_format", None) or getattr(route, "path", None)
        if isinstance(route_path, str) and route_path:
            return _PATH_PARAM_RE.sub("{id}", route_path)
    return _sanitize_path(request.url.path)


def observe_http_request(method: str, path: str, status: int, duration: float) -> None:
    http_requests_total.labels(method=method, path=path, status=str(status)).inc()
    http_request_duration_seconds.labels(method=method, path=path).observe(duration)


def observe_scope_denied(resource: str, role: str) -> None:
    scope_denied_total.labels(resource=resource, role=role).inc()


def observe_discarded_fields(resource: str, count: int) -> None:
    if count > 0:
        discarded_fields_total.labels(resource=resource).inc(count)


def observe_ownership_cascade(operation: str) -> None:
    ownership_cascades_total.labels(operation=operation).inc()


def observe_transfer(transfer_type: str, moved_count: int) -> None:
    transfers_total.labels(transfer_type=transfer_type).inc()
    if moved_count > 0:
        transferred_records_total.labels(transfer_type=transfer_type).inc(moved_count)


def observe_rate_limited(route_group: str) -> None:
    rate_limited_total.labels(route_group=route_group).inc()


def generate_metrics_payload() -> bytes:
    return generate_latest()


def metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
