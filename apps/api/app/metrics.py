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

lifecycle_transitions_total = Counter(
    "lifecycle_transitions_total",
    "Client/lead lifecycle transitions by operation and outcome",
    ["operation", "outcome"],
)

lifecycle_transition_duration_seconds = Histogram(
    "lifecycle_transition_duration_seconds",
    "Client/lead lifecycle transition duration in seconds",
    ["operation"],
)

cascade_rows_deleted_total = Counter(
    "cascade_rows_deleted_total",
    "Rows removed by cascade deletion plans",
    ["table"],
)


_UUID_RE = re.compile(
    r"\b[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[1-5][0-9a-fA-F]{3}-[89abAB][0-9a-fA-F]{3}-[0-9a-fA-F]{12}\b"
)
_INT_RE = re.compile(r"/\d+\b")
_PATH_PARAM_RE = re.compile(r"\{[^{}]+\}")


def _sanitize_path(path: str) -> str:
    without_uuids = _UUID_RE.sub("{id}", path)
    return _INT_RE.sub("/{id}", without_uuids)


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


def observe_lifecycle_transition(operation: str, outcome: str, duration: float) -> None:
    lifecycle_transitions_total.labels(operation=operation, outcome=outcome).inc()
    lifecycle_transition_duration_seconds.labels(operation=operation).observe(duration)


def observe_cascade_deletions(deleted_rows: dict[str, int]) -> None:
    for table, count in deleted_rows.items():
        if count > 0:
            cascade_rows_deleted_total.labels(table=table).inc(count)


def generate_metrics_payload() -> bytes:
    return generate_latest()


def metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
