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

custom_field_mutations_total = Counter(
    "custom_field_mutations_total",
    "Custom field metadata and value mutations by resource and action",
    ["resource", "action"],
)

custom_field_deletes_total = Counter(
    "custom_field_deletes_total",
    "Custom field deletes by resource and outcome (removed or archived)",
    ["resource", "outcome"],
)


_INT_RE = re.compile(r"/\d+\b")


def resolve_http_path_label(request: Request) -> str:
    route = request.scope.get("route")
    if route is not None:
        for attr in ("path_format", "path"):
            value = getattr(route, attr, None)
            if isinstance(value, str) and value:
                return value
    return _INT_RE.sub("/{id}", request.url.path)


def observe_http_request(method: str, path: str, status: int, duration: float) -> None:
    http_requests_total.labels(method=method, path=path, status=str(status)).inc()
    http_request_duration_seconds.labels(method=method, path=path).observe(duration)


def observe_mutation(resource: str, action: str, count: int = 1) -> None:
    if count > 0:
        custom_field_mutations_total.labels(resource=resource, action=action).inc(count)


def observe_delete(resource: str, outcome: str) -> None:
    custom_field_deletes_total.labels(resource=resource, outcome=outcome).inc()


def generate_metrics_payload() -> bytes:
    return generate_latest()


def metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
