from __future__ import annotations

from flask import Blueprint, Response
from prometheus_client import Counter, generate_latest

metrics_blueprint = Blueprint("metrics_bp", __name__)

CONTENT_TYPE_LATEST = "text/plain; version=0.0.4; charset=utf-8"

UPSTREAM_REQUESTS = Counter(
    "tunebox_upstream_requests_total",
    "Spotify Web API calls issued by the catalog adapter.",
    ["operation", "outcome"],
)
UPSTREAM_RETRIES = Counter(
    "tunebox_upstream_retries_total",
    "Spotify Web API calls retried after a rate-limit response.",
    ["operation"],
)
FALLBACK_SERVED = Counter(
    "tunebox_fallback_served_total",
    "Responses answered from the fallback catalogue.",
    ["operation", "reason"],
)


def record_upstream_request(operation: str, outcome: str) -> None:
    UPSTREAM_REQUESTS.labels(operation=operation, outcome=outcome).inc()


def record_upstream_retry(operation: str) -> None:
    UPSTREAM_RETRIES.labels(operation=operation).inc()


def record_fallback(operation: str, reason: str) -> None:
    FALLBACK_SERVED.labels(operation=operation, reason=reason).inc()


@metrics_blueprint.route("/metrics")
def metrics() -> Response:
    return Response(generate_latest(), mimetype=CONTENT_TYPE_LATEST)


__all__ = [
    "metrics_blueprint",
    "record_upstream_request",
    "record_upstream_retry",
    "record_fallback",
]
