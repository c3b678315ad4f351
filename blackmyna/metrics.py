"""
Prometheus metrics for the Blackmyna adapter.

This module provides:
- HTTP request counter (method, path, status)
- Webhook outcome counter (handler, result)
- Outbound send outcome counter (status)
- Request latency histogram (method, path)

Metrics are stored in-memory using prometheus-client.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST


# =============================================================================
# Metric Definitions
# =============================================================================

# HTTP request counter with labels for method, path, and status code
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    labelnames=["method", "path", "status"]
)

# Webhook processing outcome counter
# handler: receive, status
# result: accepted, validation_error, unknown_status, channel_not_found, error
webhook_requests_total = Counter(
    "webhook_requests_total",
    "Total webhook processing outcomes",
    labelnames=["handler", "result"]
)

# Outbound send outcome counter
# status: wired, errored, config_error, response_format_error
send_attempts_total = Counter(
    "send_attempts_total",
    "Total outbound send attempts by outcome",
    labelnames=["status"]
)

# Request latency histogram in seconds
request_latency_seconds = Histogram(
    "request_latency_seconds",
    "Request latency in seconds",
    labelnames=["method", "path"]
)


# =============================================================================
# Helper Functions
# =============================================================================

def normalize_path(path: str) -> str:
    """
    Collapse channel UUIDs out of webhook paths to keep label cardinality low.

    /c/bm/<uuid>/receive -> /c/bm/{uuid}/receive
    """
    path = path.split("?")[0]
    parts = path.strip("/").split("/")
    if len(parts) == 4 and parts[0] == "c":
        parts[2] = "{uuid}"
        return "/" + "/".join(parts)
    return path


def record_http_request(method: str, path: str, status: int, latency_seconds: float) -> None:
    """
    Record an HTTP request in metrics.

    Args:
        method: HTTP method (GET, POST, etc.)
        path: Request path
        status: HTTP status code
        latency_seconds: Request processing time in seconds
    """
    normalized_path = normalize_path(path)

    http_requests_total.labels(
        method=method,
        path=normalized_path,
        status=str(status)
    ).inc()

    request_latency_seconds.labels(
        method=method,
        path=normalized_path
    ).observe(latency_seconds)


def record_webhook_outcome(handler: str, result: str) -> None:
    """Record the outcome of a receive or status webhook."""
    webhook_requests_total.labels(handler=handler, result=result).inc()


def record_send_outcome(status: str) -> None:
    """Record the outcome of an outbound send attempt."""
    send_attempts_total.labels(status=status).inc()


def get_metrics() -> bytes:
    """
    Generate Prometheus exposition format metrics.

    Returns:
        Metrics in Prometheus text format as bytes
    """
    return generate_latest()


def get_metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
