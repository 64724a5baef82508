"""Prometheus metrics for the transcode service.

Exposes HTTP request metrics and job/encode counters.
"""

from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    Info,
    CollectorRegistry,
    generate_latest,
    CONTENT_TYPE_LATEST,
)

# Create a custom registry for our metrics
REGISTRY = CollectorRegistry()


# ============================================
# Application Info
# ============================================
APP_INFO = Info(
    "clipvariants_app",
    "Application information",
    registry=REGISTRY,
)


# ============================================
# HTTP Request Metrics
# ============================================
HTTP_REQUESTS_TOTAL = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
    registry=REGISTRY,
)

HTTP_REQUEST_DURATION_SECONDS = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
    registry=REGISTRY,
)

HTTP_REQUESTS_IN_PROGRESS = Gauge(
    "http_requests_in_progress",
    "Number of HTTP requests currently in progress",
    ["method", "endpoint"],
    registry=REGISTRY,
)


# ============================================
# Job / Encode Metrics
# ============================================
JOBS_SUBMITTED_TOTAL = Counter(
    "jobs_submitted_total",
    "Total number of transcode jobs submitted",
    registry=REGISTRY,
)

JOBS_FINISHED_TOTAL = Counter(
    "jobs_finished_total",
    "Total number of transcode jobs finished by terminal status",
    ["status"],
    registry=REGISTRY,
)

VERSIONS_FINISHED_TOTAL = Counter(
    "versions_finished_total",
    "Total number of versions finished by terminal status",
    ["status"],
    registry=REGISTRY,
)

ENCODE_DURATION_SECONDS = Histogram(
    "encode_duration_seconds",
    "Duration of a single version encode in seconds",
    buckets=[5.0, 15.0, 30.0, 60.0, 120.0, 300.0, 600.0, 1200.0, 3600.0],
    registry=REGISTRY,
)

ACTIVE_ENCODES = Gauge(
    "active_encodes",
    "Number of encoder processes currently running",
    registry=REGISTRY,
)

RETENTION_REMOVED_TOTAL = Counter(
    "retention_removed_total",
    "Items removed by the retention sweeper",
    ["kind"],
    registry=REGISTRY,
)


def get_metrics() -> bytes:
    """Generate latest metrics in Prometheus format.

    Returns:
        bytes: Prometheus-formatted metrics
    """
    return generate_latest(REGISTRY)


def get_content_type() -> str:
    """Get the content type for Prometheus metrics."""
    return CONTENT_TYPE_LATEST


def set_app_info(version: str, environment: str) -> None:
    """Set application info metrics.

    Args:
        version: Application version
        environment: Deployment environment
    """
    APP_INFO.info({
        "version": version,
        "environment": environment,
    })
