from prometheus_client import (
    Counter,
    Histogram,
    Gauge,
    generate_latest,
    CONTENT_TYPE_LATEST,
)

# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------
extract_requests_total = Counter(
    "extract_requests_total",
    "Total number of extraction requests",
    ["status"],
)
sessions_processed_total = Counter(
    "sessions_processed_total",
    "Sessions processed, by outcome (ok = extracted, error = fallback content)",
    ["status"],
)
fetch_duration_seconds = Histogram(
    "fetch_duration_seconds",
    "Time spent fetching/rendering a single URL",
    ["mode"],
    buckets=[0.5, 1, 2, 5, 10, 20, 30, 60],
)
fetch_errors_total = Counter(
    "fetch_errors_total",
    "Fetch failures by kind",
    ["kind"],
)

# ---------------------------------------------------------------------------
# Browser
# ---------------------------------------------------------------------------
active_browser_contexts = Gauge(
    "active_browser_contexts",
    "Number of currently active browser contexts",
)
browser_pool_exhausted_total = Counter(
    "browser_pool_exhausted_total",
    "Number of times no browser slot became free in time",
)


def get_metrics() -> bytes:
    """Generate Prometheus metrics output."""
    return generate_latest()


def get_metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
