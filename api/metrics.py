"""
Prometheus metrics for usage queries and the most-linked files report.

Metrics are registered in the default registry; the host exposes them in
Prometheus text format through get_metrics().
"""

from prometheus_client import Counter, Histogram, generate_latest

# =============================================================================
# Usage Query Metrics
# =============================================================================

USAGE_QUERIES_TOTAL = Counter(
    "globalusage_usage_queries_total",
    "Total usage queries executed",
    ["target_kind", "direction", "result"],  # result: success, empty, skipped, failed
)

USAGE_QUERY_DURATION_SECONDS = Histogram(
    "globalusage_usage_query_duration_seconds",
    "Usage query read duration in seconds",
    ["target_kind"],
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5],
)

USAGE_QUERY_ROWS = Histogram(
    "globalusage_usage_query_rows",
    "Rows fetched per usage query (including the look-ahead row)",
    buckets=[0, 1, 5, 10, 25, 50, 100, 250, 501],
)

# =============================================================================
# Report Metrics
# =============================================================================

REPORT_REQUESTS_TOTAL = Counter(
    "globalusage_report_requests_total",
    "Most-linked files report requests",
    ["outcome"],  # served, cached, redirected
)

# =============================================================================
# Database Metrics
# =============================================================================

DB_QUERY_DURATION_SECONDS = Histogram(
    "globalusage_db_query_duration_seconds",
    "Database read duration in seconds",
    ["operation"],  # usage, report
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0],
)

DB_SLOW_QUERIES_TOTAL = Counter(
    "globalusage_db_slow_queries_total",
    "Database reads slower than the slow query threshold",
    ["operation"],
)

DB_ERRORS_TOTAL = Counter(
    "globalusage_db_errors_total",
    "Database reads that raised",
    ["operation", "kind"],  # kind: transient, other
)


def get_metrics() -> bytes:
    """Generate Prometheus metrics in text format."""
    return generate_latest()

