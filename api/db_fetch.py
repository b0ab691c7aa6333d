"""
Timed database reads.

Every read goes through fetch_all_timed, which logs slow queries and records
duration metrics. Reads are NOT retried: a failing or saturated store
surfaces its exception to the caller unchanged, and the caller's own
retry/backoff policy decides what happens next. Errors are classified only
for logging and metrics.
"""

import logging
import time
from typing import Any, List

from databases import Database

from api.metrics import DB_ERRORS_TOTAL, DB_QUERY_DURATION_SECONDS, DB_SLOW_QUERIES_TOTAL
from config import SLOW_QUERY_THRESHOLD

logger = logging.getLogger(__name__)

# Maximum length of SQL included in slow query log lines
SLOW_QUERY_LOG_LENGTH = 500

# SQLite error patterns
_SQLITE_TRANSIENT_PATTERNS = [
    "database is locked",
    "database table is locked",
    "sqlite_busy",
    "sqlite_locked",
]

# PostgreSQL error patterns
_POSTGRES_TRANSIENT_PATTERNS = [
    "deadlock detected",  # 40P01
    "could not serialize access",  # 40001 serialization failure
    "could not obtain lock",
    "connection refused",
    "connection reset",
    "server closed the connection unexpectedly",
    "canceling statement due to statement timeout",
    "canceling statement due to lock timeout",
    "too many connections",
]


def is_transient_database_error(exc: BaseException) -> bool:
    """
    Check if an exception looks like a transient database error
    (lock contention, dropped connection, saturated replica).

    Supports both SQLite and PostgreSQL error patterns.
    """
    error_str = str(exc).lower()

    for pattern in _SQLITE_TRANSIENT_PATTERNS + _POSTGRES_TRANSIENT_PATTERNS:
        if pattern in error_str:
            return True

    # asyncpg and psycopg expose SQLSTATE codes
    sqlstate = getattr(exc, "sqlstate", None)
    if sqlstate in ("40P01", "40001", "53300", "57014"):
        return True

    if isinstance(exc, (ConnectionError, TimeoutError)):
        return True

    # Check wrapped exceptions (databases library wraps underlying driver exceptions)
    if exc.__cause__ is not None:
        return is_transient_database_error(exc.__cause__)

    return False


async def fetch_all_timed(database: Database, query: Any, operation: str) -> List[Any]:
    """
    Execute a fetch_all query once, logging slow reads and failures.

    Args:
        database: Connected read handle
        query: SQLAlchemy query to execute
        operation: Metric label for the kind of read ("usage", "report")

    Returns:
        The fully materialized list of rows

    Raises:
        Whatever the database layer raises, unchanged
    """
    start_time = time.monotonic()
    try:
        rows = await database.fetch_all(query)
    except Exception as e:
        kind = "transient" if is_transient_database_error(e) else "other"
        DB_ERRORS_TOTAL.labels(operation=operation, kind=kind).inc()
        if kind == "transient":
            logger.warning(f"Transient database error during {operation} read: {e}")
        else:
            logger.error(f"Database error during {operation} read: {e}")
        raise

    elapsed = time.monotonic() - start_time
    DB_QUERY_DURATION_SECONDS.labels(operation=operation).observe(elapsed)
    if elapsed >= SLOW_QUERY_THRESHOLD:
        DB_SLOW_QUERIES_TOTAL.labels(operation=operation).inc()
        query_str = str(query)[:SLOW_QUERY_LOG_LENGTH]
        logger.warning(f"Slow query ({elapsed:.2f}s): {query_str}")

    return list(rows)
