"""
TTL cache for pages of the most-linked files report.

The report is a GROUP BY over the whole usage table, so on the shared
repository each (offset, limit) page is kept in memory until it expires.
Each process keeps its own copy; pages are evicted oldest first once the
cache is full.
"""

import logging
import time
from collections import OrderedDict
from typing import Optional, Tuple

from api.schemas import TopUsagePage
from config import REPORT_CACHE_ENABLED, REPORT_CACHE_MAX_SIZE, REPORT_CACHE_TTL

logger = logging.getLogger(__name__)

PageKey = Tuple[int, int]  # (offset, limit)


class ReportCache:
    """Report pages keyed by (offset, limit), each expiring ttl_seconds after it was stored."""

    def __init__(self, ttl_seconds: int = 3600, enabled: bool = True, max_size: int = 1000):
        # Insertion order is storage order, so the first entry is always the oldest
        self._pages: "OrderedDict[PageKey, Tuple[float, TopUsagePage]]" = OrderedDict()
        self._ttl = ttl_seconds
        self._enabled = enabled
        self._max_size = max_size

    @property
    def enabled(self) -> bool:
        return self._enabled

    def __len__(self) -> int:
        return len(self._pages)

    def get(self, offset: int, limit: int) -> Optional[TopUsagePage]:
        """Return the stored page, or None if missing or expired."""
        if not self._enabled:
            return None

        key = (offset, limit)
        entry = self._pages.get(key)
        if entry is None:
            return None

        stored_at, page = entry
        if time.monotonic() - stored_at > self._ttl:
            del self._pages[key]
            return None
        return page

    def put(self, offset: int, limit: int, page: TopUsagePage) -> None:
        """Store a page, replacing any older copy of the same (offset, limit)."""
        if not self._enabled:
            return

        key = (offset, limit)
        self._pages.pop(key, None)
        while len(self._pages) >= self._max_size:
            evicted, _ = self._pages.popitem(last=False)
            logger.debug(f"Report cache full, evicted page offset={evicted[0]} limit={evicted[1]}")

        self._pages[key] = (time.monotonic(), page)


def create_report_cache() -> ReportCache:
    """Create a report cache from configuration."""
    return ReportCache(
        ttl_seconds=REPORT_CACHE_TTL,
        enabled=REPORT_CACHE_ENABLED,
        max_size=REPORT_CACHE_MAX_SIZE,
    )
