"""
Most globally linked files: files ranked by how many pages use them.

The report only runs on the node that owns the global usage data. Anywhere
else the request is answered with a redirect to the shared repository, and
reaching the aggregate query itself is an internal error.

Paging is plain offset/limit: the count used for ranking is not unique, so
there is no stable boundary to resume from.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Union

import sqlalchemy as sa

from api.database import global_image_links
from api.db_fetch import fetch_all_timed
from api.enums import Namespace, ReportOutcome
from api.errors import UnroutableReportError
from api.metrics import REPORT_REQUESTS_TOTAL
from api.report_cache import ReportCache, create_report_cache
from api.routing import SharedRepoRouter, get_router
from api.schemas import TopUsageEntry, TopUsagePage
from config import DEFAULT_LIMIT, MAX_LIMIT

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReportQueryInfo:
    """Shape of the ranking query, for a generic ranked-listing renderer."""

    table: str
    group_by: str
    value: str
    having: str
    order_by: str
    descending: bool
    namespace: int


@dataclass(frozen=True)
class ReportRedirect:
    """The report must be viewed on the shared repository instead."""

    url: str


class TopUsageReport:
    """Files used on more than one page, most used first."""

    name = "MostGloballyLinkedFiles"
    group_name = "highuse"
    is_expensive = True
    is_syndicated = False

    # Counts must exceed this; files used only once are not "globally linked"
    USAGE_COUNT_THRESHOLD = 1

    def __init__(self, router: SharedRepoRouter, cache: Optional[ReportCache] = None):
        self._router = router
        self._cache = cache

    def is_cacheable(self) -> bool:
        # Nothing to cache on nodes that only redirect
        return self._router.is_canonical_owner()

    def is_listed(self) -> bool:
        return self._router.is_canonical_owner()

    def _assert_on_shared_repo(self) -> None:
        """
        Paranoia check; routing should redirect before any caller gets here.
        """
        if not self._router.is_canonical_owner():
            raise UnroutableReportError(
                f"{self.name} should only be processed on the shared repository"
            )

    def query_info(self) -> ReportQueryInfo:
        self._assert_on_shared_repo()
        return ReportQueryInfo(
            table=global_image_links.name,
            group_by="target",
            value="COUNT(*)",
            having=f"COUNT(*) > {self.USAGE_COUNT_THRESHOLD}",
            order_by="value",
            descending=True,
            namespace=int(Namespace.FILE),
        )

    def build_query(self, offset: int = 0, limit: int = DEFAULT_LIMIT) -> sa.Select:
        """
        Build the ranking query for one page (fetches limit + 1 rows).
        """
        self._assert_on_shared_repo()
        gil = global_image_links
        value = sa.func.count().label("value")
        return (
            sa.select(gil.c.target.label("title"), value)
            .group_by(gil.c.target)
            .having(sa.func.count() > self.USAGE_COUNT_THRESHOLD)
            # Ties are ordered by title so offset pages do not overlap
            .order_by(value.desc(), gil.c.target)
            .offset(offset)
            .limit(limit + 1)
        )

    async def fetch(self, offset: int = 0, limit: int = DEFAULT_LIMIT) -> TopUsagePage:
        """Fetch one page of the report from the owner's database."""
        self._assert_on_shared_repo()
        offset = max(0, int(offset))
        limit = max(1, min(int(limit), MAX_LIMIT))

        use_cache = self._cache is not None and self.is_cacheable()
        if use_cache:
            cached = self._cache.get(offset, limit)
            if cached is not None:
                REPORT_REQUESTS_TOTAL.labels(outcome=ReportOutcome.CACHED.value).inc()
                return cached

        database = self._router.resolve_canonical_database()
        rows = await fetch_all_timed(database, self.build_query(offset, limit), operation="report")

        entries = [
            TopUsageEntry(namespace_id=int(Namespace.FILE), title=row["title"], value=row["value"])
            for row in rows[:limit]
        ]
        page = TopUsagePage(entries=entries, offset=offset, limit=limit, has_more=len(rows) > limit)

        if use_cache:
            self._cache.put(offset, limit, page)
        REPORT_REQUESTS_TOTAL.labels(outcome=ReportOutcome.SERVED.value).inc()
        return page

    async def run(
        self, offset: int = 0, limit: int = DEFAULT_LIMIT
    ) -> Union[TopUsagePage, ReportRedirect]:
        """
        Answer a report request: the page itself on the shared repository,
        otherwise a redirect there.

        Raises:
            UnroutableReportError: Not the owner and no shared repository URL known
        """
        if self._router.is_canonical_owner():
            return await self.fetch(offset, limit)

        url = self._router.redirect_url(self.name, {"offset": offset or None, "limit": limit})
        if url is None:
            logger.error(f"{self.name} requested off the shared repository with no redirect target")
            raise UnroutableReportError(f"No route to the shared repository for {self.name}")

        logger.info(f"Redirecting {self.name} to shared repository: {url}")
        REPORT_REQUESTS_TOTAL.labels(outcome=ReportOutcome.REDIRECTED.value).inc()
        return ReportRedirect(url=url)


def create_top_usage_report(router: Optional[SharedRepoRouter] = None) -> TopUsageReport:
    """Create the report with the configured router and cache."""
    if router is None:
        router = get_router()
    return TopUsageReport(router, cache=create_report_cache())
