"""
Paginated lookup of where shared files are used across sites.

A query is described by an immutable UsageQueryConfig and executed with a
single read against the global usage table:

    config = UsageQueryConfig(UsageTarget.file("Foo.png"), limit=50)
    result = await UsageQuery(get_router()).execute(config)
    if result.has_more:
        next_config = config.with_cursor(result.continuation_token)

Rows are always presented in canonical (target, site, page_id) ascending
order. The direction of a cursor only decides which slice of that order is
fetched: forward resumes at the cursor row (inclusive), backward returns the
rows strictly before it.
"""

import logging
import time
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import sqlalchemy as sa
from databases import Database

from api.database import category_links, global_image_links, pages
from api.db_fetch import fetch_all_timed
from api.enums import Direction, Namespace
from api.metrics import USAGE_QUERIES_TOTAL, USAGE_QUERY_DURATION_SECONDS, USAGE_QUERY_ROWS
from api.pagination import RangePredicate, UsageKey, build_range_predicate, format_cursor, parse_cursor
from api.routing import SharedRepoRouter
from api.schemas import UsagePageResponse, UsageRecord
from api.titles import normalize_dbkey, parse_title
from config import DEFAULT_LIMIT, LOCAL_SITE_ID, MAX_LIMIT

logger = logging.getLogger(__name__)

MIN_LIMIT = 1

# Columns of the range predicate mapped onto the usage table
_KEY_COLUMNS = {
    "target": global_image_links.c.target,
    "site": global_image_links.c.site,
    "page_id": global_image_links.c.page_id,
}

_SELECT_COLUMNS = (
    global_image_links.c.target,
    global_image_links.c.site,
    global_image_links.c.page_id,
    global_image_links.c.page_namespace_id,
    global_image_links.c.page_namespace,
    global_image_links.c.page_title,
)


def clamp_limit(limit: int) -> int:
    """Clamp a requested page size into [MIN_LIMIT, MAX_LIMIT]."""
    return max(MIN_LIMIT, min(int(limit), MAX_LIMIT))


@dataclass(frozen=True)
class UsageTarget:
    """
    What to look up: one or more files, or every file in a category.

    Any namespace other than FILE or CATEGORY is accepted but yields an empty
    result without touching the database.
    """

    namespace: int
    names: Tuple[str, ...]

    @classmethod
    def file(cls, name: str) -> "UsageTarget":
        return cls(int(Namespace.FILE), (normalize_dbkey(name),))

    @classmethod
    def files(cls, names: Iterable[str]) -> "UsageTarget":
        """Batch of file database keys, used as given."""
        return cls(int(Namespace.FILE), tuple(names))

    @classmethod
    def category(cls, name: str) -> "UsageTarget":
        return cls(int(Namespace.CATEGORY), (normalize_dbkey(name),))

    @classmethod
    def from_title(cls, text: str) -> "UsageTarget":
        """Parse "File:X", "Category:Y" or a bare file name."""
        parsed = parse_title(text, default_namespace=Namespace.FILE)
        return cls(parsed.namespace, (parsed.dbkey,))

    @property
    def kind(self) -> str:
        if self.namespace == Namespace.FILE:
            return "file"
        if self.namespace == Namespace.CATEGORY:
            return "category"
        return "unknown"


@dataclass(frozen=True)
class UsageQueryConfig:
    """Everything a usage query needs besides the database handle."""

    target: UsageTarget
    limit: int = DEFAULT_LIMIT
    cursor: Optional[UsageKey] = None
    direction: Direction = Direction.FORWARD
    exclude_local_site: bool = False
    namespaces: FrozenSet[int] = field(default_factory=frozenset)
    sites: FrozenSet[str] = field(default_factory=frozenset)

    def __post_init__(self):
        object.__setattr__(self, "limit", clamp_limit(self.limit))
        object.__setattr__(self, "direction", Direction(self.direction))
        object.__setattr__(self, "namespaces", frozenset(int(ns) for ns in self.namespaces))
        object.__setattr__(self, "sites", frozenset(self.sites))

    def with_limit(self, limit: int) -> "UsageQueryConfig":
        return replace(self, limit=limit)

    def with_cursor(
        self,
        token: Union[str, Sequence[Any]],
        direction: Optional[Direction] = None,
    ) -> Optional["UsageQueryConfig"]:
        """
        Copy of this config resuming from a continuation token.

        Args:
            token: "target|site|page_id" string or a 3-item sequence
            direction: Scroll direction; keeps the current one when None

        Returns:
            The new config, or None if the token is malformed
        """
        key = parse_cursor(token)
        if key is None:
            logger.debug(f"Rejected malformed continuation token: {token!r}")
            return None
        return replace(
            self,
            cursor=key,
            direction=self.direction if direction is None else Direction(direction),
        )

    def excluding_local_site(self, value: bool = True) -> "UsageQueryConfig":
        return replace(self, exclude_local_site=value)

    def with_namespaces(self, namespaces: Iterable[int]) -> "UsageQueryConfig":
        return replace(self, namespaces=frozenset(namespaces))

    def with_sites(self, sites: Iterable[str]) -> "UsageQueryConfig":
        return replace(self, sites=frozenset(sites))

    @property
    def offset_string(self) -> str:
        """The cursor this config resumes from, as a token ("" when none)."""
        return format_cursor(self.cursor) if self.cursor else ""

    @property
    def is_reversed(self) -> bool:
        return self.direction == Direction.BACKWARD


@dataclass(frozen=True)
class UsageResult:
    """
    One page of usages: target -> site -> records, in canonical order.
    """

    usages: Mapping[str, Mapping[str, Tuple[UsageRecord, ...]]]
    has_more: bool = False
    continuation_key: Optional[UsageKey] = None
    direction: Direction = Direction.FORWARD

    def __post_init__(self):
        # Read-only views all the way down
        frozen = {
            target: MappingProxyType({site: tuple(rows) for site, rows in by_site.items()})
            for target, by_site in self.usages.items()
        }
        object.__setattr__(self, "usages", MappingProxyType(frozen))

    @classmethod
    def empty(cls, direction: Direction = Direction.FORWARD) -> "UsageResult":
        return cls(usages={}, direction=direction)

    def count(self) -> int:
        """Number of targets present on this page."""
        return len(self.usages)

    def records(self) -> List[UsageRecord]:
        return [record for by_site in self.usages.values() for rows in by_site.values() for record in rows]

    @property
    def continuation_token(self) -> str:
        """Token for the next page in the same direction ("" when there is none)."""
        if not self.has_more or self.continuation_key is None:
            return ""
        return format_cursor(self.continuation_key)

    def single_target_result(self) -> Mapping[str, Tuple[UsageRecord, ...]]:
        """site -> records for the first target; handy when only one file was queried."""
        for by_site in self.usages.values():
            return by_site
        return {}

    @property
    def first_key(self) -> Optional[UsageKey]:
        records = self.records()
        return records[0].key if records else None

    @property
    def last_key(self) -> Optional[UsageKey]:
        records = self.records()
        return records[-1].key if records else None

    def to_response(self) -> UsagePageResponse:
        return UsagePageResponse(
            usages={
                target: {site: list(rows) for site, rows in by_site.items()}
                for target, by_site in self.usages.items()
            },
            count=self.count(),
            has_more=self.has_more,
            continue_token=self.continuation_token or None,
            direction=self.direction.value,
        )


# =============================================================================
# Query construction
# =============================================================================


def compile_range_predicate(predicate: RangePredicate) -> sa.ColumnElement:
    """Translate a range predicate tree into a SQL boolean expression."""
    return sa.or_(
        *(
            sa.and_(*(cond.op.apply(_KEY_COLUMNS[cond.field], cond.value) for cond in clause))
            for clause in predicate.clauses
        )
    )


def build_usage_query(config: UsageQueryConfig, local_site_id: str = LOCAL_SITE_ID) -> Optional[sa.Select]:
    """
    Build the SELECT for a usage query.

    Returns:
        The query, or None when the target namespace cannot be queried
    """
    gil = global_image_links
    target = config.target

    if target.namespace == Namespace.FILE:
        query = sa.select(*_SELECT_COLUMNS).where(gil.c.target.in_(target.names))
    elif target.namespace == Namespace.CATEGORY:
        members = gil.join(
            pages,
            sa.and_(pages.c.title == gil.c.target, pages.c.namespace == int(Namespace.FILE)),
        ).join(category_links, category_links.c.page_id == pages.c.id)
        query = (
            sa.select(*_SELECT_COLUMNS)
            .select_from(members)
            .where(category_links.c.category.in_(target.names))
        )
    else:
        return None

    if config.exclude_local_site:
        query = query.where(gil.c.site != local_site_id)

    if config.namespaces:
        query = query.where(gil.c.page_namespace_id.in_(sorted(config.namespaces)))

    if config.sites:
        query = query.where(gil.c.site.in_(sorted(config.sites)))

    if config.cursor is not None:
        predicate = build_range_predicate(config.direction, config.cursor)
        query = query.where(compile_range_predicate(predicate))

    if config.direction == Direction.BACKWARD:
        query = query.order_by(gil.c.target.desc(), gil.c.site.desc(), gil.c.page_id.desc())
    else:
        query = query.order_by(gil.c.target, gil.c.site, gil.c.page_id)

    # Select an extra row to check whether more rows are available
    return query.limit(config.limit + 1)


# =============================================================================
# Result processing
# =============================================================================


def record_from_row(row: Any) -> UsageRecord:
    return UsageRecord(
        target=row["target"],
        site=row["site"],
        page_id=row["page_id"],
        namespace_id=row["page_namespace_id"],
        namespace=row["page_namespace"] or "",
        title=row["page_title"],
    )


def paginate_rows(
    records: Sequence[UsageRecord],
    limit: int,
    direction: Direction,
) -> Tuple[List[UsageRecord], bool, Optional[UsageKey]]:
    """
    Trim a limit+1 fetch down to one page.

    Args:
        records: Rows in fetch order (descending for backward traversal)
        limit: Page size
        direction: Direction the rows were fetched in

    Returns:
        (page rows in ascending order, has_more, continuation key)
    """
    has_more = len(records) > limit
    page = list(records[:limit])
    continuation: Optional[UsageKey] = None

    if direction == Direction.BACKWARD:
        page.reverse()
        if has_more:
            # Backward resumes exclusively, so the earliest shown row is the boundary
            continuation = page[0].key
    elif has_more:
        # Forward resumes inclusively at the held-back row
        continuation = records[limit].key

    return page, has_more, continuation


def fold_usages(records: Iterable[UsageRecord]) -> Dict[str, Dict[str, Tuple[UsageRecord, ...]]]:
    """Group records by target, then site, keeping their order."""
    grouped: Dict[str, Dict[str, List[UsageRecord]]] = {}
    for record in records:
        grouped.setdefault(record.target, {}).setdefault(record.site, []).append(record)
    return {
        target: {site: tuple(rows) for site, rows in by_site.items()}
        for target, by_site in grouped.items()
    }


async def execute_usage_query(
    config: UsageQueryConfig,
    database: Database,
    local_site_id: str = LOCAL_SITE_ID,
) -> UsageResult:
    """
    Run a usage query with exactly one read against the database.

    Storage errors propagate unchanged.
    """
    kind = config.target.kind
    direction = config.direction.value

    query = build_usage_query(config, local_site_id)
    if query is None:
        logger.debug(f"Namespace {config.target.namespace} is not queryable, returning empty usage result")
        USAGE_QUERIES_TOTAL.labels(target_kind=kind, direction=direction, result="skipped").inc()
        return UsageResult.empty(config.direction)

    start_time = time.monotonic()
    try:
        rows = await fetch_all_timed(database, query, operation="usage")
    except Exception:
        USAGE_QUERIES_TOTAL.labels(target_kind=kind, direction=direction, result="failed").inc()
        raise
    USAGE_QUERY_DURATION_SECONDS.labels(target_kind=kind).observe(time.monotonic() - start_time)
    USAGE_QUERY_ROWS.observe(len(rows))

    records = [record_from_row(row) for row in rows]
    page, has_more, continuation = paginate_rows(records, config.limit, config.direction)

    USAGE_QUERIES_TOTAL.labels(
        target_kind=kind, direction=direction, result="success" if page else "empty"
    ).inc()
    logger.debug(
        f"Usage query for {kind} {list(config.target.names)[:5]} returned {len(page)} rows "
        f"(has_more={has_more}, direction={direction})"
    )

    return UsageResult(
        usages=fold_usages(page),
        has_more=has_more,
        continuation_key=continuation,
        direction=config.direction,
    )


class UsageQuery:
    """
    Routed entry point for usage queries.

    The read handle is resolved from the router on every call and never kept.
    """

    def __init__(self, router: SharedRepoRouter, local_site_id: str = LOCAL_SITE_ID):
        self._router = router
        self._local_site_id = local_site_id

    async def execute(self, config: UsageQueryConfig) -> UsageResult:
        database = self._router.resolve_canonical_database()
        return await execute_usage_query(config, database, self._local_site_id)
