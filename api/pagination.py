"""
Keyset pagination over the (target, site, page_id) usage key.

Continuation tokens are plain "target|site|page_id" strings so they can be
passed back through query strings unchanged. Range conditions are built as a
small predicate tree (a disjunction of conjunctions) that does not depend on
SQLAlchemy, so the tie-break rules can be tested without a database and
compiled to SQL in one place.
"""

import operator
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, NamedTuple, Optional, Sequence, Tuple, Union

from api.enums import Direction

CURSOR_DELIMITER = "|"
CURSOR_FIELD_COUNT = 3


class UsageKey(NamedTuple):
    """Canonical sort key of a usage row. Tuple comparison gives the canonical order."""

    target: str
    site: str
    page_id: int


def format_cursor(key: UsageKey) -> str:
    """
    Encode a usage key as a continuation token.

    Raises:
        ValueError: If target or site contains the delimiter, since the token
            could not be parsed back into the same key
    """
    for value in (key.target, key.site):
        if CURSOR_DELIMITER in value:
            raise ValueError(f"Cursor field contains '{CURSOR_DELIMITER}': {value!r}")
    return CURSOR_DELIMITER.join((key.target, key.site, str(key.page_id)))


def parse_cursor(token: Union[str, Sequence[Any], None]) -> Optional[UsageKey]:
    """
    Decode a continuation token into a usage key.

    Accepts the joined string form or an already split sequence of fields.

    Returns:
        The key, or None if the token does not have exactly three fields or
        the page id is not an integer
    """
    if token is None:
        return None

    if isinstance(token, str):
        parts = token.split(CURSOR_DELIMITER)
    else:
        parts = list(token)

    if len(parts) != CURSOR_FIELD_COUNT:
        return None

    target, site, page_id = parts
    try:
        return UsageKey(str(target), str(site), int(page_id))
    except (ValueError, TypeError):
        return None


# =============================================================================
# Range predicates
# =============================================================================


class Comparison(str, Enum):
    """Comparison operators used in range predicates."""

    LT = "<"
    LE = "<="
    EQ = "="
    GE = ">="
    GT = ">"

    def apply(self, left: Any, right: Any) -> bool:
        return _OPERATORS[self](left, right)


_OPERATORS: Dict[Comparison, Callable[[Any, Any], bool]] = {
    Comparison.LT: operator.lt,
    Comparison.LE: operator.le,
    Comparison.EQ: operator.eq,
    Comparison.GE: operator.ge,
    Comparison.GT: operator.gt,
}


@dataclass(frozen=True)
class FieldCondition:
    """A single `field <op> value` comparison."""

    field: str
    op: Comparison
    value: Any


@dataclass(frozen=True)
class RangePredicate:
    """
    Disjunction of conjunctions: a row matches when every condition of at
    least one clause holds.
    """

    clauses: Tuple[Tuple[FieldCondition, ...], ...]

    def matches(self, key: UsageKey) -> bool:
        """Evaluate the predicate against a key in memory."""
        values = key._asdict()
        return any(
            all(cond.op.apply(values[cond.field], cond.value) for cond in clause)
            for clause in self.clauses
        )


def build_range_predicate(direction: Direction, boundary: UsageKey) -> RangePredicate:
    """
    Build the range condition selecting rows on one side of a boundary key.

    Forward traversal keeps the boundary row (page_id >=) so a page resumed
    from a continuation key starts exactly at the row that was held back.
    Backward traversal excludes it and is meant to be fetched in descending
    order, which yields the rows immediately preceding the boundary.
    """
    if direction == Direction.BACKWARD:
        strict, last = Comparison.LT, Comparison.LT
    else:
        strict, last = Comparison.GT, Comparison.GE

    target_eq = FieldCondition("target", Comparison.EQ, boundary.target)
    site_eq = FieldCondition("site", Comparison.EQ, boundary.site)

    return RangePredicate(
        clauses=(
            (FieldCondition("target", strict, boundary.target),),
            (target_eq, FieldCondition("site", strict, boundary.site)),
            (target_eq, site_eq, FieldCondition("page_id", last, boundary.page_id)),
        )
    )
