"""
Centralized enums used throughout the application.
Using str-based enums for database and CLI compatibility.
"""

from enum import Enum, IntEnum


class Direction(str, Enum):
    """Scroll direction relative to a continuation cursor."""

    FORWARD = "forward"  # Rows at or after the cursor
    BACKWARD = "backward"  # Rows strictly before the cursor


class Namespace(IntEnum):
    """Namespace codes of the hosting wiki that the queries care about."""

    MAIN = 0
    TALK = 1
    USER = 2
    USER_TALK = 3
    PROJECT = 4
    FILE = 6
    MEDIAWIKI = 8
    TEMPLATE = 10
    HELP = 12
    CATEGORY = 14


class ReportOutcome(str, Enum):
    """How a most-linked report request was answered."""

    SERVED = "served"
    CACHED = "cached"
    REDIRECTED = "redirected"
