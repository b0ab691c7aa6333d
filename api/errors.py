"""
Exceptions raised by the usage query and report code, plus helpers for
showing error text to operators.

Storage errors coming from the database driver are never wrapped here; they
propagate unchanged so the caller's own retry policy applies.
"""

from typing import Optional


class GlobalUsageError(Exception):
    """Base class for errors raised by this package."""

    pass


class UnroutableReportError(GlobalUsageError, RuntimeError):
    """
    An aggregate report was about to run on a node that does not own the
    shared usage data. Normal routing redirects before this point, so reaching
    it is an internal error.
    """

    pass


class InvalidTitleError(GlobalUsageError, ValueError):
    """A target title could not be normalized into a database key."""

    pass


def truncate_error(error: Optional[str], max_length: int) -> Optional[str]:
    """
    Truncate an error message for display, keeping the beginning.

    Args:
        error: The error text (may be None)
        max_length: Maximum length of the returned string, including the ellipsis

    Returns:
        The original text if short enough, otherwise a truncated copy ending in "..."
    """
    if error is None:
        return None
    if len(error) <= max_length:
        return error
    if max_length <= 3:
        return error[:max_length]
    return error[: max_length - 3] + "..."
