"""
Title parsing and normalization for usage targets.

Targets are stored by database key: underscores instead of spaces and an
upper-case first letter. A prefixed title ("Category:Maps") selects its
namespace; an unprefixed one defaults to the namespace given by the caller.
"""

import re
from typing import Dict, NamedTuple

from api.enums import Namespace
from api.errors import InvalidTitleError

# Canonical namespace names and their common aliases (compared case-insensitively)
NAMESPACE_NAMES: Dict[str, int] = {
    "talk": Namespace.TALK,
    "user": Namespace.USER,
    "user_talk": Namespace.USER_TALK,
    "project": Namespace.PROJECT,
    "file": Namespace.FILE,
    "image": Namespace.FILE,
    "mediawiki": Namespace.MEDIAWIKI,
    "template": Namespace.TEMPLATE,
    "help": Namespace.HELP,
    "category": Namespace.CATEGORY,
}

# Characters that can never appear in a title
_ILLEGAL_TITLE_CHARS = re.compile(r"[|#<>\[\]{}]")
_UNDERSCORE_RUNS = re.compile(r"_+")


class ParsedTitle(NamedTuple):
    namespace: int
    dbkey: str


def normalize_dbkey(text: str) -> str:
    """
    Normalize a title text to its database key form.

    Raises:
        InvalidTitleError: If the text is empty after trimming or has illegal characters
    """
    if _ILLEGAL_TITLE_CHARS.search(text):
        raise InvalidTitleError(f"Title contains illegal characters: {text!r}")

    dbkey = _UNDERSCORE_RUNS.sub("_", text.strip().replace(" ", "_")).strip("_")
    if not dbkey:
        raise InvalidTitleError("Title is empty")

    return dbkey[0].upper() + dbkey[1:]


def parse_title(text: str, default_namespace: int = Namespace.FILE) -> ParsedTitle:
    """
    Split an optional namespace prefix off a title and normalize the rest.

    Unknown prefixes are kept as part of the title, so "Foo:Bar.png" is a file
    named "Foo:Bar.png".
    """
    namespace = int(default_namespace)
    rest = text
    if ":" in text:
        prefix, _, remainder = text.partition(":")
        key = _UNDERSCORE_RUNS.sub("_", prefix.strip().replace(" ", "_")).lower()
        if key in NAMESPACE_NAMES:
            namespace = int(NAMESPACE_NAMES[key])
            rest = remainder

    return ParsedTitle(namespace, normalize_dbkey(rest))
