from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from api.enums import Namespace
from api.pagination import UsageKey


class UsageRecord(BaseModel):
    """One page on one site that uses a target file."""

    model_config = ConfigDict(frozen=True)

    target: str = Field(description="Normalized file name")
    site: str = Field(description="Origin site id")
    page_id: int
    namespace_id: int = Field(description="Namespace code of the page on its site")
    namespace: str = Field(default="", description="Namespace label on the origin site")
    title: str = Field(description="Unprefixed page title")

    @property
    def key(self) -> UsageKey:
        return UsageKey(self.target, self.site, self.page_id)

    @property
    def prefixed_title(self) -> str:
        """Title with its namespace label, as shown on the origin site."""
        if self.namespace:
            return f"{self.namespace}:{self.title}"
        return self.title


class UsagePageResponse(BaseModel):
    """JSON shape of one page of usage results."""

    usages: Dict[str, Dict[str, List[UsageRecord]]]
    count: int = Field(description="Number of targets on this page")
    has_more: bool
    continue_token: Optional[str] = Field(
        default=None,
        description="Token for the next page in the same direction. None if no more pages.",
    )
    direction: str


class TopUsageEntry(BaseModel):
    """A file and how many pages use it across all sites."""

    model_config = ConfigDict(frozen=True)

    namespace_id: int = int(Namespace.FILE)
    title: str
    value: int = Field(description="Number of usages")


class TopUsagePage(BaseModel):
    """One offset page of the most-linked files report."""

    entries: List[TopUsageEntry]
    offset: int
    limit: int
    has_more: bool
