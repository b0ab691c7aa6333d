"""
Routing between the local node and the shared repository that owns the
global usage data.

Query objects never decide where data lives themselves; they are handed a
SharedRepoRouter and ask it whether this node is the canonical data owner,
for the read handle of the owner's database, and where to send requests that
only the owner may answer.
"""

import logging
from typing import Mapping, Optional, Protocol
from urllib.parse import quote, urlencode

from databases import Database

logger = logging.getLogger(__name__)


class SharedRepoRouter(Protocol):
    """What the query components need to know about data placement."""

    def is_canonical_owner(self) -> bool:
        ...

    def resolve_canonical_database(self) -> Database:
        ...

    def redirect_url(self, page_name: str, params: Optional[Mapping[str, object]] = None) -> Optional[str]:
        ...


class ConfiguredSharedRepoRouter:
    """
    Router driven by static configuration.

    This node owns the data when no shared repository is configured, or when
    the configured shared repository site id is the local site id.
    """

    def __init__(
        self,
        local_site_id: str,
        database: Database,
        shared_repo_site_id: Optional[str] = None,
        shared_repo_url: Optional[str] = None,
    ):
        self.local_site_id = local_site_id
        self.shared_repo_site_id = shared_repo_site_id
        self.shared_repo_url = shared_repo_url.rstrip("/") if shared_repo_url else None
        self._database = database

    def is_canonical_owner(self) -> bool:
        return self.shared_repo_site_id is None or self.shared_repo_site_id == self.local_site_id

    def resolve_canonical_database(self) -> Database:
        return self._database

    def redirect_url(self, page_name: str, params: Optional[Mapping[str, object]] = None) -> Optional[str]:
        """
        URL of a page on the shared repository, or None if no URL is configured.

        Args:
            page_name: Page name on the shared repository (e.g. "MostGloballyLinkedFiles")
            params: Query parameters to carry over (offset, limit, ...)
        """
        if not self.shared_repo_url:
            return None

        url = f"{self.shared_repo_url}/{quote(page_name)}"
        if params:
            query = {k: v for k, v in params.items() if v is not None}
            if query:
                url = f"{url}?{urlencode(query)}"
        return url


_default_router: Optional[ConfiguredSharedRepoRouter] = None


def get_router() -> ConfiguredSharedRepoRouter:
    """Return the process-wide router built from configuration."""
    global _default_router
    if _default_router is None:
        from api.database import database
        from config import LOCAL_SITE_ID, SHARED_REPO_SITE_ID, SHARED_REPO_URL

        _default_router = ConfiguredSharedRepoRouter(
            local_site_id=LOCAL_SITE_ID,
            database=database,
            shared_repo_site_id=SHARED_REPO_SITE_ID,
            shared_repo_url=SHARED_REPO_URL,
        )
        logger.debug(
            f"Router initialized (local={LOCAL_SITE_ID}, shared_repo={SHARED_REPO_SITE_ID or 'local'})"
        )
    return _default_router
