"""
Pytest fixtures for GlobalUsage tests.
Provides a seeded test database, routers, and sample usage data.

Uses a temporary SQLite file per test: tables are created and seeded through
a synchronous SQLAlchemy engine, then read through `databases` the same way
the application reads them.
"""

import os
import tempfile
from pathlib import Path
from typing import AsyncGenerator, Dict, Iterable, List

import pytest
import sqlalchemy as sa
from databases import Database

# Point config at a throwaway database BEFORE importing anything from api
_test_temp_dir = tempfile.mkdtemp()
os.environ["GLOBALUSAGE_DATABASE_URL"] = f"sqlite:///{Path(_test_temp_dir) / 'unused.db'}"
os.environ["GLOBALUSAGE_LOCAL_SITE_ID"] = "localwiki"

from api.database import category_links, global_image_links, metadata, pages  # noqa: E402
from api.enums import Namespace  # noqa: E402
from api.routing import ConfiguredSharedRepoRouter  # noqa: E402
from tests.usage_data import LOCAL_SITE, insert_rows  # noqa: E402


@pytest.fixture(scope="function")
def test_db_url(tmp_path: Path) -> str:
    """Create an empty test database with all tables and return its URL."""
    db_url = f"sqlite:///{tmp_path / 'globalusage_test.db'}"
    engine = sa.create_engine(db_url)
    metadata.create_all(engine)
    engine.dispose()
    return db_url


@pytest.fixture(scope="function")
def seed_usages(test_db_url: str):
    """Return a function that inserts usage rows into the test database."""

    def _seed(rows: Iterable[Dict]) -> None:
        insert_rows(test_db_url, global_image_links, rows)

    return _seed


@pytest.fixture(scope="function")
def seed_category(test_db_url: str):
    """Return a function that puts files into a category on the shared repository."""

    def _seed(category: str, file_titles: List[str], first_page_id: int = 1000) -> None:
        page_rows = []
        link_rows = []
        for offset, title in enumerate(file_titles):
            page_id = first_page_id + offset
            page_rows.append({"id": page_id, "namespace": int(Namespace.FILE), "title": title})
            link_rows.append({"page_id": page_id, "category": category})
        insert_rows(test_db_url, pages, page_rows)
        insert_rows(test_db_url, category_links, link_rows)

    return _seed


@pytest.fixture(scope="function")
async def test_database(test_db_url: str) -> AsyncGenerator[Database, None]:
    """Connected read handle on the test database."""
    database = Database(test_db_url)
    await database.connect()

    yield database

    await database.disconnect()


@pytest.fixture(scope="function")
def owner_router(test_database: Database) -> ConfiguredSharedRepoRouter:
    """Router for a node that owns the global usage data."""
    return ConfiguredSharedRepoRouter(local_site_id=LOCAL_SITE, database=test_database)


@pytest.fixture(scope="function")
def remote_router() -> ConfiguredSharedRepoRouter:
    """Router for a node whose usage data lives on the shared repository."""
    from unittest.mock import MagicMock

    return ConfiguredSharedRepoRouter(
        local_site_id=LOCAL_SITE,
        database=MagicMock(spec=Database),
        shared_repo_site_id="commonswiki",
        shared_repo_url="https://commons.example.org/wiki",
    )
