import sqlalchemy as sa
from databases import Database

from config import DATABASE_URL

# Shared usage database - works with PostgreSQL or SQLite
# PostgreSQL is the default and recommended database
database = Database(DATABASE_URL)
metadata = sa.MetaData()


# One row per (file, site, page) usage, maintained by the link indexing pipeline
global_image_links = sa.Table(
    "global_image_links",
    metadata,
    sa.Column("target", sa.String(255), primary_key=True),  # normalized file name
    sa.Column("site", sa.String(64), primary_key=True),  # origin wiki id
    sa.Column("page_id", sa.Integer, primary_key=True, autoincrement=False),
    sa.Column("page_namespace_id", sa.Integer, nullable=False),
    sa.Column("page_namespace", sa.String(255), nullable=False, default=""),
    sa.Column("page_title", sa.String(255), nullable=False),
    sa.Index("ix_global_image_links_site_namespace", "site", "page_namespace_id"),
)

# Category membership of pages on the shared repository
category_links = sa.Table(
    "category_links",
    metadata,
    sa.Column("page_id", sa.Integer, primary_key=True, autoincrement=False),
    sa.Column("category", sa.String(255), primary_key=True),
    sa.Index("ix_category_links_category", "category"),
)

# Page metadata on the shared repository (resolves category members to file names)
pages = sa.Table(
    "pages",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True),
    sa.Column("namespace", sa.Integer, nullable=False),
    sa.Column("title", sa.String(255), nullable=False),
    sa.UniqueConstraint("namespace", "title", name="uq_pages_namespace_title"),
)
