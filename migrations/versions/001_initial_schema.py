"""initial_schema

Revision ID: 001
Revises:
Create Date: 2026-10-18

Creates the global usage table and the two shared repository relations used
to resolve category targets.
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create all tables for the global usage database."""
    # One row per (file, site, page) usage
    op.create_table(
        "global_image_links",
        sa.Column("target", sa.String(255), nullable=False),
        sa.Column("site", sa.String(64), nullable=False),
        sa.Column("page_id", sa.Integer, nullable=False, autoincrement=False),
        sa.Column("page_namespace_id", sa.Integer, nullable=False),
        sa.Column("page_namespace", sa.String(255), nullable=False, server_default=""),
        sa.Column("page_title", sa.String(255), nullable=False),
        sa.PrimaryKeyConstraint("target", "site", "page_id", name="pk_global_image_links"),
    )
    op.create_index(
        "ix_global_image_links_site_namespace",
        "global_image_links",
        ["site", "page_namespace_id"],
    )

    # Category membership on the shared repository
    op.create_table(
        "category_links",
        sa.Column("page_id", sa.Integer, nullable=False, autoincrement=False),
        sa.Column("category", sa.String(255), nullable=False),
        sa.PrimaryKeyConstraint("page_id", "category", name="pk_category_links"),
    )
    op.create_index("ix_category_links_category", "category_links", ["category"])

    # Page metadata on the shared repository
    op.create_table(
        "pages",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("namespace", sa.Integer, nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.UniqueConstraint("namespace", "title", name="uq_pages_namespace_title"),
    )


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table("pages")
    op.drop_index("ix_category_links_category", table_name="category_links")
    op.drop_table("category_links")
    op.drop_index("ix_global_image_links_site_namespace", table_name="global_image_links")
    op.drop_table("global_image_links")
