"""Initial schema: issue, page, user_account, read_mark, issue_fts

Revision ID: 0001
Revises: None
Create Date: 2026-01-01 00:00:00
"""
from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# revision identifiers
revision: str = "0001"
down_revision: str | None = None
branch_labels: str | None = None
depends_on: str | None = None


def _table_exists(name: str) -> bool:
    """Check whether a table already exists in the database."""
    conn = op.get_bind()
    result = conn.execute(
        sa.text("SELECT 1 FROM sqlite_master WHERE name=:n"),
        {"n": name},
    )
    return result.fetchone() is not None


def upgrade() -> None:
    # Guarded so the revision also applies cleanly to a database that
    # init_db() already created.

    if not _table_exists("issue"):
        op.create_table(
            "issue",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("filepath", sa.String(), nullable=False),
            sa.Column("modified_at", sa.DateTime(), nullable=False),
            sa.Column("size", sa.Integer(), nullable=False),
            sa.Column("comicvine_id", sa.Integer(), nullable=True),
            sa.Column("comicvine_url", sa.String(), nullable=True),
            sa.Column("series", sa.String(), nullable=True),
            sa.Column("issue_number", sa.Integer(), nullable=True),
            sa.Column("volume", sa.Integer(), nullable=True),
            sa.Column("title", sa.String(), nullable=True),
            sa.Column("summary", sa.String(), nullable=True),
            sa.Column("released_at", sa.Date(), nullable=True),
            sa.Column("writer", sa.String(), nullable=True),
            sa.Column("penciller", sa.String(), nullable=True),
            sa.Column("inker", sa.String(), nullable=True),
            sa.Column("colorist", sa.String(), nullable=True),
            sa.Column("cover_artist", sa.String(), nullable=True),
            sa.Column("publisher", sa.String(), nullable=True),
            sa.Column("page_count", sa.Integer(), nullable=True),
        )
        op.create_index("ix_issue_filepath", "issue", ["filepath"], unique=True)
        op.create_index("ix_issue_series", "issue", ["series"])
        op.create_index("ix_issue_publisher", "issue", ["publisher"])

    if not _table_exists("page"):
        op.create_table(
            "page",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("issue_id", sa.Integer(), sa.ForeignKey("issue.id"), nullable=False),
            sa.Column("name", sa.String(), nullable=False),
            sa.UniqueConstraint("issue_id", "name", name="uq_page_issue_name"),
        )
        op.create_index("ix_page_issue_id", "page", ["issue_id"])

    if not _table_exists("user_account"):
        op.create_table(
            "user_account",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("username", sa.String(), nullable=False),
            sa.Column("salt", sa.LargeBinary(), nullable=False),
            sa.Column("password_hash", sa.LargeBinary(), nullable=False),
        )
        op.create_index("ix_user_account_username", "user_account", ["username"], unique=True)

    if not _table_exists("read_mark"):
        op.create_table(
            "read_mark",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("user_account.id"), nullable=False),
            sa.Column("issue_id", sa.Integer(), sa.ForeignKey("issue.id"), nullable=False),
            sa.Column("read_at", sa.DateTime(), nullable=False),
            sa.UniqueConstraint("user_id", "issue_id", name="uq_read_mark_user_issue"),
        )
        op.create_index("ix_read_mark_issue_id", "read_mark", ["issue_id"])

    # rowid is the issue id
    op.execute("CREATE VIRTUAL TABLE IF NOT EXISTS issue_fts USING fts5(comicinfo)")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS issue_fts")
    op.drop_table("read_mark")
    op.drop_table("user_account")
    op.drop_table("page")
    op.drop_table("issue")
