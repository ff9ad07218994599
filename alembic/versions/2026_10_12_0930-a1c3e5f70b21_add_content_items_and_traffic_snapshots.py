"""add content_items and traffic_snapshots tables

Revision ID: a1c3e5f70b21
Revises:
Create Date: 2026-10-12

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "a1c3e5f70b21"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create content_items and traffic_snapshots."""
    op.create_table(
        "content_items",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column("title", sa.String(length=512), nullable=False),
        sa.Column("published_video_id", sa.String(length=64), nullable=True),
        sa.Column(
            "packaging",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column(
            "packaging_history",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column(
            "current_packaging_version",
            sa.Integer(),
            nullable=False,
            server_default="1",
        ),
        sa.Column("is_draft", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "packaging_revision", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column(
            "traffic_sources",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column("traffic_total_row", postgresql.JSONB(), nullable=True),
        sa.Column("traffic_updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("view_count", sa.Integer(), nullable=True),
        sa.Column("like_count", sa.Integer(), nullable=True),
        sa.Column("channel_title", sa.String(length=256), nullable=True),
        sa.Column("thumbnail_url", sa.Text(), nullable=True),
        sa.Column("metadata_refreshed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    )
    op.create_index(
        "ix_content_items_published_video_id",
        "content_items",
        ["published_video_id"],
        unique=False,
    )

    op.create_table(
        "traffic_snapshots",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("content_item_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "sources",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column("total_row", postgresql.JSONB(), nullable=True),
        sa.Column(
            "summary",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column("label", sa.Text(), nullable=True),
        sa.Column("closes_version_period", postgresql.JSONB(), nullable=True),
        sa.Column("packaging_snapshot", postgresql.JSONB(), nullable=True),
        sa.Column(
            "is_packaging_deleted",
            sa.Boolean(),
            nullable=False,
            server_default=sa.false(),
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.PrimaryKeyConstraint("id", "content_item_id"),
        sa.ForeignKeyConstraint(
            ["content_item_id"],
            ["content_items.id"],
            ondelete="CASCADE",
        ),
    )
    op.create_index(
        "ix_traffic_snapshots_item_timestamp",
        "traffic_snapshots",
        ["content_item_id", "timestamp"],
        unique=False,
    )
    op.create_index(
        "ix_traffic_snapshots_item_version",
        "traffic_snapshots",
        ["content_item_id", "version"],
        unique=False,
    )


def downgrade() -> None:
    """Drop traffic_snapshots and content_items."""
    op.drop_index("ix_traffic_snapshots_item_version", table_name="traffic_snapshots")
    op.drop_index("ix_traffic_snapshots_item_timestamp", table_name="traffic_snapshots")
    op.drop_table("traffic_snapshots")
    op.drop_index("ix_content_items_published_video_id", table_name="content_items")
    op.drop_table("content_items")
