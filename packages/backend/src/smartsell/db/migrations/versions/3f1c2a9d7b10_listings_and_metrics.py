"""listings and listing_metrics

Creates the listings table and the one-row-per-listing metrics table.
The unique listing_id is what INSERT ... ON CONFLICT DO NOTHING relies on
when two requests create the same metrics row at once.

Revision ID: 3f1c2a9d7b10
Revises:
Create Date: 2026-10-18 09:12:44.118204
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1c2a9d7b10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "listings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("image_url", sa.Text(), nullable=False),
        sa.Column("weight", sa.Numeric(10, 2), server_default="0", nullable=False),
        sa.Column("width", sa.Numeric(10, 2), server_default="0", nullable=False),
        sa.Column("height", sa.Numeric(10, 2), server_default="0", nullable=False),
        sa.Column("length", sa.Numeric(10, 2), server_default="0", nullable=False),
        sa.Column("requires_shipping", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("shipping_from_zip", sa.String(10), nullable=True),
        sa.Column("seller_id", sa.Integer(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )

    op.create_table(
        "listing_metrics",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "listing_id",
            sa.Integer(),
            sa.ForeignKey("listings.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("views", sa.Integer(), server_default="0", nullable=False),
        sa.Column("shares", sa.Integer(), server_default="0", nullable=False),
        sa.Column("clicks", sa.Integer(), server_default="0", nullable=False),
        sa.Column(
            "last_updated",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.UniqueConstraint("listing_id", name="uq_listing_metrics_listing_id"),
        sa.CheckConstraint("views >= 0", name="ck_listing_metrics_views"),
        sa.CheckConstraint("shares >= 0", name="ck_listing_metrics_shares"),
        sa.CheckConstraint("clicks >= 0", name="ck_listing_metrics_clicks"),
    )


def downgrade() -> None:
    op.drop_table("listing_metrics")
    op.drop_table("listings")
