"""create products table

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 09:00:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def _jsonb(name: str, comment: str | None = None) -> sa.Column:
    return sa.Column(name, postgresql.JSONB(astext_type=sa.Text()), nullable=True, comment=comment)


def upgrade() -> None:
    op.create_table(
        "products",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("asin", sa.String(length=10), nullable=False),
        sa.Column("title", sa.Text(), nullable=True),
        sa.Column("brand", sa.String(length=255), nullable=True),
        sa.Column("price", sa.Float(), nullable=True),
        sa.Column("currency", sa.String(length=16), nullable=True),
        sa.Column("availability", sa.Text(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        _jsonb("dimensions"),
        _jsonb("specifications"),
        _jsonb("best_sellers_rank"),
        _jsonb("variations"),
        _jsonb("frequently_bought_together"),
        _jsonb("customer_questions"),
        _jsonb("images"),
        _jsonb("categories"),
        _jsonb("features"),
        _jsonb(
            "review_summary",
            "rating, reviewCount, starsBreakdown, verifiedPurchases, lastUpdated",
        ),
        _jsonb(
            "reviews",
            "Latest scraped reviews, replaced wholesale on every review reconciliation",
        ),
        _jsonb("review_data", "lastScraped, scrapedReviews, scrapeStatus, error"),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("refresh_enabled", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column("refresh_interval_hours", sa.Integer(), server_default=sa.text("24"), nullable=False),
        sa.Column("last_refreshed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("next_refresh_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("refresh_failure_count", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("refresh_error", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("asin", name="uq_products_asin"),
    )
    op.create_index("ix_products_status", "products", ["status"], unique=False)
    op.create_index("ix_products_next_refresh_at", "products", ["next_refresh_at"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_products_next_refresh_at", table_name="products")
    op.drop_index("ix_products_status", table_name="products")
    op.drop_table("products")
