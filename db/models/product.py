"""
db/models/product.py

Product model holding scraped catalog attributes, reviews and refresh bookkeeping.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import Boolean, DateTime, Float, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, TimestampMixin


class ProductStatus:
    ACTIVE = "active"
    INACTIVE = "inactive"


class Product(Base, TimestampMixin):
    __tablename__ = "products"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    asin: Mapped[str] = mapped_column(String(10), nullable=False)
    title: Mapped[str | None] = mapped_column(Text, nullable=True)
    brand: Mapped[str | None] = mapped_column(String(255), nullable=True)
    price: Mapped[float | None] = mapped_column(Float, nullable=True)
    currency: Mapped[str | None] = mapped_column(String(16), nullable=True)
    availability: Mapped[str | None] = mapped_column(Text, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    dimensions: Mapped[dict[str, Any] | None] = mapped_column(nullable=True)
    specifications: Mapped[dict[str, Any] | None] = mapped_column(nullable=True)
    best_sellers_rank: Mapped[list[Any] | None] = mapped_column(nullable=True)
    variations: Mapped[list[Any] | None] = mapped_column(nullable=True)
    frequently_bought_together: Mapped[list[Any] | None] = mapped_column(nullable=True)
    customer_questions: Mapped[list[Any] | None] = mapped_column(nullable=True)
    images: Mapped[list[Any] | None] = mapped_column(nullable=True)
    categories: Mapped[list[Any] | None] = mapped_column(nullable=True)
    features: Mapped[list[Any] | None] = mapped_column(nullable=True)

    review_summary: Mapped[dict[str, Any] | None] = mapped_column(
        nullable=True,
        comment="rating, reviewCount, starsBreakdown, verifiedPurchases, lastUpdated",
    )
    reviews: Mapped[list[Any] | None] = mapped_column(
        nullable=True,
        comment="Latest scraped reviews, replaced wholesale on every review reconciliation",
    )
    review_data: Mapped[dict[str, Any] | None] = mapped_column(
        nullable=True,
        comment="lastScraped, scrapedReviews, scrapeStatus, error",
    )
    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=ProductStatus.ACTIVE,
    )

    refresh_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    refresh_interval_hours: Mapped[int] = mapped_column(Integer, nullable=False, default=24)
    last_refreshed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    next_refresh_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    refresh_failure_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    refresh_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("asin", name="uq_products_asin"),
        Index("ix_products_status", "status"),
        Index("ix_products_next_refresh_at", "next_refresh_at"),
    )
