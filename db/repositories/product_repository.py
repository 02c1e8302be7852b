"""
Repository for product lookup, upsert and refresh bookkeeping.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import Select, or_, select
from sqlalchemy.orm import Session

from db.models.product import Product, ProductStatus

DEFAULT_REFRESH_INTERVAL_HOURS = 24


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _refresh_interval(product: Product) -> timedelta:
    # Python-side column defaults are unset until the row is flushed.
    hours = product.refresh_interval_hours or DEFAULT_REFRESH_INTERVAL_HOURS
    return timedelta(hours=max(1, hours))


def due_for_refresh_statement(*, limit: int, now: datetime) -> Select[tuple[Product]]:
    """Active, refresh-enabled products whose next refresh is unset or past, oldest first."""
    return (
        select(Product)
        .where(
            Product.refresh_enabled.is_(True),
            Product.status == ProductStatus.ACTIVE,
            or_(Product.next_refresh_at.is_(None), Product.next_refresh_at <= now),
        )
        .order_by(Product.next_refresh_at.asc().nulls_first(), Product.created_at.asc())
        .limit(max(1, limit))
    )


class ProductRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def get_by_asin(self, asin: str) -> Product | None:
        stmt = select(Product).where(Product.asin == asin)
        return self._session.scalars(stmt).first()

    def get(self, product_id: uuid.UUID) -> Product | None:
        return self._session.get(Product, product_id)

    def insert(self, values: dict[str, Any]) -> Product:
        product = Product(**values)
        self._session.add(product)
        self._session.flush()
        return product

    def update(self, product: Product, values: dict[str, Any]) -> Product:
        for key, value in values.items():
            setattr(product, key, value)
        self._session.flush()
        return product

    def list_due_for_refresh(self, *, limit: int, now: datetime | None = None) -> list[Product]:
        stmt = due_for_refresh_statement(limit=limit, now=now or _utcnow())
        return list(self._session.scalars(stmt).all())

    def schedule_next_refresh(self, product: Product, *, now: datetime | None = None) -> Product:
        """Record a fresh scrape: clear the failure state and push the next refresh one interval out."""
        current = now or _utcnow()
        product.last_refreshed_at = current
        product.next_refresh_at = current + _refresh_interval(product)
        product.refresh_failure_count = 0
        product.refresh_error = None
        return product

    def mark_refreshed(self, *, product_id: uuid.UUID) -> Product | None:
        product = self.get(product_id)
        if product is None:
            return None
        return self.schedule_next_refresh(product)

    def mark_refresh_failed(
        self,
        *,
        product_id: uuid.UUID,
        error_message: str,
        max_failures: int,
        now: datetime | None = None,
    ) -> Product | None:
        """
        Count a failed refresh.

        Below ``max_failures`` consecutive failures ``next_refresh_at`` stays
        put so the retry cycle selects the product again. From then on each
        failure backs the product off by one refresh interval instead.
        """

        product = self.get(product_id)
        if product is None:
            return None
        product.refresh_failure_count = (product.refresh_failure_count or 0) + 1
        product.refresh_error = error_message
        if product.refresh_failure_count >= max(1, max_failures):
            product.next_refresh_at = (now or _utcnow()) + _refresh_interval(product)
        return product
