"""
SQLAlchemy-backed product store.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.scraping.errors import StoreError
from app.scraping.storage.base import ProductStore
from app.scraping.types import RefreshCandidate, StoredProduct
from db.repositories.product_repository import ProductRepository

logger = logging.getLogger(__name__)


class SQLAlchemyProductStore(ProductStore):
    """
    Persist products through the repository, one short transaction per call.

    Calls arrive from scheduler threads, so each opens its own session from
    the factory instead of sharing a request-scoped one.
    """

    def __init__(self, *, session_factory: Callable[[], Session], max_refresh_failures: int = 5) -> None:
        self._session_factory = session_factory
        self._max_refresh_failures = max(1, max_refresh_failures)

    def find_by_identifier(self, asin: str) -> StoredProduct | None:
        with self._transaction("find_by_identifier") as db:
            product = ProductRepository(db).get_by_asin(asin)
            if product is None:
                return None
            return StoredProduct(id=product.id, asin=product.asin)

    def upsert_product(self, *, values: dict[str, Any], product_id: uuid.UUID | None = None) -> uuid.UUID:
        with self._transaction("upsert_product") as db:
            repository = ProductRepository(db)
            if product_id is not None:
                product = repository.get(product_id)
                if product is not None:
                    repository.update(product, values)
                    repository.schedule_next_refresh(product)
                    return product.id
                logger.warning("Product vanished before update product_id=%s; inserting", product_id)
            product = repository.insert(values)
            repository.schedule_next_refresh(product)
            return product.id

    def replace_reviews(
        self,
        *,
        product_id: uuid.UUID,
        reviews: Sequence[dict[str, Any]],
        review_summary: dict[str, Any],
        review_data: dict[str, Any],
    ) -> None:
        with self._transaction("replace_reviews") as db:
            repository = ProductRepository(db)
            product = repository.get(product_id)
            if product is None:
                raise StoreError(f"Product not found: {product_id}")
            repository.update(
                product,
                {
                    "reviews": list(reviews),
                    "review_summary": review_summary,
                    "review_data": review_data,
                },
            )

    def record_review_status(self, *, asin: str, review_data: dict[str, Any]) -> None:
        with self._transaction("record_review_status") as db:
            repository = ProductRepository(db)
            product = repository.get_by_asin(asin)
            if product is None:
                return
            repository.update(product, {"review_data": review_data})

    def select_due_for_refresh(self, batch_size: int) -> list[RefreshCandidate]:
        with self._transaction("select_due_for_refresh") as db:
            products = ProductRepository(db).list_due_for_refresh(limit=batch_size)
            return [RefreshCandidate(product_id=product.id, asin=product.asin) for product in products]

    def mark_refresh_outcome(
        self,
        *,
        product_id: uuid.UUID,
        success: bool,
        error: str | None = None,
    ) -> None:
        with self._transaction("mark_refresh_outcome") as db:
            repository = ProductRepository(db)
            if success:
                product = repository.mark_refreshed(product_id=product_id)
            else:
                product = repository.mark_refresh_failed(
                    product_id=product_id,
                    error_message=error or "Unknown error",
                    max_failures=self._max_refresh_failures,
                )
            if product is None:
                raise StoreError(f"Product not found: {product_id}")

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[Session]:
        db = self._session_factory()
        try:
            yield db
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise StoreError(f"Product store {operation} failed: {exc}") from exc
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
