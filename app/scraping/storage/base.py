"""
Store gateway interface for product and review persistence.
"""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any

from app.scraping.types import RefreshCandidate, StoredProduct


class ProductStore(ABC):
    """
    Persistence operations the orchestrators and the refresh scheduler rely on.

    Implementations raise ``StoreError`` on persistence failures.
    """

    @abstractmethod
    def find_by_identifier(self, asin: str) -> StoredProduct | None:
        """
        Return the stored product for an ASIN, or None.
        """

    @abstractmethod
    def upsert_product(self, *, values: dict[str, Any], product_id: uuid.UUID | None = None) -> uuid.UUID:
        """
        Update the product with ``product_id`` or insert a new one; return its id.

        The written product counts as freshly scraped: its refresh failure
        state is cleared and its next refresh moves one interval out.
        """

    @abstractmethod
    def replace_reviews(
        self,
        *,
        product_id: uuid.UUID,
        reviews: Sequence[dict[str, Any]],
        review_summary: dict[str, Any],
        review_data: dict[str, Any],
    ) -> None:
        """
        Overwrite the review list and review aggregates of one product.
        """

    @abstractmethod
    def record_review_status(self, *, asin: str, review_data: dict[str, Any]) -> None:
        """
        Overwrite the review scrape status of the product with this ASIN.
        """

    @abstractmethod
    def select_due_for_refresh(self, batch_size: int) -> list[RefreshCandidate]:
        """
        Return up to ``batch_size`` products due for a scheduled re-scrape.
        """

    @abstractmethod
    def mark_refresh_outcome(
        self,
        *,
        product_id: uuid.UUID,
        success: bool,
        error: str | None = None,
    ) -> None:
        """
        Record the outcome of one scheduled refresh submission.
        """
