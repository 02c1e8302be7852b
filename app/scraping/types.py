"""
Shared scrape orchestration data models.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class StoredProduct:
    """
    Store-side identity of one product row.
    """

    id: uuid.UUID
    asin: str


@dataclass(frozen=True)
class RefreshCandidate:
    """
    A product that is due for a scheduled re-scrape.
    """

    product_id: uuid.UUID
    asin: str


@dataclass(frozen=True)
class ReviewSummary:
    """
    Aggregate statistics over one set of scraped reviews.
    """

    review_count: int
    verified_purchases: int
    amazon_vine_reviews: int
    average_rating: float
    stars_breakdown: dict[str, float] = field(default_factory=dict)

    def to_payload(self, *, last_updated: str) -> dict[str, Any]:
        return {
            "rating": self.average_rating,
            "reviewCount": self.review_count,
            "starsBreakdown": dict(self.stars_breakdown),
            "verifiedPurchases": self.verified_purchases,
            "amazonVineReviews": self.amazon_vine_reviews,
            "lastUpdated": last_updated,
        }
