"""
Normalization of scraped product records into product table values.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from db.models.product import ProductStatus

STAR_KEYS = ("5star", "4star", "3star", "2star", "1star")


def empty_stars_breakdown() -> dict[str, float]:
    return {key: 0 for key in STAR_KEYS}


class ProductNormalizer:
    """
    Convert one provider product record into product column values.
    """

    def normalize(self, record: dict[str, Any], *, scraped_at: datetime | None = None) -> dict[str, Any]:
        normalized_time = scraped_at or datetime.now(timezone.utc)
        timestamp = normalized_time.isoformat()

        return {
            "asin": record["asin"],
            "title": record.get("title"),
            "brand": record.get("brand"),
            "price": _coerce_price(record.get("price")),
            "currency": record.get("currency"),
            "availability": record.get("availability"),
            "dimensions": record.get("dimensions"),
            "specifications": record.get("specifications"),
            "best_sellers_rank": record.get("bestSellersRank"),
            "variations": record.get("variations"),
            "frequently_bought_together": record.get("frequentlyBoughtTogether"),
            "customer_questions": record.get("customerQuestions"),
            "images": record.get("images"),
            "categories": record.get("categories"),
            "features": record.get("features"),
            "description": record.get("description"),
            "review_summary": {
                "rating": record.get("rating") or 0,
                "reviewCount": record.get("reviewsCount") or 0,
                "starsBreakdown": record.get("starsBreakdown") or empty_stars_breakdown(),
                "verifiedPurchases": 0,
                "lastUpdated": timestamp,
            },
            "status": ProductStatus.ACTIVE,
            "updated_at": normalized_time,
        }


def _coerce_price(value: Any) -> float | None:
    if isinstance(value, dict):
        value = value.get("value")
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None
