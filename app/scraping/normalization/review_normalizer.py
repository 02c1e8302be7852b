"""
Review normalization and aggregate statistics.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from typing import Any

from app.scraping.normalization.product_normalizer import STAR_KEYS
from app.scraping.types import ReviewSummary


def _rating_of(review: dict[str, Any]) -> float | None:
    """Return the star rating, or None when the review carries no usable 1-5 rating."""
    raw = review.get("ratingScore", review.get("rating"))
    if raw is None or isinstance(raw, bool):
        return None
    try:
        rating = float(raw)
    except (TypeError, ValueError):
        return None
    if not 1.0 <= rating <= 5.0:
        return None
    return rating


def summarize_reviews(reviews: Sequence[dict[str, Any]]) -> ReviewSummary:
    """
    Compute count, verified count, mean rating and per-star fractions.

    Each ``starsBreakdown`` bucket is the fraction of all reviews at that
    star level; all buckets are 0 when there are no reviews. Reviews without
    a 1-5 rating fall in no bucket and are left out of the mean.
    """

    total = len(reviews)
    if total == 0:
        return ReviewSummary(
            review_count=0,
            verified_purchases=0,
            amazon_vine_reviews=0,
            average_rating=0.0,
            stars_breakdown={key: 0.0 for key in STAR_KEYS},
        )

    ratings = [rating for rating in map(_rating_of, reviews) if rating is not None]
    counts = {level: 0 for level in range(1, 6)}
    for rating in ratings:
        counts[int(round(rating))] += 1

    rated = len(ratings)
    return ReviewSummary(
        review_count=total,
        verified_purchases=sum(1 for review in reviews if _is_verified(review)),
        amazon_vine_reviews=sum(1 for review in reviews if review.get("isAmazonVine")),
        average_rating=round(sum(ratings) / rated, 1) if rated else 0.0,
        stars_breakdown={f"{level}star": counts[level] / total for level in range(5, 0, -1)},
    )


def _is_verified(review: dict[str, Any]) -> bool:
    return bool(review.get("isVerified") or review.get("verified_purchase") or review.get("verified"))


class ReviewNormalizer:
    """
    Convert provider review records into the stored review shape.
    """

    def normalize(self, review: dict[str, Any]) -> dict[str, Any]:
        return {
            "id": review.get("id") or str(uuid.uuid4()),
            "reviewId": review.get("reviewId"),
            "reviewTitle": review.get("reviewTitle") or "",
            "reviewDescription": review.get("reviewDescription") or "",
            "ratingScore": review.get("ratingScore") or 0,
            "reviewedIn": review.get("reviewedIn") or review.get("date"),
            "isVerified": bool(review.get("isVerified")),
            "author": review.get("author") or "Anonymous",
            "userId": review.get("userId"),
            "userProfileLink": review.get("userProfileLink"),
            "reviewUrl": review.get("reviewUrl"),
            "reviewReaction": review.get("reviewReaction"),
            "isAmazonVine": bool(review.get("isAmazonVine")),
            "variant": review.get("variant"),
            "variantAttributes": review.get("variantAttributes"),
            "reviewImages": review.get("reviewImages") or [],
            "position": review.get("position"),
        }

    def normalize_all(self, reviews: Sequence[dict[str, Any]]) -> list[dict[str, Any]]:
        return [self.normalize(review) for review in reviews]
