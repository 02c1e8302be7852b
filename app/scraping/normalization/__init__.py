"""
Normalization of provider result records into store payloads.
"""

from app.scraping.normalization.product_normalizer import ProductNormalizer
from app.scraping.normalization.review_normalizer import ReviewNormalizer, summarize_reviews

__all__ = ["ProductNormalizer", "ReviewNormalizer", "summarize_reviews"]
