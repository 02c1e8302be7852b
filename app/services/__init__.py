"""
app/services package marker.
"""

from app.services.scraping_runtime import (
    ScrapingRuntime,
    build_scraping_runtime,
    get_product_orchestrator,
    get_refresh_scheduler,
    get_review_orchestrator,
    get_scraping_runtime,
)

__all__ = [
    "ScrapingRuntime",
    "build_scraping_runtime",
    "get_product_orchestrator",
    "get_refresh_scheduler",
    "get_review_orchestrator",
    "get_scraping_runtime",
]
