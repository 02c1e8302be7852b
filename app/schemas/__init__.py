"""
app/schemas package marker.
"""

from app.schemas.scraping import (
    ProductScrapeRequest,
    RefreshSchedulerStatusResponse,
    ScrapeErrorDetail,
    ScrapeTaskAcceptedResponse,
    ScrapeTaskStatusResponse,
)

__all__ = [
    "ProductScrapeRequest",
    "RefreshSchedulerStatusResponse",
    "ScrapeErrorDetail",
    "ScrapeTaskAcceptedResponse",
    "ScrapeTaskStatusResponse",
]
