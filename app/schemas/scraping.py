"""
Schemas for scrape submission, task status and refresh scheduler endpoints.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class ProductScrapeRequest(BaseModel):
    asins: list[str | None] = Field(default_factory=list, description="ASINs to scrape")


class ScrapeTaskAcceptedResponse(BaseModel):
    task_id: str
    status: str


class ScrapeTaskStatusResponse(BaseModel):
    task_id: str
    subject_ids: list[str]
    status: str
    progress: int = Field(..., ge=0, le=100)
    error: str | None = None
    started_at: datetime
    completed_at: datetime | None = None


class ScrapeErrorDetail(BaseModel):
    message: str
    identifiers: list[str | None] = Field(default_factory=list)


class RefreshSchedulerStatusResponse(BaseModel):
    running: bool
    retry_pending: bool
    batch_size: int = Field(..., ge=1)
    check_interval_seconds: float
    retry_delay_seconds: float
