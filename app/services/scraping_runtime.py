"""
Process-wide wiring of the scrape orchestrators and the refresh scheduler.

One ``ScrapingRuntime`` is built per process through ``get_scraping_runtime()``
and injected wherever it is needed (API dependencies, CLI scripts). It is
started in the app lifespan and shut down on exit; there is no other teardown.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from functools import lru_cache

from apscheduler.schedulers.base import BaseScheduler
from sqlalchemy.orm import Session

from app.config import (
    get_apify_settings,
    get_external_http_settings,
    get_refresh_settings,
    get_scrape_monitor_settings,
)
from app.scheduler.jobs import build_scheduler
from app.scheduler.refresh import RefreshScheduler
from app.scraping.product_orchestrator import ProductScrapeOrchestrator
from app.scraping.provider import ApifyActorProvider
from app.scraping.review_orchestrator import ReviewScrapeOrchestrator
from app.scraping.storage import ProductStore, SQLAlchemyProductStore
from app.scraping.timers import APSchedulerTimers

logger = logging.getLogger(__name__)


@dataclass
class ScrapingRuntime:
    scheduler: BaseScheduler
    product_orchestrator: ProductScrapeOrchestrator
    review_orchestrator: ReviewScrapeOrchestrator
    refresh_scheduler: RefreshScheduler
    refresh_on_start: bool = True

    def start(self) -> None:
        if not self.scheduler.running:
            self.scheduler.start()
        if self.refresh_on_start:
            self.refresh_scheduler.start()
        logger.info(
            "Scrape runtime started refresh_enabled=%s",
            self.refresh_scheduler.is_running,
        )

    def shutdown(self, *, wait: bool = True) -> None:
        self.refresh_scheduler.stop()
        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)
        logger.info("Scrape runtime shut down")


def build_scraping_runtime(
    *,
    session_factory: Callable[[], Session] | None = None,
    store: ProductStore | None = None,
    scheduler: BaseScheduler | None = None,
) -> ScrapingRuntime:
    apify_settings = get_apify_settings()
    http_settings = get_external_http_settings()
    monitor_settings = get_scrape_monitor_settings()
    refresh_settings = get_refresh_settings()

    if store is None:
        if session_factory is None:
            from db.session import SessionLocal

            session_factory = SessionLocal
        store = SQLAlchemyProductStore(
            session_factory=session_factory,
            max_refresh_failures=refresh_settings.max_refresh_failures,
        )

    scheduler = scheduler or build_scheduler()
    timers = APSchedulerTimers(scheduler)

    review_orchestrator = ReviewScrapeOrchestrator(
        provider=ApifyActorProvider(
            settings=apify_settings,
            http_settings=http_settings,
            actor_id=apify_settings.review_actor_id,
            max_reviews=apify_settings.review_max_reviews,
        ),
        store=store,
        timers=timers,
        poll_interval_seconds=monitor_settings.poll_interval_seconds,
    )
    product_orchestrator = ProductScrapeOrchestrator(
        provider=ApifyActorProvider(
            settings=apify_settings,
            http_settings=http_settings,
            actor_id=apify_settings.product_actor_id,
            max_reviews=apify_settings.product_max_reviews,
        ),
        store=store,
        timers=timers,
        poll_interval_seconds=monitor_settings.poll_interval_seconds,
        review_trigger=review_orchestrator.start_scraping,
    )
    refresh_scheduler = RefreshScheduler(
        orchestrator=product_orchestrator,
        store=store,
        timers=timers,
        settings=refresh_settings,
    )
    return ScrapingRuntime(
        scheduler=scheduler,
        product_orchestrator=product_orchestrator,
        review_orchestrator=review_orchestrator,
        refresh_scheduler=refresh_scheduler,
        refresh_on_start=refresh_settings.enabled,
    )


@lru_cache(maxsize=1)
def get_scraping_runtime() -> ScrapingRuntime:
    """
    Build and cache the process-wide scrape runtime.
    """

    return build_scraping_runtime()


def get_product_orchestrator() -> ProductScrapeOrchestrator:
    return get_scraping_runtime().product_orchestrator


def get_review_orchestrator() -> ReviewScrapeOrchestrator:
    return get_scraping_runtime().review_orchestrator


def get_refresh_scheduler() -> RefreshScheduler:
    return get_scraping_runtime().refresh_scheduler
