"""
Review scrape orchestration for one ASIN at a time.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from app.scraping.errors import InvalidFormatError, ProviderError, SubjectNotFoundError
from app.scraping.identifiers import is_valid_asin
from app.scraping.logging_utils import describe_error, log_event
from app.scraping.monitor import MonitoredScrapeOrchestrator
from app.scraping.normalization import ReviewNormalizer, summarize_reviews
from app.scraping.provider import ScrapeProvider
from app.scraping.registry import TaskRegistry
from app.scraping.storage.base import ProductStore
from app.scraping.timers import Timers

logger = logging.getLogger(__name__)


class ReviewScrapeOrchestrator(MonitoredScrapeOrchestrator):
    """
    Starts review runs and overwrites a product's reviews and review summary
    with each succeeded run. Review runs are not deduplicated.
    """

    kind = "review"

    def __init__(
        self,
        *,
        provider: ScrapeProvider,
        store: ProductStore,
        timers: Timers,
        poll_interval_seconds: float = 5.0,
        registry: TaskRegistry | None = None,
        normalizer: ReviewNormalizer | None = None,
    ) -> None:
        super().__init__(
            provider=provider,
            store=store,
            timers=timers,
            poll_interval_seconds=poll_interval_seconds,
            registry=registry,
        )
        self._normalizer = normalizer or ReviewNormalizer()

    def start_scraping(self, identifier: str) -> str:
        if not is_valid_asin(identifier):
            raise InvalidFormatError([identifier])
        logger.info("Starting review scraping asin=%s", identifier)
        return self._launch([identifier])

    def process_results(self, task_id: str) -> None:
        task = self._registry.get(task_id)
        if task is None:
            raise KeyError(f"Review task not found: {task_id}")
        asin = task.subject_ids[0]

        try:
            results = self._provider.get_run_results(task_id)
            if not isinstance(results, list):
                raise ProviderError("Invalid results format from the scraping provider.")

            product = self._store.find_by_identifier(asin)
            if product is None:
                raise SubjectNotFoundError(asin)

            scraped_at = datetime.now(timezone.utc).isoformat()
            summary = summarize_reviews(results)
            self._store.replace_reviews(
                product_id=product.id,
                reviews=self._normalizer.normalize_all(results),
                review_summary=summary.to_payload(last_updated=scraped_at),
                review_data={
                    "lastScraped": scraped_at,
                    "scrapedReviews": summary.review_count,
                    "scrapeStatus": "completed",
                },
            )
        except Exception as exc:
            self._record_failure(asin, exc)
            self._fail_task(task_id, exc)
            raise

        self._complete_task(task_id)
        log_event(
            logger,
            logging.INFO,
            "review_results_reconciled",
            task_id=task_id,
            asin=asin,
            reviews=summary.review_count,
            rating=summary.average_rating,
        )

    def _record_failure(self, asin: str, exc: Exception) -> None:
        try:
            self._store.record_review_status(
                asin=asin,
                review_data={
                    "lastScraped": datetime.now(timezone.utc).isoformat(),
                    "scrapeStatus": "failed",
                    "error": describe_error(exc),
                },
            )
        except Exception as update_exc:
            logger.error(
                "Failed to update product review status asin=%s error=%s",
                asin,
                describe_error(update_exc),
            )
