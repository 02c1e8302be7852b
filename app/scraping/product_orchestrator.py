"""
Product scrape orchestration: submission, deduplication and reconciliation.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from datetime import datetime, timezone
from typing import Any

from app.scraping.errors import EmptyResultsError
from app.scraping.identifiers import validate_identifiers
from app.scraping.logging_utils import describe_error, log_event
from app.scraping.monitor import MonitoredScrapeOrchestrator
from app.scraping.normalization import ProductNormalizer
from app.scraping.provider import ScrapeProvider
from app.scraping.registry import InFlightSet, ScrapeTask, TaskRegistry
from app.scraping.storage.base import ProductStore
from app.scraping.timers import Timers

logger = logging.getLogger(__name__)

ReviewTrigger = Callable[[str], Any]


class ProductScrapeOrchestrator(MonitoredScrapeOrchestrator):
    """
    Starts product runs, guards identifiers against concurrent runs, and
    reconciles succeeded runs into the product store.

    Every identifier of a submission is claimed in the in-flight set before
    the provider is called and released once the task is terminal, or right
    away when the provider run could not be started.
    """

    kind = "product"

    def __init__(
        self,
        *,
        provider: ScrapeProvider,
        store: ProductStore,
        timers: Timers,
        poll_interval_seconds: float = 5.0,
        review_trigger: ReviewTrigger | None = None,
        registry: TaskRegistry | None = None,
        in_flight: InFlightSet | None = None,
        normalizer: ProductNormalizer | None = None,
    ) -> None:
        super().__init__(
            provider=provider,
            store=store,
            timers=timers,
            poll_interval_seconds=poll_interval_seconds,
            registry=registry,
        )
        self._review_trigger = review_trigger
        self._in_flight = in_flight or InFlightSet()
        self._normalizer = normalizer or ProductNormalizer()

    @property
    def in_flight(self) -> InFlightSet:
        return self._in_flight

    def disable_review_trigger(self) -> None:
        self._review_trigger = None

    def start_scraping(self, identifiers: Sequence[str | None]) -> str:
        """
        Submit ASINs for scraping and return the provider run id.

        Raises InvalidInputError, InvalidFormatError, AlreadyInFlightError
        or ProviderError. Never blocks on run completion.
        """

        asins = validate_identifiers(identifiers)
        self._in_flight.claim(asins)
        try:
            return self._launch(asins)
        except Exception as exc:
            self._in_flight.release(asins)
            logger.error("Failed to start product scraping asins=%s error=%s", asins, describe_error(exc))
            raise

    def process_results(self, task_id: str) -> None:
        try:
            self._reconcile(task_id)
        except Exception as exc:
            self._fail_task(task_id, exc)
            raise

    def _reconcile(self, task_id: str) -> None:
        results = self._provider.get_run_results(task_id)
        if not isinstance(results, list):
            raise EmptyResultsError("Invalid response format: expected a list of products.")
        if not results:
            raise EmptyResultsError("No product data returned from the scraping provider.")

        inserted = 0
        updated = 0
        skipped = 0
        for record in results:
            asin = record.get("asin") if isinstance(record, dict) else None
            if not asin:
                skipped += 1
                logger.warning("Skipping product with missing ASIN task_id=%s", task_id)
                continue

            existing = self._store.find_by_identifier(asin)
            values = self._normalizer.normalize(record, scraped_at=datetime.now(timezone.utc))
            product_id = self._store.upsert_product(
                values=values,
                product_id=existing.id if existing is not None else None,
            )
            if existing is not None:
                updated += 1
            else:
                inserted += 1

            try:
                self._dispatch_reviews(asin)
            finally:
                self._in_flight.release([asin])
            logger.debug("Reconciled product asin=%s product_id=%s", asin, product_id)

        self._complete_task(task_id)
        log_event(
            logger,
            logging.INFO,
            "product_results_reconciled",
            task_id=task_id,
            records=len(results),
            inserted=inserted,
            updated=updated,
            skipped=skipped,
        )

    def _dispatch_reviews(self, asin: str) -> None:
        if self._review_trigger is None:
            return
        try:
            self._timers.call_later(0.0, self._trigger_reviews, asin)
        except Exception as exc:
            logger.error("Failed to schedule review scraping asin=%s error=%s", asin, describe_error(exc))

    def _trigger_reviews(self, asin: str) -> None:
        # Timer callback, so errors are logged here and never reach the product task.
        if self._review_trigger is None:
            return
        try:
            self._review_trigger(asin)
            logger.info("Started review scraping asin=%s", asin)
        except Exception as exc:
            logger.error("Failed to start review scraping asin=%s error=%s", asin, describe_error(exc))

    def _release_subjects(self, task: ScrapeTask) -> None:
        self._in_flight.release(task.subject_ids)
