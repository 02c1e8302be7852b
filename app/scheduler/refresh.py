"""
app/scheduler/refresh.py

Periodic re-scrape of products whose data is due for a refresh.

Lifecycle
----------
``start()`` registers a recurring cycle every ``check_interval_seconds`` and
runs one cycle right away. ``stop()`` cancels the recurring cycle and any
pending retry. Both are idempotent. One scheduler runs per process; there is
no leader election.

Cycle
------
1. Ask the store for up to ``batch_size`` due products; none due ends the cycle.
2. Submit all their ASINs to the product orchestrator in one call.
3. Success marks each product refreshed. Failure marks each product failed
   with the error text and schedules a one-off retry after
   ``retry_delay_seconds``. At most one retry is pending at a time; the
   regular cycle keeps running alongside it.

No exception escapes a cycle.
"""

from __future__ import annotations

import logging
import threading

from app.config import RefreshSettings
from app.scraping.logging_utils import describe_error, log_event
from app.scraping.product_orchestrator import ProductScrapeOrchestrator
from app.scraping.storage.base import ProductStore
from app.scraping.timers import TimerHandle, Timers
from app.scraping.types import RefreshCandidate

logger = logging.getLogger(__name__)


class RefreshScheduler:
    def __init__(
        self,
        *,
        orchestrator: ProductScrapeOrchestrator,
        store: ProductStore,
        timers: Timers,
        settings: RefreshSettings,
    ) -> None:
        self._orchestrator = orchestrator
        self._store = store
        self._timers = timers
        self._settings = settings
        self._lock = threading.Lock()
        self._running = False
        self._interval_handle: TimerHandle | None = None
        self._startup_handle: TimerHandle | None = None
        self._retry_handle: TimerHandle | None = None

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def retry_pending(self) -> bool:
        return self._retry_handle is not None

    @property
    def settings(self) -> RefreshSettings:
        return self._settings

    def start(self) -> None:
        with self._lock:
            if self._running:
                logger.info("Refresh scheduler is already running")
                return
            self._running = True
            self._interval_handle = self._timers.call_every(
                self._settings.check_interval_seconds,
                self.run_cycle,
            )
            self._startup_handle = self._timers.call_later(0.0, self.run_cycle)

        logger.info(
            "Refresh scheduler started batch_size=%s check_interval_seconds=%s",
            self._settings.batch_size,
            self._settings.check_interval_seconds,
        )

    def stop(self) -> None:
        with self._lock:
            for handle in (self._interval_handle, self._startup_handle, self._retry_handle):
                if handle is not None:
                    handle.cancel()
            self._interval_handle = None
            self._startup_handle = None
            self._retry_handle = None
            self._running = False
        logger.info("Refresh scheduler stopped")

    def run_cycle(self) -> None:
        """
        Run one refresh cycle. Safe to call directly; retries are only
        scheduled while the scheduler is running.
        """

        try:
            candidates = self._store.select_due_for_refresh(self._settings.batch_size)
        except Exception as exc:
            logger.error("Refresh cycle could not load due products error=%s", describe_error(exc))
            self._schedule_retry()
            return

        if not candidates:
            logger.debug("No products need refreshing")
            return

        asins = [candidate.asin for candidate in candidates]
        logger.info("Found %d products to refresh: %s", len(candidates), ", ".join(asins))

        try:
            task_id = self._orchestrator.start_scraping(asins)
        except Exception as exc:
            error = describe_error(exc)
            log_event(
                logger,
                logging.ERROR,
                "refresh_submission_failed",
                asins=asins,
                error=error,
                error_type=type(exc).__name__,
            )
            self._mark_all(candidates, success=False, error=error)
            self._schedule_retry()
            return

        self._mark_all(candidates, success=True)
        log_event(logger, logging.INFO, "refresh_submitted", asins=asins, task_id=task_id)

    def _mark_all(
        self,
        candidates: list[RefreshCandidate],
        *,
        success: bool,
        error: str | None = None,
    ) -> None:
        for candidate in candidates:
            try:
                self._store.mark_refresh_outcome(
                    product_id=candidate.product_id,
                    success=success,
                    error=error,
                )
            except Exception as exc:
                logger.error(
                    "Error marking product %s as %s: %s",
                    candidate.product_id,
                    "refreshed" if success else "failed",
                    describe_error(exc),
                )

    def _schedule_retry(self) -> None:
        with self._lock:
            if not self._running:
                return
            if self._retry_handle is not None:
                logger.debug("Refresh retry already pending")
                return
            self._retry_handle = self._timers.call_later(
                self._settings.retry_delay_seconds,
                self._run_retry,
            )
        logger.info("Refresh retry scheduled in %.0f seconds", self._settings.retry_delay_seconds)

    def _run_retry(self) -> None:
        with self._lock:
            self._retry_handle = None
        self.run_cycle()
