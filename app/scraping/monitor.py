"""
Shared provider-run lifecycle for the product and review orchestrators.

A task is polled through deferred calls on ``Timers``. Each poll schedules
the next one only after it has resolved, so polls of one task never overlap.
Provider status mapping:

    READY / RUNNING (and other non-terminal states)  -> processing, poll again
    SUCCEEDED                                        -> reconcile, then completed
    FAILED / ABORTED / TIMED-OUT                     -> failed

Any exception raised while polling or reconciling is terminal for the task.
It is captured on the task and logged, never raised to a caller; callers
observe outcomes through ``get_task_status``.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence

from app.scraping.errors import ProviderError
from app.scraping.logging_utils import describe_error, log_event
from app.scraping.provider import RunState, RunStatus, ScrapeProvider
from app.scraping.registry import ScrapeTask, TaskRegistry, TaskStatus
from app.scraping.storage.base import ProductStore
from app.scraping.timers import Timers

logger = logging.getLogger(__name__)


class MonitoredScrapeOrchestrator(ABC):
    """
    Base class owning task registration, polling and terminal bookkeeping.
    """

    kind: str = "scrape"

    def __init__(
        self,
        *,
        provider: ScrapeProvider,
        store: ProductStore,
        timers: Timers,
        poll_interval_seconds: float = 5.0,
        registry: TaskRegistry | None = None,
    ) -> None:
        self._provider = provider
        self._store = store
        self._timers = timers
        self._poll_interval_seconds = poll_interval_seconds
        self._registry = registry or TaskRegistry()

    def get_task_status(self, task_id: str) -> ScrapeTask | None:
        """
        Return a snapshot of the task, or None for an unknown id.
        """

        return self._registry.get(task_id)

    def list_tasks(self) -> list[ScrapeTask]:
        return self._registry.list_tasks()

    @abstractmethod
    def process_results(self, task_id: str) -> None:
        """
        Reconcile a succeeded run into the store and complete the task.
        """

    def _release_subjects(self, task: ScrapeTask) -> None:
        """
        Hook run whenever a task reaches a terminal state.
        """

    def _launch(self, subject_ids: Sequence[str]) -> str:
        try:
            run_id = self._provider.start_run(list(subject_ids))
        except ProviderError:
            raise
        except Exception as exc:
            raise ProviderError(f"Failed to start {self.kind} scraping run: {describe_error(exc)}") from exc

        task = self._registry.register(ScrapeTask(id=run_id, subject_ids=list(subject_ids)))
        log_event(
            logger,
            logging.INFO,
            f"{self.kind}_task_started",
            task_id=run_id,
            subject_ids=task.subject_ids,
        )
        try:
            self._timers.call_later(0.0, self._poll, run_id)
        except Exception as exc:
            self._fail_task(run_id, exc)
            raise
        return run_id

    def _poll(self, task_id: str) -> None:
        task = self._registry.get(task_id)
        if task is None or task.is_terminal:
            return

        try:
            run_status = self._provider.get_run_status(task_id)
            self._apply_status(task_id, run_status)
        except Exception as exc:
            self._fail_task(task_id, exc)

    def _apply_status(self, task_id: str, run_status: RunStatus) -> None:
        if run_status.status == RunState.SUCCEEDED:
            # Completed is written only once reconciliation has finished.
            self._registry.record_poll(task_id, status=TaskStatus.PROCESSING, progress=100)
            log_event(logger, logging.INFO, f"{self.kind}_run_succeeded", task_id=task_id)
            self.process_results(task_id)
            return

        if run_status.status in RunState.FAILED_STATES:
            message = run_status.message or f"Scraping run {run_status.status.lower()}"
            self._fail_task(task_id, message, progress=run_status.progress_percent)
            return

        updated = self._registry.record_poll(
            task_id,
            status=TaskStatus.PROCESSING,
            progress=run_status.progress_percent,
        )
        if updated is None:
            return
        logger.debug(
            "%s task %s provider_status=%s progress=%s",
            self.kind,
            task_id,
            run_status.status,
            updated.progress,
        )
        self._timers.call_later(self._poll_interval_seconds, self._poll, task_id)

    def _complete_task(self, task_id: str) -> ScrapeTask | None:
        completed = self._registry.mark_completed(task_id)
        task = completed or self._registry.get(task_id)
        if task is not None:
            self._release_subjects(task)
        if completed is not None:
            log_event(
                logger,
                logging.INFO,
                f"{self.kind}_task_completed",
                task_id=task_id,
                subject_ids=completed.subject_ids,
            )
        return completed

    def _fail_task(
        self,
        task_id: str,
        error: BaseException | str,
        *,
        progress: int | None = None,
    ) -> ScrapeTask | None:
        message = error if isinstance(error, str) else describe_error(error)
        if progress is not None:
            failed = self._registry.record_poll(
                task_id,
                status=TaskStatus.FAILED,
                progress=progress,
                error=message,
            )
        else:
            failed = self._registry.mark_failed(task_id, message)

        task = failed or self._registry.get(task_id)
        if task is not None:
            self._release_subjects(task)
        if failed is not None:
            log_event(
                logger,
                logging.ERROR,
                f"{self.kind}_task_failed",
                task_id=task_id,
                subject_ids=failed.subject_ids,
                error=message,
                error_type=None if isinstance(error, str) else type(error).__name__,
            )
        return failed
