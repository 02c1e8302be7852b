"""
In-memory task registry and in-flight identifier set.

Both structures are touched by request threads (submission, status reads)
and by scheduler threads (monitor polls, reconciliation), so every mutation
happens under a lock.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone

from app.scraping.errors import AlreadyInFlightError


class TaskStatus:
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    TERMINAL = frozenset({COMPLETED, FAILED})


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


@dataclass
class ScrapeTask:
    """
    Lifecycle state of one provider run.
    """

    id: str
    subject_ids: list[str]
    status: str = TaskStatus.PENDING
    progress: int = 0
    error: str | None = None
    started_at: datetime = field(default_factory=_utcnow)
    completed_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TaskStatus.TERMINAL

    def snapshot(self) -> "ScrapeTask":
        return replace(self, subject_ids=list(self.subject_ids))


class TaskRegistry:
    """
    Task id to task state map. Reads return snapshots; terminal tasks are frozen.
    """

    def __init__(self) -> None:
        self._tasks: dict[str, ScrapeTask] = {}
        self._lock = threading.Lock()

    def register(self, task: ScrapeTask) -> ScrapeTask:
        with self._lock:
            self._tasks[task.id] = task
            return task.snapshot()

    def get(self, task_id: str) -> ScrapeTask | None:
        with self._lock:
            task = self._tasks.get(task_id)
            return task.snapshot() if task is not None else None

    def list_tasks(self) -> list[ScrapeTask]:
        with self._lock:
            return [task.snapshot() for task in self._tasks.values()]

    def record_poll(
        self,
        task_id: str,
        *,
        status: str,
        progress: int,
        error: str | None = None,
    ) -> ScrapeTask | None:
        """
        Apply one poll result. Returns None when the task is unknown or already terminal.
        """

        with self._lock:
            task = self._tasks.get(task_id)
            if task is None or task.is_terminal:
                return None
            task.status = status
            task.progress = max(0, min(100, progress))
            if error:
                task.error = error
            if status in TaskStatus.TERMINAL:
                task.completed_at = _utcnow()
            return task.snapshot()

    def mark_completed(self, task_id: str) -> ScrapeTask | None:
        with self._lock:
            task = self._tasks.get(task_id)
            if task is None or task.is_terminal:
                return None
            task.status = TaskStatus.COMPLETED
            task.progress = 100
            task.completed_at = _utcnow()
            return task.snapshot()

    def mark_failed(self, task_id: str, error: str) -> ScrapeTask | None:
        with self._lock:
            task = self._tasks.get(task_id)
            if task is None or task.is_terminal:
                return None
            task.status = TaskStatus.FAILED
            task.error = error
            task.completed_at = _utcnow()
            return task.snapshot()


class InFlightSet:
    """
    Identifiers claimed by active product tasks.

    ``claim`` checks and adds in one locked step, so two overlapping
    submissions can never both pass the conflict check.
    """

    def __init__(self) -> None:
        self._identifiers: set[str] = set()
        self._lock = threading.Lock()

    def claim(self, identifiers: Iterable[str]) -> None:
        requested = list(dict.fromkeys(identifiers))
        with self._lock:
            conflicts = [item for item in requested if item in self._identifiers]
            if conflicts:
                raise AlreadyInFlightError(conflicts)
            self._identifiers.update(requested)

    def release(self, identifiers: Iterable[str | None]) -> None:
        with self._lock:
            for item in identifiers:
                if item is not None:
                    self._identifiers.discard(item)

    def snapshot(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._identifiers)

    def __contains__(self, identifier: object) -> bool:
        with self._lock:
            return identifier in self._identifiers

    def __len__(self) -> int:
        with self._lock:
            return len(self._identifiers)
