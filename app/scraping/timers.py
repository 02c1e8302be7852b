"""
Deferred-call scheduling used by the monitor loops and the refresh scheduler.

Two implementations share the ``Timers`` protocol:

``APSchedulerTimers``
    Production timers backed by an APScheduler ``BackgroundScheduler``.
    Callbacks run on the scheduler's worker threads.

``VirtualTimers``
    A virtual clock for tests and synchronous scripts. Nothing runs until
    ``advance()`` moves the clock; due callbacks then run inline, in due-time
    order, including callbacks scheduled by other callbacks.
"""

from __future__ import annotations

import heapq
import itertools
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Protocol

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.base import BaseScheduler

logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None:
        ...


class Timers(Protocol):
    def call_later(self, delay_seconds: float, callback: Callable[..., None], *args: Any) -> TimerHandle:
        ...

    def call_every(self, interval_seconds: float, callback: Callable[..., None], *args: Any) -> TimerHandle:
        ...


# ---------------------------------------------------------------------------
# APScheduler-backed timers
# ---------------------------------------------------------------------------


class _APSchedulerHandle:
    def __init__(self, scheduler: BaseScheduler, job_id: str) -> None:
        self._scheduler = scheduler
        self._job_id = job_id

    def cancel(self) -> None:
        try:
            self._scheduler.remove_job(self._job_id)
        except JobLookupError:
            # One-off jobs are dropped by APScheduler once they have run.
            pass


class APSchedulerTimers:
    """
    Timers backed by an APScheduler scheduler.

    The caller owns the scheduler lifecycle (``start()`` / ``shutdown()``).
    """

    def __init__(self, scheduler: BaseScheduler) -> None:
        self._scheduler = scheduler

    @property
    def scheduler(self) -> BaseScheduler:
        return self._scheduler

    def call_later(self, delay_seconds: float, callback: Callable[..., None], *args: Any) -> _APSchedulerHandle:
        run_date = datetime.now(tz=timezone.utc) + timedelta(seconds=max(0.0, delay_seconds))
        job = self._scheduler.add_job(
            callback,
            trigger="date",
            run_date=run_date,
            args=list(args),
            misfire_grace_time=None,
        )
        return _APSchedulerHandle(self._scheduler, job.id)

    def call_every(self, interval_seconds: float, callback: Callable[..., None], *args: Any) -> _APSchedulerHandle:
        job = self._scheduler.add_job(
            callback,
            trigger="interval",
            seconds=interval_seconds,
            args=list(args),
            max_instances=1,
            coalesce=True,
        )
        return _APSchedulerHandle(self._scheduler, job.id)


# ---------------------------------------------------------------------------
# Virtual-time timers
# ---------------------------------------------------------------------------


@dataclass
class _VirtualTimer:
    due: float
    callback: Callable[..., None]
    args: tuple[Any, ...]
    interval: float | None = None
    cancelled: bool = field(default=False)

    def cancel(self) -> None:
        self.cancelled = True


class VirtualTimers:
    """
    Manually advanced clock that runs deferred callbacks deterministically.
    """

    def __init__(self) -> None:
        self._now = 0.0
        self._queue: list[tuple[float, int, _VirtualTimer]] = []
        self._sequence = itertools.count()

    @property
    def now(self) -> float:
        return self._now

    @property
    def pending(self) -> int:
        return sum(1 for _, _, timer in self._queue if not timer.cancelled)

    def call_later(self, delay_seconds: float, callback: Callable[..., None], *args: Any) -> _VirtualTimer:
        timer = _VirtualTimer(due=self._now + max(0.0, delay_seconds), callback=callback, args=args)
        self._push(timer)
        return timer

    def call_every(self, interval_seconds: float, callback: Callable[..., None], *args: Any) -> _VirtualTimer:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive.")
        timer = _VirtualTimer(
            due=self._now + interval_seconds,
            callback=callback,
            args=args,
            interval=interval_seconds,
        )
        self._push(timer)
        return timer

    def advance(self, seconds: float = 0.0) -> int:
        """
        Move the clock forward and run every callback that falls due.

        Returns the number of callbacks executed.
        """

        target = self._now + max(0.0, seconds)
        executed = 0
        while self._queue and self._queue[0][0] <= target:
            due, _, timer = heapq.heappop(self._queue)
            if timer.cancelled:
                continue
            self._now = due
            if timer.interval is not None:
                timer.due = due + timer.interval
                self._push(timer)
            executed += 1
            try:
                timer.callback(*timer.args)
            except Exception:
                logger.exception("Virtual timer callback failed callback=%r", timer.callback)
        self._now = target
        return executed

    def run_pending(self) -> int:
        return self.advance(0.0)

    def _push(self, timer: _VirtualTimer) -> None:
        heapq.heappush(self._queue, (timer.due, next(self._sequence), timer))
