"""
app/scheduler/jobs.py

APScheduler factory for the scrape runtime.

Every deferred unit of work in the process runs on this scheduler:

  monitor polls:    one-off ``date`` jobs, one pending job per active task
  refresh cycle:    ``interval`` job, every REFRESH_CHECK_INTERVAL_SECONDS
  refresh retries:  one-off ``date`` jobs after REFRESH_RETRY_DELAY_SECONDS

Lifecycle
----------
Call ``build_scheduler()`` once per process. The scrape runtime starts it on
app boot and shuts it down on app shutdown (see ``app/main.py``).
"""

from __future__ import annotations

import os

from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.schedulers.background import BackgroundScheduler


def _get_int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def build_scheduler() -> BackgroundScheduler:
    """
    Return a configured but *not yet started* ``BackgroundScheduler``.

    Monitor polls must never be dropped, so misfired jobs run late instead
    of being skipped.
    """

    max_workers = max(1, _get_int_env("SCHEDULER_MAX_WORKERS", 10))
    return BackgroundScheduler(
        timezone="UTC",
        executors={"default": ThreadPoolExecutor(max_workers=max_workers)},
        job_defaults={"misfire_grace_time": None, "coalesce": False},
    )
