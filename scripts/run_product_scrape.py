"""
Scrape a handful of ASINs from the command line and wait for the outcome.

Runs the same orchestrators as the API process, against the configured
database and Apify account, with the refresh scheduler left off.
"""

from __future__ import annotations

import argparse
import json
import logging
import time

from app.scraping.errors import ScrapeError
from app.scraping.registry import ScrapeTask, TaskStatus
from app.services.scraping_runtime import build_scraping_runtime


def _task_payload(task: ScrapeTask) -> dict[str, object]:
    return {
        "task_id": task.id,
        "subject_ids": task.subject_ids,
        "status": task.status,
        "progress": task.progress,
        "error": task.error,
        "started_at": task.started_at.isoformat(),
        "completed_at": task.completed_at.isoformat() if task.completed_at else None,
    }


def main() -> int:
    parser = argparse.ArgumentParser(description="Scrape Amazon products by ASIN.")
    parser.add_argument("asins", nargs="+", help="One or more 10-character ASINs.")
    parser.add_argument(
        "--timeout",
        type=float,
        default=900.0,
        help="Seconds to wait for the product task before giving up.",
    )
    parser.add_argument(
        "--skip-reviews",
        action="store_true",
        help="Do not start review scraping for reconciled products.",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")

    runtime = build_scraping_runtime()
    runtime.refresh_on_start = False
    if args.skip_reviews:
        runtime.product_orchestrator.disable_review_trigger()
    runtime.start()
    try:
        try:
            task_id = runtime.product_orchestrator.start_scraping(args.asins)
        except ScrapeError as exc:
            print(json.dumps({"error": str(exc), "error_type": type(exc).__name__}, indent=2))
            return 2

        deadline = time.monotonic() + args.timeout
        task = runtime.product_orchestrator.get_task_status(task_id)
        while task is not None and not task.is_terminal and time.monotonic() < deadline:
            time.sleep(1.0)
            task = runtime.product_orchestrator.get_task_status(task_id)
    finally:
        runtime.shutdown(wait=True)

    if task is None:
        return 1
    print(json.dumps(_task_payload(task), indent=2))
    return 0 if task.status == TaskStatus.COMPLETED else 1


if __name__ == "__main__":
    raise SystemExit(main())
