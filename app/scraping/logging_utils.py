"""
Structured logging helpers for scrape orchestration.
"""

from __future__ import annotations

import json
import logging
from typing import Any


def log_event(
    logger: logging.Logger,
    level: int,
    event: str,
    **fields: Any,
) -> None:
    """
    Emit one structured log line as compact JSON.

    Fields set to None are dropped to keep task lifecycle lines short.
    """

    if not logger.isEnabledFor(level):
        return
    payload = {"event": event, **{key: value for key, value in fields.items() if value is not None}}
    logger.log(level, json.dumps(payload, default=str, sort_keys=True))


def describe_error(exc: BaseException | None) -> str:
    """
    Render an exception as the message stored on failed tasks and products.
    """

    if exc is None:
        return "Unknown error"
    message = str(exc).strip()
    return message or type(exc).__name__
