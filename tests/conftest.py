"""
tests/conftest.py

Shared fakes for orchestration tests: a scripted scrape provider and an
in-memory product store. Both record every call so tests can assert on
what the orchestrators asked for.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from typing import Any

import pytest

from app.config import RefreshSettings
from app.scraping.errors import StoreError
from app.scraping.provider import RunState, RunStatus
from app.scraping.storage.base import ProductStore
from app.scraping.timers import VirtualTimers
from app.scraping.types import RefreshCandidate, StoredProduct

ASIN_A = "B0AAAAAAAA"
ASIN_B = "B0BBBBBBBB"
ASIN_C = "B0CCCCCCCC"


class FakeProvider:
    """
    Scripted provider. Run ids are ``run-1``, ``run-2``, ... in start order.

    Each run walks through its status script one poll at a time and then
    repeats the last entry.
    """

    def __init__(self, *, results: Any = None) -> None:
        self.started: list[list[str]] = []
        self.status_calls: list[str] = []
        self.default_statuses: list[RunStatus] = [RunStatus(status=RunState.SUCCEEDED, progress_percent=100)]
        self.default_results: Any = results if results is not None else []
        self.results_by_run: dict[str, Any] = {}
        self.start_error: Exception | None = None
        self.status_error: Exception | None = None
        self._scripts: dict[str, list[RunStatus]] = {}

    def script(self, run_id: str, statuses: Sequence[RunStatus]) -> None:
        self._scripts[run_id] = list(statuses)

    def start_run(self, subject_ids: Sequence[str]) -> str:
        if self.start_error is not None:
            raise self.start_error
        self.started.append(list(subject_ids))
        return f"run-{len(self.started)}"

    def get_run_status(self, run_id: str) -> RunStatus:
        self.status_calls.append(run_id)
        if self.status_error is not None:
            raise self.status_error
        script = self._scripts.setdefault(run_id, list(self.default_statuses))
        if len(script) > 1:
            return script.pop(0)
        return script[0]

    def get_run_results(self, run_id: str) -> Any:
        return self.results_by_run.get(run_id, self.default_results)


class InMemoryProductStore(ProductStore):
    def __init__(self) -> None:
        self.products: dict[str, dict[str, Any]] = {}
        self.inserts = 0
        self.updates = 0
        self.fail_upsert_for: set[str] = set()
        self.select_error: Exception | None = None
        self.due: list[RefreshCandidate] = []
        self.refresh_outcomes: list[tuple[uuid.UUID, bool, str | None]] = []
        self.review_status_calls: list[tuple[str, dict[str, Any]]] = []

    def add_product(self, asin: str) -> uuid.UUID:
        product_id = uuid.uuid4()
        self.products[asin] = {"id": product_id, "asin": asin}
        return product_id

    def find_by_identifier(self, asin: str) -> StoredProduct | None:
        product = self.products.get(asin)
        if product is None:
            return None
        return StoredProduct(id=product["id"], asin=asin)

    def upsert_product(self, *, values: dict[str, Any], product_id: uuid.UUID | None = None) -> uuid.UUID:
        asin = values["asin"]
        if asin in self.fail_upsert_for:
            raise StoreError(f"Product store upsert_product failed: write rejected for {asin}")
        if product_id is not None:
            self.products[asin].update(values)
            self.updates += 1
            return product_id
        new_id = uuid.uuid4()
        self.products[asin] = {**values, "id": new_id}
        self.inserts += 1
        return new_id

    def replace_reviews(
        self,
        *,
        product_id: uuid.UUID,
        reviews: Sequence[dict[str, Any]],
        review_summary: dict[str, Any],
        review_data: dict[str, Any],
    ) -> None:
        for product in self.products.values():
            if product["id"] == product_id:
                product.update(
                    reviews=list(reviews),
                    review_summary=review_summary,
                    review_data=review_data,
                )
                return
        raise StoreError(f"Product not found: {product_id}")

    def record_review_status(self, *, asin: str, review_data: dict[str, Any]) -> None:
        self.review_status_calls.append((asin, review_data))
        if asin in self.products:
            self.products[asin]["review_data"] = review_data

    def select_due_for_refresh(self, batch_size: int) -> list[RefreshCandidate]:
        if self.select_error is not None:
            raise self.select_error
        return self.due[:batch_size]

    def mark_refresh_outcome(
        self,
        *,
        product_id: uuid.UUID,
        success: bool,
        error: str | None = None,
    ) -> None:
        self.refresh_outcomes.append((product_id, success, error))


def product_record(asin: str, **extra: Any) -> dict[str, Any]:
    record = {
        "asin": asin,
        "title": f"Product {asin}",
        "brand": "Acme",
        "price": {"value": 19.99, "currency": "$"},
        "rating": 4.4,
        "reviewsCount": 120,
    }
    record.update(extra)
    return record


@pytest.fixture()
def timers() -> VirtualTimers:
    return VirtualTimers()


@pytest.fixture()
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture()
def store() -> InMemoryProductStore:
    return InMemoryProductStore()


@pytest.fixture()
def refresh_settings() -> RefreshSettings:
    return RefreshSettings(
        enabled=True,
        batch_size=5,
        check_interval_seconds=120.0,
        retry_delay_seconds=30.0,
        max_refresh_failures=5,
    )
