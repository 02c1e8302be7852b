"""
tests/test_refresh_scheduler.py

Scheduled refresh cycles, failure bookkeeping and retry coalescing.
"""

from __future__ import annotations

import uuid

import pytest

from app.config import RefreshSettings
from app.scheduler.refresh import RefreshScheduler
from app.scraping.errors import ProviderError, StoreError
from app.scraping.product_orchestrator import ProductScrapeOrchestrator
from app.scraping.timers import VirtualTimers
from app.scraping.types import RefreshCandidate
from conftest import FakeProvider, InMemoryProductStore

DUE_ASINS = ["B0REFRESH1", "B0REFRESH2", "B0REFRESH3", "B0REFRESH4", "B0REFRESH5"]


@pytest.fixture()
def candidates(store: InMemoryProductStore) -> list[RefreshCandidate]:
    store.due = [RefreshCandidate(product_id=uuid.uuid4(), asin=asin) for asin in DUE_ASINS]
    return store.due


@pytest.fixture()
def scheduler(
    provider: FakeProvider,
    store: InMemoryProductStore,
    timers: VirtualTimers,
    refresh_settings: RefreshSettings,
) -> RefreshScheduler:
    orchestrator = ProductScrapeOrchestrator(provider=provider, store=store, timers=timers)
    return RefreshScheduler(
        orchestrator=orchestrator,
        store=store,
        timers=timers,
        settings=refresh_settings,
    )


class TestRefreshCycle:
    def test_due_products_are_submitted_in_one_batch(
        self,
        scheduler: RefreshScheduler,
        provider: FakeProvider,
        store: InMemoryProductStore,
        candidates: list[RefreshCandidate],
    ) -> None:
        scheduler.run_cycle()

        assert provider.started == [DUE_ASINS]
        assert [outcome[1] for outcome in store.refresh_outcomes] == [True] * 5
        assert {outcome[0] for outcome in store.refresh_outcomes} == {c.product_id for c in candidates}

    def test_batch_size_limits_the_selection(
        self,
        provider: FakeProvider,
        store: InMemoryProductStore,
        timers: VirtualTimers,
        candidates: list[RefreshCandidate],
    ) -> None:
        scheduler = RefreshScheduler(
            orchestrator=ProductScrapeOrchestrator(provider=provider, store=store, timers=timers),
            store=store,
            timers=timers,
            settings=RefreshSettings(batch_size=2),
        )

        scheduler.run_cycle()

        assert provider.started == [DUE_ASINS[:2]]

    def test_nothing_due_does_nothing(
        self,
        scheduler: RefreshScheduler,
        provider: FakeProvider,
        store: InMemoryProductStore,
    ) -> None:
        scheduler.run_cycle()

        assert provider.started == []
        assert store.refresh_outcomes == []

    def test_submission_failure_marks_every_product_failed(
        self,
        scheduler: RefreshScheduler,
        provider: FakeProvider,
        store: InMemoryProductStore,
        candidates: list[RefreshCandidate],
    ) -> None:
        provider.start_error = ProviderError("Apify API request failed (403): quota exceeded")

        scheduler.run_cycle()

        assert len(store.refresh_outcomes) == 5
        for _, success, error in store.refresh_outcomes:
            assert success is False
            assert error == "Apify API request failed (403): quota exceeded"

    def test_in_flight_conflict_counts_as_failure(
        self,
        scheduler: RefreshScheduler,
        provider: FakeProvider,
        store: InMemoryProductStore,
        candidates: list[RefreshCandidate],
    ) -> None:
        scheduler.run_cycle()
        store.refresh_outcomes.clear()

        scheduler.run_cycle()

        assert len(store.refresh_outcomes) == 5
        assert all(success is False for _, success, _ in store.refresh_outcomes)
        assert "already being processed" in (store.refresh_outcomes[0][2] or "")


class TestRefreshLifecycle:
    def test_start_runs_a_cycle_immediately(
        self,
        scheduler: RefreshScheduler,
        provider: FakeProvider,
        timers: VirtualTimers,
        candidates: list[RefreshCandidate],
    ) -> None:
        scheduler.start()
        assert provider.started == []

        timers.run_pending()

        assert provider.started == [DUE_ASINS]

    def test_cycle_repeats_on_the_check_interval(
        self,
        scheduler: RefreshScheduler,
        store: InMemoryProductStore,
        timers: VirtualTimers,
    ) -> None:
        selections: list[float] = []
        original = store.select_due_for_refresh

        def tracking_select(batch_size: int) -> list[RefreshCandidate]:
            selections.append(timers.now)
            return original(batch_size)

        store.select_due_for_refresh = tracking_select  # type: ignore[method-assign]

        scheduler.start()
        timers.advance(240.0)

        assert selections == [0.0, 120.0, 240.0]

    def test_start_and_stop_are_idempotent(self, scheduler: RefreshScheduler, timers: VirtualTimers) -> None:
        scheduler.start()
        scheduler.start()
        assert scheduler.is_running
        assert timers.pending == 2

        scheduler.stop()
        scheduler.stop()
        assert not scheduler.is_running
        assert timers.pending == 0

    def test_failed_cycle_schedules_one_retry(
        self,
        scheduler: RefreshScheduler,
        provider: FakeProvider,
        store: InMemoryProductStore,
        timers: VirtualTimers,
        candidates: list[RefreshCandidate],
    ) -> None:
        provider.start_error = ProviderError("provider down")
        scheduler.start()

        timers.run_pending()
        assert scheduler.retry_pending
        assert len(store.refresh_outcomes) == 5

        provider.start_error = None
        timers.advance(30.0)

        assert provider.started == [DUE_ASINS]
        assert not scheduler.retry_pending
        assert [success for _, success, _ in store.refresh_outcomes[5:]] == [True] * 5

    def test_retries_are_coalesced(
        self,
        scheduler: RefreshScheduler,
        provider: FakeProvider,
        store: InMemoryProductStore,
        timers: VirtualTimers,
        candidates: list[RefreshCandidate],
    ) -> None:
        attempts: list[float] = []
        original = store.select_due_for_refresh

        def tracking_select(batch_size: int) -> list[RefreshCandidate]:
            attempts.append(timers.now)
            return original(batch_size)

        store.select_due_for_refresh = tracking_select  # type: ignore[method-assign]
        provider.start_error = ProviderError("provider down")
        scheduler.start()
        timers.run_pending()

        scheduler.run_cycle()
        scheduler.run_cycle()
        timers.advance(30.0)

        # startup cycle, two manual cycles, then a single retry
        assert attempts == [0.0, 0.0, 0.0, 30.0]

    def test_no_retry_when_not_running(
        self,
        scheduler: RefreshScheduler,
        provider: FakeProvider,
        timers: VirtualTimers,
        candidates: list[RefreshCandidate],
    ) -> None:
        provider.start_error = ProviderError("provider down")

        scheduler.run_cycle()

        assert not scheduler.retry_pending
        assert timers.pending == 0

    def test_store_failure_schedules_retry(
        self,
        scheduler: RefreshScheduler,
        store: InMemoryProductStore,
        timers: VirtualTimers,
    ) -> None:
        store.select_error = StoreError("Product store select_due_for_refresh failed: connection refused")
        scheduler.start()

        timers.run_pending()

        assert scheduler.retry_pending

    def test_stop_cancels_pending_retry(
        self,
        scheduler: RefreshScheduler,
        provider: FakeProvider,
        timers: VirtualTimers,
        candidates: list[RefreshCandidate],
    ) -> None:
        provider.start_error = ProviderError("provider down")
        scheduler.start()
        timers.run_pending()

        scheduler.stop()
        provider.start_error = None
        timers.advance(300.0)

        assert not scheduler.retry_pending
        assert provider.started == []
