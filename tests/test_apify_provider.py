"""
tests/test_apify_provider.py

Apify REST client behaviour against a recorded fake HTTP session.
"""

from __future__ import annotations

from typing import Any

import pytest
import requests

from app.config import ApifySettings, ExternalHTTPSettings
from app.scraping.errors import ProviderError
from app.scraping.provider import ApifyActorProvider, RunState

_NO_BODY = object()


class FakeResponse:
    def __init__(self, status_code: int, body: Any = _NO_BODY, *, reason: str = "", text: str = "") -> None:
        self.status_code = status_code
        self._body = body
        self.reason = reason
        self.text = text

    def json(self) -> Any:
        if self._body is _NO_BODY:
            raise ValueError("No JSON body")
        return self._body

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}", response=self)


class FakeSession:
    def __init__(self, *responses: FakeResponse | Exception) -> None:
        self._responses = list(responses)
        self.calls: list[dict[str, Any]] = []

    def request(self, **kwargs: Any) -> FakeResponse:
        self.calls.append(kwargs)
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("app.scraping.provider.time.sleep", lambda _seconds: None)


def build_provider(session: FakeSession, *, token: str | None = "apify-test-token", **overrides: Any) -> ApifyActorProvider:
    settings = ApifySettings(api_token=token, **overrides)
    return ApifyActorProvider(
        settings=settings,
        http_settings=ExternalHTTPSettings(max_retries=2, rate_limit_per_second=0.0),
        actor_id="actor~amazon",
        max_reviews=100,
        session=session,  # type: ignore[arg-type]
    )


class TestStartRun:
    def test_posts_actor_input_and_returns_run_id(self) -> None:
        session = FakeSession(FakeResponse(201, {"data": {"id": "run-abc"}}))
        provider = build_provider(session)

        run_id = provider.start_run(["B0AAAAAAAA", "B0AAAAAAAA", "B0BBBBBBBB"])

        assert run_id == "run-abc"
        call = session.calls[0]
        assert call["method"] == "POST"
        assert call["url"] == "https://api.apify.com/v2/acts/actor~amazon/runs"
        assert call["json"]["asins"] == ["B0AAAAAAAA", "B0BBBBBBBB"]
        assert call["json"]["amazonDomain"] == "amazon.com"
        assert call["json"]["maxReviews"] == 100
        assert call["headers"]["Authorization"] == "Bearer apify-test-token"

    def test_batch_size_cap(self) -> None:
        session = FakeSession()
        provider = build_provider(session, max_asins_per_run=2)

        with pytest.raises(ProviderError, match="Maximum of 2 ASINs"):
            provider.start_run(["B0AAAAAAAA", "B0BBBBBBBB", "B0CCCCCCCC"])
        assert session.calls == []

    @pytest.mark.parametrize("token", [None, "", "your-apify-token"])
    def test_missing_token_is_rejected_before_any_request(self, token: str | None) -> None:
        session = FakeSession()
        provider = build_provider(session, token=token)

        with pytest.raises(ProviderError, match="not configured"):
            provider.start_run(["B0AAAAAAAA"])
        assert session.calls == []

    def test_missing_run_id_is_a_provider_error(self) -> None:
        provider = build_provider(FakeSession(FakeResponse(201, {"data": {}})))

        with pytest.raises(ProviderError, match="missing run ID"):
            provider.start_run(["B0AAAAAAAA"])


class TestErrorHandling:
    def test_unauthorized_maps_to_token_message(self) -> None:
        provider = build_provider(FakeSession(FakeResponse(401, {"error": {"message": "User was not found"}})))

        with pytest.raises(ProviderError, match="Invalid Apify API token"):
            provider.start_run(["B0AAAAAAAA"])

    def test_client_error_carries_provider_message(self) -> None:
        provider = build_provider(
            FakeSession(FakeResponse(400, {"error": {"type": "invalid-input", "message": "Input is not valid"}}))
        )

        with pytest.raises(ProviderError, match="Input is not valid"):
            provider.start_run(["B0AAAAAAAA"])

    def test_retryable_status_is_retried(self) -> None:
        session = FakeSession(
            FakeResponse(503, reason="Service Unavailable"),
            FakeResponse(201, {"data": {"id": "run-abc"}}),
        )
        provider = build_provider(session)

        assert provider.start_run(["B0AAAAAAAA"]) == "run-abc"
        assert len(session.calls) == 2

    def test_retries_are_bounded(self) -> None:
        session = FakeSession(
            requests.ConnectionError("refused"),
            requests.Timeout("slow"),
            requests.ConnectionError("refused"),
        )
        provider = build_provider(session)

        with pytest.raises(ProviderError, match="after retries"):
            provider.get_run_status("run-abc")
        assert len(session.calls) == 3

    def test_non_json_body_is_a_provider_error(self) -> None:
        provider = build_provider(FakeSession(FakeResponse(200, text="<html>")))

        with pytest.raises(ProviderError, match="not valid JSON"):
            provider.get_run_results("run-abc")


class TestRunStatusAndResults:
    def test_status_is_normalized(self) -> None:
        session = FakeSession(
            FakeResponse(
                200,
                {"data": {"status": "running", "progress": {"percent": 140}, "statusMessage": ""}},
            )
        )
        provider = build_provider(session)

        status = provider.get_run_status("run-abc")

        assert status.status == RunState.RUNNING
        assert status.progress_percent == 100
        assert status.message is None
        assert session.calls[0]["url"].endswith("/acts/actor~amazon/runs/run-abc")

    def test_status_without_progress_reads_as_zero(self) -> None:
        provider = build_provider(
            FakeSession(FakeResponse(200, {"data": {"status": "FAILED", "statusMessage": "Actor crashed"}}))
        )

        status = provider.get_run_status("run-abc")

        assert status.status == RunState.FAILED
        assert status.progress_percent == 0
        assert status.message == "Actor crashed"

    def test_results_are_read_from_the_run_dataset(self) -> None:
        session = FakeSession(FakeResponse(200, [{"asin": "B0AAAAAAAA"}]))
        provider = build_provider(session)

        results = provider.get_run_results("run-abc")

        assert results == [{"asin": "B0AAAAAAAA"}]
        call = session.calls[0]
        assert call["method"] == "GET"
        assert call["url"] == "https://api.apify.com/v2/actor-runs/run-abc/dataset/items"
        assert call["params"] == {"format": "json", "clean": "true"}
