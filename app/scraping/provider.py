"""
Apify actor client used as the external scrape provider.

The orchestrators only see the ``ScrapeProvider`` protocol: start a run for a
list of ASINs, read its status, and fetch its dataset items. Every transport,
HTTP or auth failure surfaces as ``ProviderError`` so callers can tell
"could not talk to the provider" apart from "the run itself failed".
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Protocol

import requests

from app.config import ApifySettings, ExternalHTTPSettings
from app.scraping.errors import ProviderError

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}
PLACEHOLDER_TOKENS = frozenset({"your-apify-token", "apify_api_token"})


class RunState:
    READY = "READY"
    RUNNING = "RUNNING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    TIMING_OUT = "TIMING-OUT"
    TIMED_OUT = "TIMED-OUT"
    ABORTING = "ABORTING"
    ABORTED = "ABORTED"

    FAILED_STATES = frozenset({FAILED, TIMED_OUT, ABORTED})


@dataclass(frozen=True)
class RunStatus:
    """
    Provider-reported state of one run.
    """

    status: str
    progress_percent: int = 0
    message: str | None = None


class ScrapeProvider(Protocol):
    def start_run(self, subject_ids: Sequence[str]) -> str:
        ...

    def get_run_status(self, run_id: str) -> RunStatus:
        ...

    def get_run_results(self, run_id: str) -> Any:
        ...


class ApifyActorProvider:
    """
    Runs one Apify actor over the REST API with retry and rate limiting.
    """

    def __init__(
        self,
        *,
        settings: ApifySettings,
        http_settings: ExternalHTTPSettings,
        actor_id: str,
        max_reviews: int,
        session: requests.Session | None = None,
    ) -> None:
        self._settings = settings
        self._actor_id = actor_id
        self._max_reviews = max_reviews
        self._session = session or requests.Session()
        self._timeout_seconds = http_settings.timeout_seconds
        self._max_retries = http_settings.max_retries
        self._backoff_initial_seconds = http_settings.backoff_initial_seconds
        self._backoff_multiplier = http_settings.backoff_multiplier
        self._min_request_interval_seconds = (
            1.0 / http_settings.rate_limit_per_second if http_settings.rate_limit_per_second > 0 else 0.0
        )
        self._last_request_monotonic: float = 0.0
        self._rate_lock = threading.Lock()

    @property
    def actor_id(self) -> str:
        return self._actor_id

    def start_run(self, subject_ids: Sequence[str]) -> str:
        asins = list(dict.fromkeys(subject_ids))
        if not asins:
            raise ProviderError("No ASINs provided.")
        if len(asins) > self._settings.max_asins_per_run:
            raise ProviderError(
                f"Maximum of {self._settings.max_asins_per_run} ASINs allowed per batch."
            )

        payload = self._request_json(
            method="POST",
            path=f"/acts/{self._actor_id}/runs",
            json_body=self._build_run_input(asins),
        )
        data = payload.get("data") if isinstance(payload, dict) else None
        run_id = data.get("id") if isinstance(data, dict) else None
        if not run_id:
            raise ProviderError("Invalid response from Apify API: missing run ID.")

        logger.info(
            "Apify run started actor=%s run_id=%s asins=%d",
            self._actor_id,
            run_id,
            len(asins),
        )
        return str(run_id)

    def get_run_status(self, run_id: str) -> RunStatus:
        payload = self._request_json(method="GET", path=f"/acts/{self._actor_id}/runs/{run_id}")
        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, dict) or not data.get("status"):
            raise ProviderError(f"Invalid run status response for run {run_id}.")

        progress = data.get("progress")
        percent = progress.get("percent") if isinstance(progress, dict) else None
        return RunStatus(
            status=str(data["status"]).strip().upper(),
            progress_percent=_coerce_percent(percent),
            message=data.get("statusMessage") or None,
        )

    def get_run_results(self, run_id: str) -> Any:
        return self._request_json(
            method="GET",
            path=f"/actor-runs/{run_id}/dataset/items",
            params={"format": "json", "clean": "true"},
        )

    def _build_run_input(self, asins: list[str]) -> dict[str, Any]:
        return {
            "asins": asins,
            "amazonDomain": self._settings.amazon_domain,
            "maxReviews": self._max_reviews,
            "maxAnswers": self._settings.max_answers,
            "scrapeReviews": self._max_reviews > 0,
            "scrapeDescription": True,
            "scrapeFilters": True,
            "scrapeSpecifications": True,
            "scrapeBuyingOptions": True,
            "scrapeQuestions": True,
            "scrapeVariants": False,
            "proxyConfiguration": {
                "useApifyProxy": True,
                "countryCode": self._settings.proxy_country,
            },
            "proxyCountry": "AUTO_SELECT_PROXY_COUNTRY",
            "useCaptchaSolver": False,
        }

    def _auth_headers(self) -> dict[str, str]:
        token = (self._settings.api_token or "").strip()
        if not token or token in PLACEHOLDER_TOKENS:
            raise ProviderError(
                "Apify API token is not configured. Set APIFY_API_TOKEN in the environment."
            )
        return {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "Authorization": f"Bearer {token}",
        }

    def _request_json(
        self,
        *,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> Any:
        response = self._request(method=method, path=path, params=params, json_body=json_body)
        try:
            payload = response.json()
        except ValueError as exc:
            raise ProviderError("Apify API response was not valid JSON.") from exc
        if payload is None:
            raise ProviderError("Empty response from Apify API.")
        return payload

    def _request(
        self,
        *,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> requests.Response:
        """
        Execute an HTTP request with rate limiting and exponential backoff.
        """

        url = f"{self._settings.base_url}{path}"
        headers = self._auth_headers()
        last_error: Exception | None = None
        for attempt in range(self._max_retries + 1):
            self._apply_rate_limit()
            try:
                response = self._session.request(
                    method=method,
                    url=url,
                    params=params,
                    json=json_body,
                    headers=headers,
                    timeout=self._timeout_seconds,
                )
                if response.status_code in RETRYABLE_STATUS_CODES:
                    raise requests.HTTPError(
                        f"Retryable HTTP status code: {response.status_code}",
                        response=response,
                    )
                response.raise_for_status()
                return response
            except requests.HTTPError as exc:
                last_error = exc
                status_code = exc.response.status_code if exc.response is not None else None
                if status_code not in RETRYABLE_STATUS_CODES:
                    message = _error_message(exc.response)
                    logger.error(
                        "Apify request failed method=%s status=%s url=%s error=%s",
                        method,
                        status_code,
                        url,
                        message,
                    )
                    if status_code == 401:
                        raise ProviderError(
                            "Invalid Apify API token. Ensure APIFY_API_TOKEN is correct "
                            "and has the necessary permissions."
                        ) from exc
                    raise ProviderError(f"Apify API request failed ({status_code}): {message}") from exc
            except (requests.Timeout, requests.ConnectionError) as exc:
                last_error = exc

            if attempt >= self._max_retries:
                break

            backoff_seconds = self._backoff_initial_seconds * (self._backoff_multiplier**attempt)
            logger.warning(
                "Apify request retry method=%s attempt=%s/%s wait_seconds=%.2f url=%s",
                method,
                attempt + 1,
                self._max_retries,
                backoff_seconds,
                url,
            )
            time.sleep(backoff_seconds)

        logger.error("Apify request exhausted retries method=%s url=%s error=%s", method, url, last_error)
        raise ProviderError(f"Apify API request failed after retries: {last_error}") from last_error

    def _apply_rate_limit(self) -> None:
        if self._min_request_interval_seconds <= 0:
            return

        with self._rate_lock:
            elapsed = time.monotonic() - self._last_request_monotonic
            remaining = self._min_request_interval_seconds - elapsed
            if remaining > 0:
                time.sleep(remaining)
            self._last_request_monotonic = time.monotonic()


def _coerce_percent(value: Any) -> int:
    try:
        percent = int(float(value))
    except (TypeError, ValueError):
        return 0
    return max(0, min(100, percent))


def _error_message(response: requests.Response | None) -> str:
    if response is None:
        return "no response"
    try:
        body = response.json()
    except ValueError:
        return (response.text or response.reason or "").strip() or "unknown error"

    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        return str(error.get("message") or error.get("type") or response.reason)
    if error:
        return str(error)
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return str(response.reason or "unknown error")
