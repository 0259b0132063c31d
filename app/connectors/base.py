"""
app/connectors/base.py

Base connector abstraction and shared HTTP mechanics.

One connector instance is shared by every enrichment worker, so request
pacing and any session state must be thread-safe.
"""

from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Any

import requests

from app.config import ExternalHTTPSettings

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}


class ConnectorRequestError(RuntimeError):
    """
    Raised when a connector cannot complete an upstream request.
    """


class BaseConnector(ABC):
    """
    HTTP plumbing for upstream lookups: timeouts, retries with exponential
    backoff, `Retry-After` support and a minimum interval between requests.

    A `rate_limit_per_second` of 0 disables request pacing.
    """

    source: str

    def __init__(
        self,
        *,
        source: str,
        http_settings: ExternalHTTPSettings,
        rate_limit_per_second: float = 0.0,
        session: requests.Session | None = None,
    ) -> None:
        self.source = source
        self._session = session or requests.Session()
        self._timeout_seconds = http_settings.timeout_seconds
        self._max_retries = http_settings.max_retries
        self._backoff_initial_seconds = http_settings.backoff_initial_seconds
        self._backoff_multiplier = http_settings.backoff_multiplier
        self._min_request_interval_seconds = 1.0 / rate_limit_per_second if rate_limit_per_second > 0 else 0.0
        self._next_request_monotonic: float = 0.0
        self._rate_lock = threading.Lock()

    @abstractmethod
    def resolve(self, *args: Any) -> Any:
        """
        Look one record up upstream and return the value for its lookup port.
        """

    def _request_json(
        self,
        *,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        json_body: Any = None,
        auth: tuple[str, str] | None = None,
    ) -> Any:
        """
        Execute an HTTP request and return parsed JSON with retry support.
        """

        response = self._request(
            method=method,
            url=url,
            params=params,
            headers=headers,
            json_body=json_body,
            auth=auth,
        )
        try:
            return response.json()
        except ValueError as exc:
            raise ConnectorRequestError(f"{self.source}: response was not valid JSON.") from exc

    def _request(
        self,
        *,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        json_body: Any = None,
        auth: tuple[str, str] | None = None,
    ) -> requests.Response:
        """
        Execute an HTTP request with rate limiting and exponential backoff.
        """

        last_error: Exception | None = None
        for attempt in range(self._max_retries + 1):
            self._apply_rate_limit()
            retry_after: float | None = None
            try:
                response = self._session.request(
                    method=method,
                    url=url,
                    params=params,
                    headers=headers,
                    json=json_body,
                    auth=auth,
                    timeout=self._timeout_seconds,
                )
                if response.status_code in RETRYABLE_STATUS_CODES:
                    retry_after = _parse_retry_after(response.headers.get("Retry-After"))
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
                    logger.error(
                        "Connector request failed source=%s status=%s url=%s error=%s",
                        self.source,
                        status_code,
                        url,
                        exc,
                    )
                    raise ConnectorRequestError(
                        f"{self.source}: non-retryable request failure (HTTP {status_code})."
                    ) from exc
            except (requests.Timeout, requests.ConnectionError) as exc:
                last_error = exc

            if attempt >= self._max_retries:
                break

            backoff_seconds = (
                retry_after
                if retry_after is not None
                else self._backoff_initial_seconds * (self._backoff_multiplier**attempt)
            )
            logger.warning(
                "Connector request retry source=%s attempt=%s/%s wait_seconds=%.2f url=%s",
                self.source,
                attempt + 1,
                self._max_retries,
                backoff_seconds,
                url,
            )
            time.sleep(backoff_seconds)

        logger.error(
            "Connector request exhausted retries source=%s url=%s error=%s",
            self.source,
            url,
            last_error,
        )
        raise ConnectorRequestError(f"{self.source}: request failed after retries.") from last_error

    def _apply_rate_limit(self) -> None:
        """
        Reserve the next request slot and sleep until it opens.
        """

        if self._min_request_interval_seconds <= 0:
            return

        with self._rate_lock:
            now = time.monotonic()
            slot = max(now, self._next_request_monotonic)
            self._next_request_monotonic = slot + self._min_request_interval_seconds
        wait_seconds = slot - now
        if wait_seconds > 0:
            time.sleep(wait_seconds)


def _parse_retry_after(value: str | None) -> float | None:
    if not value:
        return None
    try:
        return max(0.0, float(value.strip()))
    except ValueError:
        return None


def stringify_field(value: Any) -> str | None:
    """
    Render a scalar upstream field as text; numbers lose trailing decimals.
    """

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    if isinstance(value, float):
        return f"{value:.0f}" if value.is_integer() else str(value)
    if isinstance(value, int):
        return str(value)
    return None
