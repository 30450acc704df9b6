from __future__ import annotations

import asyncio
import json
import logging
import random
import time
from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import Any

import httpx

from injlens.config import IndexerConfig
from injlens.indexer.errors import FatalHttpError, RateLimitedError, TransientHttpError, WafLimitedError
from injlens.indexer.ratelimit import TokenBucket
from injlens.obs.logging import log_event


# latency samples kept per endpoint; older samples are discarded
LATENCY_WINDOW = 1000


@dataclass
class IndexerMetrics:
    http_requests_total: dict[tuple[str, str], int] = field(default_factory=lambda: defaultdict(int))
    http_retries_total: dict[tuple[str, str], int] = field(default_factory=lambda: defaultdict(int))
    http_latency_ms: dict[str, deque[float]] = field(
        default_factory=lambda: defaultdict(lambda: deque(maxlen=LATENCY_WINDOW))
    )

    def record_request(self, endpoint: str, status: str, latency_ms: float) -> None:
        self.http_requests_total[(endpoint, status)] += 1
        self.http_latency_ms[endpoint].append(latency_ms)

    def record_retry(self, endpoint: str, reason: str) -> None:
        self.http_retries_total[(endpoint, reason)] += 1


class IndexerClient:
    """Async JSON client for the indexer's REST gateway."""

    def __init__(
        self,
        config: IndexerConfig,
        *,
        logger: logging.Logger | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        rate_limiter: TokenBucket | None = None,
    ) -> None:
        self._config = config
        self._logger = logger or logging.getLogger(__name__)
        self._metrics = IndexerMetrics()
        timeout = httpx.Timeout(
            connect=config.timeout_s,
            read=config.timeout_s,
            write=config.timeout_s,
            pool=config.timeout_s,
        )
        self._client = httpx.AsyncClient(
            base_url=config.resolved_base_url,
            timeout=timeout,
            transport=transport,
        )
        self._rate_limiter = rate_limiter or TokenBucket(rate_per_sec=config.max_rps)

    @property
    def metrics(self) -> IndexerMetrics:
        return self._metrics

    @property
    def base_url(self) -> str:
        return str(self._client.base_url)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "IndexerClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def get_object(
        self,
        endpoint: str,
        params: dict[str, Any] | None = None,
        *,
        venue: str | None = None,
    ) -> dict:
        payload = await self._request("GET", endpoint, params=params, venue=venue)
        if not isinstance(payload, dict):
            raise FatalHttpError(
                f"{endpoint} response must be an object", payload=payload, endpoint=endpoint, venue=venue
            )
        return payload

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
        venue: str | None = None,
    ) -> Any:
        context = {"endpoint": endpoint, "venue": venue}
        attempts = self._config.max_retries + 1
        json_retry_budget = min(2, self._config.max_retries)
        json_retry_count = 0

        for attempt in range(1, attempts + 1):
            await self._rate_limiter.acquire()
            start = time.monotonic()

            try:
                response = await self._client.request(method, endpoint, params=params)
                latency_ms = (time.monotonic() - start) * 1000
                self._metrics.record_request(endpoint, str(response.status_code), latency_ms)
                log_event(
                    self._logger,
                    logging.DEBUG,
                    "http_request",
                    f"{method} {endpoint}",
                    endpoint=endpoint,
                    status=response.status_code,
                    attempt=attempt,
                    latency_ms=round(latency_ms, 2),
                )

                if response.status_code == 429:
                    log_event(
                        self._logger,
                        logging.WARNING,
                        "api_rate_limited",
                        "Rate limit response received; backing off",
                        endpoint=endpoint,
                        attempt=attempt,
                    )
                    if attempt <= self._config.max_retries:
                        self._metrics.record_retry(endpoint, "rate_limited")
                        await self._backoff_sleep(attempt)
                        continue
                    raise RateLimitedError(
                        "Rate limit exceeded", status_code=429, response_text=response.text, **context
                    )

                if response.status_code == 403:
                    log_event(
                        self._logger,
                        logging.WARNING,
                        "api_waf_limited",
                        "WAF limit response received; reduce request rate",
                        endpoint=endpoint,
                        attempt=attempt,
                        recommendation="reduce_request_rate",
                    )
                    if attempt <= self._config.max_retries:
                        self._metrics.record_retry(endpoint, "waf_limited")
                        await self._backoff_sleep(attempt)
                        continue
                    raise WafLimitedError(
                        "WAF limit exceeded", status_code=403, response_text=response.text, **context
                    )

                if response.status_code >= 500:
                    log_event(
                        self._logger,
                        logging.WARNING,
                        "api_server_error",
                        "Server error response received; backing off",
                        endpoint=endpoint,
                        status=response.status_code,
                        attempt=attempt,
                    )
                    if attempt <= self._config.max_retries:
                        self._metrics.record_retry(endpoint, "server_error")
                        await self._backoff_sleep(attempt)
                        continue
                    raise TransientHttpError(
                        "Server error",
                        status_code=response.status_code,
                        response_text=response.text,
                        **context,
                    )

                if response.status_code >= 400:
                    raise FatalHttpError(
                        "HTTP error",
                        status_code=response.status_code,
                        response_text=response.text,
                        **context,
                    )

                try:
                    return response.json()
                except json.JSONDecodeError as exc:
                    json_retry_count += 1
                    if attempt <= self._config.max_retries and json_retry_count <= json_retry_budget:
                        self._metrics.record_retry(endpoint, "invalid_json")
                        await self._backoff_sleep(attempt)
                        continue
                    raise TransientHttpError(
                        "Invalid JSON response",
                        status_code=response.status_code,
                        response_text=response.text,
                        **context,
                    ) from exc

            except httpx.TimeoutException as exc:
                latency_ms = (time.monotonic() - start) * 1000
                self._metrics.record_request(endpoint, "timeout", latency_ms)
                if attempt <= self._config.max_retries:
                    self._metrics.record_retry(endpoint, "timeout")
                    await self._backoff_sleep(attempt)
                    continue
                self._log_fail(endpoint, "timeout", venue)
                raise TransientHttpError("Request timed out", **context) from exc

            except httpx.RequestError as exc:
                latency_ms = (time.monotonic() - start) * 1000
                self._metrics.record_request(endpoint, "connection_error", latency_ms)
                if attempt <= self._config.max_retries:
                    self._metrics.record_retry(endpoint, "connection_error")
                    await self._backoff_sleep(attempt)
                    continue
                self._log_fail(endpoint, "connection_error", venue)
                raise TransientHttpError("Request failed", payload=str(exc), **context) from exc

            except (RateLimitedError, WafLimitedError, TransientHttpError, FatalHttpError) as exc:
                self._log_fail(endpoint, type(exc).__name__, venue)
                raise

        raise TransientHttpError("Request failed after retries", **context)

    async def _backoff_sleep(self, attempt: int) -> None:
        base = self._config.backoff_base_s
        capped = min(self._config.backoff_max_s, base * (2 ** (attempt - 1)))
        jitter = random.uniform(0, base)
        await asyncio.sleep(min(self._config.backoff_max_s, capped + jitter))

    def _log_fail(self, endpoint: str, error_type: str, venue: str | None) -> None:
        log_event(
            self._logger,
            logging.ERROR,
            "http_fail",
            f"Request failed for {endpoint}",
            endpoint=endpoint,
            error_type=error_type,
            venue=venue,
        )
