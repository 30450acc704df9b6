import asyncio

import httpx
import pytest

from injlens.config import IndexerConfig
from injlens.indexer.client import IndexerClient
from injlens.indexer.errors import FatalHttpError, RateLimitedError, TransientHttpError
from injlens.indexer.ratelimit import TokenBucket

ENDPOINT = "/api/exchange/spot/v1/markets"


def build_client(transport: httpx.AsyncBaseTransport, *, max_retries: int = 3) -> IndexerClient:
    config = IndexerConfig(
        base_url="https://indexer.example",
        timeout_s=1,
        max_retries=max_retries,
        backoff_base_s=0,
        backoff_max_s=0,
        max_rps=1000,
    )
    return IndexerClient(config, transport=transport, rate_limiter=TokenBucket(rate_per_sec=1000))


def fetch(client: IndexerClient, endpoint: str = ENDPOINT):
    async def scenario():
        async with client:
            return await client.get_object(endpoint)

    return asyncio.run(scenario())


def test_rate_limit_retries_then_success() -> None:
    responses = [
        httpx.Response(429, json={"message": "slow down"}),
        httpx.Response(429, json={"message": "slow down"}),
        httpx.Response(200, json={"markets": []}),
    ]

    def handler(request: httpx.Request) -> httpx.Response:
        return responses.pop(0)

    client = build_client(httpx.MockTransport(handler))

    assert fetch(client) == {"markets": []}
    assert client.metrics.http_retries_total[(ENDPOINT, "rate_limited")] == 2
    assert sum(
        count for (endpoint, _status), count in client.metrics.http_requests_total.items() if endpoint == ENDPOINT
    ) == 3


def test_rate_limit_exhausts_retries() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(429, json={"message": "slow down"})

    with pytest.raises(RateLimitedError):
        fetch(build_client(httpx.MockTransport(handler), max_retries=1))


def test_server_error_retries_then_success() -> None:
    responses = [
        httpx.Response(503, text="unavailable"),
        httpx.Response(200, json={"markets": [{"marketId": "0x1"}]}),
    ]

    def handler(request: httpx.Request) -> httpx.Response:
        return responses.pop(0)

    client = build_client(httpx.MockTransport(handler))

    assert fetch(client) == {"markets": [{"marketId": "0x1"}]}
    assert client.metrics.http_retries_total[(ENDPOINT, "server_error")] == 1


def test_fatal_error_no_retry() -> None:
    call_count = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal call_count
        call_count += 1
        return httpx.Response(404, json={"message": "not found"})

    with pytest.raises(FatalHttpError) as excinfo:
        fetch(build_client(httpx.MockTransport(handler)))

    assert call_count == 1
    assert excinfo.value.status_code == 404
    assert excinfo.value.endpoint == ENDPOINT
    assert excinfo.value.venue is None
    assert f"endpoint={ENDPOINT}" in str(excinfo.value)


def test_timeout_is_transient_after_retries() -> None:
    call_count = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal call_count
        call_count += 1
        raise httpx.ReadTimeout("timed out", request=request)

    client = build_client(httpx.MockTransport(handler), max_retries=2)

    with pytest.raises(TransientHttpError):
        fetch(client)

    assert call_count == 3
    assert client.metrics.http_requests_total[(ENDPOINT, "timeout")] == 3


def test_invalid_json_is_retried() -> None:
    responses = [
        httpx.Response(200, content=b"<html>"),
        httpx.Response(200, json={"markets": []}),
    ]

    def handler(request: httpx.Request) -> httpx.Response:
        return responses.pop(0)

    client = build_client(httpx.MockTransport(handler))

    assert fetch(client) == {"markets": []}
    assert client.metrics.http_retries_total[(ENDPOINT, "invalid_json")] == 1


def test_non_object_payload_is_fatal() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=[1, 2, 3])

    with pytest.raises(FatalHttpError):
        fetch(build_client(httpx.MockTransport(handler)))


def test_network_base_url() -> None:
    assert IndexerConfig().resolved_base_url.startswith("https://sentry.exchange")
    assert "testnet" in IndexerConfig(network="testnet").resolved_base_url
    assert IndexerConfig(base_url="http://localhost:4444").resolved_base_url == "http://localhost:4444"
