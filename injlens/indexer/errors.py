"""
Indexer API error classification for retry handling.

HTTP failures from the indexer gateway are mapped onto a small hierarchy so
the request loop knows whether to back off and retry or give up at once:

    HTTP 429 → RateLimitedError   → retry with backoff
    HTTP 403 → WafLimitedError    → retry with backoff, reduce request rate
    HTTP 5xx → TransientHttpError → retry
    Timeout  → TransientHttpError → retry
    Network  → TransientHttpError → retry
    HTTP 4xx → FatalHttpError     → fail immediately

The service layer never sees these types directly: every one of them is
wrapped into ``UpstreamUnavailableError`` before it crosses into the core.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class IndexerHttpError(Exception):
    """
    Base exception for all indexer HTTP errors.

    Attributes:
        message: Human-readable error description.
        status_code: HTTP status code (None for non-HTTP errors).
        response_text: Raw response body text.
        payload: Parsed response payload if available.
        endpoint: Gateway path that failed, e.g. "/api/exchange/spot/v1/trades".
        venue: Market venue the request served ("spot" or "derivative"),
            None for venue-agnostic calls.
    """
    message: str
    status_code: int | None = None
    response_text: str | None = None
    payload: Any | None = None
    endpoint: str | None = None
    venue: str | None = None

    def __str__(self) -> str:
        parts = [self.message]
        if self.venue is not None:
            parts.append(f"venue={self.venue}")
        if self.endpoint is not None:
            parts.append(f"endpoint={self.endpoint}")
        if self.status_code is not None:
            parts.append(f"status={self.status_code}")
        if self.response_text:
            parts.append(f"response={self.response_text[:200]}")
        return " | ".join(parts)


class RateLimitedError(IndexerHttpError):
    """HTTP 429 - rate limit exceeded."""


class WafLimitedError(IndexerHttpError):
    """HTTP 403 - gateway firewall limit; the request rate is too high."""


class TransientHttpError(IndexerHttpError):
    """
    Temporary/retryable error.

    Raised for 5xx responses, timeouts, connection errors and invalid JSON.
    """


class FatalHttpError(IndexerHttpError):
    """
    Permanent/non-retryable error.

    Raised for 4xx responses (except 403, 429) and for payloads whose
    shape does not match the endpoint contract.
    """
