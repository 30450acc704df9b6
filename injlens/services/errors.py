"""
Service error kinds surfaced to the request-handling layer.

- **MarketNotFoundError**: the market identifier matches no normalized market.
  Deterministic; never retried, never masked by the cache.
- **InvalidParameterError**: a caller-supplied bound, type or enum constraint
  is violated. Deterministic; never retried, never masked by the cache.
- **UpstreamUnavailableError**: the indexer call failed or returned malformed
  data. The resilient cache may replace it with a stale value.
"""

from __future__ import annotations


class ServiceError(Exception):
    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class MarketNotFoundError(ServiceError):
    status_code = 404
    code = "MARKET_NOT_FOUND"

    def __init__(self, market_id: str) -> None:
        super().__init__(f"Market with ID '{market_id}' not found.")
        self.market_id = market_id


class InvalidParameterError(ServiceError):
    status_code = 400
    code = "INVALID_PARAMETER"

    def __init__(self, param: str, message: str) -> None:
        super().__init__(f"Invalid parameter '{param}': {message}")
        self.param = param


class UpstreamUnavailableError(ServiceError):
    status_code = 502
    code = "UPSTREAM_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(f"Injective data source error: {message}")


class MarketDecodeError(UpstreamUnavailableError):
    """Raised when a raw market record matches neither venue shape."""

    def __init__(self, kind: str, detail: str, *, market_id: str | None = None) -> None:
        super().__init__(f"unrecognized {kind} market record ({detail})")
        self.kind = kind
        self.detail = detail
        self.market_id = market_id
