from injlens.services.aggregator import CrossMarketAggregator
from injlens.services.api import MarketIntelApi, build_api
from injlens.services.cache import CacheResult, ResilientCache, track_stale_reads
from injlens.services.errors import (
    InvalidParameterError,
    MarketDecodeError,
    MarketNotFoundError,
    ServiceError,
    UpstreamUnavailableError,
)
from injlens.services.result import Failure, Result, Success

__all__ = [
    "CrossMarketAggregator",
    "MarketIntelApi",
    "build_api",
    "CacheResult",
    "ResilientCache",
    "track_stale_reads",
    "ServiceError",
    "MarketNotFoundError",
    "InvalidParameterError",
    "UpstreamUnavailableError",
    "MarketDecodeError",
    "Success",
    "Failure",
    "Result",
]
