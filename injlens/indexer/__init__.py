from injlens.indexer.client import IndexerClient
from injlens.indexer.errors import FatalHttpError, IndexerHttpError, RateLimitedError, TransientHttpError
from injlens.indexer.sources import DerivativeIndexerSource, MarketDataSource, SpotIndexerSource

__all__ = [
    "IndexerClient",
    "IndexerHttpError",
    "FatalHttpError",
    "RateLimitedError",
    "TransientHttpError",
    "MarketDataSource",
    "SpotIndexerSource",
    "DerivativeIndexerSource",
]
