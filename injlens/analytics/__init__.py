from injlens.analytics.health_score import compute_market_health
from injlens.analytics.orderbook_metrics import compute_orderbook_metrics, process_levels
from injlens.analytics.trade_stats import compute_trade_stats, normalize_trade

__all__ = [
    "process_levels",
    "compute_orderbook_metrics",
    "normalize_trade",
    "compute_trade_stats",
    "compute_market_health",
]
