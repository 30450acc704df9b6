from __future__ import annotations

from datetime import datetime
from typing import Any

from injlens.indexer.client import IndexerMetrics

_LATENCY_BUCKETS_MS = (25, 50, 100, 250, 500, 1000, 2000, 5000)


def summarize_http_metrics(metrics: IndexerMetrics) -> dict[str, Any]:
    requests_total = sum(metrics.http_requests_total.values())
    retries_total = sum(metrics.http_retries_total.values())
    requests_by_status: dict[str, int] = {}
    errors_total = 0
    for (_endpoint, status), count in metrics.http_requests_total.items():
        requests_by_status[status] = requests_by_status.get(status, 0) + count
        try:
            status_code = int(status)
        except (TypeError, ValueError):
            errors_total += count
        else:
            if not 200 <= status_code < 300:
                errors_total += count

    http_5xx_total = 0
    for status, count in requests_by_status.items():
        try:
            status_code = int(status)
        except (TypeError, ValueError):
            continue
        if 500 <= status_code <= 599:
            http_5xx_total += count

    retries_by_reason: dict[str, int] = {}
    for (_endpoint, reason), count in metrics.http_retries_total.items():
        retries_by_reason[reason] = retries_by_reason.get(reason, 0) + count

    latencies = [value for values in metrics.http_latency_ms.values() for value in values]
    buckets: dict[str, int] = {}
    for bound in _LATENCY_BUCKETS_MS:
        buckets[str(bound)] = sum(1 for value in latencies if value <= bound)
    buckets["+inf"] = len(latencies)

    return {
        "requests_total": requests_total,
        "errors_total": errors_total,
        "retries_total": retries_total,
        "retries_by_reason": retries_by_reason,
        "requests_by_status": requests_by_status,
        "http_429_total": requests_by_status.get("429", 0),
        "http_403_total": requests_by_status.get("403", 0),
        "http_5xx_total": http_5xx_total,
        "latency_ms": {
            "count": len(latencies),
            "min": min(latencies) if latencies else None,
            "max": max(latencies) if latencies else None,
            "buckets": buckets,
        },
    }


def summarize_api_health(http: dict[str, Any], cache: dict[str, Any]) -> str:
    """
    Classify upstream health from counters.

    5xx responses mark the indexer unstable; rate limiting, WAF blocks or
    stale cache reads mark it degraded.
    """
    if int(http.get("http_5xx_total") or 0) > 0:
        return "unstable"
    if (
        int(http.get("http_429_total") or 0) > 0
        or int(http.get("http_403_total") or 0) > 0
        or int(cache.get("stale_hits") or 0) > 0
    ):
        return "degraded"
    return "ok"


def build_status_snapshot(
    cache_stats: dict[str, Any],
    indexer_metrics: IndexerMetrics | None,
    *,
    version: str,
    network: str,
    base_url: str | None,
    started_at: datetime,
    uptime_s: float,
) -> dict[str, Any]:
    http = summarize_http_metrics(indexer_metrics or IndexerMetrics())
    return {
        "version": version,
        "network": network,
        "base_url": base_url,
        "started_at": started_at.isoformat().replace("+00:00", "Z"),
        "uptime_s": round(max(uptime_s, 0.0), 3),
        "api_health": summarize_api_health(http, cache_stats),
        "cache": dict(cache_stats),
        "http": http,
    }
