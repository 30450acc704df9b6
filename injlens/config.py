from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator


class ConfigError(Exception):
    """Raised when configuration cannot be loaded or validated."""


_NETWORK_BASE_URLS = {
    "mainnet": "https://sentry.exchange.grpc-web.injective.network",
    "testnet": "https://testnet.sentry.exchange.grpc-web.injective.network",
}


class IndexerConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    network: Literal["mainnet", "testnet"] = Field(default="mainnet")
    base_url: str | None = Field(default=None)
    timeout_s: float = Field(default=10, gt=0)
    max_retries: int = Field(default=2, ge=0)
    backoff_base_s: float = Field(default=0.25, ge=0)
    backoff_max_s: float = Field(default=4, ge=0)
    max_rps: float = Field(default=20.0, gt=0)

    @property
    def resolved_base_url(self) -> str:
        return self.base_url or _NETWORK_BASE_URLS[self.network]


class CacheConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    markets_ttl_s: float = Field(default=60, gt=0)
    orderbook_ttl_s: float = Field(default=10, gt=0)
    trades_ttl_s: float = Field(default=10, gt=0)
    health_ttl_s: float = Field(default=30, gt=0)
    analytics_ttl_s: float = Field(default=60, gt=0)
    stale_reseed_max_s: float = Field(default=15, gt=0)


class AggregationConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    max_markets: int = Field(default=30, ge=1)
    liquidity_sample: int = Field(default=15, ge=1)
    health_sample: int = Field(default=10, ge=1)
    overview_trades_limit: int = Field(default=50, ge=1, le=100)
    rankings_trades_limit: int = Field(default=100, ge=1, le=100)

    @model_validator(mode="after")
    def _check_sub_caps(self) -> "AggregationConfig":
        for name in ("liquidity_sample", "health_sample"):
            if getattr(self, name) > self.max_markets:
                raise ValueError(f"{name} must not exceed max_markets ({self.max_markets})")
        return self


class ObsConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    log_jsonl: bool = Field(default=True)
    service_name: str = Field(default="injlens")


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    indexer: IndexerConfig = Field(default_factory=IndexerConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    aggregation: AggregationConfig = Field(default_factory=AggregationConfig)
    obs: ObsConfig = Field(default_factory=ObsConfig)


@dataclass(frozen=True)
class LoadedConfig:
    config: AppConfig
    raw: dict[str, Any]


def load_config(path: Path) -> LoadedConfig:
    if not path.exists():
        raise ConfigError(f"Config not found: {path}")

    try:
        payload = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML: {exc}") from exc

    if not isinstance(payload, dict):
        raise ConfigError("Config root must be a mapping")

    try:
        config = AppConfig.model_validate(payload)
    except ValidationError as exc:
        raise ConfigError(str(exc)) from exc

    return LoadedConfig(config=config, raw=payload)
