"""
Market models: raw indexer records and the unified normalized market.

Raw records come in two shapes, one per venue kind. They are modelled as a
tagged union discriminated on ``kind`` so each variant has its own explicit
field mapping and an unrecognized payload fails validation instead of being
silently defaulted field by field.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated, Literal, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

MarketType = Literal["spot", "derivative"]
MARKET_TYPES: tuple[MarketType, ...] = ("spot", "derivative")


class TokenMeta(BaseModel):
    model_config = ConfigDict(extra="ignore")

    symbol: str | None = None
    decimals: int | None = Field(default=None, ge=0)


class _RawMarketBase(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    market_id: str = Field(min_length=1, validation_alias=AliasChoices("marketId", "market_id"))
    ticker: str = Field(min_length=1)
    market_status: str = Field(validation_alias=AliasChoices("marketStatus", "market_status"))
    quote_denom: str = Field(default="", validation_alias=AliasChoices("quoteDenom", "quote_denom"))
    quote_token: TokenMeta | None = Field(
        default=None, validation_alias=AliasChoices("quoteToken", "quoteTokenMeta")
    )
    min_price_tick_size: str | float | None = Field(
        default=None, validation_alias=AliasChoices("minPriceTickSize", "min_price_tick_size")
    )
    min_quantity_tick_size: str | float | None = Field(
        default=None, validation_alias=AliasChoices("minQuantityTickSize", "min_quantity_tick_size")
    )
    maker_fee_rate: str | float | None = Field(
        default=None, validation_alias=AliasChoices("makerFeeRate", "maker_fee_rate")
    )
    taker_fee_rate: str | float | None = Field(
        default=None, validation_alias=AliasChoices("takerFeeRate", "taker_fee_rate")
    )


class SpotMarketRecord(_RawMarketBase):
    kind: Literal["spot"] = "spot"
    base_denom: str = Field(default="", validation_alias=AliasChoices("baseDenom", "base_denom"))
    base_token: TokenMeta | None = Field(
        default=None, validation_alias=AliasChoices("baseToken", "baseTokenMeta")
    )


class DerivativeMarketRecord(_RawMarketBase):
    kind: Literal["derivative"] = "derivative"
    oracle_base: str = Field(default="", validation_alias=AliasChoices("oracleBase", "oracle_base"))


RawMarketRecord = Annotated[
    Union[SpotMarketRecord, DerivativeMarketRecord],
    Field(discriminator="kind"),
]


@dataclass(frozen=True)
class NormalizedMarket:
    """
    Unified market snapshot for both venue kinds.

    Attributes:
        market_id: Indexer market identifier (0x-prefixed hex).
        ticker: Display ticker, e.g. "INJ/USDT" or "BTC/USDT PERP".
        type: Venue kind, "spot" or "derivative".
        base_denom: Base denomination (oracle base for derivatives).
        quote_denom: Quote denomination.
        base_token_symbol: Base symbol, "UNKNOWN" when unresolvable.
        quote_token_symbol: Quote symbol, "UNKNOWN" when unresolvable.
        base_decimals: Base token exponent (fixed at 18 for derivatives).
        quote_decimals: Quote token exponent.
        min_price_tick_size: Minimum price increment, chain format.
        min_quantity_tick_size: Minimum quantity increment, chain format.
        status: Market status as reported upstream.
        maker_fee_rate: Maker fee rate as a decimal string.
        taker_fee_rate: Taker fee rate as a decimal string.
    """
    market_id: str
    ticker: str
    type: MarketType
    base_denom: str
    quote_denom: str
    base_token_symbol: str
    quote_token_symbol: str
    base_decimals: int
    quote_decimals: int
    min_price_tick_size: float
    min_quantity_tick_size: float
    status: str
    maker_fee_rate: str
    taker_fee_rate: str


@dataclass(frozen=True)
class MarketFilters:
    type: MarketType | None = None
    quote: str | None = None
    search: str | None = None
    sort: Literal["ticker", "type"] | None = None
    order: Literal["asc", "desc"] = "asc"
    limit: int = 50
    offset: int = 0


@dataclass(frozen=True)
class MarketPage:
    markets: list[NormalizedMarket]
    total: int
    limit: int
    offset: int
    has_more: bool
