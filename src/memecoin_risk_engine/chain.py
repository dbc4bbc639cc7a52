"""Price feed adapters.

The engine never fetches prices itself; ingest collaborators write
`price_samples` rows and the alert engine reads them through a
`PriceFeed`. `StaticPriceFeed` serves fixed quotes for tests and dry runs.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Protocol

from memecoin_risk_engine.storage.repos import PriceSampleRepository

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


DEFAULT_FRESHNESS_MINUTES = 10


@dataclass(frozen=True)
class PriceQuote:
    source: str
    price_usd: float
    ts: datetime


class PriceFeed(Protocol):
    async def quotes(self, mint: str, *, as_of: datetime) -> list[PriceQuote]: ...


def price_disagreement(quotes: Sequence[PriceQuote]) -> float | None:
    """Relative spread between the highest and lowest quote.

    Returns None when fewer than two usable quotes exist.
    """
    prices = [q.price_usd for q in quotes if q.price_usd > 0]
    if len(prices) < 2:
        return None
    low = min(prices)
    return (max(prices) - low) / low


class StoredPriceFeed:
    """Latest sample per source from `price_samples`, within a freshness window."""

    def __init__(self, session: AsyncSession, *, freshness_minutes: int = DEFAULT_FRESHNESS_MINUTES) -> None:
        self._repo = PriceSampleRepository(session)
        self._freshness = timedelta(minutes=freshness_minutes)

    async def quotes(self, mint: str, *, as_of: datetime) -> list[PriceQuote]:
        latest = await self._repo.latest_by_source(mint, since=as_of - self._freshness, until=as_of)
        return [
            PriceQuote(source=source, price_usd=sample.price_usd, ts=sample.ts)
            for source, sample in sorted(latest.items())
        ]


class StaticPriceFeed:
    """Deterministic quotes keyed by mint then source."""

    def __init__(self, prices: Mapping[str, Mapping[str, float]] | None = None) -> None:
        self._prices = {mint: dict(by_source) for mint, by_source in (prices or {}).items()}

    async def quotes(self, mint: str, *, as_of: datetime) -> list[PriceQuote]:
        return [
            PriceQuote(source=source, price_usd=price, ts=as_of)
            for source, price in sorted(self._prices.get(mint, {}).items())
        ]
