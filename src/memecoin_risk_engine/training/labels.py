"""Forward-looking outcome labels for labelled training tokens."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from memecoin_risk_engine.storage.repos import (
    PriceSampleRepository,
    RugRiskHistoryRepository,
    ScoreHistoryRepository,
    TokenDTO,
    TokenLabelDTO,
    TokenLabelRepository,
    TokenRepository,
)
from memecoin_risk_engine.training.features import FEATURE_OFFSET

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

TARGETS: tuple[str, ...] = ("winner_2x_24h", "rug_24h")


@dataclass(frozen=True)
class LabelConfig:
    lookback_days: int = 90
    horizon: timedelta = timedelta(hours=24)
    short_horizon: timedelta = timedelta(hours=6)
    min_holders: int = 50
    min_liquidity_usd: float = 1000.0
    winner_multiple: float = 2.0
    rug_risk_threshold: float = 90.0
    liquidity_drop: float = 0.8
    price_drawdown: float = 0.8


class LabelGenerationError(RuntimeError):
    pass


def winner_label(price_30m: float, max_price_24h: float | None, *, multiple: float = 2.0) -> bool:
    if price_30m <= 0:
        raise LabelGenerationError("price_30m must be positive")
    return max_price_24h is not None and max_price_24h >= multiple * price_30m


def rug_label(
    *,
    rug_risk_30m: float | None,
    liquidity_30m: float | None,
    min_liquidity_6h: float | None,
    min_liquidity_24h: float | None,
    max_price_24h: float | None,
    min_price_24h: float | None,
    config: LabelConfig | None = None,
) -> bool:
    """True on a high rug score, a liquidity pull or a price collapse."""
    cfg = config or LabelConfig()
    if rug_risk_30m is not None and rug_risk_30m >= cfg.rug_risk_threshold:
        return True

    if liquidity_30m is not None and liquidity_30m > 0:
        for floor in (min_liquidity_6h, min_liquidity_24h):
            if floor is not None and (liquidity_30m - floor) / liquidity_30m >= cfg.liquidity_drop:
                return True

    if max_price_24h is not None and min_price_24h is not None and max_price_24h > 0:
        if (max_price_24h - min_price_24h) / max_price_24h >= cfg.price_drawdown:
            return True
    return False


def _extremes(values: Sequence[float | None]) -> tuple[float | None, float | None]:
    present = [v for v in values if v is not None]
    if not present:
        return None, None
    return min(present), max(present)


class LabelGenerator:
    """Computes and stores labels for tokens whose 24h horizon has closed."""

    def __init__(self, session: AsyncSession, *, config: LabelConfig | None = None) -> None:
        self.session = session
        self.config = config or LabelConfig()
        self._tokens = TokenRepository(session)
        self._labels = TokenLabelRepository(session)
        self._scores = ScoreHistoryRepository(session)
        self._rug = RugRiskHistoryRepository(session)
        self._prices = PriceSampleRepository(session)

    async def candidates(self, *, now: datetime) -> list[TokenDTO]:
        return await self._tokens.list_first_seen_between(
            start=now - timedelta(days=self.config.lookback_days),
            end=now - FEATURE_OFFSET - self.config.horizon,
        )

    async def label(self, token: TokenDTO) -> TokenLabelDTO | None:
        """Label one token, or return `None` when it is not eligible."""
        cfg = self.config
        t30 = token.first_seen_at + FEATURE_OFFSET
        horizon_end = t30 + cfg.horizon

        snapshot = await self._scores.latest_at_or_before(token.mint, t30)
        holders_30m = snapshot.holders_count if snapshot and snapshot.holders_count is not None else token.holders_count
        liquidity_30m = (
            snapshot.liquidity_usd if snapshot and snapshot.liquidity_usd is not None else token.liquidity_usd
        )
        price_sample = await self._prices.latest_at_or_before(token.mint, t30)
        price_30m = price_sample.price_usd if price_sample else None

        if (holders_30m or 0) < cfg.min_holders:
            return None
        if (liquidity_30m or 0.0) < cfg.min_liquidity_usd:
            return None
        if price_30m is None or price_30m <= 0:
            return None

        prices = await self._prices.list_between(token.mint, start=t30, end=horizon_end)
        min_price_24h, max_price_24h = _extremes([p.price_usd for p in prices])

        later = await self._scores.list_between(token.mint, start=t30, end=horizon_end)
        short_end = t30 + cfg.short_horizon
        min_liquidity_6h, _ = _extremes([s.liquidity_usd for s in later if s.snapshot_time <= short_end])
        min_liquidity_24h, _ = _extremes([s.liquidity_usd for s in later])

        rug = await self._rug.latest_at_or_before(token.mint, t30)
        rug_risk_30m = rug.rug_risk_score if rug else None

        dto = TokenLabelDTO(
            mint=token.mint,
            first_seen_at=token.first_seen_at,
            winner_2x_24h=winner_label(price_30m, max_price_24h, multiple=cfg.winner_multiple),
            rug_24h=rug_label(
                rug_risk_30m=rug_risk_30m,
                liquidity_30m=liquidity_30m,
                min_liquidity_6h=min_liquidity_6h,
                min_liquidity_24h=min_liquidity_24h,
                max_price_24h=max_price_24h,
                min_price_24h=min_price_24h,
                config=cfg,
            ),
            price_30m=price_30m,
            max_price_24h=max_price_24h,
            min_price_24h=min_price_24h,
            liquidity_30m=liquidity_30m,
            min_liquidity_6h=min_liquidity_6h,
            min_liquidity_24h=min_liquidity_24h,
            rug_risk_30m=rug_risk_30m,
        )
        await self._labels.upsert(dto)
        return dto
