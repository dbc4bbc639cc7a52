"""Token scoring and score snapshots against the datastore."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from memecoin_risk_engine.scoring.health import HealthInputs, HealthResult
from memecoin_risk_engine.scoring.rug_risk import (
    DEFAULT_HYSTERESIS_THRESHOLD,
    RugRiskInputs,
    RugRiskResult,
    apply_hysteresis,
)
from memecoin_risk_engine.scoring.strategy import ScoringStrategy, get_strategy
from memecoin_risk_engine.storage.repos import (
    HoldersHistoryRepository,
    HoldersSnapshotDTO,
    RugRiskHistoryRepository,
    RugRiskSnapshotDTO,
    ScoreHistoryRepository,
    ScoreSnapshotDTO,
    TokenDTO,
    TokenRepository,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from memecoin_risk_engine.config import ScoringSettings

logger = logging.getLogger(__name__)

DEFAULT_HYSTERESIS_MINUTES = 10
DEFAULT_MOMENTUM_LOOKBACK_MINUTES = 15
DRAIN_SHORT_WINDOW = timedelta(minutes=5)
DRAIN_LONG_WINDOW = timedelta(minutes=15)


@dataclass(frozen=True)
class TokenScores:
    mint: str
    health: HealthResult
    rug_risk: RugRiskResult


def liquidity_delta(current: float | None, past: float | None) -> float | None:
    """Change from `past` to `current` relative to current liquidity."""
    if current is None or past is None:
        return None
    return round((current - past) / max(current, 1.0), 4)


def health_inputs(token: TokenDTO, *, now: datetime, previous_score: float | None) -> HealthInputs:
    return HealthInputs(
        fresh_ratio=token.fresh_pct,
        sniper_ratio=token.sniper_pct,
        insider_ratio=token.insider_pct,
        liquidity_usd=token.liquidity_usd,
        top10_concentration=token.top10_share,
        age_hours=token.age_hours(now),
        previous_score=previous_score,
    )


def rug_risk_inputs(token: TokenDTO) -> RugRiskInputs:
    return RugRiskInputs(
        liquidity_usd=token.liquidity_usd,
        lp_burn_pct=token.lp_burn_pct,
        lp_lock_confidence=token.lp_lock_confidence,
        lp_lock_provider=token.lp_lock_provider,
        authorities_revoked=token.authorities_revoked,
        liquidity_delta_5m=token.liquidity_delta_5m,
        liquidity_delta_15m=token.liquidity_delta_15m,
        top1_pct=token.lp_owner_top1_pct,
        top5_pct=token.lp_owner_top5_pct,
        creator_holds_lp=bool(token.lp_owner_is_creator),
    )


class ScoringService:
    """Computes health and rug-risk for a token and persists both."""

    def __init__(
        self,
        session: AsyncSession,
        *,
        strategy: ScoringStrategy | None = None,
        hysteresis_threshold: float = DEFAULT_HYSTERESIS_THRESHOLD,
        hysteresis_minutes: int = DEFAULT_HYSTERESIS_MINUTES,
        momentum_lookback_minutes: int = DEFAULT_MOMENTUM_LOOKBACK_MINUTES,
    ) -> None:
        self.strategy = strategy or get_strategy("v2")
        self.hysteresis_threshold = hysteresis_threshold
        self.hysteresis_window = timedelta(minutes=hysteresis_minutes)
        self.momentum_lookback = timedelta(minutes=momentum_lookback_minutes)
        self._tokens = TokenRepository(session)
        self._scores = ScoreHistoryRepository(session)
        self._rug_history = RugRiskHistoryRepository(session)

    @classmethod
    def from_settings(cls, session: AsyncSession, settings: ScoringSettings) -> ScoringService:
        return cls(
            session,
            strategy=get_strategy(settings.strategy),
            hysteresis_threshold=settings.hysteresis_threshold,
            hysteresis_minutes=settings.hysteresis_minutes,
            momentum_lookback_minutes=settings.momentum_lookback_minutes,
        )

    async def liquidity_deltas(self, token: TokenDTO, *, now: datetime) -> tuple[float | None, float | None]:
        """5m/15m liquidity change against rug-risk history, else the ingested deltas."""
        deltas: list[float | None] = []
        for lookback, ingested in (
            (DRAIN_SHORT_WINDOW, token.liquidity_delta_5m),
            (DRAIN_LONG_WINDOW, token.liquidity_delta_15m),
        ):
            past = await self._rug_history.latest_at_or_before(token.mint, now - lookback)
            delta = liquidity_delta(token.liquidity_usd, past.liquidity_usd if past else None)
            deltas.append(ingested if delta is None else delta)
        return deltas[0], deltas[1]

    async def score(self, token: TokenDTO, *, now: datetime) -> TokenScores:
        previous = await self._scores.latest_at_or_before(token.mint, now - self.momentum_lookback)
        previous_score = None
        if previous is not None:
            # Compare against the scorer output, before any bad-actor adjustment.
            previous_score = previous.health_score if previous.health_score_raw is None else previous.health_score_raw
        health = self.strategy.health.score(health_inputs(token, now=now, previous_score=previous_score))

        delta_5m, delta_15m = await self.liquidity_deltas(token, now=now)
        inputs = replace(rug_risk_inputs(token), liquidity_delta_5m=delta_5m, liquidity_delta_15m=delta_15m)
        rug = self.strategy.rug_risk.score(inputs)
        recently_high = await self._rug_history.reached_since(
            token.mint, threshold=self.hysteresis_threshold, since=now - self.hysteresis_window
        )
        rug = apply_hysteresis(rug, recently_high=recently_high, threshold=self.hysteresis_threshold)
        if rug.held_by_hysteresis:
            logger.debug("mint=%s rug risk held at %.0f by hysteresis", token.mint, rug.score)

        await self._tokens.update_health(token.mint, score=health.score, strategy=self.strategy.version)
        await self._tokens.update_rug_risk(token.mint, score=rug.score, flags=rug.flags, breakdown=rug.breakdown)
        await self._rug_history.insert(
            RugRiskSnapshotDTO(
                mint=token.mint,
                ts=now,
                rug_risk_score=rug.score,
                flags=",".join(rug.flags),
                liquidity_usd=token.liquidity_usd,
                top1_pct=token.lp_owner_top1_pct,
                top5_pct=token.lp_owner_top5_pct,
                delta_5m=delta_5m,
                delta_15m=delta_15m,
            )
        )
        return TokenScores(mint=token.mint, health=health, rug_risk=rug)


def snapshot_cadence(
    age_hours: float,
    *,
    early_minutes: int = 5,
    mid_minutes: int = 15,
    late_minutes: int = 60,
) -> timedelta:
    """Sampling interval for a token of the given age."""
    if age_hours <= 2:
        return timedelta(minutes=early_minutes)
    if age_hours <= 24:
        return timedelta(minutes=mid_minutes)
    return timedelta(minutes=late_minutes)


class SnapshotService:
    """Appends score_history / holders_history rows at an age-dependent cadence."""

    def __init__(
        self,
        session: AsyncSession,
        *,
        early_minutes: int = 5,
        mid_minutes: int = 15,
        late_minutes: int = 60,
    ) -> None:
        self.early_minutes = early_minutes
        self.mid_minutes = mid_minutes
        self.late_minutes = late_minutes
        self._scores = ScoreHistoryRepository(session)
        self._holders = HoldersHistoryRepository(session)

    @classmethod
    def from_settings(cls, session: AsyncSession, settings: ScoringSettings) -> SnapshotService:
        return cls(
            session,
            early_minutes=settings.snapshot_early_minutes,
            mid_minutes=settings.snapshot_mid_minutes,
            late_minutes=settings.snapshot_late_minutes,
        )

    async def snapshot(self, token: TokenDTO, *, now: datetime) -> bool:
        """Write a snapshot unless the latest one is younger than the cadence."""
        cadence = snapshot_cadence(
            token.age_hours(now),
            early_minutes=self.early_minutes,
            mid_minutes=self.mid_minutes,
            late_minutes=self.late_minutes,
        )
        latest = await self._scores.latest_at_or_before(token.mint, now)
        if latest is not None and now - latest.snapshot_time < cadence:
            return False

        written = await self._scores.insert(ScoreSnapshotDTO.from_token(token, at=now))
        if token.holders_count is not None:
            await self._holders.insert(
                HoldersSnapshotDTO(mint=token.mint, snapshot_time=now, holders_count=token.holders_count)
            )
        return written
