"""Point-in-time feature engineering for the probability models.

Every feature is read as of a cutoff (normally first_seen + 30 minutes) so
training rows never see data from after the moment a live score would be
produced. Values that cannot be computed are `None`; `feature_vector`
turns them into 0.0 plus an `is_missing_<name>` indicator.
"""

from __future__ import annotations

import hashlib
import json
import math
from collections.abc import Mapping, Sequence
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from memecoin_risk_engine.classifier.holder_types import HolderTag
from memecoin_risk_engine.reputation.rollup import DEFAULT_BAD_ACTOR_THRESHOLD
from memecoin_risk_engine.scoring.rug_risk import LP_BURNED_PCT
from memecoin_risk_engine.storage.repos import (
    BundleEventRepository,
    HolderRepository,
    PriceSampleRepository,
    RugRiskHistoryRepository,
    ScoreHistoryRepository,
    ScoreSnapshotDTO,
    TokenDTO,
    WalletReputationRepository,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

FEATURE_OFFSET = timedelta(minutes=30)
MOMENTUM_WINDOW = timedelta(minutes=15)
PUMP_FUN_SOURCE = "pump.fun"

FEATURE_NAMES: tuple[str, ...] = (
    "health_30m",
    "delta_health_15m",
    "fresh_pct",
    "sniper_pct",
    "insider_pct",
    "top10_pct",
    "liquidity_usd_log",
    "lp_burned",
    "lp_locked",
    "rug_risk_score_30m",
    "sniper_bad_count",
    "bundler_bad_count",
    "insider_bad_count",
    "bad_actor_score",
    "max_reputation_score",
    "high_rep_snipers",
    "high_rep_bundlers",
    "high_rep_insiders",
    "delta_price_15m",
    "delta_holders_15m",
    "delta_liquidity_15m",
    "dex_type",
    "pool_age_mins",
    "weekday",
    "hour",
    "is_weekend",
)

FEATURE_COLUMNS: tuple[str, ...] = FEATURE_NAMES + tuple(f"is_missing_{name}" for name in FEATURE_NAMES)

Features = dict[str, float | None]


def feature_vector(features: Mapping[str, float | None], columns: Sequence[str] = FEATURE_COLUMNS) -> list[float]:
    """Flatten a feature map in column order, filling missing values."""
    row: list[float] = []
    for column in columns:
        if column.startswith("is_missing_"):
            row.append(1.0 if features.get(column.removeprefix("is_missing_")) is None else 0.0)
            continue
        value = features.get(column)
        row.append(0.0 if value is None else float(value))
    return row


def features_hash(features: Mapping[str, float | None]) -> str:
    payload = json.dumps(dict(features), sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def relative_change(first: float | None, last: float | None, *, floor: float | None = None) -> float | None:
    """(last - first) / first, or / max(first, floor) when a floor is given."""
    if first is None or last is None:
        return None
    base = max(first, floor) if floor is not None else first
    if base <= 0:
        return None
    return (last - first) / base


def calendar_features(ts: datetime) -> Features:
    utc = ts.astimezone(UTC)
    weekday = utc.weekday()
    return {
        "weekday": float(weekday),
        "hour": float(utc.hour),
        "is_weekend": 1.0 if weekday >= 5 else 0.0,
    }


def _momentum(snapshots: Sequence[ScoreSnapshotDTO], attr: str) -> tuple[float | None, float | None]:
    values = [getattr(s, attr) for s in snapshots if getattr(s, attr) is not None]
    if len(values) < 2:
        return None, None
    return float(values[0]), float(values[-1])


class FeatureBuilder:
    """Builds the feature map for one token from stored history."""

    def __init__(self, session: AsyncSession, *, high_reputation: float = DEFAULT_BAD_ACTOR_THRESHOLD) -> None:
        self.session = session
        self.high_reputation = high_reputation
        self._scores = ScoreHistoryRepository(session)
        self._rug = RugRiskHistoryRepository(session)
        self._prices = PriceSampleRepository(session)
        self._holders = HolderRepository(session)
        self._bundles = BundleEventRepository(session)
        self._reputation = WalletReputationRepository(session)

    async def build(self, token: TokenDTO, *, as_of: datetime | None = None) -> Features:
        cutoff = as_of or token.first_seen_at + FEATURE_OFFSET
        window_start = cutoff - MOMENTUM_WINDOW
        features: Features = dict.fromkeys(FEATURE_NAMES)

        snapshot = await self._scores.latest_at_or_before(token.mint, cutoff)
        if snapshot is not None:
            features["health_30m"] = snapshot.health_score
            features["fresh_pct"] = snapshot.fresh_pct
            features["sniper_pct"] = snapshot.sniper_pct
            features["insider_pct"] = snapshot.insider_pct
            features["top10_pct"] = snapshot.top10_share
            if snapshot.liquidity_usd is not None:
                features["liquidity_usd_log"] = math.log(max(snapshot.liquidity_usd, 1.0))

        window = await self._scores.list_between(token.mint, start=window_start, end=cutoff)
        first_health, last_health = _momentum(window, "health_score")
        if first_health is not None and last_health is not None:
            features["delta_health_15m"] = last_health - first_health
        features["delta_holders_15m"] = relative_change(*_momentum(window, "holders_count"), floor=1.0)
        features["delta_liquidity_15m"] = relative_change(*_momentum(window, "liquidity_usd"), floor=1.0)

        prices = [p.price_usd for p in await self._prices.list_between(token.mint, start=window_start, end=cutoff)]
        if len(prices) >= 2:
            features["delta_price_15m"] = relative_change(prices[0], prices[-1])

        rug = await self._rug.latest_at_or_before(token.mint, cutoff)
        if rug is not None:
            features["rug_risk_score_30m"] = rug.rug_risk_score

        if token.lp_burn_pct is not None:
            features["lp_burned"] = 1.0 if token.lp_burn_pct >= LP_BURNED_PCT else 0.0
        if token.lp_lock_confidence is not None:
            features["lp_locked"] = 1.0 if token.lp_lock_confidence > 0 else 0.0

        for name in ("sniper_bad_count", "bundler_bad_count", "insider_bad_count", "bad_actor_score"):
            value = getattr(token, name)
            features[name] = None if value is None else float(value)

        features.update(await self._network_features(token.mint))

        if token.source is not None:
            features["dex_type"] = 1.0 if token.source == PUMP_FUN_SOURCE else 0.0
        if token.pool_created_at is not None:
            features["pool_age_mins"] = max(0.0, (cutoff - token.pool_created_at).total_seconds() / 60.0)
        features.update(calendar_features(token.first_seen_at))
        return features

    async def _network_features(self, mint: str) -> Features:
        holders = await self._holders.list_for_mint(mint)
        snipers = {h.owner for h in holders if HolderTag.SNIPER in h.holder_types}
        insiders = {h.owner for h in holders if HolderTag.INSIDER in h.holder_types}
        bundlers = await self._bundles.bundlers_for_mint(mint)

        wallets = {h.owner for h in holders} | bundlers
        scores = await self._reputation.scores_for(wallets)
        if not scores:
            return {
                "max_reputation_score": None,
                "high_rep_snipers": 0.0,
                "high_rep_bundlers": 0.0,
                "high_rep_insiders": 0.0,
            }

        def high(group: set[str]) -> float:
            return float(sum(1 for w in group if scores.get(w, 0.0) >= self.high_reputation))

        return {
            "max_reputation_score": max(scores.values()),
            "high_rep_snipers": high(snipers),
            "high_rep_bundlers": high(bundlers),
            "high_rep_insiders": high(insiders),
        }
