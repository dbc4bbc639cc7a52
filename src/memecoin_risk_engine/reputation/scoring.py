"""Decayed cross-token wallet reputation.

    S_snipes  = min(20, sum(decay(sniper events))) * 2
    S_bundles = min(20, bundle events) * 2 + min(50, recipients / 5)
    S_insider = insider hits * 10
    S_rug     = rug involvements * 20
    S_reward  = min(10, successful snipes * 2)

    score = clamp((S_snipes + S_bundles + S_insider + S_rug - S_reward) * factor, 0, 100)

where decay(t) = 0.5 ** (days_ago / half_life) and `factor` dampens
wallets tagged as market makers. Because of decay the score depends on
the evaluation time, not only on the events.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

DEFAULT_HALF_LIFE_DAYS = 14.0
DEFAULT_MARKET_MAKER_FACTOR = 0.25

MAX_DECAYED_SNIPES = 20.0
SNIPE_POINTS = 2.0
MAX_BUNDLE_EVENTS = 20
BUNDLE_POINTS = 2.0
MAX_RECIPIENT_POINTS = 50.0
RECIPIENTS_PER_POINT = 5.0
INSIDER_POINTS = 10.0
RUG_POINTS = 20.0
MAX_REWARD = 10.0
REWARD_PER_SUCCESS = 2.0


@dataclass(frozen=True)
class WalletActivity:
    """A wallet's events inside the reputation window.

    Attributes:
        wallet: Wallet address.
        snipe_times: Time of each sniper buy.
        successful_snipes: Snipes on tokens that went on to double.
        bundle_events: Distinct tokens the wallet bundled.
        recipients: Distinct wallets the wallet funded as a bundler.
        insider_hits: Tokens where the wallet was judged an insider.
        rug_involvements: Rugged tokens where the wallet was a top-10 holder.
        is_market_maker: Wallet carries the `market_maker` tag.
    """

    wallet: str
    snipe_times: Sequence[datetime] = field(default_factory=tuple)
    successful_snipes: int = 0
    bundle_events: int = 0
    recipients: int = 0
    insider_hits: int = 0
    rug_involvements: int = 0
    is_market_maker: bool = False


@dataclass(frozen=True)
class ReputationScore:
    wallet: str
    score: float
    breakdown: dict[str, Any]
    snipes_total: int
    snipes_success: int
    bundles_total: int
    recipients_total: int
    insider_hits: int
    rug_involved: int


def decay_weight(event_time: datetime, now: datetime, half_life_days: float = DEFAULT_HALF_LIFE_DAYS) -> float:
    """Exponential decay weight; events in the future count fully."""
    days_ago = max(0.0, (now - event_time).total_seconds() / 86400.0)
    return 0.5 ** (days_ago / half_life_days)


def compute_reputation(
    activity: WalletActivity,
    *,
    now: datetime,
    half_life_days: float = DEFAULT_HALF_LIFE_DAYS,
    market_maker_factor: float = DEFAULT_MARKET_MAKER_FACTOR,
) -> ReputationScore:
    decayed = sum(decay_weight(t, now, half_life_days) for t in activity.snipe_times)
    s_snipes = min(MAX_DECAYED_SNIPES, decayed) * SNIPE_POINTS
    s_bundles = min(MAX_BUNDLE_EVENTS, activity.bundle_events) * BUNDLE_POINTS + min(
        MAX_RECIPIENT_POINTS, activity.recipients / RECIPIENTS_PER_POINT
    )
    s_insider = activity.insider_hits * INSIDER_POINTS
    s_rug = activity.rug_involvements * RUG_POINTS
    s_reward = min(MAX_REWARD, activity.successful_snipes * REWARD_PER_SUCCESS)

    factor = market_maker_factor if activity.is_market_maker else 1.0
    raw = (s_snipes + s_bundles + s_insider + s_rug - s_reward) * factor
    score = round(max(0.0, min(100.0, raw)), 2)

    return ReputationScore(
        wallet=activity.wallet,
        score=score,
        breakdown={
            "S_snipes": round(s_snipes, 4),
            "S_bundles": round(s_bundles, 4),
            "S_insider": s_insider,
            "S_rug": s_rug,
            "S_reward": s_reward,
            "penalty_factor": factor,
            "is_market_maker": activity.is_market_maker,
        },
        snipes_total=len(activity.snipe_times),
        snipes_success=activity.successful_snipes,
        bundles_total=activity.bundle_events,
        recipients_total=activity.recipients,
        insider_hits=activity.insider_hits,
        rug_involved=activity.rug_involvements,
    )
