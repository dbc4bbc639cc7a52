"""Token health scoring.

Health rewards organic holder growth and deep liquidity and penalises
sniper, insider and whale concentration. Two versions exist:

- v1 (basic): uncapped ratios, liquidity normalised over $1..$1M, no
  rescaling, no adjustments.
- v2 (enhanced): neutral priors for missing ratios, capped inputs,
  liquidity normalised over $1..$100k, rescaled into [5, 100], a
  class-conflict penalty and an early-life momentum bonus.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

NEUTRAL_FRESH_RATIO = 0.50
NEUTRAL_SNIPER_RATIO = 0.10
NEUTRAL_INSIDER_RATIO = 0.10

FRESH_CAP = 0.90
SNIPER_CAP = 0.50
INSIDER_CAP = 0.50
TOP10_CAP = 0.90

FRESH_WEIGHT = 35.0
LIQUIDITY_WEIGHT = 20.0
SNIPER_WEIGHT = 15.0
INSIDER_WEIGHT = 20.0
TOP10_WEIGHT = 10.0

SCORE_FLOOR = 5.0
SCORE_SCALE = 0.95

CONFLICT_FRESH_MIN = 0.60
CONFLICT_SNIPER_MIN = 0.12
MOMENTUM_MAX_AGE_HOURS = 2.0
MOMENTUM_DIVISOR = 20.0
MOMENTUM_MAX_BONUS = 0.1


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


@dataclass(frozen=True)
class HealthInputs:
    """Observed token features; `None` means the feature was not observed.

    Attributes:
        fresh_ratio: Share of fresh holders.
        sniper_ratio: Share of sniper holders.
        insider_ratio: Share of insider holders.
        liquidity_usd: Pool liquidity in USD.
        top10_concentration: Share of supply held by the top 10 holders.
        age_hours: Token age at scoring time.
        previous_score: Health score from the momentum lookback snapshot.
    """

    fresh_ratio: float | None = None
    sniper_ratio: float | None = None
    insider_ratio: float | None = None
    liquidity_usd: float | None = None
    top10_concentration: float | None = None
    age_hours: float | None = None
    previous_score: float | None = None


@dataclass(frozen=True)
class HealthResult:
    """Health score with the components that produced it."""

    score: float
    raw: float
    fresh_ratio: float
    sniper_ratio: float
    insider_ratio: float
    top10_concentration: float
    liquidity_score: float
    conflict_penalty: float = 0.0
    momentum_bonus: float = 0.0
    version: str = "v2"

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "raw": round(self.raw, 4),
            "fresh_ratio": self.fresh_ratio,
            "sniper_ratio": self.sniper_ratio,
            "insider_ratio": self.insider_ratio,
            "top10_concentration": self.top10_concentration,
            "liquidity_score": round(self.liquidity_score, 4),
            "conflict_penalty": round(self.conflict_penalty, 4),
            "momentum_bonus": round(self.momentum_bonus, 4),
            "version": self.version,
        }


def class_conflict_penalty(fresh: float, sniper: float) -> float:
    """5-10 point penalty when lots of "fresh" holders coexist with snipers.

    A high fresh share next to a meaningful sniper share usually means the
    fresh wallets were spun up by the same operator.
    """
    if fresh <= CONFLICT_FRESH_MIN or sniper <= CONFLICT_SNIPER_MIN:
        return 0.0
    severity = min(1.0, (fresh - CONFLICT_FRESH_MIN) / 0.3) * min(1.0, (sniper - CONFLICT_SNIPER_MIN) / 0.38)
    return 5.0 + 5.0 * severity


def momentum_bonus(score: float, previous_score: float | None) -> float:
    if previous_score is None:
        return 0.0
    return clamp((score - previous_score) / MOMENTUM_DIVISOR, 0.0, MOMENTUM_MAX_BONUS)


class EnhancedHealthScorer:
    """Version 2 health scoring."""

    version = "v2"

    @staticmethod
    def liquidity_score(liquidity_usd: float) -> float:
        return clamp(math.log10(max(0.0, liquidity_usd) + 1.0) / 5.0, 0.0, 1.0)

    def score(self, inputs: HealthInputs) -> HealthResult:
        fresh = clamp(_or(inputs.fresh_ratio, NEUTRAL_FRESH_RATIO), 0.0, FRESH_CAP)
        sniper = clamp(_or(inputs.sniper_ratio, NEUTRAL_SNIPER_RATIO), 0.0, SNIPER_CAP)
        insider = clamp(_or(inputs.insider_ratio, NEUTRAL_INSIDER_RATIO), 0.0, INSIDER_CAP)
        top10 = clamp(_or(inputs.top10_concentration, 0.0), 0.0, TOP10_CAP)
        liq = self.liquidity_score(_or(inputs.liquidity_usd, 0.0))

        raw = (
            FRESH_WEIGHT * fresh
            + LIQUIDITY_WEIGHT * liq
            - SNIPER_WEIGHT * sniper
            - INSIDER_WEIGHT * insider
            - TOP10_WEIGHT * top10
        )
        penalty = class_conflict_penalty(fresh, sniper)
        score = SCORE_FLOOR + SCORE_SCALE * raw - penalty

        bonus = 0.0
        if inputs.age_hours is not None and inputs.age_hours <= MOMENTUM_MAX_AGE_HOURS:
            bonus = momentum_bonus(score, inputs.previous_score)
            score += bonus

        return HealthResult(
            score=round(clamp(score, 0.0, 100.0), 2),
            raw=raw,
            fresh_ratio=fresh,
            sniper_ratio=sniper,
            insider_ratio=insider,
            top10_concentration=top10,
            liquidity_score=liq,
            conflict_penalty=penalty,
            momentum_bonus=bonus,
            version=self.version,
        )


class BasicHealthScorer:
    """Version 1 health scoring."""

    version = "v1"

    @staticmethod
    def liquidity_score(liquidity_usd: float) -> float:
        return math.log10(max(1.0, liquidity_usd)) / 6.0

    def score(self, inputs: HealthInputs) -> HealthResult:
        fresh = _or(inputs.fresh_ratio, 0.0)
        sniper = _or(inputs.sniper_ratio, 0.0)
        insider = _or(inputs.insider_ratio, 0.0)
        top10 = _or(inputs.top10_concentration, 0.0)
        liq = self.liquidity_score(_or(inputs.liquidity_usd, 0.0))

        raw = (
            FRESH_WEIGHT * fresh
            + LIQUIDITY_WEIGHT * liq
            - SNIPER_WEIGHT * sniper
            - INSIDER_WEIGHT * insider
            - TOP10_WEIGHT * top10
        )
        return HealthResult(
            score=round(clamp(raw, 0.0, 100.0), 2),
            raw=raw,
            fresh_ratio=fresh,
            sniper_ratio=sniper,
            insider_ratio=insider,
            top10_concentration=top10,
            liquidity_score=liq,
            version=self.version,
        )


def _or(value: float | None, default: float) -> float:
    return default if value is None else float(value)
