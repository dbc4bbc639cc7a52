"""Rug-risk scoring.

Each component is capped on its own scale and the enhanced (v2) version
combines them with fixed weights:

    LP safety      0.60   (<= 60 points: burn <= 30, lock <= 20)
    Authorities    0.20   (<= 20 points)
    Drains         0.15   (<= 20 points)
    Concentration  0.05   (<= 20 points)

The basic (v1) version adds the unweighted LP, authority and liquidity
behaviour points. Hysteresis is applied on top of either version by the
scoring service (see `apply_hysteresis`).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from memecoin_risk_engine.scoring.health import clamp

LP_WEIGHT = 0.60
AUTHORITIES_WEIGHT = 0.20
DRAINS_WEIGHT = 0.15
CONCENTRATION_WEIGHT = 0.05

LP_CAP = 60.0
AUTHORITIES_CAP = 20.0
DRAINS_CAP = 20.0
CONCENTRATION_CAP = 20.0

LP_BURNED_PCT = 0.95
DRAIN_REFERENCE_LIQUIDITY = 5_000.0
CONCENTRATION_FULL_LIQUIDITY = 50_000.0

DEFAULT_HYSTERESIS_THRESHOLD = 80.0
HYSTERESIS_HOLD_FLAG = "hysteresis_hold"


@dataclass(frozen=True)
class RugRiskInputs:
    """Pool and ownership state used for rug-risk scoring.

    Attributes:
        liquidity_usd: Pool liquidity in USD.
        lp_burn_pct: Share of LP tokens burned, `None` if unknown.
        lp_lock_confidence: 2 = high-confidence lock, 1 = low, 0/None = none.
        lp_lock_provider: Locker program name when locked.
        authorities_revoked: Mint/freeze authority revoked, `None` if unknown.
        liquidity_delta_5m: Relative liquidity change over 5 minutes.
        liquidity_delta_15m: Relative liquidity change over 15 minutes.
        top1_pct: Largest LP owner's share.
        top5_pct: Five largest LP owners' share.
        creator_holds_lp: The largest LP owner is the token creator.
    """

    liquidity_usd: float | None = None
    lp_burn_pct: float | None = None
    lp_lock_confidence: int | None = None
    lp_lock_provider: str | None = None
    authorities_revoked: bool | None = None
    liquidity_delta_5m: float | None = None
    liquidity_delta_15m: float | None = None
    top1_pct: float | None = None
    top5_pct: float | None = None
    creator_holds_lp: bool = False


@dataclass(frozen=True)
class ComponentScore:
    points: float
    flags: tuple[str, ...] = ()


@dataclass(frozen=True)
class RugRiskResult:
    """Rug-risk score with flags and per-component breakdown."""

    score: float
    flags: tuple[str, ...]
    breakdown: dict[str, float] = field(default_factory=dict)
    version: str = "v2"
    held_by_hysteresis: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "flags": list(self.flags),
            "breakdown": dict(self.breakdown),
            "version": self.version,
            "held_by_hysteresis": self.held_by_hysteresis,
        }


def lp_safety(inputs: RugRiskInputs) -> ComponentScore:
    flags: list[str] = []
    points = 0.0

    burn = inputs.lp_burn_pct
    if burn is None:
        points += 15.0
        flags.append("lp_burn_unknown")
    elif burn >= LP_BURNED_PCT:
        flags.append("lp_burned")
    elif burn > 0:
        points += 30.0 * (1.0 - burn)
        flags.append(f"lp_partial_burn_{round(burn * 100)}%")
    else:
        points += 30.0
        flags.append("lp_unburned")

    confidence = inputs.lp_lock_confidence or 0
    provider = inputs.lp_lock_provider or "unknown"
    if confidence >= 2:
        flags.append(f"lp_locked_high_{provider}")
    elif confidence == 1:
        points += 10.0
        flags.append(f"lp_locked_low_{provider}")
    else:
        points += 20.0
        flags.append("lp_unlocked")

    return ComponentScore(min(points, LP_CAP), tuple(flags))


def authorities(inputs: RugRiskInputs) -> ComponentScore:
    if inputs.authorities_revoked is None:
        return ComponentScore(10.0, ("authorities_unknown",))
    if inputs.authorities_revoked:
        return ComponentScore(0.0, ("authorities_revoked",))
    return ComponentScore(20.0, ("authorities_active",))


def drain_normalization(liquidity_usd: float | None) -> float:
    """Scale factor for liquidity deltas; micro pools move a lot on noise."""
    if liquidity_usd is None or liquidity_usd <= 0:
        return 0.0
    return min(liquidity_usd / DRAIN_REFERENCE_LIQUIDITY, 1.0)


def drains(inputs: RugRiskInputs) -> ComponentScore:
    factor = drain_normalization(inputs.liquidity_usd)
    flags: list[str] = []
    points = 0.0

    if inputs.liquidity_delta_5m is not None:
        delta = inputs.liquidity_delta_5m * factor
        if delta <= -0.60:
            points += 12.0
            flags.append("drain_60_5m")
        elif delta <= -0.40:
            points += 8.0
            flags.append("drain_40_5m")

    if inputs.liquidity_delta_15m is not None:
        delta = inputs.liquidity_delta_15m * factor
        if delta <= -0.65:
            points += 8.0
            flags.append("drain_65_15m")

    return ComponentScore(min(points, DRAINS_CAP), tuple(flags))


def concentration_scale(liquidity_usd: float | None) -> float:
    liq = liquidity_usd or 0.0
    if liq < DRAIN_REFERENCE_LIQUIDITY:
        return 0.5
    if liq >= CONCENTRATION_FULL_LIQUIDITY:
        return 1.0
    return 0.5 + 0.5 * (liq - DRAIN_REFERENCE_LIQUIDITY) / (CONCENTRATION_FULL_LIQUIDITY - DRAIN_REFERENCE_LIQUIDITY)


def concentration(inputs: RugRiskInputs) -> ComponentScore:
    flags: list[str] = []
    points = 0.0

    top1 = inputs.top1_pct
    if top1 is not None:
        if top1 >= 0.35:
            points += 15.0
            flags.append("top1_gt35")
        elif top1 >= 0.20:
            points += 10.0
            flags.append("top1_gt20")
        if inputs.creator_holds_lp and top1 >= 0.20:
            points += 10.0
            flags.append("creator_holds_lp")

    top5 = inputs.top5_pct
    if top5 is not None:
        if top5 >= 0.70:
            points += 10.0
            flags.append("top5_gt70")
        elif top5 >= 0.50:
            points += 5.0
            flags.append("top5_gt50")

    scaled = points * concentration_scale(inputs.liquidity_usd)
    return ComponentScore(min(scaled, CONCENTRATION_CAP), tuple(flags))


class EnhancedRugRiskScorer:
    """Version 2: weighted, capped components."""

    version = "v2"

    def score(self, inputs: RugRiskInputs) -> RugRiskResult:
        lp = lp_safety(inputs)
        auth = authorities(inputs)
        drain = drains(inputs)
        conc = concentration(inputs)

        weighted = {
            "lp_safety": lp.points * LP_WEIGHT,
            "authorities": auth.points * AUTHORITIES_WEIGHT,
            "drains": drain.points * DRAINS_WEIGHT,
            "concentration": conc.points * CONCENTRATION_WEIGHT,
        }
        total = clamp(sum(weighted.values()), 0.0, 100.0)
        breakdown = {name: round(value, 2) for name, value in weighted.items()}
        breakdown["total"] = round(total, 2)

        return RugRiskResult(
            score=round(total, 2),
            flags=lp.flags + auth.flags + drain.flags + conc.flags,
            breakdown=breakdown,
            version=self.version,
        )


class BasicRugRiskScorer:
    """Version 1: unweighted sum of LP, authority and liquidity behaviour points."""

    version = "v1"

    def score(self, inputs: RugRiskInputs) -> RugRiskResult:
        flags: list[str] = []

        lp_points = 0.0
        burned = inputs.lp_burn_pct is not None and inputs.lp_burn_pct >= LP_BURNED_PCT
        locked = (inputs.lp_lock_confidence or 0) >= 1
        if burned:
            flags.append("lp_burned")
        elif locked:
            flags.append("lp_locked")
        elif inputs.lp_burn_pct is not None:
            lp_points += 30.0
            flags.extend(("lp_unburned", "lp_unlocked"))
        if inputs.top1_pct is not None and inputs.top1_pct >= 0.20:
            lp_points += 15.0
            flags.append("top1_gt35" if inputs.top1_pct >= 0.35 else "top1_gt20")
        if inputs.top5_pct is not None and inputs.top5_pct >= 0.50:
            lp_points += 15.0
            flags.append("top5_gt50")
        lp_points = min(lp_points, LP_CAP)

        auth_points = 0.0
        if inputs.authorities_revoked is False:
            auth_points = 20.0
            flags.append("authorities_active")
        elif inputs.authorities_revoked:
            flags.append("authorities_revoked")

        liq_points = 0.0
        if inputs.liquidity_delta_5m is not None and inputs.liquidity_delta_5m <= -0.40:
            liq_points += 12.0
            flags.append("drain_60_5m" if inputs.liquidity_delta_5m <= -0.60 else "drain_40_5m")
        if inputs.liquidity_delta_15m is not None and inputs.liquidity_delta_15m <= -0.65:
            liq_points += 8.0
            flags.append("drain_65_15m")
        liq_points = min(liq_points, DRAINS_CAP)

        total = clamp(lp_points + auth_points + liq_points, 0.0, 100.0)
        return RugRiskResult(
            score=round(total, 2),
            flags=tuple(flags),
            breakdown={
                "lp_safety": round(lp_points, 2),
                "authorities": round(auth_points, 2),
                "drains": round(liq_points, 2),
                "concentration": 0.0,
                "total": round(total, 2),
            },
            version=self.version,
        )


def apply_hysteresis(
    result: RugRiskResult,
    *,
    recently_high: bool,
    threshold: float = DEFAULT_HYSTERESIS_THRESHOLD,
) -> RugRiskResult:
    """Hold the score at `threshold` while a recent computation reached it."""
    if not recently_high or result.score >= threshold:
        return result
    breakdown = dict(result.breakdown)
    breakdown["total"] = threshold
    breakdown["computed_total"] = result.score
    return RugRiskResult(
        score=threshold,
        flags=result.flags + (HYSTERESIS_HOLD_FLAG,),
        breakdown=breakdown,
        version=result.version,
        held_by_hysteresis=True,
    )
