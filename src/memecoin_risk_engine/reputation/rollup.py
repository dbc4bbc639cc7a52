"""Bad-actor rollup: fold holder reputation back into token scores."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass

DEFAULT_BAD_ACTOR_THRESHOLD = 60.0

SNIPER_POINTS = 5
BUNDLER_POINTS = 7
INSIDER_POINTS = 9
MAX_BAD_ACTOR_SCORE = 30.0
MAX_HEALTH_PENALTY = 15.0
MAX_RUG_PENALTY = 20.0


@dataclass(frozen=True)
class BadActorCounts:
    snipers: int = 0
    bundlers: int = 0
    insiders: int = 0

    @property
    def score(self) -> float:
        raw = SNIPER_POINTS * self.snipers + BUNDLER_POINTS * self.bundlers + INSIDER_POINTS * self.insiders
        return float(max(0.0, min(MAX_BAD_ACTOR_SCORE, raw)))


@dataclass(frozen=True)
class RollupResult:
    counts: BadActorCounts
    bad_actor_score: float
    health_score: float | None
    rug_risk_score: float | None


def count_bad_actors(
    *,
    snipers: Iterable[str],
    bundlers: Iterable[str],
    insiders: Iterable[str],
    reputation: Mapping[str, float],
    threshold: float = DEFAULT_BAD_ACTOR_THRESHOLD,
) -> BadActorCounts:
    def bad(wallets: Iterable[str]) -> int:
        return sum(1 for w in set(wallets) if reputation.get(w, 0.0) >= threshold)

    return BadActorCounts(snipers=bad(snipers), bundlers=bad(bundlers), insiders=bad(insiders))


def apply_rollup(
    counts: BadActorCounts,
    *,
    health_score: float | None,
    rug_risk_score: float | None,
) -> RollupResult:
    """Adjust raw scores; a missing score stays missing."""
    bad_score = counts.score
    health = None
    if health_score is not None:
        health = round(max(0.0, min(100.0, health_score - min(MAX_HEALTH_PENALTY, bad_score / 2))), 2)
    rug = None
    if rug_risk_score is not None:
        rug = round(max(0.0, min(100.0, rug_risk_score + min(MAX_RUG_PENALTY, bad_score))), 2)
    return RollupResult(counts=counts, bad_actor_score=bad_score, health_score=health, rug_risk_score=rug)
