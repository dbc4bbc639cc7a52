"""Stratified sampling of historical tokens by liquidity and age."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime

import numpy as np

from memecoin_risk_engine.storage.repos import TokenDTO


@dataclass(frozen=True)
class Bucket:
    name: str
    low: float
    high: float
    weight: float

    def contains(self, value: float) -> bool:
        return self.low <= value < self.high


LIQUIDITY_BUCKETS: tuple[Bucket, ...] = (
    Bucket("low", 1_000.0, 10_000.0, 0.3),
    Bucket("medium", 10_000.0, 100_000.0, 0.4),
    Bucket("high", 100_000.0, 1_000_000.0, 0.3),
)

# Token age in hours.
AGE_BUCKETS: tuple[Bucket, ...] = (
    Bucket("early", 0.0, 2.0, 0.4),
    Bucket("mid", 2.0, 24.0, 0.4),
    Bucket("late", 24.0, 168.0, 0.2),
)

MAX_AGE_HOURS = AGE_BUCKETS[-1].high


def find_bucket(value: float | None, buckets: Sequence[Bucket]) -> Bucket | None:
    if value is None:
        return None
    for bucket in buckets:
        if bucket.contains(value):
            return bucket
    return None


def stratum_of(token: TokenDTO, *, now: datetime) -> tuple[str, str] | None:
    liquidity = find_bucket(token.liquidity_usd, LIQUIDITY_BUCKETS)
    age = find_bucket(token.age_hours(now), AGE_BUCKETS)
    if liquidity is None or age is None:
        return None
    return liquidity.name, age.name


def stratified_sample(tokens: Sequence[TokenDTO], *, size: int, now: datetime, seed: int = 7) -> list[TokenDTO]:
    """Draw `floor(size * w_liquidity * w_age)` scored tokens from each stratum.

    Tokens without a health score or outside every bucket are never sampled.
    A stratum with fewer tokens than its quota contributes all of them. The
    same tokens, size, time and seed always yield the same sample.
    """
    strata: dict[tuple[str, str], list[TokenDTO]] = {}
    for token in sorted(tokens, key=lambda t: t.mint):
        if token.health_score is None:
            continue
        key = stratum_of(token, now=now)
        if key is not None:
            strata.setdefault(key, []).append(token)

    rng = np.random.default_rng(seed)
    sample: list[TokenDTO] = []
    for liquidity in LIQUIDITY_BUCKETS:
        for age in AGE_BUCKETS:
            quota = int(size * liquidity.weight * age.weight)
            pool = strata.get((liquidity.name, age.name), [])
            take = min(quota, len(pool))
            if take == 0:
                continue
            picks = rng.choice(len(pool), size=take, replace=False)
            sample.extend(pool[int(i)] for i in picks)
    return sample[:size]
