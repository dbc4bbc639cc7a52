"""Tests for stratified token sampling."""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from memecoin_risk_engine.backtest.sampling import (
    AGE_BUCKETS,
    LIQUIDITY_BUCKETS,
    find_bucket,
    stratified_sample,
    stratum_of,
)
from memecoin_risk_engine.storage.repos import TokenDTO


def token(mint: str, now: datetime, *, liquidity: float | None, age_hours: float, health: float | None = 50.0):
    return TokenDTO(
        mint=mint,
        first_seen_at=now - timedelta(hours=age_hours),
        liquidity_usd=liquidity,
        health_score=health,
    )


class TestBuckets:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [(None, None), (999.0, None), (1_000.0, "low"), (10_000.0, "medium"), (999_999.0, "high"), (1e6, None)],
    )
    def test_liquidity_bucket(self, value: float | None, expected: str | None) -> None:
        bucket = find_bucket(value, LIQUIDITY_BUCKETS)
        assert (bucket.name if bucket else None) == expected

    def test_weights_sum_to_one(self) -> None:
        assert sum(b.weight for b in LIQUIDITY_BUCKETS) == pytest.approx(1.0)
        assert sum(b.weight for b in AGE_BUCKETS) == pytest.approx(1.0)

    def test_stratum_of(self, now: datetime) -> None:
        assert stratum_of(token("a", now, liquidity=5_000.0, age_hours=1.0), now=now) == ("low", "early")
        assert stratum_of(token("b", now, liquidity=50_000.0, age_hours=30.0), now=now) == ("medium", "late")
        assert stratum_of(token("c", now, liquidity=5_000.0, age_hours=200.0), now=now) is None


class TestStratifiedSample:
    def test_quota_per_stratum(self, now: datetime) -> None:
        pool = [token(f"m{i:03d}", now, liquidity=5_000.0, age_hours=1.0) for i in range(40)]
        size = 100
        quota = int(size * LIQUIDITY_BUCKETS[0].weight * AGE_BUCKETS[0].weight)

        sample = stratified_sample(pool, size=size, now=now)

        assert len(sample) == quota
        assert len({t.mint for t in sample}) == quota

    def test_small_stratum_contributes_everything(self, now: datetime) -> None:
        pool = [token(f"m{i}", now, liquidity=50_000.0, age_hours=5.0) for i in range(3)]
        assert {t.mint for t in stratified_sample(pool, size=100, now=now)} == {"m0", "m1", "m2"}

    def test_skips_unscored_and_out_of_range(self, now: datetime) -> None:
        pool = [
            token("unscored", now, liquidity=5_000.0, age_hours=1.0, health=None),
            token("dust", now, liquidity=500.0, age_hours=1.0),
            token("ancient", now, liquidity=5_000.0, age_hours=500.0),
            token("ok", now, liquidity=5_000.0, age_hours=1.0),
        ]
        assert [t.mint for t in stratified_sample(pool, size=100, now=now)] == ["ok"]

    def test_deterministic_for_a_seed(self, now: datetime) -> None:
        pool = [token(f"m{i:03d}", now, liquidity=5_000.0 * (1 + i % 30), age_hours=float(i % 50)) for i in range(300)]

        first = [t.mint for t in stratified_sample(pool, size=50, now=now, seed=11)]
        second = [t.mint for t in stratified_sample(list(reversed(pool)), size=50, now=now, seed=11)]

        assert first == second
        assert len(first) <= 50
