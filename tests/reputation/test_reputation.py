"""Tests for decayed wallet reputation."""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from memecoin_risk_engine.reputation.scoring import WalletActivity, compute_reputation, decay_weight


class TestDecayWeight:
    def test_half_life(self, now: datetime) -> None:
        assert decay_weight(now, now) == 1.0
        assert decay_weight(now - timedelta(days=14), now) == pytest.approx(0.5)
        assert decay_weight(now - timedelta(days=28), now) == pytest.approx(0.25)

    def test_future_events_count_fully(self, now: datetime) -> None:
        assert decay_weight(now + timedelta(days=1), now) == 1.0

    def test_custom_half_life(self, now: datetime) -> None:
        assert decay_weight(now - timedelta(days=7), now, half_life_days=7.0) == pytest.approx(0.5)


class TestComputeReputation:
    def test_components(self, now: datetime) -> None:
        activity = WalletActivity(
            wallet="w",
            snipe_times=(now, now, now),
            successful_snipes=2,
            bundle_events=2,
            recipients=25,
            insider_hits=1,
            rug_involvements=1,
        )
        result = compute_reputation(activity, now=now)

        assert result.breakdown["S_snipes"] == pytest.approx(6.0)
        assert result.breakdown["S_bundles"] == pytest.approx(9.0)
        assert result.breakdown["S_insider"] == 10.0
        assert result.breakdown["S_rug"] == 20.0
        assert result.breakdown["S_reward"] == 4.0
        assert result.breakdown["penalty_factor"] == 1.0
        assert result.score == pytest.approx(41.0)
        assert result.snipes_total == 3
        assert result.recipients_total == 25

    def test_old_snipes_decay(self, now: datetime) -> None:
        activity = WalletActivity(wallet="w", snipe_times=(now - timedelta(days=14),))
        assert compute_reputation(activity, now=now).score == pytest.approx(1.0)

    def test_score_falls_as_time_passes(self, now: datetime) -> None:
        activity = WalletActivity(wallet="w", snipe_times=(now,) * 5)
        today = compute_reputation(activity, now=now).score
        later = compute_reputation(activity, now=now + timedelta(days=30)).score
        assert later < today

    def test_market_maker_is_dampened(self, now: datetime) -> None:
        activity = WalletActivity(wallet="mm", insider_hits=2, bundle_events=5, is_market_maker=True)
        result = compute_reputation(activity, now=now)
        assert result.score == pytest.approx(30.0 * 0.25)
        assert result.breakdown["is_market_maker"] is True

    def test_components_are_capped(self, now: datetime) -> None:
        activity = WalletActivity(wallet="w", snipe_times=(now,) * 30, bundle_events=25, recipients=1000)
        result = compute_reputation(activity, now=now)
        assert result.breakdown["S_snipes"] == pytest.approx(40.0)
        assert result.breakdown["S_bundles"] == pytest.approx(90.0)
        assert result.score == 100.0

    def test_reward_never_goes_negative(self, now: datetime) -> None:
        activity = WalletActivity(wallet="w", successful_snipes=10)
        result = compute_reputation(activity, now=now)
        assert result.breakdown["S_reward"] == 10.0
        assert result.score == 0.0
