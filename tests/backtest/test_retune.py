"""Tests for alert volume control."""

from __future__ import annotations

from datetime import datetime

import pytest

from memecoin_risk_engine.alerter.rules import DEFAULT_RULES
from memecoin_risk_engine.backtest.retune import control_volume, keep_bands, new_ruleset_id, tighten

THRESHOLDS = {
    "health_min": 70.0,
    "liquidity_min": 10_000.0,
    "holders_min": 50.0,
    "sniper_pct_max": 0.3,
    "health_max": 40.0,
}


class TestTighten:
    def test_one_unit_of_overshoot(self) -> None:
        adjusted = tighten(THRESHOLDS, 1.0)
        assert adjusted["health_min"] == pytest.approx(77.0)
        assert adjusted["liquidity_min"] == 12_000.0
        assert adjusted["holders_min"] == 55.0
        assert adjusted["sniper_pct_max"] == pytest.approx(0.27)
        assert adjusted["health_max"] == pytest.approx(36.0)

    def test_overshoot_is_capped(self) -> None:
        adjusted = tighten({**THRESHOLDS, "fresh_pct_min": 0.8}, 10.0)
        assert adjusted["liquidity_min"] == 20_000.0
        assert adjusted["health_min"] == 100.0
        assert adjusted["fresh_pct_min"] == 1.0
        assert adjusted["sniper_pct_max"] == pytest.approx(0.15)
        assert adjusted["health_max"] == pytest.approx(20.0)

    def test_no_overshoot_keeps_values(self) -> None:
        assert tighten(THRESHOLDS, -1.0) == THRESHOLDS

    def test_integer_floors(self) -> None:
        assert tighten({"holders_min": 7.0}, 1.0) == {"holders_min": 7.0}


class TestControlVolume:
    def test_on_target(self) -> None:
        assert control_volume("risk", list(DEFAULT_RULES), alert_count=100, days=7, target_daily=30.0) is None

    def test_overshoot_tightens_matching_rules(self) -> None:
        volume = control_volume("launch", list(DEFAULT_RULES), alert_count=420, days=7, target_daily=30.0)

        assert volume is not None
        assert volume.daily_volume == pytest.approx(60.0)
        assert volume.factor == pytest.approx(2.0)
        assert list(volume.adjusted) == ["launch_alert"]
        assert volume.adjusted["launch_alert"]["health_min"] == pytest.approx(77.0)
        assert volume.to_dict()["adjusted_thresholds"] == volume.adjusted

    def test_days_must_be_positive(self) -> None:
        with pytest.raises(ValueError, match="days"):
            control_volume("risk", [], alert_count=1, days=0, target_daily=1.0)


class TestRulesetId:
    def test_millisecond_timestamp(self, now: datetime) -> None:
        assert new_ruleset_id(now) == f"ruleset_{int(now.timestamp() * 1000)}"


class TestBands:
    def test_floor_and_ceiling_never_cross(self) -> None:
        volume = control_volume("momentum_upgrade", list(DEFAULT_RULES), alert_count=840, days=7, target_daily=30.0)

        assert volume is not None
        adjusted = volume.adjusted["momentum_upgrade_alert"]
        assert adjusted["health_min"] <= adjusted["health_max"]
        assert adjusted["health_min"] == pytest.approx(62.0)
        assert adjusted["health_max"] == pytest.approx(72.0)
        assert adjusted["fresh_pct_min"] == pytest.approx(0.52)

    def test_wide_band_is_left_alone(self) -> None:
        adjusted = tighten({"health_min": 60.0, "health_max": 80.0}, 0.5)
        assert adjusted == pytest.approx({"health_min": 63.0, "health_max": 76.0})

    def test_band_stays_inside_original(self) -> None:
        adjusted = keep_bands({"health_min": 10.0, "health_max": 30.0}, {"health_min": 5.0, "health_max": 6.0})
        assert adjusted == pytest.approx({"health_min": 10.0, "health_max": 20.0})
