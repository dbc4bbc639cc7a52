"""Tests for alert rule parsing and checks."""

from __future__ import annotations

from types import SimpleNamespace

import pytest

from memecoin_risk_engine.alerter.rules import (
    DEFAULT_RULES,
    AlertRule,
    AlertType,
    RuleConfigError,
    TokenView,
    hard_mute_violations,
    passes_thresholds,
    threshold_failures,
)


class TestTokenView:
    def test_missing_values_read_as_zero(self) -> None:
        view = TokenView.of(SimpleNamespace(health_score=None, liquidity_usd=1500, holders_count=None))
        assert view.health_score == 0.0
        assert view.liquidity_usd == 1500.0
        assert view.holders_count == 0.0
        assert view.top10_share == 0.0

    def test_to_dict(self) -> None:
        payload = TokenView(health_score=55.0, fresh_pct=0.5).to_dict()
        assert payload["health_score"] == 55.0
        assert payload["fresh_pct"] == 0.5
        assert set(payload) == {
            "health_score",
            "liquidity_usd",
            "holders_count",
            "fresh_pct",
            "sniper_pct",
            "insider_pct",
            "top10_share",
        }


class TestAlertRuleBuild:
    def test_accepts_json_strings(self) -> None:
        rule = AlertRule.build(
            rule_name="r",
            alert_type="risk",
            thresholds='{"health_max": 40}',
            hard_mute='{"liquidity_min": 1000, "holders_min": null}',
            debounce_minutes=5,
        )
        assert rule.alert_type is AlertType.RISK
        assert rule.thresholds == {"health_max": 40.0}
        assert rule.hard_mute == {"liquidity_min": 1000.0}

    def test_empty_conditions(self) -> None:
        rule = AlertRule.build(rule_name="r", alert_type="launch", thresholds=None, hard_mute="")
        assert rule.thresholds == {}
        assert rule.hard_mute == {}

    def test_invalid_json(self) -> None:
        with pytest.raises(RuleConfigError, match="invalid JSON"):
            AlertRule.build(rule_name="r", alert_type="risk", thresholds="{nope", hard_mute=None)

    def test_json_must_be_an_object(self) -> None:
        with pytest.raises(RuleConfigError, match="JSON object"):
            AlertRule.build(rule_name="r", alert_type="risk", thresholds="[1, 2]", hard_mute=None)

    def test_unknown_alert_type(self) -> None:
        with pytest.raises(RuleConfigError, match="unknown alert type"):
            AlertRule.build(rule_name="r", alert_type="moon", thresholds=None, hard_mute=None)

    def test_negative_debounce(self) -> None:
        with pytest.raises(RuleConfigError, match="debounce"):
            AlertRule.build(rule_name="r", alert_type="risk", thresholds=None, hard_mute=None, debounce_minutes=-1)

    def test_unknown_threshold_key(self) -> None:
        with pytest.raises(RuleConfigError, match="Unknown threshold key"):
            AlertRule.build(rule_name="r", alert_type="risk", thresholds={"volume_min": 1}, hard_mute=None)

    def test_health_is_not_a_hard_mute_key(self) -> None:
        with pytest.raises(RuleConfigError, match="Unknown hard-mute key"):
            AlertRule.build(rule_name="r", alert_type="risk", thresholds=None, hard_mute={"health_min": 10})

    def test_percentages_must_be_fractions(self) -> None:
        with pytest.raises(RuleConfigError, match="fraction"):
            AlertRule.build(rule_name="r", alert_type="launch", thresholds=None, hard_mute={"sniper_pct_max": 30})

    def test_default_rules_are_valid(self) -> None:
        for rule in DEFAULT_RULES:
            rebuilt = AlertRule.build(
                rule_name=rule.rule_name,
                alert_type=rule.alert_type.value,
                thresholds=rule.thresholds,
                hard_mute=rule.hard_mute,
                debounce_minutes=rule.debounce_minutes,
            )
            assert rebuilt == rule


class TestRuleChecks:
    def test_hard_mute_ceilings_and_floors(self) -> None:
        view = TokenView(liquidity_usd=500.0, holders_count=20.0, sniper_pct=0.35, top10_share=0.5)
        conditions = {"liquidity_min": 1000.0, "holders_min": 10.0, "sniper_pct_max": 0.3, "top10_share_max": 0.6}
        assert hard_mute_violations(view, conditions) == ["liquidity_min", "sniper_pct_max"]

    def test_bounds_are_inclusive(self) -> None:
        view = TokenView(health_score=70.0, liquidity_usd=10_000.0)
        assert passes_thresholds(view, {"health_min": 70.0, "liquidity_min": 10_000.0, "health_max": 70.0})

    def test_threshold_failures(self) -> None:
        view = TokenView(health_score=65.0, fresh_pct=0.3)
        assert threshold_failures(view, {"health_min": 60.0, "health_max": 80.0, "fresh_pct_min": 0.4}) == [
            "fresh_pct_min"
        ]

    def test_no_conditions_always_pass(self) -> None:
        assert passes_thresholds(TokenView(), {})
        assert hard_mute_violations(TokenView(), {}) == []
