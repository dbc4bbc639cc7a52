"""Alert rules: thresholds, hard-mute conditions and the default rule set."""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class AlertType(str, Enum):
    LAUNCH = "launch"
    MOMENTUM_UPGRADE = "momentum_upgrade"
    RISK = "risk"


# key -> (metric, is_floor)
THRESHOLD_KEYS: dict[str, tuple[str, bool]] = {
    "health_min": ("health_score", True),
    "health_max": ("health_score", False),
    "liquidity_min": ("liquidity_usd", True),
    "holders_min": ("holders_count", True),
    "fresh_pct_min": ("fresh_pct", True),
    "sniper_pct_max": ("sniper_pct", False),
    "insider_pct_max": ("insider_pct", False),
    "top10_share_max": ("top10_share", False),
}
HARD_MUTE_KEYS = frozenset(
    {"liquidity_min", "holders_min", "sniper_pct_max", "insider_pct_max", "top10_share_max"}
)
PCT_KEYS = frozenset({"fresh_pct_min", "sniper_pct_max", "insider_pct_max", "top10_share_max"})


class RuleConfigError(ValueError):
    """Raised when an alert rule row cannot be interpreted."""


@dataclass(frozen=True)
class TokenView:
    """Token metrics as seen by rule checks; unobserved values read as 0."""

    health_score: float = 0.0
    liquidity_usd: float = 0.0
    holders_count: float = 0.0
    fresh_pct: float = 0.0
    sniper_pct: float = 0.0
    insider_pct: float = 0.0
    top10_share: float = 0.0

    @classmethod
    def of(cls, source: Any) -> TokenView:
        """Build from any object exposing the metric attributes (token or snapshot)."""

        def read(name: str) -> float:
            value = getattr(source, name, None)
            return 0.0 if value is None else float(value)

        return cls(
            health_score=read("health_score"),
            liquidity_usd=read("liquidity_usd"),
            holders_count=read("holders_count"),
            fresh_pct=read("fresh_pct"),
            sniper_pct=read("sniper_pct"),
            insider_pct=read("insider_pct"),
            top10_share=read("top10_share"),
        )

    def to_dict(self) -> dict[str, float]:
        return {
            "health_score": self.health_score,
            "liquidity_usd": self.liquidity_usd,
            "holders_count": self.holders_count,
            "fresh_pct": self.fresh_pct,
            "sniper_pct": self.sniper_pct,
            "insider_pct": self.insider_pct,
            "top10_share": self.top10_share,
        }


def _validate(values: Mapping[str, Any], allowed: frozenset[str] | Mapping[str, Any], what: str) -> dict[str, float]:
    out: dict[str, float] = {}
    for key, value in values.items():
        if key not in allowed:
            raise RuleConfigError(f"Unknown {what} key: {key!r}")
        if value is None:
            continue
        number = float(value)
        if key in PCT_KEYS and not 0.0 <= number <= 1.0:
            raise RuleConfigError(f"{what} {key} must be a fraction in [0, 1], got {number}")
        out[key] = number
    return out


@dataclass(frozen=True)
class AlertRule:
    """Operator-authored alert rule."""

    rule_name: str
    alert_type: AlertType
    thresholds: dict[str, float] = field(default_factory=dict)
    hard_mute: dict[str, float] = field(default_factory=dict)
    debounce_minutes: int = 0
    is_active: bool = True

    @classmethod
    def build(
        cls,
        *,
        rule_name: str,
        alert_type: str,
        thresholds: Mapping[str, Any] | str | None,
        hard_mute: Mapping[str, Any] | str | None,
        debounce_minutes: int = 0,
        is_active: bool = True,
    ) -> AlertRule:
        def load(raw: Mapping[str, Any] | str | None) -> Mapping[str, Any]:
            if raw is None or raw == "":
                return {}
            if isinstance(raw, str):
                try:
                    parsed = json.loads(raw)
                except json.JSONDecodeError as e:
                    raise RuleConfigError(f"Rule {rule_name}: invalid JSON") from e
                if not isinstance(parsed, dict):
                    raise RuleConfigError(f"Rule {rule_name}: expected a JSON object")
                return parsed
            return raw

        try:
            kind = AlertType(alert_type)
        except ValueError as e:
            raise RuleConfigError(f"Rule {rule_name}: unknown alert type {alert_type!r}") from e
        if debounce_minutes < 0:
            raise RuleConfigError(f"Rule {rule_name}: debounce_minutes must be >= 0")

        return cls(
            rule_name=rule_name,
            alert_type=kind,
            thresholds=_validate(load(thresholds), THRESHOLD_KEYS, "threshold"),
            hard_mute=_validate(load(hard_mute), HARD_MUTE_KEYS, "hard-mute"),
            debounce_minutes=debounce_minutes,
            is_active=is_active,
        )


def _failures(view: TokenView, conditions: Mapping[str, float]) -> list[str]:
    failed: list[str] = []
    for key, bound in conditions.items():
        metric, is_floor = THRESHOLD_KEYS[key]
        value = getattr(view, metric)
        if (is_floor and value < bound) or (not is_floor and value > bound):
            failed.append(key)
    return failed


def hard_mute_violations(view: TokenView, conditions: Mapping[str, float]) -> list[str]:
    """Hard-mute keys the token violates (floors undershot or ceilings exceeded)."""
    return _failures(view, conditions)


def threshold_failures(view: TokenView, thresholds: Mapping[str, float]) -> list[str]:
    return _failures(view, thresholds)


def passes_thresholds(view: TokenView, thresholds: Mapping[str, float]) -> bool:
    return not _failures(view, thresholds)


DEFAULT_RULES: tuple[AlertRule, ...] = (
    AlertRule(
        rule_name="launch_alert",
        alert_type=AlertType.LAUNCH,
        thresholds={"health_min": 70.0, "liquidity_min": 10_000.0, "holders_min": 50.0},
        hard_mute={"sniper_pct_max": 0.30, "insider_pct_max": 0.20, "top10_share_max": 0.60},
        debounce_minutes=30,
    ),
    AlertRule(
        rule_name="momentum_upgrade_alert",
        alert_type=AlertType.MOMENTUM_UPGRADE,
        thresholds={"health_min": 60.0, "health_max": 80.0, "fresh_pct_min": 0.40},
        hard_mute={"sniper_pct_max": 0.40, "insider_pct_max": 0.30, "top10_share_max": 0.70},
        debounce_minutes=15,
    ),
    AlertRule(
        rule_name="risk_alert",
        alert_type=AlertType.RISK,
        thresholds={"health_max": 40.0},
        hard_mute={"liquidity_min": 1_000.0, "holders_min": 10.0},
        debounce_minutes=5,
    ),
)
