"""Alert volume control: tighten thresholds when daily volume overshoots."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from memecoin_risk_engine.alerter.rules import PCT_KEYS, THRESHOLD_KEYS, AlertRule

MAX_OVERSHOOT = 5.0
DEFAULT_STEP = 0.1
# Per-key step for each unit of overshoot; keys not listed use DEFAULT_STEP.
STEP_BY_KEY: dict[str, float] = {"liquidity_min": 0.2}
INTEGER_KEYS = frozenset({"liquidity_min", "holders_min"})
HEALTH_CAP = 100.0
# A tightened floor/ceiling band keeps at least this share of its original width.
MIN_BAND_FRACTION = 0.5


def _band_pairs() -> tuple[tuple[str, str], ...]:
    floors = {metric: key for key, (metric, is_floor) in THRESHOLD_KEYS.items() if is_floor}
    ceilings = {metric: key for key, (metric, is_floor) in THRESHOLD_KEYS.items() if not is_floor}
    return tuple((floors[metric], ceilings[metric]) for metric in floors if metric in ceilings)


BAND_PAIRS = _band_pairs()


def new_ruleset_id(now: datetime) -> str:
    return f"ruleset_{int(now.timestamp() * 1000)}"


def keep_bands(original: dict[str, float], adjusted: dict[str, float]) -> dict[str, float]:
    """Stop a floor and ceiling on the same metric from crossing.

    A band narrowed below MIN_BAND_FRACTION of its original width is reset to
    that width around the tightened midpoint, kept inside the original band.
    """
    out = dict(adjusted)
    for floor_key, ceiling_key in BAND_PAIRS:
        if floor_key not in out or ceiling_key not in out:
            continue
        width = original[ceiling_key] - original[floor_key]
        if width < 0:
            continue
        half = width * MIN_BAND_FRACTION / 2
        if out[ceiling_key] - out[floor_key] >= 2 * half:
            continue
        mid = (out[floor_key] + out[ceiling_key]) / 2
        mid = min(max(mid, original[floor_key] + half), original[ceiling_key] - half)
        out[floor_key] = mid - half
        out[ceiling_key] = mid + half
    return out


def tighten(thresholds: dict[str, float], overshoot: float) -> dict[str, float]:
    """Raise floors and lower ceilings by `step * overshoot` of their value.

    Percentages stay within [0, 1] and health within [0, 100]; liquidity and
    holder floors are whole numbers. Floor/ceiling pairs never invert (see
    `keep_bands`).
    """
    units = min(max(overshoot, 0.0), MAX_OVERSHOOT)
    adjusted: dict[str, float] = {}
    for key, value in thresholds.items():
        _, is_floor = THRESHOLD_KEYS[key]
        step = STEP_BY_KEY.get(key, DEFAULT_STEP) * units
        new = value * (1.0 + step) if is_floor else max(0.0, value * (1.0 - step))
        if key in PCT_KEYS:
            new = min(1.0, new)
        elif key.startswith("health_"):
            new = min(HEALTH_CAP, new)
        elif key in INTEGER_KEYS:
            new = float(math.floor(new))
        adjusted[key] = new
    return keep_bands(thresholds, adjusted)


@dataclass(frozen=True)
class VolumeControl:
    alert_type: str
    daily_volume: float
    target_volume: float
    factor: float
    adjusted: dict[str, dict[str, float]]

    def to_dict(self) -> dict[str, Any]:
        return {
            "alert_type": self.alert_type,
            "daily_volume": round(self.daily_volume, 2),
            "target_volume": self.target_volume,
            "factor": round(self.factor, 3),
            "adjusted_thresholds": self.adjusted,
        }


def control_volume(
    alert_type: str,
    rules: list[AlertRule],
    *,
    alert_count: int,
    days: int,
    target_daily: float,
) -> VolumeControl | None:
    """Adjusted thresholds for every rule of `alert_type`, or None when on target."""
    if days <= 0:
        raise ValueError("days must be positive")
    daily = alert_count / days
    if daily <= target_daily:
        return None
    factor = daily / target_daily
    adjusted = {
        rule.rule_name: tighten(rule.thresholds, factor - 1.0)
        for rule in rules
        if rule.alert_type.value == alert_type
    }
    return VolumeControl(
        alert_type=alert_type,
        daily_volume=daily,
        target_volume=target_daily,
        factor=factor,
        adjusted=adjusted,
    )
