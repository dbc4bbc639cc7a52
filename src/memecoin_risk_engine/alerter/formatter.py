"""Explainable alert message formatting."""

from __future__ import annotations

from collections.abc import Mapping

from memecoin_risk_engine.alerter.rules import AlertType, TokenView

TYPE_PREFIX = {
    AlertType.LAUNCH: "\U0001f680",  # rocket
    AlertType.MOMENTUM_UPGRADE: "\U0001f4c8",  # chart increasing
    AlertType.RISK: "⚠️",  # warning sign
}
CAVEAT_PREFIX = "⚠️"

HEALTH_GOOD = 70.0
HEALTH_FAIR = 40.0
HIGH_TOP10_SHARE = 0.6

WHY_FRESH_MIN = 0.60
WHY_SNIPER_MAX = 0.05
WHY_INSIDER_MAX = 0.08


def truncate_mint(mint: str, chars: int = 4) -> str:
    """Truncate a mint address to AbCd...WxYz format."""
    if len(mint) < chars * 2 + 3:
        return mint
    return f"{mint[:chars]}...{mint[-chars:]}"


def format_usd_k(amount: float) -> str:
    """Format a USD amount in thousands, e.g. $12.3k."""
    return f"${amount / 1000:.1f}k"


def get_health_badge(score: float) -> str:
    if score >= HEALTH_GOOD:
        return "\U0001f7e2"  # green
    if score >= HEALTH_FAIR:
        return "\U0001f7e1"  # yellow
    return "\U0001f534"  # red


def _pct(value: float) -> str:
    return f"{value * 100:.0f}%"


def why_reasons(
    alert_type: AlertType,
    view: TokenView,
    thresholds: Mapping[str, float],
    *,
    health_delta_10m: float | None,
) -> list[str]:
    """Top contributing reasons an alert fired."""
    reasons: list[str] = []
    if alert_type == AlertType.LAUNCH:
        if view.fresh_pct >= WHY_FRESH_MIN:
            reasons.append(f"Fresh {_pct(view.fresh_pct)} ≥ 60%")
        if view.sniper_pct <= WHY_SNIPER_MAX:
            reasons.append(f"Snipers {_pct(view.sniper_pct)} ≤ 5%")
        if view.insider_pct <= WHY_INSIDER_MAX:
            reasons.append(f"Insiders {_pct(view.insider_pct)} ≤ 8%")
        liquidity_min = thresholds.get("liquidity_min")
        if liquidity_min is not None and view.liquidity_usd >= liquidity_min:
            reasons.append(f"Liq {format_usd_k(view.liquidity_usd)} ≥ ${liquidity_min / 1000:.0f}k")
        if health_delta_10m is not None and health_delta_10m > 0:
            reasons.append(f"ΔHealth@10m +{health_delta_10m:.0f}")
    elif alert_type == AlertType.MOMENTUM_UPGRADE:
        fresh_min = thresholds.get("fresh_pct_min")
        if fresh_min is not None:
            reasons.append(f"Fresh {_pct(view.fresh_pct)} ≥ {_pct(fresh_min)}")
        if health_delta_10m is not None and health_delta_10m > 0:
            reasons.append(f"ΔHealth@10m +{health_delta_10m:.0f}")
    elif alert_type == AlertType.RISK:
        health_max = thresholds.get("health_max")
        if health_max is not None:
            reasons.append(f"Health {view.health_score:.0f} ≤ {health_max:.0f}")
        if health_delta_10m is not None and health_delta_10m < 0:
            reasons.append(f"ΔHealth@10m {health_delta_10m:.0f}")
    return reasons


def risk_caveats(view: TokenView, *, price_conflict: bool) -> list[str]:
    caveats: list[str] = []
    if view.top10_share > HIGH_TOP10_SHARE:
        caveats.append("High Top10%")
    if price_conflict:
        caveats.append("Price feed conflict")
    return caveats


def format_alert_message(
    *,
    alert_type: AlertType,
    mint: str,
    symbol: str | None,
    view: TokenView,
    reasons: list[str],
    caveats: list[str],
) -> str:
    name = f"${symbol}" if symbol else truncate_mint(mint)
    lines = [
        f"{TYPE_PREFIX[alert_type]} {name} ({truncate_mint(mint)}) • "
        f"Health {view.health_score:.0f} {get_health_badge(view.health_score)}",
        f"Fresh {_pct(view.fresh_pct)} • Snipers {_pct(view.sniper_pct)} • "
        f"Insiders {_pct(view.insider_pct)} • Liq {format_usd_k(view.liquidity_usd)}",
    ]
    if reasons:
        lines.append(f"Why: {', '.join(reasons)}")
    if caveats:
        lines.append(f"{CAVEAT_PREFIX} {', '.join(caveats)}")
    return "\n".join(lines)
