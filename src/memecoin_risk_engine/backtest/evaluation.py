"""Alert precision/lift against post-alert health, and rule replay against labels."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from memecoin_risk_engine.alerter.rules import (
    AlertRule,
    AlertType,
    TokenView,
    hard_mute_violations,
    passes_thresholds,
)
from memecoin_risk_engine.storage.repos import AlertDTO, ScoreHistoryRepository, TokenDTO, TokenLabelDTO

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

OUTCOME_HORIZON = timedelta(hours=1)
BASELINE_HEALTH = 60.0

# Minimum (launch, momentum) or maximum (risk) health change one hour after
# the alert for it to count as a true positive.
HEALTH_CHANGE_TARGETS: dict[AlertType, float] = {
    AlertType.LAUNCH: 0.0,
    AlertType.MOMENTUM_UPGRADE: 5.0,
    AlertType.RISK: -5.0,
}


def is_true_positive(alert_type: AlertType | str, health_change: float | None) -> bool:
    if health_change is None:
        return False
    kind = AlertType(alert_type)
    target = HEALTH_CHANGE_TARGETS[kind]
    if kind is AlertType.RISK:
        return health_change <= target
    return health_change >= target


def baseline_rate(tokens: Sequence[TokenDTO], *, threshold: float = BASELINE_HEALTH) -> float:
    """Share of the sample a random pick would get right."""
    if not tokens:
        return 0.0
    good = sum(1 for t in tokens if t.health_score is not None and t.health_score >= threshold)
    return good / len(tokens)


@dataclass(frozen=True)
class PrecisionLift:
    alert_type: str
    precision: float
    lift: float
    baseline: float
    true_positives: int
    false_positives: int
    total_alerts: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "alert_type": self.alert_type,
            "precision": round(self.precision, 3),
            "lift": round(self.lift, 3),
            "baseline": round(self.baseline, 3),
            "true_positives": self.true_positives,
            "false_positives": self.false_positives,
            "total_alerts": self.total_alerts,
        }


def precision_and_lift(alert_type: AlertType | str, outcomes: Sequence[bool], *, baseline: float) -> PrecisionLift:
    total = len(outcomes)
    true_positives = sum(1 for o in outcomes if o)
    precision = true_positives / total if total else 0.0
    lift = precision / baseline if baseline > 0 else 0.0
    return PrecisionLift(
        alert_type=AlertType(alert_type).value,
        precision=precision,
        lift=lift,
        baseline=baseline,
        true_positives=true_positives,
        false_positives=total - true_positives,
        total_alerts=total,
    )


class AlertOutcomeEvaluator:
    """Scores fired alerts by the health trajectory in score_history."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self._scores = ScoreHistoryRepository(session)

    async def health_change(self, alert: AlertDTO) -> float | None:
        """Health one hour after the alert minus health at the alert, if both are known."""
        before = await self._scores.latest_at_or_before(alert.mint, alert.triggered_at)
        after = await self._scores.first_at_or_after(alert.mint, alert.triggered_at + OUTCOME_HORIZON)
        if before is None or after is None or before.health_score is None or after.health_score is None:
            return None
        return after.health_score - before.health_score

    async def evaluate(
        self, alert_type: AlertType | str, alerts: Sequence[AlertDTO], sample: Sequence[TokenDTO]
    ) -> PrecisionLift:
        outcomes = [is_true_positive(alert_type, await self.health_change(alert)) for alert in alerts]
        return precision_and_lift(alert_type, outcomes, baseline=baseline_rate(sample))


@dataclass(frozen=True)
class ReplayResult:
    """How a rule's thresholds would have selected labelled tokens."""

    rule_name: str
    labelled: int
    matched: int
    winners: int
    precision: float
    base_rate: float
    lift: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "rule_name": self.rule_name,
            "labelled": self.labelled,
            "matched": self.matched,
            "winners": self.winners,
            "precision": round(self.precision, 3),
            "base_rate": round(self.base_rate, 3),
            "lift": round(self.lift, 3),
        }


def replay_rule(
    rule: AlertRule,
    tokens: Sequence[TokenDTO],
    labels: Mapping[str, TokenLabelDTO],
    *,
    target: str = "winner_2x_24h",
) -> ReplayResult:
    labelled = [t for t in tokens if t.mint in labels]
    base_winners = sum(1 for t in labelled if getattr(labels[t.mint], target))

    matched = 0
    winners = 0
    for token in labelled:
        view = TokenView.of(token)
        if hard_mute_violations(view, rule.hard_mute) or not passes_thresholds(view, rule.thresholds):
            continue
        matched += 1
        if getattr(labels[token.mint], target):
            winners += 1

    precision = winners / matched if matched else 0.0
    base_rate = base_winners / len(labelled) if labelled else 0.0
    return ReplayResult(
        rule_name=rule.rule_name,
        labelled=len(labelled),
        matched=matched,
        winners=winners,
        precision=precision,
        base_rate=base_rate,
        lift=precision / base_rate if base_rate > 0 else 0.0,
    )
