"""Rolling backtest and threshold retune."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from memecoin_risk_engine.alerter.rules import AlertRule, AlertType
from memecoin_risk_engine.backtest.evaluation import AlertOutcomeEvaluator, PrecisionLift, ReplayResult, replay_rule
from memecoin_risk_engine.backtest.retune import VolumeControl, control_volume, new_ruleset_id
from memecoin_risk_engine.backtest.sampling import MAX_AGE_HOURS, stratified_sample
from memecoin_risk_engine.config import BacktestSettings
from memecoin_risk_engine.storage.repos import (
    AlertRepository,
    AlertRuleRepository,
    BacktestRunDTO,
    BacktestRunRepository,
    RetuneResultDTO,
    RetuneResultRepository,
    TokenLabelRepository,
    TokenRepository,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


@dataclass
class BacktestReport:
    run_id: str
    ruleset_id: str
    sample_size: int
    metrics: dict[str, PrecisionLift] = field(default_factory=dict)
    volume: dict[str, VolumeControl | None] = field(default_factory=dict)
    replay: list[ReplayResult] = field(default_factory=list)
    applied: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "ruleset_id": self.ruleset_id,
            "sample_size": self.sample_size,
            "applied": self.applied,
            "alerts": {
                alert_type: {
                    "metrics": metrics.to_dict(),
                    "volume_control": self.volume[alert_type].to_dict() if self.volume.get(alert_type) else None,
                }
                for alert_type, metrics in self.metrics.items()
            },
            "replay": [r.to_dict() for r in self.replay],
        }


class BacktestHarness:
    """Evaluates recent alerts on a stratified sample and proposes a tightened ruleset."""

    def __init__(
        self,
        session: AsyncSession,
        *,
        sample_size: int = 1000,
        lookback_days: int = 7,
        target_daily_alerts: float = 30.0,
        seed: int = 7,
    ) -> None:
        self.session = session
        self.sample_size = sample_size
        self.lookback_days = lookback_days
        self.target_daily_alerts = target_daily_alerts
        self.seed = seed
        self._tokens = TokenRepository(session)
        self._alerts = AlertRepository(session)
        self._rules = AlertRuleRepository(session)
        self._labels = TokenLabelRepository(session)
        self._runs = BacktestRunRepository(session)
        self._retunes = RetuneResultRepository(session)
        self._evaluator = AlertOutcomeEvaluator(session)

    @classmethod
    def from_settings(cls, session: AsyncSession, settings: BacktestSettings) -> BacktestHarness:
        return cls(
            session,
            sample_size=settings.sample_size,
            lookback_days=settings.lookback_days,
            target_daily_alerts=settings.target_daily_alerts,
            seed=settings.seed,
        )

    async def run(self, *, now: datetime, apply: bool = False) -> BacktestReport:
        """Run one retune.

        With `apply`, active rules are rewritten with the tightened thresholds;
        the previous values stay in retune_results under the ruleset id.
        """
        window_start = now - timedelta(days=self.lookback_days)
        pool = await self._tokens.list_first_seen_between(start=now - timedelta(hours=MAX_AGE_HOURS), end=now)
        sample = stratified_sample(pool, size=self.sample_size, now=now, seed=self.seed)
        rules = await self._rules.list_active()

        report = BacktestReport(run_id=str(uuid.uuid4()), ruleset_id=new_ruleset_id(now), sample_size=len(sample))
        retunes: list[RetuneResultDTO] = []
        for alert_type in AlertType:
            alerts = await self._alerts.list_since(window_start, alert_type=alert_type.value)
            metrics = await self._evaluator.evaluate(alert_type, alerts, sample)
            fired = await self._alerts.count_history_since(window_start, alert_type=alert_type.value)
            volume = control_volume(
                alert_type.value,
                rules,
                alert_count=fired,
                days=self.lookback_days,
                target_daily=self.target_daily_alerts,
            )
            report.metrics[alert_type.value] = metrics
            report.volume[alert_type.value] = volume

            volume_json: dict[str, Any] = {}
            if volume is not None:
                volume_json = volume.to_dict()
                volume_json["previous_thresholds"] = {
                    r.rule_name: r.thresholds for r in rules if r.rule_name in volume.adjusted
                }
            retunes.append(
                RetuneResultDTO(
                    ruleset_id=report.ruleset_id,
                    alert_type=alert_type.value,
                    precision=metrics.precision,
                    lift=metrics.lift,
                    baseline=metrics.baseline,
                    true_positives=metrics.true_positives,
                    total_alerts=metrics.total_alerts,
                    volume_control=volume_json,
                    created_at=now,
                )
            )

        labels = await self._labels.get_many(t.mint for t in sample)
        report.replay = [replay_rule(rule, sample, labels) for rule in rules]

        if apply:
            await self._apply(rules, report)

        await self._retunes.insert_many(retunes)
        await self._runs.insert(
            BacktestRunDTO(
                run_id=report.run_id,
                kind="retune",
                started_at=now,
                finished_at=now,
                window_start=window_start,
                window_end=now,
                sample_size=len(sample),
                params={
                    "sample_size": self.sample_size,
                    "lookback_days": self.lookback_days,
                    "target_daily_alerts": self.target_daily_alerts,
                    "seed": self.seed,
                    "apply": apply,
                },
                results=report.to_dict(),
                ruleset_id=report.ruleset_id,
            )
        )
        logger.info(
            "Backtest %s: ruleset=%s sample=%d adjusted_types=%s",
            report.run_id,
            report.ruleset_id,
            len(sample),
            sorted(t for t, v in report.volume.items() if v is not None),
        )
        return report

    async def _apply(self, rules: list[AlertRule], report: BacktestReport) -> None:
        by_name = {r.rule_name: r for r in rules}
        for volume in report.volume.values():
            if volume is None:
                continue
            for rule_name, thresholds in volume.adjusted.items():
                await self._rules.upsert(replace(by_name[rule_name], thresholds=thresholds))
                logger.info("Rule %s tightened to %s", rule_name, thresholds)
        report.applied = True
