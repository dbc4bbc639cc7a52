"""Alert engine: evaluates active rules against each token's adjusted scores.

Per (mint, alert type) a token is either quiet or has fired. A rule fires
when, in order:

1. no hard-mute condition is violated;
2. every threshold holds;
3. the type's quality gates pass (launch: snapshot agreement, holder
   growth and a rising health slope; risk: a falling health slope);
4. the rule's debounce window has elapsed since the last fire;
5. the cooldown has expired;
6. the price feeds agree.

Firing writes an alert plus its audit row and moves the cooldown forward.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import TYPE_CHECKING, Any

from memecoin_risk_engine.alerter.formatter import format_alert_message, risk_caveats, why_reasons
from memecoin_risk_engine.alerter.rules import (
    AlertRule,
    AlertType,
    TokenView,
    hard_mute_violations,
    passes_thresholds,
    threshold_failures,
)
from memecoin_risk_engine.chain import price_disagreement
from memecoin_risk_engine.storage.repos import (
    AlertDTO,
    AlertRepository,
    AlertStateDTO,
    AlertStateRepository,
    HoldersHistoryRepository,
    ScoreHistoryRepository,
    TokenDTO,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from memecoin_risk_engine.alerter.cooldown import CooldownCache
    from memecoin_risk_engine.chain import PriceFeed
    from memecoin_risk_engine.config import AlertSettings

logger = logging.getLogger(__name__)

DEFAULT_COOLDOWN_MINUTES = 20
DEFAULT_PRICE_DISAGREEMENT = 0.15
SNAPSHOT_GAP_MINUTES = 5
GATE_WINDOW_MINUTES = 10
LAUNCH_MIN_HOLDER_GROWTH = 30
LAUNCH_MIN_HEALTH_SLOPE = 5.0
RISK_MAX_HEALTH_SLOPE = -8.0
ALERT_LEVEL = "high"


class Outcome(str, Enum):
    FIRED = "fired"
    HARD_MUTED = "hard_muted"
    THRESHOLDS_NOT_MET = "thresholds_not_met"
    SNAPSHOT_DISAGREEMENT = "snapshot_disagreement"
    INSUFFICIENT_GROWTH = "insufficient_growth"
    INSUFFICIENT_SLOPE = "insufficient_slope"
    DEBOUNCED = "debounced"
    COOLDOWN = "cooldown"
    PRICE_CONFLICT = "price_conflict"


@dataclass(frozen=True)
class AlertDecision:
    mint: str
    rule_name: str
    alert_type: AlertType
    outcome: Outcome
    detail: dict[str, Any] = field(default_factory=dict)
    alert: AlertDTO | None = None

    @property
    def fired(self) -> bool:
        return self.outcome == Outcome.FIRED


class AlertEngine:
    """Evaluates (token x active rule) pairs sequentially."""

    def __init__(
        self,
        session: AsyncSession,
        *,
        price_feed: PriceFeed,
        cooldown_cache: CooldownCache | None = None,
        cooldown_minutes: int = DEFAULT_COOLDOWN_MINUTES,
        price_disagreement_max: float = DEFAULT_PRICE_DISAGREEMENT,
    ) -> None:
        self.price_feed = price_feed
        self.cooldown_cache = cooldown_cache
        self.cooldown = timedelta(minutes=cooldown_minutes)
        self.price_disagreement_max = price_disagreement_max
        self._alerts = AlertRepository(session)
        self._state = AlertStateRepository(session)
        self._scores = ScoreHistoryRepository(session)
        self._holders = HoldersHistoryRepository(session)

    @classmethod
    def from_settings(
        cls,
        session: AsyncSession,
        settings: AlertSettings,
        *,
        price_feed: PriceFeed,
        cooldown_cache: CooldownCache | None = None,
    ) -> AlertEngine:
        return cls(
            session,
            price_feed=price_feed,
            cooldown_cache=cooldown_cache,
            cooldown_minutes=settings.cooldown_minutes,
            price_disagreement_max=settings.price_disagreement,
        )

    async def evaluate(self, token: TokenDTO, rules: list[AlertRule], *, now: datetime) -> list[AlertDecision]:
        decisions: list[AlertDecision] = []
        for rule in rules:
            if not rule.is_active:
                continue
            decisions.append(await self.evaluate_rule(token, rule, now=now))
        return decisions

    async def evaluate_rule(self, token: TokenDTO, rule: AlertRule, *, now: datetime) -> AlertDecision:
        view = TokenView.of(token)

        def decide(outcome: Outcome, **detail: Any) -> AlertDecision:
            if outcome != Outcome.FIRED:
                logger.debug("mint=%s rule=%s suppressed: %s %s", token.mint, rule.rule_name, outcome.value, detail)
            return AlertDecision(
                mint=token.mint,
                rule_name=rule.rule_name,
                alert_type=rule.alert_type,
                outcome=outcome,
                detail=detail,
            )

        violations = hard_mute_violations(view, rule.hard_mute)
        if violations:
            return decide(Outcome.HARD_MUTED, violations=violations)

        failures = threshold_failures(view, rule.thresholds)
        if failures:
            return decide(Outcome.THRESHOLDS_NOT_MET, failures=failures)

        health_delta = await self.health_slope(token, now=now)
        if rule.alert_type == AlertType.LAUNCH:
            if not await self.snapshots_agree(token.mint, rule.thresholds, now=now):
                return decide(Outcome.SNAPSHOT_DISAGREEMENT)
            growth = await self.holder_growth(token, now=now)
            if growth is None or growth < LAUNCH_MIN_HOLDER_GROWTH:
                return decide(Outcome.INSUFFICIENT_GROWTH, holder_growth=growth)
            if health_delta is None or health_delta < LAUNCH_MIN_HEALTH_SLOPE:
                return decide(Outcome.INSUFFICIENT_SLOPE, health_delta=health_delta)
        elif rule.alert_type == AlertType.RISK:
            if health_delta is None or health_delta > RISK_MAX_HEALTH_SLOPE:
                return decide(Outcome.INSUFFICIENT_SLOPE, health_delta=health_delta)

        state = await self._state.get(token.mint, rule.alert_type.value)
        if state is not None and now - state.last_fired_at < timedelta(minutes=rule.debounce_minutes):
            return decide(Outcome.DEBOUNCED, last_fired_at=state.last_fired_at.isoformat())
        if state is not None and now < state.cooldown_until:
            return decide(Outcome.COOLDOWN, cooldown_until=state.cooldown_until.isoformat())
        if self.cooldown_cache is not None and await self.cooldown_cache.is_cooling(token.mint, rule.alert_type.value):
            return decide(Outcome.COOLDOWN, source="cache")

        quotes = await self.price_feed.quotes(token.mint, as_of=now)
        disagreement = price_disagreement(quotes)
        if disagreement is not None and disagreement > self.price_disagreement_max:
            logger.warning("mint=%s price feeds differ by %.1f%%", token.mint, disagreement * 100)
            return decide(Outcome.PRICE_CONFLICT, disagreement=round(disagreement, 4))

        alert = await self._fire(token, rule, view, now=now, health_delta=health_delta, disagreement=disagreement)
        return AlertDecision(
            mint=token.mint,
            rule_name=rule.rule_name,
            alert_type=rule.alert_type,
            outcome=Outcome.FIRED,
            alert=alert,
        )

    async def health_slope(self, token: TokenDTO, *, now: datetime) -> float | None:
        """Health change against the latest snapshot at least 10 minutes old."""
        if token.health_score is None:
            return None
        past = await self._scores.latest_at_or_before(token.mint, now - timedelta(minutes=GATE_WINDOW_MINUTES))
        if past is None or past.health_score is None:
            return None
        return token.health_score - past.health_score

    async def holder_growth(self, token: TokenDTO, *, now: datetime) -> int | None:
        if token.holders_count is None:
            return None
        past = await self._holders.latest_at_or_before(token.mint, now - timedelta(minutes=GATE_WINDOW_MINUTES))
        if past is None:
            return None
        return token.holders_count - past.holders_count

    async def snapshots_agree(self, mint: str, thresholds: dict[str, float], *, now: datetime) -> bool:
        """The latest snapshot and one at least 5 minutes before it both pass."""
        latest = await self._scores.latest_at_or_before(mint, now)
        if latest is None:
            return False
        earlier = await self._scores.latest_at_or_before(
            mint, latest.snapshot_time - timedelta(minutes=SNAPSHOT_GAP_MINUTES)
        )
        if earlier is None:
            return False
        return passes_thresholds(TokenView.of(latest), thresholds) and passes_thresholds(
            TokenView.of(earlier), thresholds
        )

    async def _fire(
        self,
        token: TokenDTO,
        rule: AlertRule,
        view: TokenView,
        *,
        now: datetime,
        health_delta: float | None,
        disagreement: float | None,
    ) -> AlertDTO:
        reasons = why_reasons(rule.alert_type, view, rule.thresholds, health_delta_10m=health_delta)
        soft_conflict = disagreement is not None and disagreement > self.price_disagreement_max / 2
        caveats = risk_caveats(view, price_conflict=soft_conflict)
        message = format_alert_message(
            alert_type=rule.alert_type,
            mint=token.mint,
            symbol=token.symbol,
            view=view,
            reasons=reasons,
            caveats=caveats,
        )
        alert = await self._alerts.insert(
            AlertDTO(
                mint=token.mint,
                alert_type=rule.alert_type.value,
                rule_name=rule.rule_name,
                level=ALERT_LEVEL,
                message=message,
                triggered_at=now,
                metadata={
                    **view.to_dict(),
                    "rug_risk_score": token.rug_risk_score,
                    "rug_flags": token.rug_flag_list,
                    "bad_actor_score": token.bad_actor_score,
                    "rule_name": rule.rule_name,
                    "thresholds": rule.thresholds,
                    "health_delta_10m": health_delta,
                    "price_disagreement": disagreement,
                    "why_fired": reasons,
                    "risk_caveats": caveats,
                },
            )
        )
        cooldown_until = now + self.cooldown
        await self._state.record_fired(
            AlertStateDTO(
                mint=token.mint,
                alert_type=rule.alert_type.value,
                rule_name=rule.rule_name,
                last_fired_at=now,
                cooldown_until=cooldown_until,
            )
        )
        if self.cooldown_cache is not None:
            await self.cooldown_cache.start(
                token.mint, rule.alert_type.value, ttl_seconds=int(self.cooldown.total_seconds())
            )
        logger.info(
            "Alert fired: mint=%s type=%s rule=%s health=%.2f",
            token.mint,
            rule.alert_type.value,
            rule.rule_name,
            view.health_score,
        )
        return alert

    async def purge_expired(self, *, now: datetime, retention_days: int = 7) -> int:
        """Delete alerts older than the retention window; audit rows stay."""
        purged = await self._alerts.purge_before(now - timedelta(days=retention_days))
        if purged:
            logger.info("Purged %d alerts older than %d days", purged, retention_days)
        return purged
