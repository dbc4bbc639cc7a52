"""Batch pass orchestrator for the memecoin risk engine.

This module provides the Pipeline class that wires classification,
scoring, reputation, rollup, snapshots and alerting into one sequential
pass over the recently seen tokens.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import TYPE_CHECKING, Any

from redis.asyncio import Redis
from redis.exceptions import RedisError

from memecoin_risk_engine.alerter.cooldown import CooldownCache
from memecoin_risk_engine.alerter.engine import AlertEngine
from memecoin_risk_engine.chain import PriceFeed, StoredPriceFeed
from memecoin_risk_engine.classifier.service import WalletClassifier
from memecoin_risk_engine.config import Settings, get_settings
from memecoin_risk_engine.reputation.service import BadActorRollup, ReputationAggregator
from memecoin_risk_engine.results import StageReport, run_stage
from memecoin_risk_engine.scoring.service import ScoringService, SnapshotService
from memecoin_risk_engine.storage.database import DatabaseManager
from memecoin_risk_engine.storage.repos import AlertRuleRepository, TokenDTO, TokenRepository

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

# Tokens first seen within this window are processed each pass.
ACTIVE_WINDOW = timedelta(days=7)


class PipelineState(str, Enum):
    """Pipeline lifecycle states."""

    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    ERROR = "error"


@dataclass
class PipelineStats:
    """Statistics for the pipeline."""

    started_at: datetime | None = None
    passes_completed: int = 0
    alerts_fired: int = 0
    entity_failures: int = 0
    last_pass_at: datetime | None = None
    last_error: str | None = None


class Pipeline:
    """Runs batch passes against the datastore.

    Each stage handles one token (or wallet) at a time and commits it before
    moving on; a failing entity is recorded and skipped. Stages run in
    dependency order so snapshots and alerts see rollup-adjusted scores.

    Example:
        ```python
        async with Pipeline(get_settings()) as pipeline:
            reports = await pipeline.run_pass()
        ```
    """

    def __init__(self, settings: Settings | None = None, *, price_feed: PriceFeed | None = None) -> None:
        """Initialize the pipeline.

        Args:
            settings: Application settings. If not provided, uses get_settings().
            price_feed: Price source for the alert conflict check. Defaults to
                the stored `price_samples` feed.
        """
        self._settings = settings or get_settings()
        self._price_feed = price_feed

        self._state = PipelineState.STOPPED
        self._stats = PipelineStats()

        self._db_manager: DatabaseManager | None = None
        self._redis: Redis | None = None
        self._cooldown_cache: CooldownCache | None = None
        self._stop_event: asyncio.Event | None = None

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def stats(self) -> PipelineStats:
        return self._stats

    @property
    def is_running(self) -> bool:
        return self._state == PipelineState.RUNNING

    async def start(self) -> None:
        """Open the datastore and the optional cooldown cache.

        Raises:
            RuntimeError: If the pipeline is not stopped.
            Exception: If the datastore cannot be reached.
        """
        if self._state != PipelineState.STOPPED:
            raise RuntimeError(f"Cannot start pipeline in state {self._state}")

        self._state = PipelineState.STARTING
        self._stop_event = asyncio.Event()
        logger.info("Starting pipeline...")

        try:
            db = self._settings.database
            self._db_manager = DatabaseManager(
                db.url, pool_size=db.pool_size, max_overflow=db.max_overflow, echo=db.echo
            )
            await self._db_manager.open()
            await self._connect_redis()
            self._stats.started_at = datetime.now(UTC)
            self._state = PipelineState.RUNNING
            logger.info("Pipeline started successfully")
        except Exception as e:
            self._state = PipelineState.ERROR
            self._stats.last_error = str(e)
            logger.error("Failed to start pipeline: %s", e)
            await self._cleanup()
            raise

    async def _connect_redis(self) -> None:
        url = self._settings.redis.url
        if not url:
            logger.info("REDIS_URL not set; cooldowns use the datastore only")
            return
        redis = Redis.from_url(url)
        try:
            await redis.ping()
        except RedisError as e:
            logger.warning("Cooldown cache unavailable, continuing without it: %s", e)
            await redis.aclose()
            return
        self._redis = redis
        self._cooldown_cache = CooldownCache(redis, key_prefix=f"{self._settings.redis.key_prefix}:cooldown")
        logger.info("Cooldown cache enabled")

    async def stop(self) -> None:
        if self._state == PipelineState.STOPPED:
            return

        self._state = PipelineState.STOPPING
        logger.info("Stopping pipeline...")
        if self._stop_event:
            self._stop_event.set()
        await self._cleanup()
        self._state = PipelineState.STOPPED
        logger.info("Pipeline stopped")

    async def _cleanup(self) -> None:
        if self._db_manager:
            await self._db_manager.dispose_async()
            self._db_manager = None
        if self._redis:
            await self._redis.aclose()
            self._redis = None
            self._cooldown_cache = None
        logger.debug("Resources cleaned up")

    async def run_pass(self, *, now: datetime | None = None) -> list[StageReport]:
        """Run every stage once over the active tokens.

        Raises:
            RuntimeError: If the pipeline is not running.
        """
        if not self.is_running or self._db_manager is None:
            raise RuntimeError(f"Cannot run a pass in state {self._state}")

        now = now or datetime.now(UTC)
        settings = self._settings
        reports: list[StageReport] = []

        async with self._db_manager.get_async_session() as session:
            tokens_repo = TokenRepository(session)
            recent = await tokens_repo.list_recent(since=now - ACTIVE_WINDOW, limit=settings.alerts.max_tokens)
            mints = [t.mint for t in recent]

            def per_token(handler: Callable[[TokenDTO], Awaitable[Any]]) -> Callable[[str], Awaitable[Any]]:
                # Re-read so each stage sees the previous stage's writes.
                async def run(mint: str) -> Any:
                    token = await tokens_repo.get(mint)
                    if token is None:
                        raise LookupError(f"Token {mint} disappeared")
                    return await handler(token)

                return run

            classifier = WalletClassifier.from_settings(session, settings.classifier)
            reports.append(
                await run_stage(
                    session,
                    mints,
                    per_token(lambda t: classifier.classify(t, now=now)),
                    stage="classify",
                    key=str,
                )
            )

            scorer = ScoringService.from_settings(session, settings.scoring)
            reports.append(
                await run_stage(
                    session, mints, per_token(lambda t: scorer.score(t, now=now)), stage="score", key=str
                )
            )

            aggregator = ReputationAggregator.from_settings(session, settings.reputation)
            activities = await aggregator.collect(now=now)
            reports.append(
                await run_stage(
                    session,
                    list(activities.values()),
                    lambda a: aggregator.update(a, now=now),
                    stage="reputation",
                    key=lambda a: a.wallet,
                )
            )

            rollup = BadActorRollup.from_settings(session, settings.reputation, settings.scoring)
            reports.append(
                await run_stage(
                    session, mints, per_token(lambda t: rollup.rollup(t, now=now)), stage="rollup", key=str
                )
            )

            snapshots = SnapshotService.from_settings(session, settings.scoring)
            reports.append(
                await run_stage(
                    session, mints, per_token(lambda t: snapshots.snapshot(t, now=now)), stage="snapshot", key=str
                )
            )

            alert_report = await self._alert_stage(session, mints, per_token, now=now)
            reports.append(alert_report)

            engine = self._engine(session)
            purged = await engine.purge_expired(now=now, retention_days=settings.alerts.retention_days)
            await session.commit()
            reports.append(StageReport(stage="purge", succeeded=1, details={"purged": purged}))

        self._stats.passes_completed += 1
        self._stats.last_pass_at = now
        self._stats.entity_failures += sum(r.failed for r in reports)
        logger.info(
            "Pass complete: tokens=%d alerts=%d failures=%d",
            len(mints),
            alert_report.details["fired"],
            sum(r.failed for r in reports),
        )
        return reports

    def _engine(self, session: AsyncSession) -> AlertEngine:
        feed = self._price_feed or StoredPriceFeed(
            session, freshness_minutes=self._settings.alerts.price_freshness_minutes
        )
        return AlertEngine.from_settings(
            session, self._settings.alerts, price_feed=feed, cooldown_cache=self._cooldown_cache
        )

    async def _alert_stage(
        self,
        session: AsyncSession,
        mints: list[str],
        per_token: Callable[[Callable[[TokenDTO], Awaitable[Any]]], Callable[[str], Awaitable[Any]]],
        *,
        now: datetime,
    ) -> StageReport:
        rules = await AlertRuleRepository(session).list_active()
        engine = self._engine(session)
        fired = 0

        async def evaluate(token: TokenDTO) -> int:
            nonlocal fired
            decisions = await engine.evaluate(token, rules, now=now)
            count = sum(1 for d in decisions if d.fired)
            fired += count
            return count

        report = await run_stage(session, mints, per_token(evaluate), stage="alerts", key=str)
        report.details["fired"] = fired
        report.details["rules"] = len(rules)
        self._stats.alerts_fired += fired
        return report

    async def run(self, *, interval_seconds: float = 60.0) -> None:
        """Start the pipeline and run passes until stop() is called."""
        await self.start()
        try:
            while self._stop_event is not None and not self._stop_event.is_set():
                await self.run_pass()
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=interval_seconds)
                except TimeoutError:
                    continue
        finally:
            await self.stop()

    async def __aenter__(self) -> Pipeline:
        await self.start()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.stop()
