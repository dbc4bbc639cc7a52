"""Tests for the batch pass orchestrator."""

from __future__ import annotations

from datetime import datetime, timedelta
from pathlib import Path

import pytest
from sqlalchemy.exc import OperationalError

from memecoin_risk_engine.alerter.rules import DEFAULT_RULES
from memecoin_risk_engine.chain import StaticPriceFeed
from memecoin_risk_engine.config import DatabaseSettings, Settings
from memecoin_risk_engine.pipeline import Pipeline, PipelineState
from memecoin_risk_engine.storage.database import DatabaseManager
from memecoin_risk_engine.storage.repos import (
    AlertRuleRepository,
    HolderDTO,
    HolderRepository,
    ScoreHistoryRepository,
    TokenDTO,
    TokenRepository,
)

MINT = "PipeMint1111111111111111111111111111111111111"

STAGES = ["classify", "score", "reputation", "rollup", "snapshot", "alerts", "purge"]


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep local .env files and a real Redis out of the pipeline."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("REDIS_URL", raising=False)


@pytest.fixture
async def database_url(tmp_path: Path, now: datetime) -> str:
    """A file-backed SQLite datastore with one young token and the default rules."""
    url = f"sqlite+aiosqlite:///{tmp_path / 'pipeline.db'}"
    manager = DatabaseManager(url)
    await manager.init_schema_async()
    async with manager.get_async_session() as session:
        launched = now - timedelta(hours=1)
        await TokenRepository(session).upsert(
            TokenDTO(
                mint=MINT,
                first_seen_at=launched,
                symbol="PIPE",
                pool_created_at=launched,
                liquidity_usd=50_000.0,
                holders_count=120,
                lp_burn_pct=1.0,
                lp_lock_confidence=2,
                authorities_revoked=True,
            )
        )
        holders = HolderRepository(session)
        for i in range(5):
            await holders.upsert(HolderDTO(mint=MINT, owner=f"holder{i}", amount=100.0 - i, wallet_age_days=30.0))
        rules = AlertRuleRepository(session)
        for rule in DEFAULT_RULES:
            await rules.upsert(rule)
    await manager.dispose_async()
    return url


def make_settings(url: str) -> Settings:
    return Settings(database=DatabaseSettings(DATABASE_URL=url))


class TestPipelineLifecycle:
    def test_initial_state(self, tmp_path: Path) -> None:
        pipeline = Pipeline(make_settings(f"sqlite+aiosqlite:///{tmp_path / 'unused.db'}"))
        assert pipeline.state == PipelineState.STOPPED
        assert pipeline.is_running is False
        assert pipeline.stats.passes_completed == 0

    @pytest.mark.asyncio
    async def test_run_pass_requires_start(self, tmp_path: Path) -> None:
        pipeline = Pipeline(make_settings(f"sqlite+aiosqlite:///{tmp_path / 'unused.db'}"))
        with pytest.raises(RuntimeError, match="Cannot run a pass"):
            await pipeline.run_pass()

    @pytest.mark.asyncio
    async def test_start_twice(self, database_url: str) -> None:
        async with Pipeline(make_settings(database_url)) as pipeline:
            assert pipeline.is_running
            with pytest.raises(RuntimeError, match="Cannot start"):
                await pipeline.start()
        assert pipeline.state == PipelineState.STOPPED

    @pytest.mark.asyncio
    async def test_unreachable_datastore(self, tmp_path: Path) -> None:
        pipeline = Pipeline(make_settings(f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'x.db'}"))
        with pytest.raises(OperationalError):
            await pipeline.start()
        assert pipeline.state == PipelineState.ERROR
        assert pipeline.stats.last_error is not None

    @pytest.mark.asyncio
    async def test_stop_when_stopped_is_noop(self, tmp_path: Path) -> None:
        pipeline = Pipeline(make_settings(f"sqlite+aiosqlite:///{tmp_path / 'unused.db'}"))
        await pipeline.stop()
        assert pipeline.state == PipelineState.STOPPED


class TestRunPass:
    @pytest.mark.asyncio
    async def test_runs_every_stage(self, database_url: str, now: datetime) -> None:
        async with Pipeline(make_settings(database_url), price_feed=StaticPriceFeed()) as pipeline:
            reports = await pipeline.run_pass(now=now)

        assert [r.stage for r in reports] == STAGES
        assert reports[0].processed == 1
        assert reports[-2].details["rules"] == len(DEFAULT_RULES)
        assert reports[-1].details == {"purged": 0}
        assert pipeline.stats.passes_completed == 1
        assert pipeline.stats.last_pass_at == now

    @pytest.mark.asyncio
    async def test_pass_persists_scores(self, database_url: str, now: datetime) -> None:
        async with Pipeline(make_settings(database_url), price_feed=StaticPriceFeed()) as pipeline:
            reports = await pipeline.run_pass(now=now)
        assert reports[1].failed == 0

        manager = DatabaseManager(database_url)
        async with manager.get_async_session() as session:
            token = await TokenRepository(session).get(MINT)
            snapshot = await ScoreHistoryRepository(session).latest_at_or_before(MINT, now)
        await manager.dispose_async()

        assert token is not None
        assert token.health_score is not None
        assert token.rug_risk_score is not None
        assert token.scoring_strategy == "v2"
        assert snapshot is not None
        assert snapshot.health_score == token.health_score

    @pytest.mark.asyncio
    async def test_ignores_tokens_outside_the_active_window(self, database_url: str, now: datetime) -> None:
        async with Pipeline(make_settings(database_url), price_feed=StaticPriceFeed()) as pipeline:
            reports = await pipeline.run_pass(now=now + timedelta(days=8))

        assert reports[0].processed == 0
        assert reports[-2].details["fired"] == 0
