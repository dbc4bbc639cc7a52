"""Command line entry point: `python -m memecoin_risk_engine <command>`."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any, TypeVar

import click
from sqlalchemy.exc import SQLAlchemyError

from memecoin_risk_engine.alerter.rules import DEFAULT_RULES
from memecoin_risk_engine.backtest.harness import BacktestHarness
from memecoin_risk_engine.config import Settings, get_settings
from memecoin_risk_engine.pipeline import Pipeline
from memecoin_risk_engine.results import run_stage
from memecoin_risk_engine.storage.database import DatabaseManager
from memecoin_risk_engine.storage.repos import AlertRuleRepository
from memecoin_risk_engine.training.labels import LabelGenerator
from memecoin_risk_engine.training.runner import InsufficientTrainingDataError, ModelTrainer
from memecoin_risk_engine.training.serving import ModelServingError, OnlineScorer

logger = logging.getLogger("memecoin_risk_engine")

T = TypeVar("T")

# Failures that abort a command with a non-zero exit instead of a traceback.
FATAL_ERRORS = (SQLAlchemyError, OSError, ModelServingError, InsufficientTrainingDataError)


def _settings(command: str) -> Settings:
    settings = get_settings()
    try:
        settings.validate_requirements(command=command)
    except ValueError as e:
        raise click.ClickException(str(e)) from e
    return settings


def _database(settings: Settings) -> DatabaseManager:
    db = settings.database
    return DatabaseManager(db.url, pool_size=db.pool_size, max_overflow=db.max_overflow, echo=db.echo)


def _run(factory: Callable[[], Awaitable[T]]) -> T:
    try:
        return asyncio.run(factory())
    except FATAL_ERRORS as e:
        logger.error("Command failed: %s: %s", type(e).__name__, e)
        raise click.ClickException(str(e)) from e


def _echo(payload: Any) -> None:
    click.echo(json.dumps(payload, indent=2, sort_keys=True, default=str))


@click.group()
def cli() -> None:
    """Memecoin wallet classification, scoring and alerting."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.get_logging_level(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.debug("Settings: %s", settings.redacted_summary())


@cli.command("init-db")
def init_db() -> None:
    """Create all tables."""
    settings = _settings("init-db")

    async def run() -> None:
        db = _database(settings)
        try:
            await db.open()
            await db.init_schema_async()
        finally:
            await db.dispose_async()

    _run(run)
    click.echo("Schema initialized")


@cli.command("seed-rules")
def seed_rules() -> None:
    """Write the default launch, momentum and risk rules (overwrites same-named rules)."""
    settings = _settings("seed-rules")

    async def run() -> None:
        db = _database(settings)
        try:
            async with db.get_async_session() as session:
                repo = AlertRuleRepository(session)
                for rule in DEFAULT_RULES:
                    await repo.upsert(rule)
        finally:
            await db.dispose_async()

    _run(run)
    click.echo(f"Seeded {len(DEFAULT_RULES)} rules")


@cli.command("pass")
@click.option("--loop", is_flag=True, help="Keep running passes until interrupted")
@click.option("--interval", type=float, default=60.0, show_default=True, help="Seconds between passes with --loop")
def run_pass(loop: bool, interval: float) -> None:
    """Run classify, score, reputation, rollup, snapshot, alert and purge stages."""
    settings = _settings("pass")

    async def run() -> list[dict[str, Any]]:
        pipeline = Pipeline(settings)
        if loop:
            await pipeline.run(interval_seconds=interval)
            return []
        async with pipeline:
            reports = await pipeline.run_pass()
        return [r.to_dict() for r in reports]

    _echo(_run(run))


@cli.command()
@click.option("--apply", "apply_", is_flag=True, help="Write the tightened thresholds to the active rules")
def backtest(apply_: bool) -> None:
    """Evaluate recent alerts and propose a tightened ruleset."""
    settings = _settings("backtest")

    async def run() -> dict[str, Any]:
        db = _database(settings)
        try:
            async with db.get_async_session() as session:
                harness = BacktestHarness.from_settings(session, settings.backtest)
                report = await harness.run(now=datetime.now(UTC), apply=apply_)
                return report.to_dict()
        finally:
            await db.dispose_async()

    _echo(_run(run))


@cli.command()
def label() -> None:
    """Compute winner/rug labels for tokens whose 24h horizon has closed."""
    settings = _settings("label")

    async def run() -> dict[str, Any]:
        db = _database(settings)
        try:
            async with db.get_async_session() as session:
                generator = LabelGenerator(session)
                candidates = await generator.candidates(now=datetime.now(UTC))
                report = await run_stage(session, candidates, generator.label, stage="label", key=lambda t: t.mint)
                return report.to_dict()
        finally:
            await db.dispose_async()

    _echo(_run(run))


@cli.command()
def train() -> None:
    """Train and register the winner and rug probability models."""
    settings = _settings("train")

    async def run() -> list[dict[str, Any]]:
        db = _database(settings)
        try:
            async with db.get_async_session() as session:
                results = await ModelTrainer(session, settings=settings.model).train()
                return [
                    {"model_id": r.model_id, "target": r.target, "artifact": str(r.artifact_path), "metrics": r.metrics}
                    for r in results
                ]
        finally:
            await db.dispose_async()

    _echo(_run(run))


@cli.command()
def predict() -> None:
    """Score tokens in the serving age window with the latest models."""
    settings = _settings("predict")

    async def run() -> dict[str, Any]:
        db = _database(settings)
        try:
            async with db.get_async_session() as session:
                now = datetime.now(UTC)
                scorer = OnlineScorer.from_settings(session, settings.model)
                models = await scorer.load_models()
                tokens = await scorer.candidates(now=now)
                report = await run_stage(
                    session,
                    tokens,
                    lambda t: scorer.score(t, models, now=now),
                    stage="predict",
                    key=lambda t: t.mint,
                )
                return report.to_dict()
        finally:
            await db.dispose_async()

    _echo(_run(run))


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
