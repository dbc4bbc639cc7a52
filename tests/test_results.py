"""Tests for the continue-on-error stage runner."""

from __future__ import annotations

from datetime import datetime

import pytest

from memecoin_risk_engine.results import EntityResult, StageReport, process_each, run_stage
from memecoin_risk_engine.storage.repos import ProcessingErrorRepository, TokenRepository


class TestEntityResult:
    def test_success(self) -> None:
        result = EntityResult.success("mint", 3)
        assert result.ok
        assert result.value == 3
        assert result.error_type is None

    def test_failure(self) -> None:
        result = EntityResult.failure("mint", KeyError("holders"))
        assert not result.ok
        assert result.error_type == "KeyError"
        assert result.message == "'holders'"


class TestStageReport:
    def test_counts(self) -> None:
        report = StageReport(stage="classify")
        report.add(EntityResult.success("a"))
        report.add(EntityResult.failure("b", ValueError("bad")))
        report.details["snapshots"] = 1

        assert report.processed == 2
        assert report.failed == 1
        assert report.to_dict() == {
            "stage": "classify",
            "processed": 2,
            "succeeded": 1,
            "failed": 1,
            "failed_entities": ["b"],
            "snapshots": 1,
        }


class TestProcessEach:
    @pytest.mark.asyncio
    async def test_failures_are_rolled_back(self, async_session, make_token, now: datetime) -> None:
        await make_token("good", first_seen_at=now)
        await make_token("bad", first_seen_at=now)
        await async_session.commit()
        tokens = TokenRepository(async_session)

        async def handler(mint: str) -> str:
            await tokens.update_health(mint, score=50.0, strategy="v2")
            if mint == "bad":
                raise RuntimeError("boom")
            return mint

        results = [r async for r in process_each(async_session, ["good", "bad"], handler, stage="score", key=str)]

        assert [(r.entity_id, r.ok) for r in results] == [("good", True), ("bad", False)]
        good = await tokens.get("good")
        bad = await tokens.get("bad")
        assert good is not None and good.health_score == 50.0
        assert bad is not None and bad.health_score is None


class TestRunStage:
    @pytest.mark.asyncio
    async def test_persists_failures_and_continues(self, async_session) -> None:
        seen: list[int] = []

        async def handler(n: int) -> None:
            if n == 2:
                raise ValueError("cannot score 2")
            seen.append(n)

        report = await run_stage(async_session, [1, 2, 3], handler, stage="score", key=lambda n: f"t{n}")

        assert seen == [1, 3]
        assert report.succeeded == 2
        assert [r.entity_id for r in report.failures] == ["t2"]

        errors = await ProcessingErrorRepository(async_session).list_for_stage("score")
        assert len(errors) == 1
        assert errors[0].entity_id == "t2"
        assert errors[0].error_type == "ValueError"
        assert errors[0].message == "cannot score 2"

    @pytest.mark.asyncio
    async def test_clean_stage_writes_nothing(self, async_session) -> None:
        async def handler(n: int) -> int:
            return n

        report = await run_stage(async_session, [], handler, stage="alerts", key=str)

        assert report.processed == 0
        assert await ProcessingErrorRepository(async_session).list_for_stage("alerts") == []
