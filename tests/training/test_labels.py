"""Tests for forward-looking outcome labels."""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from memecoin_risk_engine.storage.repos import (
    PriceSampleDTO,
    PriceSampleRepository,
    RugRiskHistoryRepository,
    RugRiskSnapshotDTO,
    ScoreHistoryRepository,
    ScoreSnapshotDTO,
    TokenLabelRepository,
)
from memecoin_risk_engine.training.labels import (
    LabelConfig,
    LabelGenerationError,
    LabelGenerator,
    rug_label,
    winner_label,
)

MINT = "LabelMint111111111111111111111111111111111111"


def no_rug(**overrides) -> dict:
    values = {
        "rug_risk_30m": None,
        "liquidity_30m": None,
        "min_liquidity_6h": None,
        "min_liquidity_24h": None,
        "max_price_24h": None,
        "min_price_24h": None,
    }
    values.update(overrides)
    return values


class TestWinnerLabel:
    def test_multiple(self) -> None:
        assert winner_label(1.0, 2.0) is True
        assert winner_label(1.0, 1.99) is False
        assert winner_label(1.0, None) is False
        assert winner_label(1.0, 2.9, multiple=3.0) is False

    def test_requires_positive_price(self) -> None:
        with pytest.raises(LabelGenerationError):
            winner_label(0.0, 5.0)


class TestRugLabel:
    def test_clean(self) -> None:
        assert rug_label(**no_rug(rug_risk_30m=10.0, liquidity_30m=10_000.0, min_liquidity_24h=9_000.0)) is False

    def test_high_rug_score(self) -> None:
        assert rug_label(**no_rug(rug_risk_30m=90.0)) is True

    def test_liquidity_pull(self) -> None:
        assert rug_label(**no_rug(liquidity_30m=10_000.0, min_liquidity_6h=1_000.0)) is True
        assert rug_label(**no_rug(liquidity_30m=10_000.0, min_liquidity_24h=1_000.0)) is True
        assert rug_label(**no_rug(liquidity_30m=0.0, min_liquidity_24h=0.0)) is False

    def test_price_collapse(self) -> None:
        assert rug_label(**no_rug(max_price_24h=1.0, min_price_24h=0.1)) is True
        assert rug_label(**no_rug(max_price_24h=1.0, min_price_24h=0.5)) is False

    def test_custom_config(self) -> None:
        config = LabelConfig(rug_risk_threshold=50.0)
        assert rug_label(**no_rug(rug_risk_30m=60.0), config=config) is True


class TestLabelGenerator:
    @pytest.mark.asyncio
    async def test_candidates(self, async_session, make_token, now: datetime) -> None:
        await make_token("closed", first_seen_at=now - timedelta(hours=25))
        await make_token("open", first_seen_at=now - timedelta(hours=24))
        await make_token("ancient", first_seen_at=now - timedelta(days=100))

        candidates = await LabelGenerator(async_session).candidates(now=now)

        assert [t.mint for t in candidates] == ["closed"]

    @pytest.mark.asyncio
    async def test_label_from_history(self, async_session, make_token, now: datetime) -> None:
        launched = now - timedelta(days=2)
        t30 = launched + timedelta(minutes=30)
        token = await make_token(MINT, first_seen_at=launched)

        scores = ScoreHistoryRepository(async_session)
        await scores.insert(ScoreSnapshotDTO(mint=MINT, snapshot_time=t30, holders_count=100, liquidity_usd=10_000.0))
        await scores.insert(ScoreSnapshotDTO(mint=MINT, snapshot_time=t30 + timedelta(hours=3), liquidity_usd=9_000.0))
        await scores.insert(ScoreSnapshotDTO(mint=MINT, snapshot_time=t30 + timedelta(hours=12), liquidity_usd=8_000.0))
        await PriceSampleRepository(async_session).insert_many(
            [
                PriceSampleDTO(mint=MINT, source="jupiter", ts=t30 - timedelta(minutes=1), price_usd=1.0),
                PriceSampleDTO(mint=MINT, source="jupiter", ts=t30 + timedelta(hours=1), price_usd=2.5),
                PriceSampleDTO(mint=MINT, source="jupiter", ts=t30 + timedelta(hours=2), price_usd=0.9),
                PriceSampleDTO(mint=MINT, source="jupiter", ts=t30 + timedelta(hours=30), price_usd=0.01),
            ]
        )
        await RugRiskHistoryRepository(async_session).insert(
            RugRiskSnapshotDTO(mint=MINT, ts=t30 - timedelta(minutes=5), rug_risk_score=20.0)
        )

        label = await LabelGenerator(async_session).label(token)

        assert label is not None
        assert label.winner_2x_24h is True
        assert label.rug_24h is False
        assert label.price_30m == 1.0
        assert (label.min_price_24h, label.max_price_24h) == (0.9, 2.5)
        assert label.min_liquidity_6h == 9_000.0
        assert label.min_liquidity_24h == 8_000.0
        assert label.rug_risk_30m == 20.0

        stored = await TokenLabelRepository(async_session).get_many([MINT])
        assert stored[MINT].winner_2x_24h is True

    @pytest.mark.asyncio
    async def test_falls_back_to_token_metrics(self, async_session, make_token, now: datetime) -> None:
        launched = now - timedelta(days=2)
        token = await make_token(MINT, first_seen_at=launched, holders_count=80, liquidity_usd=5_000.0)
        await PriceSampleRepository(async_session).insert_many(
            [PriceSampleDTO(mint=MINT, source="birdeye", ts=launched + timedelta(minutes=10), price_usd=0.5)]
        )

        label = await LabelGenerator(async_session).label(token)

        assert label is not None
        assert label.liquidity_30m == 5_000.0
        assert label.winner_2x_24h is False
        assert label.rug_risk_30m is None

    @pytest.mark.asyncio
    async def test_ineligible_tokens(self, async_session, make_token, now: datetime) -> None:
        launched = now - timedelta(days=2)
        few_holders = await make_token("few", first_seen_at=launched, holders_count=10, liquidity_usd=5_000.0)
        no_price = await make_token("noprice", first_seen_at=launched, holders_count=80, liquidity_usd=5_000.0)
        generator = LabelGenerator(async_session)

        assert await generator.label(few_holders) is None
        assert await generator.label(no_price) is None
        assert await TokenLabelRepository(async_session).get_many(["few", "noprice"]) == {}
