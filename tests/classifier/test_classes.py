"""Tests for wallet class counts and concentration."""

from __future__ import annotations

import pytest

from memecoin_risk_engine.classifier.classes import compute_wallet_classes, top_n_share
from memecoin_risk_engine.classifier.holder_types import HolderTag, HolderTypes
from memecoin_risk_engine.classifier.models import HolderSnapshot


def _holder(owner: str, amount: float, *tags: HolderTag) -> HolderSnapshot:
    return HolderSnapshot(owner=owner, amount=amount, holder_types=HolderTypes.of(*tags))


class TestTopNShare:
    def test_share_of_largest_holders(self) -> None:
        assert top_n_share([50.0, 30.0, 20.0], n=2) == pytest.approx(0.8)

    def test_ignores_non_positive_balances(self) -> None:
        assert top_n_share([10.0, 0.0, -5.0], n=1) == pytest.approx(1.0)

    def test_empty_is_zero(self) -> None:
        assert top_n_share([]) == 0.0


class TestComputeWalletClasses:
    def test_counts_and_ratios(self) -> None:
        holders = [
            _holder("a", 10.0, HolderTag.SNIPER, HolderTag.INSIDER),
            _holder("b", 10.0, HolderTag.FRESH),
            _holder("c", 10.0, HolderTag.INCEPTION),
            _holder("d", 10.0, HolderTag.BUNDLED),
        ]
        breakdown = compute_wallet_classes(holders)

        assert breakdown.holders == 4
        assert breakdown.sniper_count == 1
        assert breakdown.insider_count == 1
        assert breakdown.bundled_count == 1
        assert breakdown.fresh_count == 1
        assert breakdown.inception_count == 1
        assert breakdown.sniper_pct == pytest.approx(0.25)
        assert breakdown.top10_share == pytest.approx(1.0)

    def test_default_tag_ignored_once_resolved(self) -> None:
        breakdown = compute_wallet_classes([_holder("a", 1.0, HolderTag.FRESH, HolderTag.SNIPER)])
        assert breakdown.fresh_count == 0
        assert breakdown.sniper_count == 1

    def test_untagged_holder_is_other(self) -> None:
        breakdown = compute_wallet_classes([_holder("a", 1.0)])
        assert breakdown.other_count == 1
        assert breakdown.other_pct == 1.0

    def test_no_holders_gives_zero_ratios(self) -> None:
        breakdown = compute_wallet_classes([])
        assert breakdown.holders == 0
        assert breakdown.fresh_pct == 0.0
        assert breakdown.top10_share == 0.0
