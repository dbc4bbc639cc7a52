"""Tests for InsiderDetector."""

from __future__ import annotations

import pytest

from memecoin_risk_engine.classifier.graph import FundingGraph
from memecoin_risk_engine.classifier.insider import InsiderDetector
from memecoin_risk_engine.classifier.models import HolderSnapshot, InsiderVerdict


def _holder(owner: str, amount: float, age: float | None = None) -> HolderSnapshot:
    return HolderSnapshot(owner=owner, amount=amount, wallet_age_days=age)


class TestSharesFunder:
    def test_direct_funding_by_dev(self) -> None:
        graph = FundingGraph.from_edges([("dev", "h1")])
        assert InsiderDetector(max_hops=1).shares_funder(graph, "h1", "dev")

    def test_common_upstream_funder(self) -> None:
        graph = FundingGraph.from_edges([("cex", "dev"), ("cex", "h1")])
        assert InsiderDetector().shares_funder(graph, "h1", "dev")

    def test_no_path_within_two_hops(self) -> None:
        # dev - x - y - z - q - h1: lineages within 2 hops never meet.
        graph = FundingGraph.from_edges([("dev", "x"), ("x", "y"), ("y", "z"), ("z", "q"), ("q", "h1")])
        assert not InsiderDetector(max_hops=2).shares_funder(graph, "h1", "dev")

    def test_no_dev_wallet(self) -> None:
        graph = FundingGraph.from_edges([("a", "b")])
        assert not InsiderDetector().shares_funder(graph, "a", None)

    def test_dev_is_not_its_own_insider(self) -> None:
        graph = FundingGraph.from_edges([("dev", "a")])
        assert not InsiderDetector().shares_funder(graph, "dev", "dev")


class TestVerdict:
    def test_three_flags_is_insider(self) -> None:
        verdict = InsiderVerdict(wallet="w", shares_funder=True, is_young=True, is_top_holder=True, rank=1)
        assert verdict.flag_count == 3
        assert verdict.is_insider

    def test_one_flag_is_not_insider(self) -> None:
        verdict = InsiderVerdict(wallet="w", shares_funder=False, is_young=False, is_top_holder=True, rank=1)
        assert not verdict.is_insider

    def test_to_dict(self) -> None:
        verdict = InsiderVerdict(wallet="w", shares_funder=True, is_young=False, is_top_holder=True, rank=4)
        assert verdict.to_dict() == {
            "f1_shares_funder": True,
            "f2_young_wallet": False,
            "f3_top_holder": True,
            "rank": 4,
            "flags": 2,
        }


class TestEvaluate:
    def test_ranks_by_balance_and_applies_flags(self) -> None:
        graph = FundingGraph.from_edges([("dev", "big")])
        holders = [_holder("small", 1.0, age=30.0), _holder("big", 100.0, age=1.0), _holder("mid", 50.0, age=1.0)]

        verdicts = InsiderDetector(top_rank=2).evaluate(holders=holders, dev_wallet="dev", graph=graph)
        by_wallet = {v.wallet: v for v in verdicts}

        assert [v.wallet for v in verdicts] == ["big", "mid", "small"]
        assert by_wallet["big"].flag_count == 3
        assert by_wallet["mid"].is_insider  # young + top rank
        assert not by_wallet["small"].is_insider

    def test_only_scans_largest_holders(self) -> None:
        holders = [_holder(f"h{i:02d}", float(100 - i)) for i in range(30)]
        verdicts = InsiderDetector(scan_holders=20).evaluate(holders=holders, dev_wallet=None, graph=FundingGraph())
        assert len(verdicts) == 20
        assert verdicts[-1].rank == 20

    def test_unknown_age_is_not_young(self) -> None:
        verdicts = InsiderDetector().evaluate(holders=[_holder("a", 1.0)], dev_wallet=None, graph=FundingGraph())
        assert verdicts[0].is_young is False

    @pytest.mark.parametrize("min_flags", [0, 4])
    def test_rejects_invalid_min_flags(self, min_flags: int) -> None:
        with pytest.raises(ValueError):
            InsiderDetector(min_flags=min_flags)
