"""Tests for the funding-lineage graph."""

from __future__ import annotations

from memecoin_risk_engine.classifier.graph import FundingGraph


class TestFundingGraph:
    def test_edges_are_undirected(self) -> None:
        graph = FundingGraph.from_edges([("a", "b")])
        assert graph.neighbors("a") == {"b"}
        assert graph.neighbors("b") == {"a"}

    def test_self_loops_are_ignored(self) -> None:
        graph = FundingGraph.from_edges([("a", "a")])
        assert "a" not in graph
        assert len(graph) == 0

    def test_unknown_wallet_has_no_neighbors(self) -> None:
        graph = FundingGraph.from_edges([("a", "b")])
        assert graph.neighbors("zzz") == frozenset()


class TestUpstreamFunders:
    def test_respects_hop_limit(self) -> None:
        # a - b - c - d
        graph = FundingGraph.from_edges([("a", "b"), ("b", "c"), ("c", "d")])
        assert graph.upstream_funders("a", max_hops=1) == {"b"}
        assert graph.upstream_funders("a", max_hops=2) == {"b", "c"}
        assert graph.upstream_funders("a", max_hops=3) == {"b", "c", "d"}

    def test_excludes_start_wallet(self) -> None:
        graph = FundingGraph.from_edges([("a", "b"), ("b", "a"), ("b", "c"), ("c", "a")])
        assert "a" not in graph.upstream_funders("a", max_hops=5)

    def test_zero_hops_is_empty(self) -> None:
        graph = FundingGraph.from_edges([("a", "b")])
        assert graph.upstream_funders("a", max_hops=0) == set()

    def test_missing_wallet_is_empty(self) -> None:
        graph = FundingGraph.from_edges([("a", "b")])
        assert graph.upstream_funders("x") == set()

    def test_cycles_terminate(self) -> None:
        graph = FundingGraph.from_edges([("a", "b"), ("b", "c"), ("c", "a")])
        assert graph.upstream_funders("a", max_hops=10) == {"b", "c"}
