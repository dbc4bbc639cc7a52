"""Insider detection: two-of-three heuristics linking a holder to the deployer."""

from __future__ import annotations

from collections.abc import Sequence

from memecoin_risk_engine.classifier.graph import FundingGraph
from memecoin_risk_engine.classifier.models import HolderSnapshot, InsiderVerdict

DEFAULT_MAX_HOPS = 2
DEFAULT_FRESH_AGE_DAYS = 2.0
DEFAULT_TOP_RANK = 10
DEFAULT_SCAN_HOLDERS = 20
DEFAULT_MIN_FLAGS = 2


class InsiderDetector:
    """Applies the insider heuristics to a token's largest holders.

    F1: the holder's funding lineage (within `max_hops`) reaches the dev
        wallet or meets the dev wallet's own lineage.
    F2: wallet age is at most `fresh_age_days`.
    F3: the holder ranks within the top `top_rank` balances.

    A holder is an insider when at least `min_flags` of these hold.
    """

    def __init__(
        self,
        *,
        max_hops: int = DEFAULT_MAX_HOPS,
        fresh_age_days: float = DEFAULT_FRESH_AGE_DAYS,
        top_rank: int = DEFAULT_TOP_RANK,
        scan_holders: int = DEFAULT_SCAN_HOLDERS,
        min_flags: int = DEFAULT_MIN_FLAGS,
    ) -> None:
        if not 1 <= min_flags <= 3:
            raise ValueError("min_flags must be between 1 and 3")
        self.max_hops = max_hops
        self.fresh_age_days = fresh_age_days
        self.top_rank = top_rank
        self.scan_holders = scan_holders
        self.min_flags = min_flags

    def shares_funder(self, graph: FundingGraph, wallet: str, dev_wallet: str | None) -> bool:
        if not dev_wallet or wallet == dev_wallet:
            return False
        upstream = graph.upstream_funders(wallet, self.max_hops)
        if dev_wallet in upstream:
            return True
        dev_upstream = graph.upstream_funders(dev_wallet, self.max_hops)
        dev_upstream.discard(wallet)
        return bool(upstream & dev_upstream)

    def evaluate(
        self,
        *,
        holders: Sequence[HolderSnapshot],
        dev_wallet: str | None,
        graph: FundingGraph,
    ) -> list[InsiderVerdict]:
        """Return a verdict for each of the largest `scan_holders` holders."""
        ranked = sorted(holders, key=lambda h: (-h.amount, h.owner))[: self.scan_holders]
        verdicts: list[InsiderVerdict] = []
        for rank, holder in enumerate(ranked, start=1):
            age = holder.wallet_age_days
            verdicts.append(
                InsiderVerdict(
                    wallet=holder.owner,
                    shares_funder=self.shares_funder(graph, holder.owner, dev_wallet),
                    is_young=age is not None and age <= self.fresh_age_days,
                    is_top_holder=rank <= self.top_rank,
                    rank=rank,
                    min_flags=self.min_flags,
                )
            )
        return verdicts
