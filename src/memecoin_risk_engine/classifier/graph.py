"""Undirected funding-lineage graph over SOL transfers."""

from __future__ import annotations

from collections import defaultdict, deque
from collections.abc import Iterable


class FundingGraph:
    """Adjacency map built from directed funding edges.

    Direction is dropped: two wallets are related if either funded the
    other, which is what lineage reachability needs.
    """

    def __init__(self) -> None:
        self._adjacency: dict[str, set[str]] = defaultdict(set)

    @classmethod
    def from_edges(cls, edges: Iterable[tuple[str, str]]) -> FundingGraph:
        graph = cls()
        for src, dst in edges:
            graph.add_edge(src, dst)
        return graph

    def add_edge(self, src: str, dst: str) -> None:
        if src == dst:
            return
        self._adjacency[src].add(dst)
        self._adjacency[dst].add(src)

    def neighbors(self, wallet: str) -> frozenset[str]:
        return frozenset(self._adjacency.get(wallet, ()))

    def __contains__(self, wallet: object) -> bool:
        return wallet in self._adjacency

    def __len__(self) -> int:
        return len(self._adjacency)

    def upstream_funders(self, wallet: str, max_hops: int = 2) -> set[str]:
        """Return every wallet reachable from `wallet` within `max_hops` edges.

        Breadth-first, so each wallet is recorded at its shortest distance;
        the start wallet itself is never part of the result.
        """
        if max_hops < 1 or wallet not in self._adjacency:
            return set()

        seen = {wallet}
        reached: set[str] = set()
        queue: deque[tuple[str, int]] = deque([(wallet, 0)])
        while queue:
            current, depth = queue.popleft()
            if depth >= max_hops:
                continue
            for neighbor in self._adjacency.get(current, ()):
                if neighbor in seen:
                    continue
                seen.add(neighbor)
                reached.add(neighbor)
                queue.append((neighbor, depth + 1))
        return reached
