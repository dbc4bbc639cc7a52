"""Per-token wallet classification against the datastore.

Loads a token's holders, buys and surrounding funding edges, runs the
sniper, bundler and insider detectors, merges their tags into each
holder's tag set and writes the resulting class ratios back to the token.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from memecoin_risk_engine.classifier.bundler import BundlerDetector
from memecoin_risk_engine.classifier.classes import compute_wallet_classes
from memecoin_risk_engine.classifier.graph import FundingGraph
from memecoin_risk_engine.classifier.holder_types import HolderTag, HolderTypes, default_types
from memecoin_risk_engine.classifier.insider import InsiderDetector
from memecoin_risk_engine.classifier.models import (
    BundleFinding,
    Buy,
    HolderSnapshot,
    InsiderVerdict,
    Transfer,
    WalletClassBreakdown,
)
from memecoin_risk_engine.classifier.sniper import SniperDetector
from memecoin_risk_engine.storage.repos import (
    BundleEventDTO,
    BundleEventRepository,
    BuyEventRepository,
    FundingEdgeRepository,
    HolderDTO,
    HolderRepository,
    InsiderEventDTO,
    InsiderEventRepository,
    TokenDTO,
    TokenRepository,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from memecoin_risk_engine.config import ClassifierSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClassificationResult:
    mint: str
    breakdown: WalletClassBreakdown
    snipers: frozenset[str]
    bundles: tuple[BundleFinding, ...]
    insiders: tuple[InsiderVerdict, ...]
    used_sniper_fallback: bool = False


class WalletClassifier:
    """Classifies the holders of one token at a time."""

    def __init__(
        self,
        session: AsyncSession,
        *,
        sniper: SniperDetector | None = None,
        bundler: BundlerDetector | None = None,
        insider: InsiderDetector | None = None,
    ) -> None:
        self.session = session
        self.sniper = sniper or SniperDetector()
        self.bundler = bundler or BundlerDetector()
        self.insider = insider or InsiderDetector()
        self._tokens = TokenRepository(session)
        self._holders = HolderRepository(session)
        self._buys = BuyEventRepository(session)
        self._edges = FundingEdgeRepository(session)
        self._bundles = BundleEventRepository(session)
        self._insiders = InsiderEventRepository(session)

    @classmethod
    def from_settings(cls, session: AsyncSession, settings: ClassifierSettings) -> WalletClassifier:
        return cls(
            session,
            sniper=SniperDetector(slot_window=settings.sniper_slot_window),
            bundler=BundlerDetector(
                window_minutes=settings.bundler_window_minutes,
                min_wallets=settings.bundler_min_wallets,
            ),
            insider=InsiderDetector(
                max_hops=settings.max_hops,
                fresh_age_days=settings.fresh_age_days,
                top_rank=settings.insider_top_rank,
                scan_holders=settings.insider_scan_holders,
                min_flags=settings.insider_min_flags,
            ),
        )

    async def load_graph(self, wallets: set[str]) -> FundingGraph:
        """Funding graph covering every wallet within `max_hops` of `wallets`."""
        graph = FundingGraph()
        seen = set(wallets)
        frontier = set(wallets)
        for _ in range(self.insider.max_hops):
            if not frontier:
                break
            edges = await self._edges.list_touching(frontier)
            next_frontier: set[str] = set()
            for edge in edges:
                graph.add_edge(edge.src_wallet, edge.dst_wallet)
                for wallet in (edge.src_wallet, edge.dst_wallet):
                    if wallet not in seen:
                        seen.add(wallet)
                        next_frontier.add(wallet)
            frontier = next_frontier
        return graph

    async def classify(self, token: TokenDTO, *, now: datetime) -> ClassificationResult:
        holders = await self._holders.list_for_mint(token.mint)
        snapshots = [_snapshot(h) for h in holders]
        owners = {h.owner for h in holders}
        buy_events = await self._buys.list_for_mint(token.mint)
        buys = [Buy(wallet=b.wallet, ts=b.ts, slot=b.slot, signature=b.signature) for b in buy_events]

        new_tags: dict[str, set[HolderTag]] = defaultdict(set)

        sniping = self.sniper.detect(buys=buys, holders=snapshots, pool_creation_slot=token.pool_creation_slot)
        for wallet in sniping.wallets:
            new_tags[wallet].add(HolderTag.SNIPER)
        await self._buys.mark_snipers(sniping.signatures)

        launch_at = token.pool_created_at or token.first_seen_at
        window_end = launch_at + self.bundler.window
        transfers = [
            Transfer(
                src_wallet=e.src_wallet,
                dst_wallet=e.dst_wallet,
                ts=e.ts,
                amount_sol=e.amount_sol,
                signature=e.signature,
            )
            for e in await self._edges.list_to_in_window(
                {b.wallet for b in buys}, start=launch_at, end=window_end
            )
        ]
        bundles = self.bundler.detect(launch_at=launch_at, transfers=transfers, buys=buys)
        bundle_rows: list[BundleEventDTO] = []
        for finding in bundles:
            new_tags[finding.bundler].add(HolderTag.BUNDLER)
            for recipient in finding.recipients:
                new_tags[recipient].add(HolderTag.BUNDLED)
                bundle_rows.append(
                    BundleEventDTO(
                        mint=token.mint,
                        bundler_wallet=finding.bundler,
                        recipient_wallet=recipient,
                        ts=finding.first_funded_at,
                    )
                )
        await self._bundles.insert_many(bundle_rows)

        scan = sorted(snapshots, key=lambda h: (-h.amount, h.owner))[: self.insider.scan_holders]
        start_wallets = {h.owner for h in scan}
        if token.dev_wallet:
            start_wallets.add(token.dev_wallet)
        graph = await self.load_graph(start_wallets)
        verdicts = self.insider.evaluate(holders=snapshots, dev_wallet=token.dev_wallet, graph=graph)
        insiders = tuple(v for v in verdicts if v.is_insider)
        for verdict in insiders:
            new_tags[verdict.wallet].add(HolderTag.INSIDER)
        await self._insiders.upsert_many(
            [InsiderEventDTO(mint=token.mint, wallet=v.wallet, ts=now, flags=v.to_dict()) for v in insiders]
        )

        updates: dict[str, HolderTypes] = {}
        merged: list[HolderSnapshot] = []
        for snapshot in snapshots:
            types = snapshot.holder_types.union(new_tags.get(snapshot.owner, ()))
            if len(types) == 0:
                types = default_types(received_at_mint=snapshot.received_at_mint, amount=snapshot.amount)
            if types != snapshot.holder_types:
                updates[snapshot.owner] = types
            merged.append(
                HolderSnapshot(
                    owner=snapshot.owner,
                    amount=snapshot.amount,
                    wallet_age_days=snapshot.wallet_age_days,
                    received_at_mint=snapshot.received_at_mint,
                    holder_types=types,
                )
            )
        await self._holders.add_types(token.mint, updates)

        breakdown = compute_wallet_classes(merged)
        await self._tokens.update_wallet_classes(
            token.mint,
            counts={
                "fresh": breakdown.fresh_count,
                "inception": breakdown.inception_count,
                "sniper": breakdown.sniper_count,
                "bundler": breakdown.bundler_count,
                "bundled": breakdown.bundled_count,
                "insider": breakdown.insider_count,
                "other": breakdown.other_count,
            },
            ratios={
                "fresh": breakdown.fresh_pct,
                "inception": breakdown.inception_pct,
                "sniper": breakdown.sniper_pct,
                "bundled": breakdown.bundled_pct,
                "insider": breakdown.insider_pct,
                "other": breakdown.other_pct,
            },
            top10_share=breakdown.top10_share,
        )

        outsiders = sorted(w for w in new_tags if w not in owners)
        if outsiders:
            logger.debug("mint=%s: %d tagged wallets are not holders", token.mint, len(outsiders))
        logger.debug(
            "mint=%s classified: holders=%d snipers=%d bundlers=%d insiders=%d",
            token.mint,
            breakdown.holders,
            len(sniping.wallets),
            len(bundles),
            len(insiders),
        )

        return ClassificationResult(
            mint=token.mint,
            breakdown=breakdown,
            snipers=sniping.wallets,
            bundles=tuple(bundles),
            insiders=insiders,
            used_sniper_fallback=sniping.used_fallback,
        )


def _snapshot(holder: HolderDTO) -> HolderSnapshot:
    return HolderSnapshot(
        owner=holder.owner,
        amount=holder.amount,
        wallet_age_days=holder.wallet_age_days,
        received_at_mint=holder.received_at_mint,
        holder_types=holder.holder_types,
    )
