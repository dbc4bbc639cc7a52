"""Reputation aggregation and bad-actor rollup against the datastore."""

from __future__ import annotations

import json
import logging
from collections import Counter, defaultdict
from dataclasses import replace
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from memecoin_risk_engine.classifier.holder_types import HolderTag
from memecoin_risk_engine.reputation.rollup import (
    DEFAULT_BAD_ACTOR_THRESHOLD,
    RollupResult,
    apply_rollup,
    count_bad_actors,
)
from memecoin_risk_engine.reputation.scoring import (
    DEFAULT_HALF_LIFE_DAYS,
    DEFAULT_MARKET_MAKER_FACTOR,
    ReputationScore,
    WalletActivity,
    compute_reputation,
)
from memecoin_risk_engine.scoring.rug_risk import DEFAULT_HYSTERESIS_THRESHOLD, HYSTERESIS_HOLD_FLAG
from memecoin_risk_engine.scoring.service import DEFAULT_HYSTERESIS_MINUTES
from memecoin_risk_engine.storage.repos import (
    BundleEventRepository,
    BuyEventRepository,
    FundingEdgeRepository,
    HolderRepository,
    InsiderEventRepository,
    RugRiskHistoryRepository,
    RugRiskSnapshotDTO,
    TokenDTO,
    TokenLabelRepository,
    TokenRepository,
    WalletReputationDTO,
    WalletReputationRepository,
    WalletTagRepository,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from memecoin_risk_engine.config import ReputationSettings, ScoringSettings

logger = logging.getLogger(__name__)

MARKET_MAKER_TAG = "market_maker"
RUG_INVOLVEMENT_THRESHOLD = 90.0
RUG_INVOLVEMENT_TOP_N = 10
DEFAULT_WINDOW_DAYS = 30
ROLLUP_FLAG = "bad_actor_rollup"


class ReputationAggregator:
    """Recomputes decayed reputation for every wallet active in the window."""

    def __init__(
        self,
        session: AsyncSession,
        *,
        window_days: int = DEFAULT_WINDOW_DAYS,
        half_life_days: float = DEFAULT_HALF_LIFE_DAYS,
        market_maker_factor: float = DEFAULT_MARKET_MAKER_FACTOR,
    ) -> None:
        self.window = timedelta(days=window_days)
        self.half_life_days = half_life_days
        self.market_maker_factor = market_maker_factor
        self._tokens = TokenRepository(session)
        self._holders = HolderRepository(session)
        self._edges = FundingEdgeRepository(session)
        self._buys = BuyEventRepository(session)
        self._bundles = BundleEventRepository(session)
        self._insiders = InsiderEventRepository(session)
        self._labels = TokenLabelRepository(session)
        self._tags = WalletTagRepository(session)
        self._reputation = WalletReputationRepository(session)

    @classmethod
    def from_settings(cls, session: AsyncSession, settings: ReputationSettings) -> ReputationAggregator:
        return cls(
            session,
            window_days=settings.window_days,
            half_life_days=settings.half_life_days,
            market_maker_factor=settings.market_maker_factor,
        )

    async def collect(self, *, now: datetime) -> dict[str, WalletActivity]:
        """Gather per-wallet activity for the reputation window ending at `now`."""
        since = now - self.window

        snipes = await self._buys.list_snipes_since(since)
        snipe_times: dict[str, list[datetime]] = defaultdict(list)
        snipe_mints: dict[str, list[str]] = defaultdict(list)
        for buy in snipes:
            snipe_times[buy.wallet].append(buy.ts)
            snipe_mints[buy.wallet].append(buy.mint)
        labels = await self._labels.get_many(buy.mint for buy in snipes)
        winners = {mint for mint, label in labels.items() if label.winner_2x_24h}

        bundle_mints: dict[str, set[str]] = defaultdict(set)
        recipients: dict[str, set[str]] = defaultdict(set)
        for event in await self._bundles.list_since(since):
            bundle_mints[event.bundler_wallet].add(event.mint)
            recipients[event.bundler_wallet].add(event.recipient_wallet)

        insider_mints: dict[str, set[str]] = defaultdict(set)
        for event in await self._insiders.list_since(since):
            insider_mints[event.wallet].add(event.mint)

        rugged = await self._tokens.list_mints_with_rug_risk_at_least(RUG_INVOLVEMENT_THRESHOLD, since=since)
        top_holders = await self._holders.top_owners_for_mints(rugged, n=RUG_INVOLVEMENT_TOP_N)
        rug_involvements: Counter[str] = Counter(
            owner for owners in top_holders.values() for owner in owners
        )

        market_makers = await self._tags.wallets_with_tag(MARKET_MAKER_TAG)

        universe = (
            await self._edges.wallets_since(since)
            | await self._buys.wallets_since(since)
            | set(bundle_mints)
            | {w for ws in recipients.values() for w in ws}
            | set(insider_mints)
        )

        return {
            wallet: WalletActivity(
                wallet=wallet,
                snipe_times=tuple(snipe_times.get(wallet, ())),
                successful_snipes=sum(1 for mint in snipe_mints.get(wallet, ()) if mint in winners),
                bundle_events=len(bundle_mints.get(wallet, ())),
                recipients=len(recipients.get(wallet, ())),
                insider_hits=len(insider_mints.get(wallet, ())),
                rug_involvements=rug_involvements.get(wallet, 0),
                is_market_maker=wallet in market_makers,
            )
            for wallet in sorted(universe)
        }

    async def update(self, activity: WalletActivity, *, now: datetime) -> ReputationScore:
        result = compute_reputation(
            activity,
            now=now,
            half_life_days=self.half_life_days,
            market_maker_factor=self.market_maker_factor,
        )
        await self._reputation.upsert(
            WalletReputationDTO(
                wallet=result.wallet,
                reputation_score=result.score,
                score_breakdown=result.breakdown,
                snipes_total=result.snipes_total,
                snipes_success=result.snipes_success,
                bundles_total=result.bundles_total,
                recipients_total=result.recipients_total,
                insider_hits=result.insider_hits,
                rug_involved=result.rug_involved,
                updated_at=now,
            )
        )
        return result


class BadActorRollup:
    """Folds holder reputation back into a token's health and rug-risk.

    The adjusted rug-risk is the persisted score, so the hysteresis floor is
    applied here as well and every adjusted value is appended to
    rug_risk_history.
    """

    def __init__(
        self,
        session: AsyncSession,
        *,
        threshold: float = DEFAULT_BAD_ACTOR_THRESHOLD,
        hysteresis_threshold: float = DEFAULT_HYSTERESIS_THRESHOLD,
        hysteresis_minutes: int = DEFAULT_HYSTERESIS_MINUTES,
    ) -> None:
        self.threshold = threshold
        self.hysteresis_threshold = hysteresis_threshold
        self.hysteresis_window = timedelta(minutes=hysteresis_minutes)
        self._tokens = TokenRepository(session)
        self._holders = HolderRepository(session)
        self._bundles = BundleEventRepository(session)
        self._reputation = WalletReputationRepository(session)
        self._rug_history = RugRiskHistoryRepository(session)

    @classmethod
    def from_settings(
        cls,
        session: AsyncSession,
        settings: ReputationSettings,
        scoring: ScoringSettings | None = None,
    ) -> BadActorRollup:
        if scoring is None:
            return cls(session, threshold=settings.bad_actor_threshold)
        return cls(
            session,
            threshold=settings.bad_actor_threshold,
            hysteresis_threshold=scoring.hysteresis_threshold,
            hysteresis_minutes=scoring.hysteresis_minutes,
        )

    async def rollup(self, token: TokenDTO, *, now: datetime) -> RollupResult:
        holders = await self._holders.list_for_mint(token.mint)
        snipers = {h.owner for h in holders if HolderTag.SNIPER in h.holder_types}
        insiders = {h.owner for h in holders if HolderTag.INSIDER in h.holder_types}
        bundlers = await self._bundles.bundlers_for_mint(token.mint)

        reputation = await self._reputation.scores_for(snipers | insiders | bundlers)
        counts = count_bad_actors(
            snipers=snipers,
            bundlers=bundlers,
            insiders=insiders,
            reputation=reputation,
            threshold=self.threshold,
        )
        # Adjust from the scorer output, never from a previously adjusted value.
        result = apply_rollup(counts, health_score=token.health_score_raw, rug_risk_score=computed_rug_risk(token))
        held = False
        if result.rug_risk_score is not None:
            result, held = await self._hold(token, result, now=now)

        await self._tokens.update_bad_actors(
            token.mint,
            sniper_bad_count=counts.snipers,
            bundler_bad_count=counts.bundlers,
            insider_bad_count=counts.insiders,
            bad_actor_score=result.bad_actor_score,
            health_score=result.health_score,
            rug_risk_score=result.rug_risk_score,
        )
        if result.rug_risk_score is not None and result.rug_risk_score != token.rug_risk_score_raw:
            flags = [ROLLUP_FLAG, HYSTERESIS_HOLD_FLAG] if held else [ROLLUP_FLAG]
            await self._rug_history.insert(
                RugRiskSnapshotDTO(
                    mint=token.mint,
                    ts=now,
                    rug_risk_score=result.rug_risk_score,
                    flags=",".join(flags),
                    liquidity_usd=token.liquidity_usd,
                    top1_pct=token.lp_owner_top1_pct,
                    top5_pct=token.lp_owner_top5_pct,
                )
            )
        if result.bad_actor_score > 0:
            logger.debug("mint=%s bad actor score %.0f", token.mint, result.bad_actor_score)
        return result

    async def _hold(self, token: TokenDTO, result: RollupResult, *, now: datetime) -> tuple[RollupResult, bool]:
        score = result.rug_risk_score
        if score is None or score >= self.hysteresis_threshold:
            return result, False
        recently_high = await self._rug_history.reached_since(
            token.mint, threshold=self.hysteresis_threshold, since=now - self.hysteresis_window
        )
        if not recently_high:
            return result, False
        logger.debug("mint=%s adjusted rug risk held at %.0f by hysteresis", token.mint, self.hysteresis_threshold)
        return replace(result, rug_risk_score=self.hysteresis_threshold), True


def computed_rug_risk(token: TokenDTO) -> float | None:
    """Scorer output before any hysteresis floor."""
    if HYSTERESIS_HOLD_FLAG not in token.rug_flag_list or not token.rug_breakdown_json:
        return token.rug_risk_score_raw
    computed = json.loads(token.rug_breakdown_json).get("computed_total")
    return token.rug_risk_score_raw if computed is None else float(computed)
