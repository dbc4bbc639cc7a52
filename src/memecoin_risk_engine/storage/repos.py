"""Repository pattern implementations for data access.

This module provides data access abstractions over tokens, holders,
funding edges, wallet reputation, score history, alerts and the
backtest/model audit trail. Repositories return DTOs, never ORM
instances, so callers can keep using results after a rollback.
"""

from __future__ import annotations

import json
import logging
from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import sqlalchemy as sa
from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from memecoin_risk_engine.alerter.rules import AlertRule
from memecoin_risk_engine.classifier.holder_types import HolderTypes
from memecoin_risk_engine.scoring.rug_risk import HYSTERESIS_HOLD_FLAG
from memecoin_risk_engine.storage.models import (
    AlertHistoryModel,
    AlertModel,
    AlertRuleModel,
    AlertStateModel,
    BacktestRunModel,
    BundleEventModel,
    BuyEventModel,
    FundingEdgeModel,
    HolderModel,
    HoldersHistoryModel,
    InsiderEventModel,
    ModelRegistryModel,
    PriceSampleModel,
    ProcessingErrorModel,
    RetuneResultModel,
    RugRiskHistoryModel,
    ScoreHistoryModel,
    TokenLabelModel,
    TokenModel,
    TokenPredictionModel,
    WalletReputationModel,
    WalletTagModel,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


def _insert(session: AsyncSession, model: type[Any]) -> Any:
    """Dialect-specific INSERT supporting ON CONFLICT clauses."""
    if session.get_bind().dialect.name == "postgresql":
        return pg_insert(model)
    return sqlite_insert(model)


# ============================================================================
# Tokens
# ============================================================================


@dataclass
class TokenDTO:
    """Data transfer object for tokens."""

    mint: str
    first_seen_at: datetime
    symbol: str | None = None
    name: str | None = None
    source: str | None = None
    dev_wallet: str | None = None
    pool_created_at: datetime | None = None
    pool_creation_slot: int | None = None
    liquidity_usd: float | None = None
    liquidity_delta_5m: float | None = None
    liquidity_delta_15m: float | None = None
    holders_count: int | None = None
    lp_burn_pct: float | None = None
    lp_lock_confidence: int | None = None
    lp_lock_provider: str | None = None
    lp_owner_top1_pct: float | None = None
    lp_owner_top5_pct: float | None = None
    lp_owner_is_creator: bool | None = None
    authorities_revoked: bool | None = None
    fresh_count: int | None = None
    fresh_pct: float | None = None
    inception_count: int | None = None
    inception_pct: float | None = None
    sniper_count: int | None = None
    sniper_pct: float | None = None
    bundler_count: int | None = None
    bundled_count: int | None = None
    bundled_pct: float | None = None
    insider_count: int | None = None
    insider_pct: float | None = None
    other_count: int | None = None
    other_pct: float | None = None
    top10_share: float | None = None
    health_score_raw: float | None = None
    health_score: float | None = None
    rug_risk_score_raw: float | None = None
    rug_risk_score: float | None = None
    rug_flags: str | None = None
    rug_breakdown_json: str | None = None
    scoring_strategy: str | None = None
    sniper_bad_count: int | None = None
    bundler_bad_count: int | None = None
    insider_bad_count: int | None = None
    bad_actor_score: float | None = None
    prob_2x_24h: float | None = None
    prob_rug_24h: float | None = None
    model_id_win: str | None = None
    model_id_rug: str | None = None
    updated_at: datetime | None = None

    # Columns ingest collaborators own; everything else is engine output.
    INGEST_FIELDS = (
        "symbol",
        "name",
        "source",
        "dev_wallet",
        "first_seen_at",
        "pool_created_at",
        "pool_creation_slot",
        "liquidity_usd",
        "liquidity_delta_5m",
        "liquidity_delta_15m",
        "holders_count",
        "lp_burn_pct",
        "lp_lock_confidence",
        "lp_lock_provider",
        "lp_owner_top1_pct",
        "lp_owner_top5_pct",
        "lp_owner_is_creator",
        "authorities_revoked",
    )

    @classmethod
    def from_model(cls, model: TokenModel) -> TokenDTO:
        return cls(**{name: getattr(model, name) for name in _TOKEN_COLUMNS})

    def age_hours(self, now: datetime) -> float:
        return (now - self.first_seen_at).total_seconds() / 3600.0

    @property
    def rug_flag_list(self) -> list[str]:
        return [f for f in (self.rug_flags or "").split(",") if f]


_TOKEN_COLUMNS = tuple(c.key for c in TokenModel.__table__.columns if c.key != "created_at")


class TokenRepository:
    """Repository for tokens and their score columns."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, mint: str) -> TokenDTO | None:
        result = await self.session.execute(select(TokenModel).where(TokenModel.mint == mint))
        model = result.scalar_one_or_none()
        return TokenDTO.from_model(model) if model else None

    async def upsert(self, dto: TokenDTO) -> TokenDTO:
        """Insert a token or refresh its ingest-owned columns."""
        now = datetime.now(UTC)
        values = {name: getattr(dto, name) for name in TokenDTO.INGEST_FIELDS}
        stmt = _insert(self.session, TokenModel).values(mint=dto.mint, created_at=now, updated_at=now, **values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["mint"],
            set_={**{name: getattr(stmt.excluded, name) for name in TokenDTO.INGEST_FIELDS}, "updated_at": now},
        )
        await self.session.execute(stmt)
        await self.session.flush()
        return dto

    async def list_recent(self, *, since: datetime, limit: int | None = None) -> list[TokenDTO]:
        stmt = (
            select(TokenModel)
            .where(TokenModel.first_seen_at >= since)
            .order_by(TokenModel.first_seen_at.desc(), TokenModel.mint)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return [TokenDTO.from_model(m) for m in result.scalars().all()]

    async def list_first_seen_between(self, *, start: datetime, end: datetime) -> list[TokenDTO]:
        result = await self.session.execute(
            select(TokenModel)
            .where((TokenModel.first_seen_at >= start) & (TokenModel.first_seen_at <= end))
            .order_by(TokenModel.first_seen_at, TokenModel.mint)
        )
        return [TokenDTO.from_model(m) for m in result.scalars().all()]

    async def list_by_mints(self, mints: Iterable[str]) -> list[TokenDTO]:
        wanted = sorted(set(mints))
        if not wanted:
            return []
        result = await self.session.execute(select(TokenModel).where(TokenModel.mint.in_(wanted)))
        return [TokenDTO.from_model(m) for m in result.scalars().all()]

    async def list_mints_with_rug_risk_at_least(self, threshold: float, *, since: datetime) -> list[str]:
        result = await self.session.execute(
            select(TokenModel.mint)
            .where((TokenModel.rug_risk_score >= threshold) & (TokenModel.first_seen_at >= since))
            .order_by(TokenModel.mint)
        )
        return [row[0] for row in result.all()]

    async def _update(self, mint: str, **values: Any) -> None:
        await self.session.execute(
            update(TokenModel).where(TokenModel.mint == mint).values(**values, updated_at=datetime.now(UTC))
        )
        await self.session.flush()

    async def update_wallet_classes(
        self,
        mint: str,
        *,
        counts: dict[str, int],
        ratios: dict[str, float],
        top10_share: float,
    ) -> None:
        await self._update(
            mint,
            **{f"{name}_count": value for name, value in counts.items()},
            **{f"{name}_pct": value for name, value in ratios.items()},
            top10_share=top10_share,
        )

    async def update_health(self, mint: str, *, score: float, strategy: str) -> None:
        # The rollup stage re-derives health_score from the raw value.
        await self._update(mint, health_score_raw=score, health_score=score, scoring_strategy=strategy)

    async def update_rug_risk(
        self, mint: str, *, score: float, flags: Sequence[str], breakdown: dict[str, Any]
    ) -> None:
        await self._update(
            mint,
            rug_risk_score_raw=score,
            rug_risk_score=score,
            rug_flags=",".join(flags),
            rug_breakdown_json=json.dumps(breakdown, sort_keys=True),
        )

    async def update_bad_actors(
        self,
        mint: str,
        *,
        sniper_bad_count: int,
        bundler_bad_count: int,
        insider_bad_count: int,
        bad_actor_score: float,
        health_score: float | None,
        rug_risk_score: float | None,
    ) -> None:
        await self._update(
            mint,
            sniper_bad_count=sniper_bad_count,
            bundler_bad_count=bundler_bad_count,
            insider_bad_count=insider_bad_count,
            bad_actor_score=bad_actor_score,
            health_score=health_score,
            rug_risk_score=rug_risk_score,
        )

    async def update_probability(self, mint: str, *, target: str, probability: float, model_id: str) -> None:
        if target == "winner_2x_24h":
            await self._update(mint, prob_2x_24h=probability, model_id_win=model_id)
        elif target == "rug_24h":
            await self._update(mint, prob_rug_24h=probability, model_id_rug=model_id)
        else:
            raise ValueError(f"Unknown prediction target: {target}")


# ============================================================================
# Holders
# ============================================================================


@dataclass
class HolderDTO:
    """Data transfer object for holders."""

    mint: str
    owner: str
    amount: float
    wallet_age_days: float | None = None
    funded_by: str | None = None
    received_at_mint: bool = False
    holder_types: HolderTypes = field(default_factory=HolderTypes)
    first_seen_at: datetime | None = None
    last_seen_at: datetime | None = None

    @classmethod
    def from_model(cls, model: HolderModel) -> HolderDTO:
        return cls(
            mint=model.mint,
            owner=model.owner,
            amount=model.amount,
            wallet_age_days=model.wallet_age_days,
            funded_by=model.funded_by,
            received_at_mint=model.received_at_mint,
            holder_types=HolderTypes.parse(model.holder_type),
            first_seen_at=model.first_seen_at,
            last_seen_at=model.last_seen_at,
        )


class HolderRepository:
    """Repository for token holders and their tag sets."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def upsert(self, dto: HolderDTO) -> HolderDTO:
        """Insert a holder or refresh its balance; stored tags are kept."""
        now = datetime.now(UTC)
        stmt = _insert(self.session, HolderModel).values(
            mint=dto.mint,
            owner=dto.owner,
            amount=dto.amount,
            wallet_age_days=dto.wallet_age_days,
            funded_by=dto.funded_by,
            received_at_mint=dto.received_at_mint,
            holder_type=dto.holder_types.to_storage(),
            first_seen_at=dto.first_seen_at or now,
            last_seen_at=dto.last_seen_at or now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["mint", "owner"],
            set_={
                "amount": stmt.excluded.amount,
                "wallet_age_days": stmt.excluded.wallet_age_days,
                "funded_by": stmt.excluded.funded_by,
                "received_at_mint": stmt.excluded.received_at_mint,
                "last_seen_at": stmt.excluded.last_seen_at,
            },
        )
        await self.session.execute(stmt)
        await self.session.flush()
        return dto

    async def list_for_mint(self, mint: str) -> list[HolderDTO]:
        result = await self.session.execute(
            select(HolderModel).where(HolderModel.mint == mint).order_by(HolderModel.amount.desc(), HolderModel.owner)
        )
        return [HolderDTO.from_model(m) for m in result.scalars().all()]

    async def add_types(self, mint: str, updates: dict[str, HolderTypes]) -> int:
        """Union new tags into stored tag sets; returns rows that changed."""
        if not updates:
            return 0
        result = await self.session.execute(
            select(HolderModel.owner, HolderModel.holder_type).where(
                (HolderModel.mint == mint) & (HolderModel.owner.in_(sorted(updates)))
            )
        )
        changed = 0
        for owner, stored in result.all():
            current = HolderTypes.parse(stored)
            merged = current.union(updates[owner])
            if merged == current:
                continue
            await self.session.execute(
                update(HolderModel)
                .where((HolderModel.mint == mint) & (HolderModel.owner == owner))
                .values(holder_type=merged.to_storage())
            )
            changed += 1
        await self.session.flush()
        return changed

    async def top_owners_for_mints(self, mints: Iterable[str], *, n: int = 10) -> dict[str, list[str]]:
        wanted = sorted(set(mints))
        if not wanted:
            return {}
        result = await self.session.execute(
            select(HolderModel.mint, HolderModel.owner)
            .where(HolderModel.mint.in_(wanted))
            .order_by(HolderModel.mint, HolderModel.amount.desc(), HolderModel.owner)
        )
        top: dict[str, list[str]] = defaultdict(list)
        for mint, owner in result.all():
            if len(top[mint]) < n:
                top[mint].append(owner)
        return dict(top)


# ============================================================================
# Funding edges and on-chain events
# ============================================================================


@dataclass
class FundingEdgeDTO:
    """Data transfer object for funding edges."""

    src_wallet: str
    dst_wallet: str
    amount_sol: float
    ts: datetime
    signature: str

    @classmethod
    def from_model(cls, model: FundingEdgeModel) -> FundingEdgeDTO:
        return cls(
            src_wallet=model.src_wallet,
            dst_wallet=model.dst_wallet,
            amount_sol=model.amount_sol,
            ts=model.ts,
            signature=model.signature,
        )


class FundingEdgeRepository:
    """Append-only funding edges, deduplicated by (src, dst, signature)."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def insert_many(self, dtos: Sequence[FundingEdgeDTO]) -> int:
        if not dtos:
            return 0
        rows = [
            {
                "src_wallet": d.src_wallet,
                "dst_wallet": d.dst_wallet,
                "amount_sol": d.amount_sol,
                "ts": d.ts,
                "signature": d.signature,
            }
            for d in dtos
        ]
        before = await self._count()
        stmt = _insert(self.session, FundingEdgeModel).values(rows)
        stmt = stmt.on_conflict_do_nothing(index_elements=["src_wallet", "dst_wallet", "signature"])
        await self.session.execute(stmt)
        await self.session.flush()
        return await self._count() - before

    async def _count(self) -> int:
        result = await self.session.execute(select(func.count()).select_from(FundingEdgeModel))
        return int(result.scalar_one())

    async def list_touching(self, wallets: Iterable[str]) -> list[FundingEdgeDTO]:
        """Edges with either endpoint in `wallets`."""
        wanted = sorted(set(wallets))
        if not wanted:
            return []
        result = await self.session.execute(
            select(FundingEdgeModel).where(
                FundingEdgeModel.src_wallet.in_(wanted) | FundingEdgeModel.dst_wallet.in_(wanted)
            )
        )
        return [FundingEdgeDTO.from_model(m) for m in result.scalars().all()]

    async def list_to_in_window(
        self,
        dst_wallets: Iterable[str],
        *,
        start: datetime,
        end: datetime,
    ) -> list[FundingEdgeDTO]:
        wanted = sorted(set(dst_wallets))
        if not wanted:
            return []
        result = await self.session.execute(
            select(FundingEdgeModel)
            .where(
                FundingEdgeModel.dst_wallet.in_(wanted)
                & (FundingEdgeModel.ts >= start)
                & (FundingEdgeModel.ts <= end)
            )
            .order_by(FundingEdgeModel.ts)
        )
        return [FundingEdgeDTO.from_model(m) for m in result.scalars().all()]

    async def wallets_since(self, since: datetime) -> set[str]:
        result = await self.session.execute(
            select(FundingEdgeModel.src_wallet, FundingEdgeModel.dst_wallet).where(FundingEdgeModel.ts >= since)
        )
        wallets: set[str] = set()
        for src, dst in result.all():
            wallets.add(src)
            wallets.add(dst)
        return wallets


@dataclass
class BuyEventDTO:
    """Data transfer object for buy events."""

    mint: str
    wallet: str
    signature: str
    ts: datetime
    slot: int | None = None
    amount_usd: float | None = None
    is_sniper: bool = False

    @classmethod
    def from_model(cls, model: BuyEventModel) -> BuyEventDTO:
        return cls(
            mint=model.mint,
            wallet=model.wallet,
            signature=model.signature,
            ts=model.ts,
            slot=model.slot,
            amount_usd=model.amount_usd,
            is_sniper=model.is_sniper,
        )


class BuyEventRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def insert_many(self, dtos: Sequence[BuyEventDTO]) -> None:
        if not dtos:
            return
        rows = [
            {
                "mint": d.mint,
                "wallet": d.wallet,
                "signature": d.signature,
                "ts": d.ts,
                "slot": d.slot,
                "amount_usd": d.amount_usd,
                "is_sniper": d.is_sniper,
            }
            for d in dtos
        ]
        stmt = _insert(self.session, BuyEventModel).values(rows)
        stmt = stmt.on_conflict_do_nothing(index_elements=["signature"])
        await self.session.execute(stmt)
        await self.session.flush()

    async def list_for_mint(self, mint: str) -> list[BuyEventDTO]:
        result = await self.session.execute(
            select(BuyEventModel).where(BuyEventModel.mint == mint).order_by(BuyEventModel.ts)
        )
        return [BuyEventDTO.from_model(m) for m in result.scalars().all()]

    async def mark_snipers(self, signatures: Iterable[str]) -> None:
        wanted = sorted(set(signatures))
        if not wanted:
            return
        await self.session.execute(
            update(BuyEventModel).where(BuyEventModel.signature.in_(wanted)).values(is_sniper=True)
        )
        await self.session.flush()

    async def list_snipes_since(self, since: datetime) -> list[BuyEventDTO]:
        result = await self.session.execute(
            select(BuyEventModel)
            .where(BuyEventModel.is_sniper.is_(True) & (BuyEventModel.ts >= since))
            .order_by(BuyEventModel.ts)
        )
        return [BuyEventDTO.from_model(m) for m in result.scalars().all()]

    async def wallets_since(self, since: datetime) -> set[str]:
        result = await self.session.execute(select(BuyEventModel.wallet).where(BuyEventModel.ts >= since).distinct())
        return {row[0] for row in result.all()}


@dataclass
class BundleEventDTO:
    mint: str
    bundler_wallet: str
    recipient_wallet: str
    ts: datetime

    @classmethod
    def from_model(cls, model: BundleEventModel) -> BundleEventDTO:
        return cls(
            mint=model.mint,
            bundler_wallet=model.bundler_wallet,
            recipient_wallet=model.recipient_wallet,
            ts=model.ts,
        )


class BundleEventRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def insert_many(self, dtos: Sequence[BundleEventDTO]) -> None:
        if not dtos:
            return
        rows = [
            {"mint": d.mint, "bundler_wallet": d.bundler_wallet, "recipient_wallet": d.recipient_wallet, "ts": d.ts}
            for d in dtos
        ]
        stmt = _insert(self.session, BundleEventModel).values(rows)
        stmt = stmt.on_conflict_do_nothing(index_elements=["mint", "bundler_wallet", "recipient_wallet"])
        await self.session.execute(stmt)
        await self.session.flush()

    async def list_since(self, since: datetime) -> list[BundleEventDTO]:
        result = await self.session.execute(select(BundleEventModel).where(BundleEventModel.ts >= since))
        return [BundleEventDTO.from_model(m) for m in result.scalars().all()]

    async def bundlers_for_mint(self, mint: str) -> set[str]:
        result = await self.session.execute(
            select(BundleEventModel.bundler_wallet).where(BundleEventModel.mint == mint).distinct()
        )
        return {row[0] for row in result.all()}


@dataclass
class InsiderEventDTO:
    mint: str
    wallet: str
    ts: datetime
    flags: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_model(cls, model: InsiderEventModel) -> InsiderEventDTO:
        return cls(mint=model.mint, wallet=model.wallet, ts=model.ts, flags=json.loads(model.flags_json))


class InsiderEventRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def upsert_many(self, dtos: Sequence[InsiderEventDTO]) -> None:
        """Record insider verdicts; the first detection time is kept."""
        if not dtos:
            return
        rows = [
            {"mint": d.mint, "wallet": d.wallet, "ts": d.ts, "flags_json": json.dumps(d.flags, sort_keys=True)}
            for d in dtos
        ]
        stmt = _insert(self.session, InsiderEventModel).values(rows)
        stmt = stmt.on_conflict_do_update(
            index_elements=["mint", "wallet"],
            set_={"flags_json": stmt.excluded.flags_json},
        )
        await self.session.execute(stmt)
        await self.session.flush()

    async def list_since(self, since: datetime) -> list[InsiderEventDTO]:
        result = await self.session.execute(select(InsiderEventModel).where(InsiderEventModel.ts >= since))
        return [InsiderEventDTO.from_model(m) for m in result.scalars().all()]

    async def wallets_for_mint(self, mint: str) -> set[str]:
        result = await self.session.execute(select(InsiderEventModel.wallet).where(InsiderEventModel.mint == mint))
        return {row[0] for row in result.all()}


class WalletTagRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def add(self, wallet: str, tag: str) -> None:
        stmt = _insert(self.session, WalletTagModel).values(wallet=wallet, tag=tag, created_at=datetime.now(UTC))
        stmt = stmt.on_conflict_do_nothing(index_elements=["wallet", "tag"])
        await self.session.execute(stmt)
        await self.session.flush()

    async def wallets_with_tag(self, tag: str) -> set[str]:
        result = await self.session.execute(select(WalletTagModel.wallet).where(WalletTagModel.tag == tag))
        return {row[0] for row in result.all()}


# ============================================================================
# Wallet reputation
# ============================================================================


@dataclass
class WalletReputationDTO:
    wallet: str
    reputation_score: float
    score_breakdown: dict[str, Any]
    snipes_total: int = 0
    snipes_success: int = 0
    bundles_total: int = 0
    recipients_total: int = 0
    insider_hits: int = 0
    rug_involved: int = 0
    updated_at: datetime | None = None

    @classmethod
    def from_model(cls, model: WalletReputationModel) -> WalletReputationDTO:
        return cls(
            wallet=model.wallet,
            reputation_score=model.reputation_score,
            score_breakdown=json.loads(model.score_breakdown_json or "{}"),
            snipes_total=model.snipes_total,
            snipes_success=model.snipes_success,
            bundles_total=model.bundles_total,
            recipients_total=model.recipients_total,
            insider_hits=model.insider_hits,
            rug_involved=model.rug_involved,
            updated_at=model.updated_at,
        )


class WalletReputationRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def upsert(self, dto: WalletReputationDTO) -> None:
        values = {
            "reputation_score": dto.reputation_score,
            "score_breakdown_json": json.dumps(dto.score_breakdown, sort_keys=True),
            "snipes_total": dto.snipes_total,
            "snipes_success": dto.snipes_success,
            "bundles_total": dto.bundles_total,
            "recipients_total": dto.recipients_total,
            "insider_hits": dto.insider_hits,
            "rug_involved": dto.rug_involved,
            "updated_at": dto.updated_at or datetime.now(UTC),
        }
        stmt = _insert(self.session, WalletReputationModel).values(wallet=dto.wallet, **values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["wallet"],
            set_={name: getattr(stmt.excluded, name) for name in values},
        )
        await self.session.execute(stmt)
        await self.session.flush()

    async def get(self, wallet: str) -> WalletReputationDTO | None:
        result = await self.session.execute(
            select(WalletReputationModel).where(WalletReputationModel.wallet == wallet)
        )
        model = result.scalar_one_or_none()
        return WalletReputationDTO.from_model(model) if model else None

    async def scores_for(self, wallets: Iterable[str]) -> dict[str, float]:
        wanted = sorted(set(wallets))
        if not wanted:
            return {}
        result = await self.session.execute(
            select(WalletReputationModel.wallet, WalletReputationModel.reputation_score).where(
                WalletReputationModel.wallet.in_(wanted)
            )
        )
        return {wallet: float(score) for wallet, score in result.all()}


# ============================================================================
# Time series
# ============================================================================


@dataclass
class ScoreSnapshotDTO:
    """Point-in-time token metrics from score_history."""

    mint: str
    snapshot_time: datetime
    health_score: float | None = None
    rug_risk_score: float | None = None
    holders_count: int | None = None
    liquidity_usd: float | None = None
    fresh_pct: float | None = None
    sniper_pct: float | None = None
    insider_pct: float | None = None
    top10_share: float | None = None
    health_score_raw: float | None = None

    @classmethod
    def from_model(cls, model: ScoreHistoryModel) -> ScoreSnapshotDTO:
        return cls(
            mint=model.mint,
            snapshot_time=model.snapshot_time,
            health_score=model.health_score,
            rug_risk_score=model.rug_risk_score,
            holders_count=model.holders_count,
            liquidity_usd=model.liquidity_usd,
            fresh_pct=model.fresh_pct,
            sniper_pct=model.sniper_pct,
            insider_pct=model.insider_pct,
            top10_share=model.top10_share,
            health_score_raw=model.health_score_raw,
        )

    @classmethod
    def from_token(cls, token: TokenDTO, *, at: datetime) -> ScoreSnapshotDTO:
        return cls(
            mint=token.mint,
            snapshot_time=at,
            health_score=token.health_score,
            rug_risk_score=token.rug_risk_score,
            holders_count=token.holders_count,
            liquidity_usd=token.liquidity_usd,
            fresh_pct=token.fresh_pct,
            sniper_pct=token.sniper_pct,
            insider_pct=token.insider_pct,
            top10_share=token.top10_share,
            health_score_raw=token.health_score_raw,
        )


class ScoreHistoryRepository:
    """Append-only score snapshots."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def insert(self, dto: ScoreSnapshotDTO) -> bool:
        """Append a snapshot; returns False when one already exists at that time."""
        stmt = _insert(self.session, ScoreHistoryModel).values(
            mint=dto.mint,
            snapshot_time=dto.snapshot_time,
            health_score=dto.health_score,
            rug_risk_score=dto.rug_risk_score,
            holders_count=dto.holders_count,
            liquidity_usd=dto.liquidity_usd,
            fresh_pct=dto.fresh_pct,
            sniper_pct=dto.sniper_pct,
            insider_pct=dto.insider_pct,
            top10_share=dto.top10_share,
            health_score_raw=dto.health_score_raw,
        )
        stmt = stmt.on_conflict_do_nothing(index_elements=["mint", "snapshot_time"])
        result = await self.session.execute(stmt)
        await self.session.flush()
        return bool(result.rowcount)

    async def latest_at_or_before(self, mint: str, ts: datetime) -> ScoreSnapshotDTO | None:
        result = await self.session.execute(
            select(ScoreHistoryModel)
            .where((ScoreHistoryModel.mint == mint) & (ScoreHistoryModel.snapshot_time <= ts))
            .order_by(ScoreHistoryModel.snapshot_time.desc())
            .limit(1)
        )
        model = result.scalar_one_or_none()
        return ScoreSnapshotDTO.from_model(model) if model else None

    async def first_at_or_after(self, mint: str, ts: datetime) -> ScoreSnapshotDTO | None:
        result = await self.session.execute(
            select(ScoreHistoryModel)
            .where((ScoreHistoryModel.mint == mint) & (ScoreHistoryModel.snapshot_time >= ts))
            .order_by(ScoreHistoryModel.snapshot_time)
            .limit(1)
        )
        model = result.scalar_one_or_none()
        return ScoreSnapshotDTO.from_model(model) if model else None

    async def list_between(self, mint: str, *, start: datetime, end: datetime) -> list[ScoreSnapshotDTO]:
        result = await self.session.execute(
            select(ScoreHistoryModel)
            .where(
                (ScoreHistoryModel.mint == mint)
                & (ScoreHistoryModel.snapshot_time >= start)
                & (ScoreHistoryModel.snapshot_time <= end)
            )
            .order_by(ScoreHistoryModel.snapshot_time)
        )
        return [ScoreSnapshotDTO.from_model(m) for m in result.scalars().all()]


@dataclass
class HoldersSnapshotDTO:
    mint: str
    snapshot_time: datetime
    holders_count: int

    @classmethod
    def from_model(cls, model: HoldersHistoryModel) -> HoldersSnapshotDTO:
        return cls(mint=model.mint, snapshot_time=model.snapshot_time, holders_count=model.holders_count)


class HoldersHistoryRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def insert(self, dto: HoldersSnapshotDTO) -> bool:
        stmt = _insert(self.session, HoldersHistoryModel).values(
            mint=dto.mint, snapshot_time=dto.snapshot_time, holders_count=dto.holders_count
        )
        stmt = stmt.on_conflict_do_nothing(index_elements=["mint", "snapshot_time"])
        result = await self.session.execute(stmt)
        await self.session.flush()
        return bool(result.rowcount)

    async def latest_at_or_before(self, mint: str, ts: datetime) -> HoldersSnapshotDTO | None:
        result = await self.session.execute(
            select(HoldersHistoryModel)
            .where((HoldersHistoryModel.mint == mint) & (HoldersHistoryModel.snapshot_time <= ts))
            .order_by(HoldersHistoryModel.snapshot_time.desc())
            .limit(1)
        )
        model = result.scalar_one_or_none()
        return HoldersSnapshotDTO.from_model(model) if model else None


@dataclass
class RugRiskSnapshotDTO:
    mint: str
    ts: datetime
    rug_risk_score: float
    flags: str = ""
    liquidity_usd: float | None = None
    top1_pct: float | None = None
    top5_pct: float | None = None
    delta_5m: float | None = None
    delta_15m: float | None = None

    @classmethod
    def from_model(cls, model: RugRiskHistoryModel) -> RugRiskSnapshotDTO:
        return cls(
            mint=model.mint,
            ts=model.ts,
            rug_risk_score=model.rug_risk_score,
            flags=model.flags,
            liquidity_usd=model.liquidity_usd,
            top1_pct=model.top1_pct,
            top5_pct=model.top5_pct,
            delta_5m=model.delta_5m,
            delta_15m=model.delta_15m,
        )


class RugRiskHistoryRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def insert(self, dto: RugRiskSnapshotDTO) -> None:
        self.session.add(
            RugRiskHistoryModel(
                mint=dto.mint,
                ts=dto.ts,
                rug_risk_score=dto.rug_risk_score,
                flags=dto.flags,
                liquidity_usd=dto.liquidity_usd,
                top1_pct=dto.top1_pct,
                top5_pct=dto.top5_pct,
                delta_5m=dto.delta_5m,
                delta_15m=dto.delta_15m,
            )
        )
        await self.session.flush()

    async def reached_since(self, mint: str, *, threshold: float, since: datetime) -> bool:
        """Whether a computed (not hysteresis-held) score reached `threshold` since `since`."""
        result = await self.session.execute(
            select(func.count())
            .select_from(RugRiskHistoryModel)
            .where(
                (RugRiskHistoryModel.mint == mint)
                & (RugRiskHistoryModel.rug_risk_score >= threshold)
                & (RugRiskHistoryModel.ts >= since)
                & ~RugRiskHistoryModel.flags.contains(HYSTERESIS_HOLD_FLAG)
            )
        )
        return int(result.scalar_one()) > 0

    async def latest_at_or_before(self, mint: str, ts: datetime) -> RugRiskSnapshotDTO | None:
        result = await self.session.execute(
            select(RugRiskHistoryModel)
            .where((RugRiskHistoryModel.mint == mint) & (RugRiskHistoryModel.ts <= ts))
            .order_by(RugRiskHistoryModel.ts.desc(), RugRiskHistoryModel.id.desc())
            .limit(1)
        )
        model = result.scalar_one_or_none()
        return RugRiskSnapshotDTO.from_model(model) if model else None


@dataclass
class PriceSampleDTO:
    mint: str
    source: str
    ts: datetime
    price_usd: float

    @classmethod
    def from_model(cls, model: PriceSampleModel) -> PriceSampleDTO:
        return cls(mint=model.mint, source=model.source, ts=model.ts, price_usd=model.price_usd)


class PriceSampleRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def insert_many(self, dtos: Sequence[PriceSampleDTO]) -> None:
        if not dtos:
            return
        rows = [{"mint": d.mint, "source": d.source, "ts": d.ts, "price_usd": d.price_usd} for d in dtos]
        stmt = _insert(self.session, PriceSampleModel).values(rows)
        stmt = stmt.on_conflict_do_nothing(index_elements=["mint", "source", "ts"])
        await self.session.execute(stmt)
        await self.session.flush()

    async def latest_by_source(self, mint: str, *, since: datetime, until: datetime) -> dict[str, PriceSampleDTO]:
        result = await self.session.execute(
            select(PriceSampleModel)
            .where((PriceSampleModel.mint == mint) & (PriceSampleModel.ts >= since) & (PriceSampleModel.ts <= until))
            .order_by(PriceSampleModel.ts)
        )
        latest: dict[str, PriceSampleDTO] = {}
        for model in result.scalars().all():
            latest[model.source] = PriceSampleDTO.from_model(model)
        return latest

    async def list_between(self, mint: str, *, start: datetime, end: datetime) -> list[PriceSampleDTO]:
        result = await self.session.execute(
            select(PriceSampleModel)
            .where((PriceSampleModel.mint == mint) & (PriceSampleModel.ts >= start) & (PriceSampleModel.ts <= end))
            .order_by(PriceSampleModel.ts, PriceSampleModel.source)
        )
        return [PriceSampleDTO.from_model(m) for m in result.scalars().all()]

    async def latest_at_or_before(self, mint: str, ts: datetime) -> PriceSampleDTO | None:
        result = await self.session.execute(
            select(PriceSampleModel)
            .where((PriceSampleModel.mint == mint) & (PriceSampleModel.ts <= ts))
            .order_by(PriceSampleModel.ts.desc(), PriceSampleModel.source)
            .limit(1)
        )
        model = result.scalar_one_or_none()
        return PriceSampleDTO.from_model(model) if model else None


# ============================================================================
# Alerts
# ============================================================================


class AlertRuleRepository:
    """Operator-authored alert rules; the engine only reads them."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_active(self) -> list[AlertRule]:
        result = await self.session.execute(
            select(AlertRuleModel).where(AlertRuleModel.is_active.is_(True)).order_by(AlertRuleModel.id)
        )
        return [
            AlertRule.build(
                rule_name=m.rule_name,
                alert_type=m.alert_type,
                thresholds=m.thresholds_json,
                hard_mute=m.hard_mute_json,
                debounce_minutes=m.debounce_minutes,
                is_active=m.is_active,
            )
            for m in result.scalars().all()
        ]

    async def upsert(self, rule: AlertRule) -> None:
        values = {
            "alert_type": rule.alert_type.value,
            "thresholds_json": json.dumps(rule.thresholds, sort_keys=True),
            "hard_mute_json": json.dumps(rule.hard_mute, sort_keys=True),
            "debounce_minutes": rule.debounce_minutes,
            "is_active": rule.is_active,
        }
        stmt = _insert(self.session, AlertRuleModel).values(
            rule_name=rule.rule_name, created_at=datetime.now(UTC), **values
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["rule_name"],
            set_={name: getattr(stmt.excluded, name) for name in values},
        )
        await self.session.execute(stmt)
        await self.session.flush()


@dataclass
class AlertDTO:
    mint: str
    alert_type: str
    rule_name: str
    level: str
    message: str
    triggered_at: datetime
    metadata: dict[str, Any] = field(default_factory=dict)
    status: str = "active"
    resolved_at: datetime | None = None
    id: int | None = None

    @classmethod
    def from_model(cls, model: AlertModel) -> AlertDTO:
        return cls(
            id=model.id,
            mint=model.mint,
            alert_type=model.alert_type,
            rule_name=model.rule_name,
            level=model.level,
            message=model.message,
            triggered_at=model.triggered_at,
            metadata=json.loads(model.metadata_json or "{}"),
            status=model.status,
            resolved_at=model.resolved_at,
        )


class AlertRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def insert(self, dto: AlertDTO) -> AlertDTO:
        metadata_json = json.dumps(dto.metadata, sort_keys=True, default=str)
        model = AlertModel(
            mint=dto.mint,
            alert_type=dto.alert_type,
            rule_name=dto.rule_name,
            level=dto.level,
            message=dto.message,
            triggered_at=dto.triggered_at,
            status=dto.status,
            resolved_at=dto.resolved_at,
            metadata_json=metadata_json,
        )
        self.session.add(model)
        self.session.add(
            AlertHistoryModel(
                mint=dto.mint,
                alert_type=dto.alert_type,
                rule_name=dto.rule_name,
                triggered_at=dto.triggered_at,
                health_score=dto.metadata.get("health_score"),
                metadata_json=metadata_json,
            )
        )
        await self.session.flush()
        dto.id = model.id
        return dto

    async def list_for(self, mint: str, alert_type: str | None = None) -> list[AlertDTO]:
        stmt = select(AlertModel).where(AlertModel.mint == mint)
        if alert_type is not None:
            stmt = stmt.where(AlertModel.alert_type == alert_type)
        result = await self.session.execute(stmt.order_by(AlertModel.triggered_at))
        return [AlertDTO.from_model(m) for m in result.scalars().all()]

    async def list_since(self, since: datetime, *, alert_type: str | None = None) -> list[AlertDTO]:
        stmt = select(AlertModel).where(AlertModel.triggered_at >= since)
        if alert_type is not None:
            stmt = stmt.where(AlertModel.alert_type == alert_type)
        result = await self.session.execute(stmt.order_by(AlertModel.triggered_at))
        return [AlertDTO.from_model(m) for m in result.scalars().all()]

    async def count_history_since(self, since: datetime, *, alert_type: str) -> int:
        """Alerts fired since `since`, counted from the audit table so purges do not hide them."""
        result = await self.session.execute(
            select(func.count())
            .select_from(AlertHistoryModel)
            .where((AlertHistoryModel.alert_type == alert_type) & (AlertHistoryModel.triggered_at >= since))
        )
        return int(result.scalar_one())

    async def resolve(self, alert_id: int, *, resolved_at: datetime) -> None:
        await self.session.execute(
            update(AlertModel).where(AlertModel.id == alert_id).values(status="resolved", resolved_at=resolved_at)
        )
        await self.session.flush()

    async def purge_before(self, cutoff: datetime) -> int:
        result = await self.session.execute(delete(AlertModel).where(AlertModel.triggered_at < cutoff))
        await self.session.flush()
        return int(result.rowcount or 0)


@dataclass
class AlertStateDTO:
    mint: str
    alert_type: str
    rule_name: str
    last_fired_at: datetime
    cooldown_until: datetime

    @classmethod
    def from_model(cls, model: AlertStateModel) -> AlertStateDTO:
        return cls(
            mint=model.mint,
            alert_type=model.alert_type,
            rule_name=model.rule_name,
            last_fired_at=model.last_fired_at,
            cooldown_until=model.cooldown_until,
        )


class AlertStateRepository:
    """Durable debounce/cooldown state."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, mint: str, alert_type: str) -> AlertStateDTO | None:
        result = await self.session.execute(
            select(AlertStateModel).where((AlertStateModel.mint == mint) & (AlertStateModel.alert_type == alert_type))
        )
        model = result.scalar_one_or_none()
        return AlertStateDTO.from_model(model) if model else None

    async def record_fired(self, dto: AlertStateDTO) -> None:
        stmt = _insert(self.session, AlertStateModel).values(
            mint=dto.mint,
            alert_type=dto.alert_type,
            rule_name=dto.rule_name,
            last_fired_at=dto.last_fired_at,
            cooldown_until=dto.cooldown_until,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["mint", "alert_type"],
            set_={
                "rule_name": stmt.excluded.rule_name,
                "last_fired_at": stmt.excluded.last_fired_at,
                "cooldown_until": stmt.excluded.cooldown_until,
            },
        )
        await self.session.execute(stmt)
        await self.session.flush()


# ============================================================================
# Labels, models and predictions
# ============================================================================


@dataclass
class TokenLabelDTO:
    mint: str
    first_seen_at: datetime
    winner_2x_24h: bool
    rug_24h: bool
    price_30m: float | None = None
    max_price_24h: float | None = None
    min_price_24h: float | None = None
    liquidity_30m: float | None = None
    min_liquidity_6h: float | None = None
    min_liquidity_24h: float | None = None
    rug_risk_30m: float | None = None
    computed_at: datetime | None = None

    @classmethod
    def from_model(cls, model: TokenLabelModel) -> TokenLabelDTO:
        return cls(
            mint=model.mint,
            first_seen_at=model.first_seen_at,
            winner_2x_24h=model.winner_2x_24h,
            rug_24h=model.rug_24h,
            price_30m=model.price_30m,
            max_price_24h=model.max_price_24h,
            min_price_24h=model.min_price_24h,
            liquidity_30m=model.liquidity_30m,
            min_liquidity_6h=model.min_liquidity_6h,
            min_liquidity_24h=model.min_liquidity_24h,
            rug_risk_30m=model.rug_risk_30m,
            computed_at=model.computed_at,
        )


_LABEL_FIELDS = (
    "first_seen_at",
    "winner_2x_24h",
    "rug_24h",
    "price_30m",
    "max_price_24h",
    "min_price_24h",
    "liquidity_30m",
    "min_liquidity_6h",
    "min_liquidity_24h",
    "rug_risk_30m",
)


class TokenLabelRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def upsert(self, dto: TokenLabelDTO) -> None:
        values = {name: getattr(dto, name) for name in _LABEL_FIELDS}
        values["computed_at"] = dto.computed_at or datetime.now(UTC)
        stmt = _insert(self.session, TokenLabelModel).values(mint=dto.mint, **values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["mint"],
            set_={name: getattr(stmt.excluded, name) for name in values},
        )
        await self.session.execute(stmt)
        await self.session.flush()

    async def list_ordered(self) -> list[TokenLabelDTO]:
        result = await self.session.execute(
            select(TokenLabelModel).order_by(TokenLabelModel.first_seen_at, TokenLabelModel.mint)
        )
        return [TokenLabelDTO.from_model(m) for m in result.scalars().all()]

    async def get_many(self, mints: Iterable[str]) -> dict[str, TokenLabelDTO]:
        wanted = sorted(set(mints))
        if not wanted:
            return {}
        result = await self.session.execute(select(TokenLabelModel).where(TokenLabelModel.mint.in_(wanted)))
        return {m.mint: TokenLabelDTO.from_model(m) for m in result.scalars().all()}


@dataclass
class ModelRegistryDTO:
    model_id: str
    target: str
    algorithm: str
    feature_columns: list[str]
    train_window_start: datetime
    train_window_end: datetime
    metrics: dict[str, Any]
    calibration: dict[str, Any]
    artifact_path: str
    trained_at: datetime

    @classmethod
    def from_model(cls, model: ModelRegistryModel) -> ModelRegistryDTO:
        return cls(
            model_id=model.model_id,
            target=model.target,
            algorithm=model.algorithm,
            feature_columns=json.loads(model.feature_columns_json),
            train_window_start=model.train_window_start,
            train_window_end=model.train_window_end,
            metrics=json.loads(model.metrics_json),
            calibration=json.loads(model.calibration_json),
            artifact_path=model.artifact_path,
            trained_at=model.trained_at,
        )


class ModelRegistryRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def insert(self, dto: ModelRegistryDTO) -> None:
        self.session.add(
            ModelRegistryModel(
                model_id=dto.model_id,
                target=dto.target,
                algorithm=dto.algorithm,
                feature_columns_json=json.dumps(dto.feature_columns),
                train_window_start=dto.train_window_start,
                train_window_end=dto.train_window_end,
                metrics_json=json.dumps(dto.metrics, sort_keys=True),
                calibration_json=json.dumps(dto.calibration, sort_keys=True),
                artifact_path=dto.artifact_path,
                trained_at=dto.trained_at,
            )
        )
        await self.session.flush()

    async def get_latest(self, target: str) -> ModelRegistryDTO | None:
        result = await self.session.execute(
            select(ModelRegistryModel)
            .where(ModelRegistryModel.target == target)
            .order_by(ModelRegistryModel.trained_at.desc(), ModelRegistryModel.created_at.desc())
            .limit(1)
        )
        model = result.scalar_one_or_none()
        return ModelRegistryDTO.from_model(model) if model else None


@dataclass
class TokenPredictionDTO:
    mint: str
    ts: datetime
    model_id: str
    target: str
    probability: float
    features_hash: str
    explainability: str

    @classmethod
    def from_model(cls, model: TokenPredictionModel) -> TokenPredictionDTO:
        return cls(
            mint=model.mint,
            ts=model.ts,
            model_id=model.model_id,
            target=model.target,
            probability=model.probability,
            features_hash=model.features_hash,
            explainability=model.explainability,
        )


class TokenPredictionRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def upsert(self, dto: TokenPredictionDTO) -> None:
        stmt = _insert(self.session, TokenPredictionModel).values(
            mint=dto.mint,
            ts=dto.ts,
            model_id=dto.model_id,
            target=dto.target,
            probability=dto.probability,
            features_hash=dto.features_hash,
            explainability=dto.explainability,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["mint", "model_id", "target", "ts"],
            set_={
                "probability": stmt.excluded.probability,
                "features_hash": stmt.excluded.features_hash,
                "explainability": stmt.excluded.explainability,
            },
        )
        await self.session.execute(stmt)
        await self.session.flush()

    async def list_for_mint(self, mint: str) -> list[TokenPredictionDTO]:
        result = await self.session.execute(
            select(TokenPredictionModel).where(TokenPredictionModel.mint == mint).order_by(TokenPredictionModel.ts)
        )
        return [TokenPredictionDTO.from_model(m) for m in result.scalars().all()]


# ============================================================================
# Backtests, retunes and processing errors
# ============================================================================


@dataclass
class BacktestRunDTO:
    run_id: str
    kind: str
    started_at: datetime
    finished_at: datetime
    window_start: datetime
    window_end: datetime
    sample_size: int
    params: dict[str, Any]
    results: dict[str, Any]
    ruleset_id: str | None = None

    @classmethod
    def from_model(cls, model: BacktestRunModel) -> BacktestRunDTO:
        return cls(
            run_id=model.run_id,
            kind=model.kind,
            started_at=model.started_at,
            finished_at=model.finished_at,
            window_start=model.window_start,
            window_end=model.window_end,
            sample_size=model.sample_size,
            params=json.loads(model.params_json),
            results=json.loads(model.results_json),
            ruleset_id=model.ruleset_id,
        )


class BacktestRunRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def insert(self, dto: BacktestRunDTO) -> None:
        self.session.add(
            BacktestRunModel(
                run_id=dto.run_id,
                kind=dto.kind,
                started_at=dto.started_at,
                finished_at=dto.finished_at,
                window_start=dto.window_start,
                window_end=dto.window_end,
                sample_size=dto.sample_size,
                ruleset_id=dto.ruleset_id,
                params_json=json.dumps(dto.params, sort_keys=True, default=str),
                results_json=json.dumps(dto.results, sort_keys=True, default=str),
            )
        )
        await self.session.flush()

    async def get(self, run_id: str) -> BacktestRunDTO | None:
        result = await self.session.execute(select(BacktestRunModel).where(BacktestRunModel.run_id == run_id))
        model = result.scalar_one_or_none()
        return BacktestRunDTO.from_model(model) if model else None


@dataclass
class RetuneResultDTO:
    ruleset_id: str
    alert_type: str
    precision: float
    lift: float
    baseline: float
    true_positives: int
    total_alerts: int
    volume_control: dict[str, Any]
    created_at: datetime | None = None

    @classmethod
    def from_model(cls, model: RetuneResultModel) -> RetuneResultDTO:
        return cls(
            ruleset_id=model.ruleset_id,
            alert_type=model.alert_type,
            precision=model.precision,
            lift=model.lift,
            baseline=model.baseline,
            true_positives=model.true_positives,
            total_alerts=model.total_alerts,
            volume_control=json.loads(model.volume_control_json),
            created_at=model.created_at,
        )


class RetuneResultRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def insert_many(self, dtos: Sequence[RetuneResultDTO]) -> None:
        if not dtos:
            return
        now = datetime.now(UTC)
        rows = [
            {
                "ruleset_id": d.ruleset_id,
                "alert_type": d.alert_type,
                "precision": d.precision,
                "lift": d.lift,
                "baseline": d.baseline,
                "true_positives": d.true_positives,
                "total_alerts": d.total_alerts,
                "volume_control_json": json.dumps(d.volume_control, sort_keys=True),
                "created_at": d.created_at or now,
            }
            for d in dtos
        ]
        await self.session.execute(sa.insert(RetuneResultModel), rows)
        await self.session.flush()

    async def list_for_ruleset(self, ruleset_id: str) -> list[RetuneResultDTO]:
        result = await self.session.execute(
            select(RetuneResultModel)
            .where(RetuneResultModel.ruleset_id == ruleset_id)
            .order_by(RetuneResultModel.alert_type)
        )
        return [RetuneResultDTO.from_model(m) for m in result.scalars().all()]


@dataclass
class ProcessingErrorDTO:
    stage: str
    entity_id: str
    error_type: str
    message: str
    created_at: datetime | None = None

    @classmethod
    def from_model(cls, model: ProcessingErrorModel) -> ProcessingErrorDTO:
        return cls(
            stage=model.stage,
            entity_id=model.entity_id,
            error_type=model.error_type,
            message=model.message,
            created_at=model.created_at,
        )


class ProcessingErrorRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def insert_many(self, errors: Sequence[ProcessingErrorDTO]) -> None:
        if not errors:
            return
        rows = [
            {
                "stage": e.stage,
                "entity_id": e.entity_id,
                "error_type": e.error_type,
                "message": e.message,
                "created_at": e.created_at or datetime.now(UTC),
            }
            for e in errors
        ]
        await self.session.execute(sa.insert(ProcessingErrorModel), rows)
        await self.session.flush()

    async def list_for_stage(self, stage: str) -> list[ProcessingErrorDTO]:
        result = await self.session.execute(
            select(ProcessingErrorModel).where(ProcessingErrorModel.stage == stage).order_by(ProcessingErrorModel.id)
        )
        return [ProcessingErrorDTO.from_model(m) for m in result.scalars().all()]
