"""SQLAlchemy models for persistent storage.

This module defines the database schema for tokens, holders, funding
edges, wallet reputation, score time series, alerts and the
backtest/model audit trail.
"""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import (
    Boolean,
    Float,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from memecoin_risk_engine.storage.types import UTCDateTime

# Solana base58 addresses are at most 44 characters, signatures at most 88.
ADDRESS_LEN = 44
SIGNATURE_LEN = 88


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class TokenModel(Base):
    """Token launch record plus every score column the engine maintains."""

    __tablename__ = "tokens"

    mint: Mapped[str] = mapped_column(String(ADDRESS_LEN), primary_key=True)
    symbol: Mapped[str | None] = mapped_column(String(64), nullable=True)
    name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    source: Mapped[str | None] = mapped_column(String(40), nullable=True)
    dev_wallet: Mapped[str | None] = mapped_column(String(ADDRESS_LEN), nullable=True)
    first_seen_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    pool_created_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    pool_creation_slot: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Pool state written by ingest collaborators.
    liquidity_usd: Mapped[float | None] = mapped_column(Float, nullable=True)
    liquidity_delta_5m: Mapped[float | None] = mapped_column(Float, nullable=True)
    liquidity_delta_15m: Mapped[float | None] = mapped_column(Float, nullable=True)
    holders_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    lp_burn_pct: Mapped[float | None] = mapped_column(Float, nullable=True)
    lp_lock_confidence: Mapped[int | None] = mapped_column(Integer, nullable=True)
    lp_lock_provider: Mapped[str | None] = mapped_column(String(40), nullable=True)
    lp_owner_top1_pct: Mapped[float | None] = mapped_column(Float, nullable=True)
    lp_owner_top5_pct: Mapped[float | None] = mapped_column(Float, nullable=True)
    lp_owner_is_creator: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    authorities_revoked: Mapped[bool | None] = mapped_column(Boolean, nullable=True)

    # Wallet class ratios.
    fresh_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    fresh_pct: Mapped[float | None] = mapped_column(Float, nullable=True)
    inception_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    inception_pct: Mapped[float | None] = mapped_column(Float, nullable=True)
    sniper_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    sniper_pct: Mapped[float | None] = mapped_column(Float, nullable=True)
    bundler_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    bundled_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    bundled_pct: Mapped[float | None] = mapped_column(Float, nullable=True)
    insider_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    insider_pct: Mapped[float | None] = mapped_column(Float, nullable=True)
    other_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    other_pct: Mapped[float | None] = mapped_column(Float, nullable=True)
    top10_share: Mapped[float | None] = mapped_column(Float, nullable=True)

    # Scores: *_raw come straight from the scorers, the plain columns carry
    # the bad-actor adjustment on top.
    health_score_raw: Mapped[float | None] = mapped_column(Float, nullable=True)
    health_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    rug_risk_score_raw: Mapped[float | None] = mapped_column(Float, nullable=True)
    rug_risk_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    rug_flags: Mapped[str | None] = mapped_column(Text, nullable=True)
    rug_breakdown_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    scoring_strategy: Mapped[str | None] = mapped_column(String(8), nullable=True)
    sniper_bad_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    bundler_bad_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    insider_bad_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    bad_actor_score: Mapped[float | None] = mapped_column(Float, nullable=True)

    prob_2x_24h: Mapped[float | None] = mapped_column(Float, nullable=True)
    prob_rug_24h: Mapped[float | None] = mapped_column(Float, nullable=True)
    model_id_win: Mapped[str | None] = mapped_column(String(80), nullable=True)
    model_id_rug: Mapped[str | None] = mapped_column(String(80), nullable=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    __table_args__ = (Index("idx_tokens_first_seen_at", "first_seen_at"),)


class HolderModel(Base):
    """Token holder with its accumulated set of behavioural tags."""

    __tablename__ = "holders"

    mint: Mapped[str] = mapped_column(String(ADDRESS_LEN), primary_key=True)
    owner: Mapped[str] = mapped_column(String(ADDRESS_LEN), primary_key=True)
    amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    wallet_age_days: Mapped[float | None] = mapped_column(Float, nullable=True)
    funded_by: Mapped[str | None] = mapped_column(String(ADDRESS_LEN), nullable=True)
    received_at_mint: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # Canonical comma-joined tag set, see classifier.holder_types.HolderTypes.
    holder_type: Mapped[str] = mapped_column(String(120), nullable=False, default="")
    first_seen_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=_utcnow)
    last_seen_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=_utcnow)

    __table_args__ = (
        Index("idx_holders_owner", "owner"),
        Index("idx_holders_mint_amount", "mint", "amount"),
    )


class FundingEdgeModel(Base):
    """SOL transfer between wallets (append-only)."""

    __tablename__ = "funding_edges"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    src_wallet: Mapped[str] = mapped_column(String(ADDRESS_LEN), nullable=False)
    dst_wallet: Mapped[str] = mapped_column(String(ADDRESS_LEN), nullable=False)
    amount_sol: Mapped[float] = mapped_column(Float, nullable=False)
    ts: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    signature: Mapped[str] = mapped_column(String(SIGNATURE_LEN), nullable=False)

    __table_args__ = (
        UniqueConstraint("src_wallet", "dst_wallet", "signature", name="uq_funding_edges_src_dst_sig"),
        Index("idx_funding_edges_src_ts", "src_wallet", "ts"),
        Index("idx_funding_edges_dst", "dst_wallet"),
    )


class BuyEventModel(Base):
    """Token buy observed on chain."""

    __tablename__ = "buy_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    mint: Mapped[str] = mapped_column(String(ADDRESS_LEN), nullable=False)
    wallet: Mapped[str] = mapped_column(String(ADDRESS_LEN), nullable=False)
    signature: Mapped[str] = mapped_column(String(SIGNATURE_LEN), nullable=False, unique=True)
    slot: Mapped[int | None] = mapped_column(Integer, nullable=True)
    ts: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    amount_usd: Mapped[float | None] = mapped_column(Float, nullable=True)
    is_sniper: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        Index("idx_buy_events_mint_ts", "mint", "ts"),
        Index("idx_buy_events_wallet_ts", "wallet", "ts"),
    )


class BundleEventModel(Base):
    """Bundler funder -> funded buyer pair for a token."""

    __tablename__ = "bundle_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    mint: Mapped[str] = mapped_column(String(ADDRESS_LEN), nullable=False)
    bundler_wallet: Mapped[str] = mapped_column(String(ADDRESS_LEN), nullable=False)
    recipient_wallet: Mapped[str] = mapped_column(String(ADDRESS_LEN), nullable=False)
    ts: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    __table_args__ = (
        UniqueConstraint("mint", "bundler_wallet", "recipient_wallet", name="uq_bundle_events_pair"),
        Index("idx_bundle_events_bundler_ts", "bundler_wallet", "ts"),
    )


class InsiderEventModel(Base):
    """Holder judged an insider for a token, with the heuristics that fired."""

    __tablename__ = "insider_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    mint: Mapped[str] = mapped_column(String(ADDRESS_LEN), nullable=False)
    wallet: Mapped[str] = mapped_column(String(ADDRESS_LEN), nullable=False)
    ts: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    flags_json: Mapped[str] = mapped_column(Text, nullable=False)

    __table_args__ = (
        UniqueConstraint("mint", "wallet", name="uq_insider_events_mint_wallet"),
        Index("idx_insider_events_wallet_ts", "wallet", "ts"),
    )


class WalletTagModel(Base):
    """Operator-assigned wallet tags such as `market_maker`."""

    __tablename__ = "wallet_tags"

    wallet: Mapped[str] = mapped_column(String(ADDRESS_LEN), primary_key=True)
    tag: Mapped[str] = mapped_column(String(40), primary_key=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=_utcnow)


class WalletReputationModel(Base):
    """Decayed cross-token reputation per wallet."""

    __tablename__ = "wallet_reputation"

    wallet: Mapped[str] = mapped_column(String(ADDRESS_LEN), primary_key=True)
    snipes_total: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    snipes_success: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    bundles_total: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    recipients_total: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    insider_hits: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    rug_involved: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    reputation_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    score_breakdown_json: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=_utcnow)

    __table_args__ = (Index("idx_wallet_reputation_score", "reputation_score"),)


class ScoreHistoryModel(Base):
    """Point-in-time token ratios and scores (append-only)."""

    __tablename__ = "score_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    mint: Mapped[str] = mapped_column(String(ADDRESS_LEN), nullable=False)
    snapshot_time: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    health_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    rug_risk_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    holders_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    liquidity_usd: Mapped[float | None] = mapped_column(Float, nullable=True)
    fresh_pct: Mapped[float | None] = mapped_column(Float, nullable=True)
    sniper_pct: Mapped[float | None] = mapped_column(Float, nullable=True)
    insider_pct: Mapped[float | None] = mapped_column(Float, nullable=True)
    top10_share: Mapped[float | None] = mapped_column(Float, nullable=True)
    health_score_raw: Mapped[float | None] = mapped_column(Float, nullable=True)

    __table_args__ = (
        UniqueConstraint("mint", "snapshot_time", name="uq_score_history_mint_time"),
        Index("idx_score_history_mint_time", "mint", "snapshot_time"),
    )


class HoldersHistoryModel(Base):
    """Holder count time series (append-only)."""

    __tablename__ = "holders_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    mint: Mapped[str] = mapped_column(String(ADDRESS_LEN), nullable=False)
    snapshot_time: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    holders_count: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint("mint", "snapshot_time", name="uq_holders_history_mint_time"),
        Index("idx_holders_history_mint_time", "mint", "snapshot_time"),
    )


class RugRiskHistoryModel(Base):
    """Every rug-risk computation with the inputs it saw (append-only)."""

    __tablename__ = "rug_risk_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    mint: Mapped[str] = mapped_column(String(ADDRESS_LEN), nullable=False)
    ts: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    rug_risk_score: Mapped[float] = mapped_column(Float, nullable=False)
    flags: Mapped[str] = mapped_column(Text, nullable=False, default="")
    liquidity_usd: Mapped[float | None] = mapped_column(Float, nullable=True)
    top1_pct: Mapped[float | None] = mapped_column(Float, nullable=True)
    top5_pct: Mapped[float | None] = mapped_column(Float, nullable=True)
    delta_5m: Mapped[float | None] = mapped_column(Float, nullable=True)
    delta_15m: Mapped[float | None] = mapped_column(Float, nullable=True)

    __table_args__ = (Index("idx_rug_risk_history_mint_ts", "mint", "ts"),)


class PriceSampleModel(Base):
    """Token price observed by a price source."""

    __tablename__ = "price_samples"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    mint: Mapped[str] = mapped_column(String(ADDRESS_LEN), nullable=False)
    source: Mapped[str] = mapped_column(String(40), nullable=False)
    ts: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    price_usd: Mapped[float] = mapped_column(Float, nullable=False)

    __table_args__ = (
        UniqueConstraint("mint", "source", "ts", name="uq_price_samples_mint_source_ts"),
        Index("idx_price_samples_mint_ts", "mint", "ts"),
    )


class AlertRuleModel(Base):
    """Operator-authored alert rule."""

    __tablename__ = "alert_rules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    rule_name: Mapped[str] = mapped_column(String(80), nullable=False, unique=True)
    alert_type: Mapped[str] = mapped_column(String(40), nullable=False)
    thresholds_json: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    hard_mute_json: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    debounce_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=_utcnow)


class AlertModel(Base):
    """Fired alert."""

    __tablename__ = "alerts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    mint: Mapped[str] = mapped_column(String(ADDRESS_LEN), nullable=False)
    alert_type: Mapped[str] = mapped_column(String(40), nullable=False)
    rule_name: Mapped[str] = mapped_column(String(80), nullable=False)
    level: Mapped[str] = mapped_column(String(20), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    triggered_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")
    resolved_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    metadata_json: Mapped[str] = mapped_column(Text, nullable=False, default="{}")

    __table_args__ = (
        Index("idx_alerts_mint_type_time", "mint", "alert_type", "triggered_at"),
        Index("idx_alerts_triggered_at", "triggered_at"),
    )


class AlertHistoryModel(Base):
    """Audit row written for every fired alert; survives alert purges."""

    __tablename__ = "alert_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    mint: Mapped[str] = mapped_column(String(ADDRESS_LEN), nullable=False)
    alert_type: Mapped[str] = mapped_column(String(40), nullable=False)
    rule_name: Mapped[str] = mapped_column(String(80), nullable=False)
    triggered_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    health_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    metadata_json: Mapped[str] = mapped_column(Text, nullable=False, default="{}")

    __table_args__ = (Index("idx_alert_history_type_time", "alert_type", "triggered_at"),)


class AlertStateModel(Base):
    """Durable debounce/cooldown state per (mint, alert type)."""

    __tablename__ = "alert_state"

    mint: Mapped[str] = mapped_column(String(ADDRESS_LEN), primary_key=True)
    alert_type: Mapped[str] = mapped_column(String(40), primary_key=True)
    rule_name: Mapped[str] = mapped_column(String(80), nullable=False)
    last_fired_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    cooldown_until: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)


class TokenLabelModel(Base):
    """Forward-looking outcome labels for a token."""

    __tablename__ = "token_labels"

    mint: Mapped[str] = mapped_column(String(ADDRESS_LEN), primary_key=True)
    first_seen_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    price_30m: Mapped[float | None] = mapped_column(Float, nullable=True)
    max_price_24h: Mapped[float | None] = mapped_column(Float, nullable=True)
    min_price_24h: Mapped[float | None] = mapped_column(Float, nullable=True)
    liquidity_30m: Mapped[float | None] = mapped_column(Float, nullable=True)
    min_liquidity_6h: Mapped[float | None] = mapped_column(Float, nullable=True)
    min_liquidity_24h: Mapped[float | None] = mapped_column(Float, nullable=True)
    rug_risk_30m: Mapped[float | None] = mapped_column(Float, nullable=True)
    winner_2x_24h: Mapped[bool] = mapped_column(Boolean, nullable=False)
    rug_24h: Mapped[bool] = mapped_column(Boolean, nullable=False)
    computed_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=_utcnow)


class ModelRegistryModel(Base):
    """Trained probability model with its audit metadata."""

    __tablename__ = "model_registry"

    model_id: Mapped[str] = mapped_column(String(80), primary_key=True)
    target: Mapped[str] = mapped_column(String(40), nullable=False)
    algorithm: Mapped[str] = mapped_column(String(40), nullable=False)
    feature_columns_json: Mapped[str] = mapped_column(Text, nullable=False)
    train_window_start: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    train_window_end: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    metrics_json: Mapped[str] = mapped_column(Text, nullable=False)
    calibration_json: Mapped[str] = mapped_column(Text, nullable=False)
    artifact_path: Mapped[str] = mapped_column(Text, nullable=False)
    trained_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=_utcnow)

    __table_args__ = (Index("idx_model_registry_target_trained", "target", "trained_at"),)


class TokenPredictionModel(Base):
    """Online probability written for a token by a registered model."""

    __tablename__ = "token_predictions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    mint: Mapped[str] = mapped_column(String(ADDRESS_LEN), nullable=False)
    ts: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    model_id: Mapped[str] = mapped_column(String(80), nullable=False)
    target: Mapped[str] = mapped_column(String(40), nullable=False)
    probability: Mapped[float] = mapped_column(Float, nullable=False)
    features_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    explainability: Mapped[str] = mapped_column(Text, nullable=False)

    __table_args__ = (
        UniqueConstraint("mint", "model_id", "target", "ts", name="uq_token_predictions_key"),
        Index("idx_token_predictions_mint_ts", "mint", "ts"),
    )


class BacktestRunModel(Base):
    """Metadata + summary for backtest/retune runs."""

    __tablename__ = "backtest_runs"

    run_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    started_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    finished_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    window_start: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    window_end: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    sample_size: Mapped[int] = mapped_column(Integer, nullable=False)
    ruleset_id: Mapped[str | None] = mapped_column(String(60), nullable=True)
    params_json: Mapped[str] = mapped_column(Text, nullable=False)
    results_json: Mapped[str] = mapped_column(Text, nullable=False)

    __table_args__ = (Index("idx_backtest_runs_started_at", "started_at"),)


class RetuneResultModel(Base):
    """Per alert type outcome of a retune, keyed by the ruleset it produced."""

    __tablename__ = "retune_results"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    ruleset_id: Mapped[str] = mapped_column(String(60), nullable=False)
    alert_type: Mapped[str] = mapped_column(String(40), nullable=False)
    precision: Mapped[float] = mapped_column(Float, nullable=False)
    lift: Mapped[float] = mapped_column(Float, nullable=False)
    baseline: Mapped[float] = mapped_column(Float, nullable=False)
    true_positives: Mapped[int] = mapped_column(Integer, nullable=False)
    total_alerts: Mapped[int] = mapped_column(Integer, nullable=False)
    volume_control_json: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=_utcnow)

    __table_args__ = (
        UniqueConstraint("ruleset_id", "alert_type", name="uq_retune_results_ruleset_type"),
    )


class ProcessingErrorModel(Base):
    """Per-entity processing errors (strict, non-silent failures)."""

    __tablename__ = "processing_errors"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    stage: Mapped[str] = mapped_column(String(40), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(120), nullable=False)
    error_type: Mapped[str] = mapped_column(String(80), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=_utcnow)

    __table_args__ = (Index("idx_processing_errors_stage_entity", "stage", "entity_id"),)
