"""Configuration management service with Pydantic Settings.

This module provides centralized configuration management for the
memecoin risk engine, loading and validating environment variables
at startup.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENV_FILE = ".env"
_ENV_FILE_ENCODING = "utf-8"


class DatabaseSettings(BaseSettings):
    """Database connection settings."""

    model_config = SettingsConfigDict(env_prefix="", extra="ignore")

    url: str = Field(
        default="sqlite+aiosqlite:///memecoin_risk_engine.db",
        alias="DATABASE_URL",
        description="SQLite (aiosqlite) or PostgreSQL connection string",
    )
    pool_size: int = Field(
        default=5,
        alias="DATABASE_POOL_SIZE",
        ge=1,
        le=100,
        description="Connection pool size (PostgreSQL only)",
    )
    max_overflow: int = Field(
        default=10,
        alias="DATABASE_MAX_OVERFLOW",
        ge=0,
        le=100,
        description="Connection pool overflow (PostgreSQL only)",
    )
    echo: bool = Field(
        default=False,
        alias="DATABASE_ECHO",
        description="Log emitted SQL statements",
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate database URL format."""
        if not v.startswith(("sqlite://", "sqlite+aiosqlite://", "postgresql://", "postgresql+asyncpg://")):
            raise ValueError("DATABASE_URL must be a SQLite or PostgreSQL connection string")
        return v


class RedisSettings(BaseSettings):
    """Redis connection settings (optional cooldown cache)."""

    model_config = SettingsConfigDict(env_prefix="", extra="ignore")

    url: str | None = Field(
        default=None,
        alias="REDIS_URL",
        description="Redis connection string; cooldowns use only the datastore when unset",
    )
    key_prefix: str = Field(
        default="memecoin:cooldown",
        alias="REDIS_KEY_PREFIX",
        description="Prefix for cooldown cache keys",
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str | None) -> str | None:
        """Validate Redis URL format."""
        if v is None:
            return v
        if not v.startswith(("redis://", "rediss://")):
            raise ValueError("REDIS_URL must start with redis:// or rediss://")
        return v


class ClassifierSettings(BaseSettings):
    """Funding-graph wallet classifier settings."""

    model_config = SettingsConfigDict(env_prefix="CLASSIFIER_", extra="ignore")

    max_hops: int = Field(
        default=2,
        alias="CLASSIFIER_MAX_HOPS",
        ge=1,
        le=6,
        description="Maximum funding-graph hops searched for shared upstream funders",
    )
    fresh_age_days: float = Field(
        default=2.0,
        alias="CLASSIFIER_FRESH_AGE_DAYS",
        ge=0.0,
        le=365.0,
        description="Wallets at most this old satisfy the insider age heuristic",
    )
    insider_top_rank: int = Field(
        default=10,
        alias="CLASSIFIER_INSIDER_TOP_RANK",
        ge=1,
        le=100,
        description="Holders ranked within this balance rank satisfy the insider rank heuristic",
    )
    insider_scan_holders: int = Field(
        default=20,
        alias="CLASSIFIER_INSIDER_SCAN_HOLDERS",
        ge=1,
        le=1000,
        description="Number of top holders examined for insider links",
    )
    insider_min_flags: int = Field(
        default=2,
        alias="CLASSIFIER_INSIDER_MIN_FLAGS",
        ge=1,
        le=3,
        description="Number of insider heuristics that must hold",
    )
    sniper_slot_window: int = Field(
        default=2,
        alias="CLASSIFIER_SNIPER_SLOT_WINDOW",
        ge=0,
        le=100,
        description="Buys within this many slots of pool creation are snipes",
    )
    bundler_window_minutes: int = Field(
        default=15,
        alias="CLASSIFIER_BUNDLER_WINDOW_MINUTES",
        ge=1,
        le=24 * 60,
        description="Window after launch in which bundler funding and buys are considered",
    )
    bundler_min_wallets: int = Field(
        default=5,
        alias="CLASSIFIER_BUNDLER_MIN_WALLETS",
        ge=2,
        le=1000,
        description="Minimum distinct funded buyers for a funder to be a bundler",
    )


class ScoringSettings(BaseSettings):
    """Health and rug-risk scoring settings."""

    model_config = SettingsConfigDict(env_prefix="SCORING_", extra="ignore")

    strategy: Literal["v1", "v2"] = Field(
        default="v2",
        alias="SCORING_STRATEGY",
        description="Scoring strategy version (v1 basic, v2 enhanced)",
    )
    hysteresis_threshold: float = Field(
        default=80.0,
        alias="SCORING_HYSTERESIS_THRESHOLD",
        ge=0.0,
        le=100.0,
        description="Rug-risk level that is held once reached",
    )
    hysteresis_minutes: int = Field(
        default=10,
        alias="SCORING_HYSTERESIS_MINUTES",
        ge=0,
        le=24 * 60,
        description="How long a high rug-risk level is held",
    )
    momentum_lookback_minutes: int = Field(
        default=15,
        alias="SCORING_MOMENTUM_LOOKBACK_MINUTES",
        ge=1,
        le=24 * 60,
        description="Lookback for the early-life health momentum bonus",
    )
    snapshot_early_minutes: int = Field(
        default=5,
        alias="SCORING_SNAPSHOT_EARLY_MINUTES",
        ge=1,
        le=60,
        description="Snapshot cadence for tokens up to 2h old",
    )
    snapshot_mid_minutes: int = Field(
        default=15,
        alias="SCORING_SNAPSHOT_MID_MINUTES",
        ge=1,
        le=240,
        description="Snapshot cadence for tokens up to 24h old",
    )
    snapshot_late_minutes: int = Field(
        default=60,
        alias="SCORING_SNAPSHOT_LATE_MINUTES",
        ge=1,
        le=24 * 60,
        description="Snapshot cadence for tokens older than 24h",
    )


class ReputationSettings(BaseSettings):
    """Wallet reputation and bad-actor rollup settings."""

    model_config = SettingsConfigDict(env_prefix="REPUTATION_", extra="ignore")

    window_days: int = Field(
        default=30,
        alias="REPUTATION_WINDOW_DAYS",
        ge=1,
        le=365,
        description="Rolling window of events considered",
    )
    half_life_days: float = Field(
        default=14.0,
        alias="REPUTATION_HALF_LIFE_DAYS",
        gt=0.0,
        le=365.0,
        description="Exponential decay half-life for sniper events",
    )
    bad_actor_threshold: float = Field(
        default=60.0,
        alias="REPUTATION_BAD_ACTOR_THRESHOLD",
        ge=0.0,
        le=100.0,
        description="Reputation score at which a holder counts as a bad actor",
    )
    market_maker_factor: float = Field(
        default=0.25,
        alias="REPUTATION_MARKET_MAKER_FACTOR",
        ge=0.0,
        le=1.0,
        description="Dampening multiplier for wallets tagged market_maker",
    )


class AlertSettings(BaseSettings):
    """Alert engine settings."""

    model_config = SettingsConfigDict(env_prefix="ALERT_", extra="ignore")

    cooldown_minutes: int = Field(
        default=20,
        alias="ALERT_COOLDOWN_MINUTES",
        ge=0,
        le=24 * 60,
        description="Cooldown after an alert fires for the same mint and type",
    )
    retention_days: int = Field(
        default=7,
        alias="ALERT_RETENTION_DAYS",
        ge=1,
        le=365,
        description="Alerts older than this are purged",
    )
    price_disagreement: float = Field(
        default=0.15,
        alias="ALERT_PRICE_DISAGREEMENT",
        gt=0.0,
        le=10.0,
        description="Relative price gap between feeds that blocks an alert",
    )
    price_freshness_minutes: int = Field(
        default=10,
        alias="ALERT_PRICE_FRESHNESS_MINUTES",
        ge=1,
        le=24 * 60,
        description="Only price samples this recent are compared across sources",
    )
    max_tokens: int = Field(
        default=500,
        alias="ALERT_MAX_TOKENS",
        ge=1,
        le=100_000,
        description="Most recently seen tokens evaluated per pass",
    )


class BacktestSettings(BaseSettings):
    """Backtest and threshold retune settings."""

    model_config = SettingsConfigDict(env_prefix="BACKTEST_", extra="ignore")

    sample_size: int = Field(
        default=1000,
        alias="BACKTEST_SAMPLE_SIZE",
        ge=10,
        le=1_000_000,
        description="Target size of the stratified evaluation sample",
    )
    lookback_days: int = Field(
        default=7,
        alias="BACKTEST_LOOKBACK_DAYS",
        ge=1,
        le=365,
        description="Trailing window for alert precision and volume",
    )
    target_daily_alerts: float = Field(
        default=30.0,
        alias="BACKTEST_TARGET_DAILY_ALERTS",
        gt=0.0,
        le=100_000.0,
        description="Alert volume per type and day above which thresholds tighten",
    )
    seed: int = Field(
        default=7,
        alias="BACKTEST_SEED",
        ge=0,
        description="Seed for stratified sampling",
    )


class ModelSettings(BaseSettings):
    """Probability model training/serving settings."""

    model_config = SettingsConfigDict(env_prefix="MODEL_", extra="ignore")

    artifacts_dir: Path = Field(
        default=Path("artifacts/models"),
        alias="MODEL_ARTIFACTS_DIR",
        description="Directory for model artifacts",
    )
    learning_rate: float = Field(
        default=0.01,
        alias="MODEL_LEARNING_RATE",
        gt=0.0,
        le=10.0,
        description="Gradient descent step size",
    )
    iterations: int = Field(
        default=1000,
        alias="MODEL_ITERATIONS",
        ge=1,
        le=1_000_000,
        description="Batch gradient descent iterations",
    )
    train_fraction: float = Field(
        default=0.7,
        alias="MODEL_TRAIN_FRACTION",
        gt=0.0,
        lt=1.0,
        description="Leading fraction of the time-ordered dataset used for training",
    )
    min_rows: int = Field(
        default=50,
        alias="MODEL_MIN_ROWS",
        ge=4,
        le=10_000_000,
        description="Minimum labelled tokens required to train",
    )
    serve_min_age_minutes: int = Field(
        default=20,
        alias="MODEL_SERVE_MIN_AGE_MINUTES",
        ge=0,
        le=24 * 60,
        description="Youngest token age scored online",
    )
    serve_max_age_minutes: int = Field(
        default=90,
        alias="MODEL_SERVE_MAX_AGE_MINUTES",
        ge=1,
        le=7 * 24 * 60,
        description="Oldest token age scored online",
    )
    explain_top_n: int = Field(
        default=3,
        alias="MODEL_EXPLAIN_TOP_N",
        ge=1,
        le=50,
        description="Number of feature contributions in the explainability string",
    )


class Settings(BaseSettings):
    """Main application settings.

    Loads configuration from environment variables with support for
    .env files via python-dotenv.

    Example:
        ```python
        from memecoin_risk_engine.config import get_settings

        settings = get_settings()
        print(settings.database.url)
        print(settings.scoring.strategy)
        ```
    """

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE,
        env_file_encoding=_ENV_FILE_ENCODING,
        extra="ignore",
    )

    # NOTE: Each nested BaseSettings must be given the same env_file, otherwise it
    # will only read from the process environment (and ignore `.env`).
    database: DatabaseSettings = Field(
        default_factory=lambda: DatabaseSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    redis: RedisSettings = Field(
        default_factory=lambda: RedisSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    classifier: ClassifierSettings = Field(
        default_factory=lambda: ClassifierSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    scoring: ScoringSettings = Field(
        default_factory=lambda: ScoringSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    reputation: ReputationSettings = Field(
        default_factory=lambda: ReputationSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    alerts: AlertSettings = Field(
        default_factory=lambda: AlertSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    backtest: BacktestSettings = Field(
        default_factory=lambda: BacktestSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    model: ModelSettings = Field(
        default_factory=lambda: ModelSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level",
    )

    def get_logging_level(self) -> int:
        """Get the numeric logging level."""
        level: int = getattr(logging, self.log_level)
        return level

    def redacted_summary(self) -> dict[str, str | dict[str, str]]:
        """Get a summary of settings with secrets redacted.

        Returns:
            Dictionary of settings with sensitive values masked.
        """
        return {
            "database_url": self._redact_url(self.database.url),
            "redis_url": self._redact_url(self.redis.url) if self.redis.url else "(not set)",
            "classifier": {
                "max_hops": str(self.classifier.max_hops),
                "bundler_window_minutes": str(self.classifier.bundler_window_minutes),
                "bundler_min_wallets": str(self.classifier.bundler_min_wallets),
            },
            "scoring": {
                "strategy": self.scoring.strategy,
                "hysteresis_threshold": str(self.scoring.hysteresis_threshold),
            },
            "reputation": {
                "window_days": str(self.reputation.window_days),
                "half_life_days": str(self.reputation.half_life_days),
            },
            "alerts": {
                "cooldown_minutes": str(self.alerts.cooldown_minutes),
                "retention_days": str(self.alerts.retention_days),
            },
            "model": {
                "artifacts_dir": str(self.model.artifacts_dir),
            },
            "log_level": self.log_level,
        }

    def validate_requirements(self, *, command: str) -> None:
        """Validate command-specific requirements.

        Raises:
            ValueError: If a setting required by the command is inconsistent.
        """
        if command == "predict":
            if self.model.serve_min_age_minutes >= self.model.serve_max_age_minutes:
                raise ValueError("MODEL_SERVE_MIN_AGE_MINUTES must be below MODEL_SERVE_MAX_AGE_MINUTES")
        if command in ("train", "predict") and not str(self.model.artifacts_dir):
            raise ValueError("MODEL_ARTIFACTS_DIR is required for model training/serving")

    @staticmethod
    def _redact_url(url: str) -> str:
        """Redact password from URL if present."""
        if "@" in url and "://" in url:
            protocol_end = url.index("://") + 3
            at_pos = url.index("@")
            creds_part = url[protocol_end:at_pos]
            if ":" in creds_part:
                username = creds_part.split(":")[0]
                return f"{url[:protocol_end]}{username}:***@{url[at_pos + 1 :]}"
        return url


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the application settings singleton.

    Returns:
        The Settings instance.

    Raises:
        ValidationError: If environment variables have invalid values.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Useful for testing when you need to reload settings with
    different environment variables.
    """
    get_settings.cache_clear()
