"""Model training entrypoints (time-ordered, auditable)."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

import numpy as np
from joblib import dump
from sklearn.preprocessing import StandardScaler

from memecoin_risk_engine.config import ModelSettings
from memecoin_risk_engine.storage.repos import (
    ModelRegistryDTO,
    ModelRegistryRepository,
    TokenLabelRepository,
    TokenRepository,
)
from memecoin_risk_engine.training.calibration import PlattScaler
from memecoin_risk_engine.training.features import FEATURE_COLUMNS, FeatureBuilder, feature_vector
from memecoin_risk_engine.training.labels import TARGETS
from memecoin_risk_engine.training.logistic import GradientDescentLogisticRegression
from memecoin_risk_engine.training.metrics import classification_metrics
from memecoin_risk_engine.training.serving import ProbabilityModel

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

ALGORITHM = "logreg_gd"
MODEL_ID_PREFIXES = {"winner_2x_24h": "win", "rug_24h": "rug"}


class InsufficientTrainingDataError(RuntimeError):
    pass


@dataclass(frozen=True)
class TrainingResult:
    model_id: str
    target: str
    artifact_path: Path
    metrics: dict[str, float]
    calibration: dict[str, Any]
    n_train: int
    n_validation: int


@dataclass(frozen=True)
class Dataset:
    """Feature rows ordered by token first-seen time."""

    mints: list[str]
    first_seen: list[datetime]
    X: np.ndarray
    labels: dict[str, np.ndarray]

    def __len__(self) -> int:
        return len(self.mints)


def split_index(n_rows: int, train_fraction: float) -> int:
    """Rows before the index train, the rest validate; both sides are non-empty."""
    if n_rows < 2:
        raise InsufficientTrainingDataError("Need at least two rows for a train/validation split")
    return min(max(int(n_rows * train_fraction), 1), n_rows - 1)


def model_id_for(target: str, trained_at: datetime) -> str:
    return f"{MODEL_ID_PREFIXES[target]}_v1_{trained_at:%Y%m%dT%H%M%S}"


def fit_probability_model(
    X: np.ndarray,
    y: np.ndarray,
    *,
    model_id: str,
    target: str,
    feature_columns: tuple[str, ...] = FEATURE_COLUMNS,
    learning_rate: float = 0.01,
    iterations: int = 1000,
    train_fraction: float = 0.7,
) -> tuple[ProbabilityModel, dict[str, float], int]:
    """Fit on the leading rows, then calibrate and evaluate on the trailing rows.

    The trailing rows are halved in time order: Platt scaling is fitted on the
    first half and metrics are reported on the second. With a single trailing
    row both use it and `calibration_in_sample` is set to 1.

    Returns the model, validation metrics and the number of training rows.
    """
    cut = split_index(len(y), train_fraction)
    calibration_end = cut + (len(y) - cut) // 2
    in_sample = calibration_end == cut
    if in_sample:
        calibration_end = len(y)
    eval_start = cut if in_sample else calibration_end

    scaler = StandardScaler(with_mean=True, with_std=True)
    X_train_scaled = scaler.fit_transform(X[:cut])
    X_cal_scaled = scaler.transform(X[cut:calibration_end])
    X_eval_scaled = scaler.transform(X[eval_start:])
    y_eval = y[eval_start:]

    clf = GradientDescentLogisticRegression(learning_rate=learning_rate, iterations=iterations)
    clf.fit(X_train_scaled, y[:cut])

    calibrator = PlattScaler().fit(clf.decision_function(X_cal_scaled), y[cut:calibration_end])

    raw = classification_metrics(y_eval, clf.predict_proba(X_eval_scaled)[:, 1])
    metrics = classification_metrics(y_eval, calibrator.transform(clf.decision_function(X_eval_scaled)))
    metrics["auroc_uncalibrated"] = raw["auroc"]
    metrics["brier_uncalibrated"] = raw["brier"]
    metrics["ece_uncalibrated"] = raw["ece"]
    metrics["train_log_loss"] = clf.loss_history_[-1]
    metrics["calibration_rows"] = float(calibration_end - cut)
    metrics["calibration_in_sample"] = 1.0 if in_sample else 0.0

    model = ProbabilityModel(
        model_id=model_id,
        target=target,
        feature_columns=feature_columns,
        scaler=scaler,
        model=clf,
        calibrator=calibrator,
    )
    return model, metrics, cut


class ModelTrainer:
    """Trains one probability model per label target."""

    def __init__(self, session: AsyncSession, *, settings: ModelSettings) -> None:
        self.session = session
        self.settings = settings
        self._labels = TokenLabelRepository(session)
        self._tokens = TokenRepository(session)
        self._registry = ModelRegistryRepository(session)
        self._features = FeatureBuilder(session)

    async def dataset(self) -> Dataset:
        labels = await self._labels.list_ordered()
        tokens = {t.mint: t for t in await self._tokens.list_by_mints(label.mint for label in labels)}

        mints: list[str] = []
        first_seen: list[datetime] = []
        rows: list[list[float]] = []
        targets: dict[str, list[int]] = {target: [] for target in TARGETS}
        for label in labels:
            token = tokens.get(label.mint)
            if token is None:
                logger.warning("Label for unknown token %s skipped", label.mint)
                continue
            features = await self._features.build(token)
            mints.append(label.mint)
            first_seen.append(label.first_seen_at)
            rows.append(feature_vector(features))
            for target in TARGETS:
                targets[target].append(1 if getattr(label, target) else 0)

        X = np.asarray(rows, dtype=np.float64).reshape(len(rows), len(FEATURE_COLUMNS))
        return Dataset(
            mints=mints,
            first_seen=first_seen,
            X=X,
            labels={t: np.asarray(v, dtype=np.int64) for t, v in targets.items()},
        )

    async def train(self, *, now: datetime | None = None) -> list[TrainingResult]:
        trained_at = now or datetime.now(UTC)
        data = await self.dataset()
        if len(data) < self.settings.min_rows:
            raise InsufficientTrainingDataError(
                f"Insufficient labelled tokens for training: {len(data)} < {self.settings.min_rows}"
            )

        artifacts_dir = self.settings.artifacts_dir
        artifacts_dir.mkdir(parents=True, exist_ok=True)

        results: list[TrainingResult] = []
        for target in TARGETS:
            model_id = model_id_for(target, trained_at)
            model, metrics, n_train = fit_probability_model(
                data.X,
                data.labels[target],
                model_id=model_id,
                target=target,
                learning_rate=self.settings.learning_rate,
                iterations=self.settings.iterations,
                train_fraction=self.settings.train_fraction,
            )
            artifact_path = artifacts_dir / f"{model_id}.joblib"
            dump(model, artifact_path)

            calibration = model.calibrator.to_dict()
            await self._registry.insert(
                ModelRegistryDTO(
                    model_id=model_id,
                    target=target,
                    algorithm=ALGORITHM,
                    feature_columns=list(FEATURE_COLUMNS),
                    train_window_start=data.first_seen[0],
                    train_window_end=data.first_seen[n_train - 1],
                    metrics=metrics,
                    calibration=calibration,
                    artifact_path=str(artifact_path),
                    trained_at=trained_at,
                )
            )
            logger.info(
                "Trained %s on %d rows (validation %d): auroc=%.3f brier=%.4f ece=%.4f",
                model_id,
                n_train,
                len(data) - n_train,
                metrics["auroc"],
                metrics["brier"],
                metrics["ece"],
            )
            results.append(
                TrainingResult(
                    model_id=model_id,
                    target=target,
                    artifact_path=artifact_path,
                    metrics=metrics,
                    calibration=calibration,
                    n_train=n_train,
                    n_validation=len(data) - n_train,
                )
            )
        return results
