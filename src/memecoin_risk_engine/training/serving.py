"""Model serving utilities for online probability scoring."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import TYPE_CHECKING

import numpy as np
from joblib import load
from sklearn.preprocessing import StandardScaler

from memecoin_risk_engine.config import ModelSettings
from memecoin_risk_engine.storage.repos import (
    ModelRegistryRepository,
    TokenDTO,
    TokenPredictionDTO,
    TokenPredictionRepository,
    TokenRepository,
)
from memecoin_risk_engine.training.calibration import PlattScaler
from memecoin_risk_engine.training.features import FEATURE_OFFSET, FeatureBuilder, feature_vector, features_hash
from memecoin_risk_engine.training.labels import TARGETS
from memecoin_risk_engine.training.logistic import GradientDescentLogisticRegression

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


class ModelServingError(RuntimeError):
    pass


@dataclass
class ProbabilityModel:
    """Scaler, regression and calibrator bundled as one artifact."""

    model_id: str
    target: str
    feature_columns: tuple[str, ...]
    scaler: StandardScaler
    model: GradientDescentLogisticRegression
    calibrator: PlattScaler

    def _scaled(self, rows: Sequence[Sequence[float]]) -> np.ndarray:
        return self.scaler.transform(np.asarray(rows, dtype=np.float64))

    def predict_rows(self, rows: Sequence[Sequence[float]]) -> np.ndarray:
        decision = self.model.decision_function(self._scaled(rows))
        return self.calibrator.transform(decision)

    def predict_proba(self, features: Mapping[str, float | None]) -> float:
        return float(self.predict_rows([feature_vector(features, self.feature_columns)])[0])

    def contributions(self, features: Mapping[str, float | None]) -> list[tuple[str, float]]:
        """Per-column weight times standardized value, largest magnitude first."""
        if self.model.coef_ is None:
            raise ModelServingError(f"Model {self.model_id} is not fitted")
        scaled = self._scaled([feature_vector(features, self.feature_columns)])[0]
        pairs = [(name, float(w * x)) for name, w, x in zip(self.feature_columns, self.model.coef_, scaled)]
        return sorted(pairs, key=lambda p: (-abs(p[1]), p[0]))

    def explain(self, features: Mapping[str, float | None], *, top_n: int = 3) -> str:
        return ", ".join(f"{name} {value:+.2f}" for name, value in self.contributions(features)[:top_n])


@dataclass(frozen=True)
class LoadedModel:
    artifact_path: Path
    model: ProbabilityModel


def load_model_from_artifact(*, artifact_path: Path, model_id: str) -> LoadedModel:
    try:
        model = load(artifact_path)
    except Exception as e:
        raise ModelServingError(f"Failed to load model artifact: {e}") from e

    if not isinstance(model, ProbabilityModel):
        raise ModelServingError(f"Artifact {artifact_path} does not hold a probability model")
    if model.model_id != model_id:
        raise ModelServingError(f"Artifact {artifact_path} holds {model.model_id}, registry expects {model_id}")
    return LoadedModel(artifact_path=artifact_path, model=model)


class OnlineScorer:
    """Applies the latest registered model per target to young tokens."""

    def __init__(
        self,
        session: AsyncSession,
        *,
        min_age_minutes: int = 20,
        max_age_minutes: int = 90,
        explain_top_n: int = 3,
    ) -> None:
        if min_age_minutes >= max_age_minutes:
            raise ValueError("min_age_minutes must be below max_age_minutes")
        self.session = session
        self.min_age = timedelta(minutes=min_age_minutes)
        self.max_age = timedelta(minutes=max_age_minutes)
        self.explain_top_n = explain_top_n
        self._tokens = TokenRepository(session)
        self._registry = ModelRegistryRepository(session)
        self._predictions = TokenPredictionRepository(session)
        self._features = FeatureBuilder(session)

    @classmethod
    def from_settings(cls, session: AsyncSession, settings: ModelSettings) -> OnlineScorer:
        return cls(
            session,
            min_age_minutes=settings.serve_min_age_minutes,
            max_age_minutes=settings.serve_max_age_minutes,
            explain_top_n=settings.explain_top_n,
        )

    async def load_models(self) -> dict[str, ProbabilityModel]:
        """Load the newest model per target.

        Raises:
            ModelServingError: If no target has a registered, loadable model.
        """
        models: dict[str, ProbabilityModel] = {}
        for target in TARGETS:
            entry = await self._registry.get_latest(target)
            if entry is None:
                logger.warning("No registered model for target %s", target)
                continue
            loaded = load_model_from_artifact(artifact_path=Path(entry.artifact_path), model_id=entry.model_id)
            models[target] = loaded.model
        if not models:
            raise ModelServingError("No registered model available for any target")
        return models

    async def candidates(self, *, now: datetime) -> list[TokenDTO]:
        return await self._tokens.list_first_seen_between(start=now - self.max_age, end=now - self.min_age)

    async def score(
        self, token: TokenDTO, models: Mapping[str, ProbabilityModel], *, now: datetime
    ) -> list[TokenPredictionDTO]:
        as_of = min(now, token.first_seen_at + FEATURE_OFFSET)
        features = await self._features.build(token, as_of=as_of)
        digest = features_hash(features)

        predictions: list[TokenPredictionDTO] = []
        for target, model in models.items():
            dto = TokenPredictionDTO(
                mint=token.mint,
                ts=now,
                model_id=model.model_id,
                target=target,
                probability=model.predict_proba(features),
                features_hash=digest,
                explainability=model.explain(features, top_n=self.explain_top_n),
            )
            await self._predictions.upsert(dto)
            await self._tokens.update_probability(
                token.mint, target=target, probability=dto.probability, model_id=dto.model_id
            )
            predictions.append(dto)
        return predictions
