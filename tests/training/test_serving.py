"""Tests for model artifacts and online probability scoring."""

from __future__ import annotations

from datetime import datetime, timedelta
from pathlib import Path

import numpy as np
import pytest
from joblib import dump

from memecoin_risk_engine.config import ModelSettings
from memecoin_risk_engine.storage.repos import (
    ModelRegistryDTO,
    ModelRegistryRepository,
    TokenPredictionRepository,
    TokenRepository,
)
from memecoin_risk_engine.training.features import feature_vector
from memecoin_risk_engine.training.runner import fit_probability_model
from memecoin_risk_engine.training.serving import (
    ModelServingError,
    OnlineScorer,
    ProbabilityModel,
    load_model_from_artifact,
)

COLUMNS = ("health_30m", "is_missing_health_30m")
MODEL_ID = "win_v1_20250304T120000"


@pytest.fixture
def model() -> ProbabilityModel:
    healths = [10.0, 90.0, 20.0, 80.0, 30.0, 70.0, 40.0, 60.0, 15.0, 85.0]
    X = np.array([feature_vector({"health_30m": h}, COLUMNS) for h in healths])
    y = np.array([1 if h > 50 else 0 for h in healths])
    fitted, _, _ = fit_probability_model(
        X, y, model_id=MODEL_ID, target="winner_2x_24h", feature_columns=COLUMNS, learning_rate=0.5
    )
    return fitted


@pytest.fixture
def artifact(model: ProbabilityModel, tmp_path: Path) -> Path:
    path = tmp_path / f"{MODEL_ID}.joblib"
    dump(model, path)
    return path


class TestProbabilityModel:
    def test_probability_follows_health(self, model: ProbabilityModel) -> None:
        low = model.predict_proba({"health_30m": 10.0})
        high = model.predict_proba({"health_30m": 90.0})
        assert 0.0 < low < high < 1.0

    def test_explain(self, model: ProbabilityModel) -> None:
        contributions = model.contributions({"health_30m": 90.0})
        assert contributions[0][0] == "health_30m"
        assert contributions[0][1] > 0
        assert model.explain({"health_30m": 90.0}, top_n=1).startswith("health_30m +")


class TestLoadModelFromArtifact:
    def test_round_trip(self, model: ProbabilityModel, artifact: Path) -> None:
        loaded = load_model_from_artifact(artifact_path=artifact, model_id=MODEL_ID)

        assert loaded.artifact_path == artifact
        assert loaded.model.predict_proba({"health_30m": 70.0}) == pytest.approx(
            model.predict_proba({"health_30m": 70.0})
        )

    def test_id_mismatch(self, artifact: Path) -> None:
        with pytest.raises(ModelServingError, match="registry expects"):
            load_model_from_artifact(artifact_path=artifact, model_id="win_v1_other")

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ModelServingError, match="Failed to load"):
            load_model_from_artifact(artifact_path=tmp_path / "absent.joblib", model_id=MODEL_ID)

    def test_wrong_payload(self, tmp_path: Path) -> None:
        path = tmp_path / "dict.joblib"
        dump({"model_id": MODEL_ID}, path)
        with pytest.raises(ModelServingError, match="does not hold"):
            load_model_from_artifact(artifact_path=path, model_id=MODEL_ID)


class TestOnlineScorer:
    async def register(self, async_session, artifact: Path, now: datetime) -> None:
        await ModelRegistryRepository(async_session).insert(
            ModelRegistryDTO(
                model_id=MODEL_ID,
                target="winner_2x_24h",
                algorithm="logreg_gd",
                feature_columns=list(COLUMNS),
                train_window_start=now - timedelta(days=10),
                train_window_end=now - timedelta(days=3),
                metrics={"auroc": 1.0},
                calibration={"method": "platt"},
                artifact_path=str(artifact),
                trained_at=now,
            )
        )

    def test_age_window_validation(self, async_session) -> None:
        with pytest.raises(ValueError, match="min_age_minutes"):
            OnlineScorer(async_session, min_age_minutes=90, max_age_minutes=90)

    def test_from_settings(self, async_session) -> None:
        scorer = OnlineScorer.from_settings(async_session, ModelSettings(MODEL_SERVE_MIN_AGE_MINUTES=5))
        assert scorer.min_age == timedelta(minutes=5)

    @pytest.mark.asyncio
    async def test_no_registered_models(self, async_session) -> None:
        with pytest.raises(ModelServingError, match="No registered model"):
            await OnlineScorer(async_session).load_models()

    @pytest.mark.asyncio
    async def test_candidates(self, async_session, make_token, now: datetime) -> None:
        await make_token("young", first_seen_at=now - timedelta(minutes=30))
        await make_token("newborn", first_seen_at=now - timedelta(minutes=10))
        await make_token("old", first_seen_at=now - timedelta(hours=2))

        candidates = await OnlineScorer(async_session).candidates(now=now)

        assert [t.mint for t in candidates] == ["young"]

    @pytest.mark.asyncio
    async def test_score_persists_predictions(
        self, async_session, make_token, artifact: Path, now: datetime
    ) -> None:
        await self.register(async_session, artifact, now)
        token = await make_token("young", first_seen_at=now - timedelta(minutes=30))
        scorer = OnlineScorer(async_session, explain_top_n=1)

        models = await scorer.load_models()
        predictions = await scorer.score(token, models, now=now)

        assert list(models) == ["winner_2x_24h"]
        assert len(predictions) == 1
        prediction = predictions[0]
        assert prediction.model_id == MODEL_ID
        assert 0.0 < prediction.probability < 1.0
        assert len(prediction.features_hash) == 64

        stored = await TokenPredictionRepository(async_session).list_for_mint("young")
        assert [p.probability for p in stored] == [pytest.approx(prediction.probability)]

        refreshed = await TokenRepository(async_session).get("young")
        assert refreshed is not None
        assert refreshed.prob_2x_24h == pytest.approx(prediction.probability)
        assert refreshed.model_id_win == MODEL_ID
        assert refreshed.prob_rug_24h is None
