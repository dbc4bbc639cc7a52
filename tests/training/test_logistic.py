"""Tests for the gradient-descent logistic regression."""

from __future__ import annotations

import math

import numpy as np
import pytest

from memecoin_risk_engine.training.logistic import GradientDescentLogisticRegression, log_loss, sigmoid

X = np.array([[-2.0], [-1.0], [1.0], [2.0]])
Y = np.array([0, 0, 1, 1])


class TestSigmoid:
    def test_midpoint(self) -> None:
        assert float(sigmoid(0.0)) == 0.5

    def test_extremes_stay_finite(self) -> None:
        values = sigmoid(np.array([-1e6, 1e6]))
        assert np.all(np.isfinite(values))
        assert values[0] == pytest.approx(0.0)
        assert values[1] == pytest.approx(1.0)


class TestLogLoss:
    def test_uninformative(self) -> None:
        assert log_loss(np.array([1.0, 0.0]), np.array([0.5, 0.5])) == pytest.approx(math.log(2))

    def test_perfect_predictions_are_clipped(self) -> None:
        loss = log_loss(np.array([1.0, 0.0]), np.array([1.0, 0.0]))
        assert math.isfinite(loss)
        assert loss == pytest.approx(0.0, abs=1e-12)


class TestGradientDescentLogisticRegression:
    def test_learns_separable_data(self) -> None:
        model = GradientDescentLogisticRegression(learning_rate=0.5, iterations=500).fit(X, Y)

        assert model.predict(X).tolist() == [0, 0, 1, 1]
        assert model.coef_ is not None
        assert model.coef_[0] > 0

    def test_loss_decreases(self) -> None:
        model = GradientDescentLogisticRegression(learning_rate=0.5, iterations=200).fit(X, Y)

        assert len(model.loss_history_) == 200
        assert model.loss_history_[0] == pytest.approx(math.log(2))
        assert all(b <= a + 1e-12 for a, b in zip(model.loss_history_, model.loss_history_[1:], strict=False))

    def test_deterministic(self) -> None:
        first = GradientDescentLogisticRegression(learning_rate=0.1, iterations=50).fit(X, Y)
        second = GradientDescentLogisticRegression(learning_rate=0.1, iterations=50).fit(X, Y)

        assert np.array_equal(first.coef_, second.coef_)
        assert first.intercept_ == second.intercept_

    def test_predict_proba_shape(self) -> None:
        model = GradientDescentLogisticRegression(iterations=10).fit(X, Y)
        proba = model.predict_proba(X)

        assert proba.shape == (4, 2)
        assert np.allclose(proba.sum(axis=1), 1.0)

    def test_threshold(self) -> None:
        model = GradientDescentLogisticRegression(iterations=10).fit(X, Y)
        assert model.predict(X, threshold=0.0).tolist() == [1, 1, 1, 1]

    def test_invalid_hyperparameters(self) -> None:
        with pytest.raises(ValueError, match="learning_rate"):
            GradientDescentLogisticRegression(learning_rate=0.0)
        with pytest.raises(ValueError, match="iterations"):
            GradientDescentLogisticRegression(iterations=0)

    def test_invalid_data(self) -> None:
        model = GradientDescentLogisticRegression()
        with pytest.raises(ValueError, match="two-dimensional"):
            model.fit(np.array([1.0, 2.0]), np.array([0, 1]))
        with pytest.raises(ValueError, match="different row counts"):
            model.fit(X, np.array([0, 1]))
        with pytest.raises(ValueError, match="empty"):
            model.fit(np.empty((0, 1)), np.empty(0))

    def test_unfitted(self) -> None:
        with pytest.raises(RuntimeError, match="not fitted"):
            GradientDescentLogisticRegression().predict_proba(X)
