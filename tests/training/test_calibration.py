"""Tests for Platt scaling."""

from __future__ import annotations

import math

import numpy as np
import pytest

from memecoin_risk_engine.training.calibration import PlattScaler


class TestPlattScaler:
    def test_monotone_in_the_score(self) -> None:
        scores = np.array([-3.0, -2.0, -1.0, -0.5, 0.5, 1.0, 2.0, 3.0])
        labels = np.array([0, 0, 0, 1, 0, 1, 1, 1])

        scaler = PlattScaler().fit(scores, labels)
        probs = scaler.transform(np.array([-2.0, 0.0, 2.0]))

        assert scaler.fitted is True
        assert scaler.a > 0
        assert probs[0] < probs[1] < probs[2]
        assert np.all((probs > 0) & (probs < 1))

    def test_single_class_stays_finite(self) -> None:
        scaler = PlattScaler().fit(np.array([0.1, 0.5, 1.0, 2.0]), np.array([1, 1, 1, 1]))

        assert math.isfinite(scaler.a)
        assert math.isfinite(scaler.b)
        assert scaler.transform(np.array([0.3]))[0] == pytest.approx(5 / 6, abs=1e-6)

    def test_shape_mismatch(self) -> None:
        with pytest.raises(ValueError, match="same shape"):
            PlattScaler().fit(np.array([0.1, 0.2]), np.array([1]))

    def test_empty(self) -> None:
        with pytest.raises(ValueError, match="empty"):
            PlattScaler().fit(np.array([]), np.array([]))

    def test_unfitted(self) -> None:
        with pytest.raises(RuntimeError, match="not fitted"):
            PlattScaler().transform(np.array([0.0]))

    def test_to_dict(self) -> None:
        assert PlattScaler(a=2.0, b=-1.0, fitted=True).to_dict() == {"method": "platt", "a": 2.0, "b": -1.0}
