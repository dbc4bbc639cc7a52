"""Platt scaling for decision values."""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np

from memecoin_risk_engine.training.logistic import log_loss, sigmoid


@dataclass
class PlattScaler:
    """Maps a decision value f to sigmoid(a * f + b).

    Targets are smoothed to (N+ + 1) / (N+ + 2) and 1 / (N- + 2) so the fit
    stays finite on separable or single-class validation sets.
    """

    a: float = 1.0
    b: float = 0.0
    fitted: bool = False

    def fit(self, scores: np.ndarray, labels: np.ndarray, *, max_iter: int = 100, tol: float = 1e-10) -> PlattScaler:
        f = np.asarray(scores, dtype=np.float64)
        y = np.asarray(labels, dtype=np.float64)
        if f.shape != y.shape:
            raise ValueError("scores and labels must have the same shape")
        if f.size == 0:
            raise ValueError("cannot calibrate on an empty set")

        n_pos = float(y.sum())
        n_neg = float(y.size - n_pos)
        targets = np.where(y > 0.5, (n_pos + 1.0) / (n_pos + 2.0), 1.0 / (n_neg + 2.0))

        a = 0.0
        b = math.log((n_pos + 1.0) / (n_neg + 1.0))
        loss = log_loss(targets, sigmoid(a * f + b))

        for _ in range(max_iter):
            p = sigmoid(a * f + b)
            d = p - targets
            w = np.maximum(p * (1.0 - p), 1e-12)
            g_a = float((d * f).sum())
            g_b = float(d.sum())
            h_aa = float((w * f * f).sum()) + 1e-12
            h_ab = float((w * f).sum())
            h_bb = float(w.sum()) + 1e-12
            det = h_aa * h_bb - h_ab * h_ab
            if det <= 0:
                break
            step_a = (h_bb * g_a - h_ab * g_b) / det
            step_b = (h_aa * g_b - h_ab * g_a) / det

            # Backtrack until the Newton step reduces the loss.
            scale = 1.0
            improved = False
            while scale > 1e-10:
                cand_a = a - scale * step_a
                cand_b = b - scale * step_b
                cand_loss = log_loss(targets, sigmoid(cand_a * f + cand_b))
                if cand_loss <= loss:
                    improved = True
                    break
                scale /= 2.0
            if not improved:
                break

            a, b = cand_a, cand_b
            delta = loss - cand_loss
            loss = cand_loss
            if delta < tol or (abs(scale * step_a) < tol and abs(scale * step_b) < tol):
                break

        self.a = a
        self.b = b
        self.fitted = True
        return self

    def transform(self, scores: np.ndarray) -> np.ndarray:
        if not self.fitted:
            raise RuntimeError("calibrator is not fitted")
        return sigmoid(self.a * np.asarray(scores, dtype=np.float64) + self.b)

    def to_dict(self) -> dict[str, float | str]:
        return {"method": "platt", "a": self.a, "b": self.b}
