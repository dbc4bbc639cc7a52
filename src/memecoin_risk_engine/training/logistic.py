"""Logistic regression fitted with plain batch gradient descent."""

from __future__ import annotations

import numpy as np

# Logits are clipped before exponentiation to keep exp() finite.
LOGIT_CLIP = 500.0


def sigmoid(z: np.ndarray | float) -> np.ndarray:
    z_arr = np.clip(np.asarray(z, dtype=np.float64), -LOGIT_CLIP, LOGIT_CLIP)
    return 1.0 / (1.0 + np.exp(-z_arr))


class GradientDescentLogisticRegression:
    """Binary logistic regression with an sklearn-shaped surface.

    Weights start at zero and every iteration takes one full-batch step on
    the mean log-loss gradient, so two fits on the same data are identical.
    """

    def __init__(self, *, learning_rate: float = 0.01, iterations: int = 1000) -> None:
        if learning_rate <= 0:
            raise ValueError("learning_rate must be positive")
        if iterations < 1:
            raise ValueError("iterations must be >= 1")
        self.learning_rate = learning_rate
        self.iterations = iterations
        self.coef_: np.ndarray | None = None
        self.intercept_: float = 0.0
        self.loss_history_: list[float] = []

    def fit(self, X: np.ndarray, y: np.ndarray) -> GradientDescentLogisticRegression:
        X_arr = np.asarray(X, dtype=np.float64)
        y_arr = np.asarray(y, dtype=np.float64)
        if X_arr.ndim != 2:
            raise ValueError("X must be two-dimensional")
        if X_arr.shape[0] != y_arr.shape[0]:
            raise ValueError("X and y have different row counts")
        if X_arr.shape[0] == 0:
            raise ValueError("cannot fit on an empty dataset")

        n_rows, n_features = X_arr.shape
        weights = np.zeros(n_features, dtype=np.float64)
        bias = 0.0
        self.loss_history_ = []

        for _ in range(self.iterations):
            p = sigmoid(X_arr @ weights + bias)
            error = p - y_arr
            weights -= self.learning_rate * (X_arr.T @ error) / n_rows
            bias -= self.learning_rate * float(error.mean())
            self.loss_history_.append(log_loss(y_arr, p))

        self.coef_ = weights
        self.intercept_ = bias
        return self

    def _check_fitted(self) -> np.ndarray:
        if self.coef_ is None:
            raise RuntimeError("model is not fitted")
        return self.coef_

    def decision_function(self, X: np.ndarray) -> np.ndarray:
        coef = self._check_fitted()
        return np.asarray(X, dtype=np.float64) @ coef + self.intercept_

    def predict_proba(self, X: np.ndarray) -> np.ndarray:
        """Return an (n, 2) array of [P(y=0), P(y=1)] like sklearn."""
        p = sigmoid(self.decision_function(X))
        return np.column_stack([1.0 - p, p])

    def predict(self, X: np.ndarray, *, threshold: float = 0.5) -> np.ndarray:
        return (self.predict_proba(X)[:, 1] >= threshold).astype(np.int64)


def log_loss(y: np.ndarray, p: np.ndarray, *, eps: float = 1e-15) -> float:
    p_clipped = np.clip(p, eps, 1.0 - eps)
    return float(-np.mean(y * np.log(p_clipped) + (1.0 - y) * np.log(1.0 - p_clipped)))
