"""Evaluation metrics for probability models."""

from __future__ import annotations

import numpy as np
from sklearn.metrics import (
    average_precision_score,
    brier_score_loss,
    confusion_matrix,
    f1_score,
    precision_score,
    recall_score,
    roc_auc_score,
)


def expected_calibration_error(y_true: np.ndarray, y_prob: np.ndarray, *, n_bins: int = 10) -> float:
    """Weighted mean |accuracy - confidence| over equal-width probability bins."""
    y = np.asarray(y_true, dtype=np.float64)
    p = np.asarray(y_prob, dtype=np.float64)
    if y.size == 0:
        return 0.0

    # Bin i covers [i/n, (i+1)/n); p == 1.0 lands in the last bin.
    bins = np.minimum((p * n_bins).astype(np.int64), n_bins - 1)
    ece = 0.0
    for i in range(n_bins):
        mask = bins == i
        count = int(mask.sum())
        if count == 0:
            continue
        ece += (count / y.size) * abs(float(y[mask].mean()) - float(p[mask].mean()))
    return ece


def classification_metrics(y_true: np.ndarray, y_prob: np.ndarray, *, threshold: float = 0.5) -> dict[str, float]:
    """Ranking, calibration and thresholded metrics.

    AUROC is reported as 0.5 and AUPRC as the positive rate when only one
    class is present, since neither is defined there.
    """
    y = np.asarray(y_true, dtype=np.int64)
    p = np.asarray(y_prob, dtype=np.float64)
    if y.size == 0:
        raise ValueError("cannot evaluate an empty set")

    y_pred = (p >= threshold).astype(np.int64)
    tn, fp, fn, tp = confusion_matrix(y, y_pred, labels=[0, 1]).ravel()

    both_classes = len(np.unique(y)) == 2
    auroc = float(roc_auc_score(y, p)) if both_classes else 0.5
    auprc = float(average_precision_score(y, p)) if both_classes else float(y.mean())

    return {
        "n": float(y.size),
        "positive_rate": float(y.mean()),
        "auroc": auroc,
        "auprc": auprc,
        "brier": float(brier_score_loss(y, p)),
        "ece": expected_calibration_error(y, p),
        "precision": float(precision_score(y, y_pred, zero_division=0)),
        "recall": float(recall_score(y, y_pred, zero_division=0)),
        "f1": float(f1_score(y, y_pred, zero_division=0)),
        "tp": float(tp),
        "fp": float(fp),
        "tn": float(tn),
        "fn": float(fn),
    }
