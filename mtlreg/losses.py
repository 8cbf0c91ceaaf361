from __future__ import annotations

import numpy as np
from scipy.special import expit

from .exceptions import DimensionMismatchError


def _check_nonempty(X: np.ndarray, i: int) -> int:
    n = X.shape[0]
    if n == 0:
        raise DimensionMismatchError(f"Task {i} has no subjects; its loss is undefined")
    return n


def linear_predictor(Xs: list[np.ndarray], W: np.ndarray, C: np.ndarray) -> list[np.ndarray]:
    """Return ``X_i @ w_i + c_i`` for every task."""
    return [Xs[i] @ W[:, i] + C[i] for i in range(len(Xs))]


def least_squares_value(Xs, Ys, W, C) -> float:
    """Sum over tasks of the mean squared residual."""
    total = 0.0
    for i, (X, y) in enumerate(zip(Xs, Ys, strict=False)):
        _check_nonempty(X, i)
        r = y - X @ W[:, i] - C[i]
        total += float(np.mean(r * r))
    return total


def least_squares(
    Xs: list[np.ndarray], Ys: list[np.ndarray], W: np.ndarray, C: np.ndarray
) -> tuple[float, np.ndarray, np.ndarray]:
    """
    Least-squares loss and its gradient.

    Returns
    -------
    value : float
        sum_i mean((y_i - X_i w_i - c_i)^2)
    grad_W : (p, t) array
    grad_C : (t,) array
    """
    grad_W = np.zeros_like(W)
    grad_C = np.zeros_like(C)
    total = 0.0
    for i, (X, y) in enumerate(zip(Xs, Ys, strict=False)):
        n = _check_nonempty(X, i)
        r = y - X @ W[:, i] - C[i]
        total += float(r @ r) / n
        grad_W[:, i] = -2.0 / n * (X.T @ r)
        grad_C[i] = -2.0 / n * float(np.sum(r))
    return total, grad_W, grad_C


def logistic_value(Xs, Ys, W, C) -> float:
    """Sum over tasks of the mean logistic loss."""
    total = 0.0
    for i, (X, y) in enumerate(zip(Xs, Ys, strict=False)):
        _check_nonempty(X, i)
        margin = y * (X @ W[:, i] + C[i])
        # log(1 + exp(-m)) without overflow
        total += float(np.mean(np.logaddexp(0.0, -margin)))
    return total


def logistic(
    Xs: list[np.ndarray], Ys: list[np.ndarray], W: np.ndarray, C: np.ndarray
) -> tuple[float, np.ndarray, np.ndarray]:
    """
    Logistic loss for labels in {-1, +1} and its gradient.

    The derivative of log(1 + exp(-m)) w.r.t. the margin m is
    -sigmoid(-m), so each subject contributes -y * sigmoid(-m) / n.
    """
    grad_W = np.zeros_like(W)
    grad_C = np.zeros_like(C)
    total = 0.0
    for i, (X, y) in enumerate(zip(Xs, Ys, strict=False)):
        n = _check_nonempty(X, i)
        margin = y * (X @ W[:, i] + C[i])
        total += float(np.mean(np.logaddexp(0.0, -margin)))
        b = -y * expit(-margin) / n
        grad_W[:, i] = X.T @ b
        grad_C[i] = float(np.sum(b))
    return total, grad_W, grad_C


def mse(Ys: list[np.ndarray], preds: list[np.ndarray]) -> float:
    """Task-averaged mean squared error."""
    return float(np.mean([np.mean((y - yhat) ** 2) for y, yhat in zip(Ys, preds, strict=False)]))


def misclassification(Ys: list[np.ndarray], probs: list[np.ndarray]) -> float:
    """Task-averaged misclassification rate; ``probs`` are P(Y = 1)."""
    rates = []
    for y, prob in zip(Ys, probs, strict=False):
        label = np.where(prob >= 0.5, 1.0, -1.0)
        rates.append(np.mean(label != y))
    return float(np.mean(rates))
