from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from scipy.special import expit

from ._validation import _parse_problem_type, _parse_regularization
from .strategies import ProblemType, Regularization


@dataclass
class SimulatedData:
    Xs: list[np.ndarray]
    Ys: list[np.ndarray]
    test_Xs: list[np.ndarray]
    test_Ys: list[np.ndarray]
    W: np.ndarray
    G: np.ndarray | None = None
    k: int | None = None


def chain_graph(t):
    """Incidence matrix (t × t-1) linking task i to task i+1."""
    G = np.zeros((t, max(t - 1, 1)))
    for i in range(t - 1):
        G[i, i] = 1.0
        G[i + 1, i] = -1.0
    return G


def _true_weights(regularization, p, t, k, rng):
    if regularization is Regularization.LASSO:
        W = rng.standard_normal((p, t)) * (rng.random((p, t)) < 0.3)
        return W, None, None
    if regularization is Regularization.L21:
        W = np.zeros((p, t))
        rows = rng.choice(p, size=max(1, p // 4), replace=False)
        W[rows] = rng.standard_normal((rows.size, t))
        return W, None, None
    if regularization is Regularization.TRACE:
        r = max(1, min(p, t) // 3)
        W = rng.standard_normal((p, r)) @ rng.standard_normal((r, t)) / np.sqrt(r)
        return W, None, None
    if regularization is Regularization.GRAPH:
        steps = 0.1 * rng.standard_normal((p, t))
        steps[:, 0] = rng.standard_normal(p)
        return np.cumsum(steps, axis=1), chain_graph(t), None
    # CMTL: tasks i, i+k, i+2k, ... share a cluster centre
    k = int(min(max(k, 1), t))
    centres = rng.standard_normal((p, k))
    W = centres[:, np.arange(t) % k] + 0.1 * rng.standard_normal((p, t))
    return W, None, k


def simulate_mtl(
    regularization,
    problem_type="Regression",
    n=100,
    p=20,
    t=5,
    *,
    n_test=None,
    k=2,
    noise=0.5,
    seed=0,
):
    rng = np.random.default_rng(seed)
    regularization = _parse_regularization(regularization)
    problem_type = _parse_problem_type(problem_type)
    n_test = n if n_test is None else n_test

    W, G, k_out = _true_weights(regularization, p, t, k, rng)

    Xs, Ys, test_Xs, test_Ys = [], [], [], []
    for i in range(t):
        X = rng.standard_normal((n + n_test, p))
        z = X @ W[:, i]
        if problem_type is ProblemType.REGRESSION:
            y = z + noise * rng.standard_normal(n + n_test)
        else:
            y = np.where(rng.random(n + n_test) < expit(z), 1.0, -1.0)
        Xs.append(X[:n])
        Ys.append(y[:n])
        test_Xs.append(X[n:])
        test_Ys.append(y[n:])
    return SimulatedData(Xs, Ys, test_Xs, test_Ys, W, G, k_out)
