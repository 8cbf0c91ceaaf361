"""Closed dispatch tables for problem types and regularizers.

A ``ProblemType`` selects a :class:`Loss` (loss + gradient, output link, CV
error metric) and a ``Regularization`` selects a :class:`Penalty` (proximal
operator and objective terms). Both are resolved once, when a training call is
configured, and then passed to the solver as plain values.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from functools import partial

import numpy as np
from scipy.special import expit

from . import losses, prox


class ProblemType(str, Enum):
    REGRESSION = "Regression"
    CLASSIFICATION = "Classification"


class Regularization(str, Enum):
    LASSO = "Lasso"
    L21 = "L21"
    TRACE = "Trace"
    GRAPH = "Graph"
    CMTL = "CMTL"


LossFn = Callable[..., tuple[float, np.ndarray, np.ndarray]]


@dataclass(frozen=True)
class Loss:
    problem_type: ProblemType
    value_and_grad: LossFn
    value: Callable[..., float]
    link: Callable[[np.ndarray], np.ndarray]
    error: Callable[[list[np.ndarray], list[np.ndarray]], float]


def _identity(z: np.ndarray) -> np.ndarray:
    return z


LOSSES: dict[ProblemType, Loss] = {
    ProblemType.REGRESSION: Loss(
        problem_type=ProblemType.REGRESSION,
        value_and_grad=losses.least_squares,
        value=losses.least_squares_value,
        link=_identity,
        error=losses.mse,
    ),
    ProblemType.CLASSIFICATION: Loss(
        problem_type=ProblemType.CLASSIFICATION,
        value_and_grad=losses.logistic,
        value=losses.logistic_value,
        link=expit,
        error=losses.misclassification,
    ),
}


def get_loss(problem_type: ProblemType) -> Loss:
    return LOSSES[problem_type]


@dataclass(frozen=True)
class Penalty:
    """
    Regularizer bound to its strengths and extra inputs.

    Attributes
    ----------
    ridge : float
        Weight of ``||W||_F^2`` folded into the smooth part of the objective.
    prox : callable
        ``prox(V, step) -> Z`` for the non-smooth (or closed-form) part.
    value : callable
        Value of the part handled by ``prox``; ``smooth + value`` is the
        objective actually minimised.
    reported : callable
        Full regularizer ``lam1 * Omega(W) + lam2 ||W||_F^2`` as reported in
        objective histories (non-relaxed for CMTL).
    relaxed : bool
        True when ``value`` is a convex surrogate of ``reported`` rather than
        the same quantity.
    """

    regularization: Regularization
    lam1: float
    lam2: float
    ridge: float
    prox: Callable[[np.ndarray, float], np.ndarray]
    value: Callable[[np.ndarray], float]
    reported: Callable[[np.ndarray], float]
    relaxed: bool = False


def _ridge_value(W: np.ndarray, lam2: float) -> float:
    return float(lam2 * np.sum(W * W))


def _lasso(lam1, lam2, G, k):
    return Penalty(
        regularization=Regularization.LASSO,
        lam1=lam1,
        lam2=lam2,
        ridge=lam2,
        prox=lambda V, step: prox.soft_threshold(V, lam1 * step),
        value=lambda W: lam1 * prox.l1_norm(W),
        reported=lambda W: lam1 * prox.l1_norm(W) + _ridge_value(W, lam2),
    )


def _l21(lam1, lam2, G, k):
    return Penalty(
        regularization=Regularization.L21,
        lam1=lam1,
        lam2=lam2,
        ridge=lam2,
        prox=lambda V, step: prox.prox_l21(V, lam1 * step),
        value=lambda W: lam1 * prox.l21_norm(W),
        reported=lambda W: lam1 * prox.l21_norm(W) + _ridge_value(W, lam2),
    )


def _trace(lam1, lam2, G, k):
    return Penalty(
        regularization=Regularization.TRACE,
        lam1=lam1,
        lam2=lam2,
        ridge=lam2,
        prox=lambda V, step: prox.prox_trace(V, lam1 * step),
        value=lambda W: lam1 * prox.trace_norm(W),
        reported=lambda W: lam1 * prox.trace_norm(W) + _ridge_value(W, lam2),
    )


def _graph(lam1, lam2, G, k):
    GGt = G @ G.T
    value = partial(prox.graph_penalty, G=G, lam1=lam1, lam2=lam2)
    return Penalty(
        regularization=Regularization.GRAPH,
        lam1=lam1,
        lam2=lam2,
        ridge=0.0,
        prox=lambda V, step: prox.prox_graph(V, step, lam1, lam2, GGt),
        value=value,
        reported=value,
    )


def _cmtl(lam1, lam2, G, k):
    eta = lam2 / lam1
    c = lam1 * eta * (1.0 + eta)
    return Penalty(
        regularization=Regularization.CMTL,
        lam1=lam1,
        lam2=lam2,
        ridge=0.0,
        prox=lambda V, step: prox.prox_cmtl(V, step, c, eta, k),
        value=lambda W: prox.cmtl_relaxed_penalty(W, c, eta, k),
        reported=lambda W: prox.cmtl_penalty(W, lam1, lam2, k),
        relaxed=True,
    )


_PENALTY_BUILDERS = {
    Regularization.LASSO: _lasso,
    Regularization.L21: _l21,
    Regularization.TRACE: _trace,
    Regularization.GRAPH: _graph,
    Regularization.CMTL: _cmtl,
}


def make_penalty(
    regularization: Regularization,
    lam1: float,
    lam2: float = 0.0,
    *,
    G: np.ndarray | None = None,
    k: int | None = None,
) -> Penalty:
    """Bind ``regularization`` to its strengths (inputs are assumed validated)."""
    return _PENALTY_BUILDERS[regularization](float(lam1), float(lam2), G, k)
