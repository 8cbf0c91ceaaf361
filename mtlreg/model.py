"""Fitted model container and prediction helpers."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

import numpy as np

from ._validation import _validate_design_matrices, _validate_labels, _validate_responses
from .exceptions import DimensionMismatchError
from .losses import linear_predictor
from .solver import SolverOptions
from .strategies import ProblemType, Regularization, get_loss


def _frozen(a: np.ndarray) -> np.ndarray:
    out = np.array(a, dtype=np.float64, copy=True)
    out.flags.writeable = False
    return out


@dataclass(frozen=True, eq=False)
class MTLModel:
    """
    Result of a training call.

    ``W`` is ``(p, t)`` with one column per task, ``C`` holds the ``t``
    intercepts. Both are read-only copies of the iterate the solver returned.
    ``history`` is the objective history of the terminal solver run only.
    It is non-increasing after the first two iterations for every regularizer
    except CMTL, where it records the non-relaxed objective while the solver
    minimises the convex relaxation; the monotone sequence for CMTL is
    ``surrogate_history``, which equals ``history`` for the other regularizers.
    """

    W: np.ndarray
    C: np.ndarray
    regularization: Regularization
    problem_type: ProblemType
    n_list: tuple[int, ...]
    lam1: float
    lam2: float
    options: SolverOptions = field(repr=False)
    history: tuple[float, ...] = field(repr=False)
    surrogate_history: tuple[float, ...] = field(default=(), repr=False)
    n_iter: int = 0
    converged: bool = True
    status: str = "converged"

    def __post_init__(self) -> None:
        object.__setattr__(self, "W", _frozen(self.W))
        object.__setattr__(self, "C", _frozen(self.C).reshape(-1))
        object.__setattr__(self, "history", tuple(float(v) for v in self.history))
        object.__setattr__(
            self, "surrogate_history", tuple(float(v) for v in self.surrogate_history)
        )

    @property
    def p(self) -> int:
        return self.W.shape[0]

    @property
    def t(self) -> int:
        return self.W.shape[1]

    def summary_dict(self) -> dict[str, Any]:
        return {
            "regularization": self.regularization.value,
            "problem_type": self.problem_type.value,
            "t": self.t,
            "p": self.p,
            "n_list": list(self.n_list),
            "lam1": self.lam1,
            "lam2": self.lam2,
            "n_iter": self.n_iter,
            "status": self.status,
            "objective": self.history[-1] if self.history else float("nan"),
        }


def _check_design(model: MTLModel, Xs: Sequence[Any]) -> list[np.ndarray]:
    X_list = _validate_design_matrices(Xs)
    if len(X_list) != model.t:
        raise DimensionMismatchError(
            f"Received {len(X_list)} design matrices for a model with {model.t} tasks"
        )
    if X_list[0].shape[1] != model.p:
        raise DimensionMismatchError(
            f"X has {X_list[0].shape[1]} columns but the model expects {model.p}"
        )
    return X_list


def predict(model: MTLModel, Xs: Sequence[Any]) -> list[np.ndarray]:
    """
    Per-task predictions ``X_i w_i + c_i``.

    For Classification the logistic link is applied and the values are
    ``P(Y = 1)`` in [0, 1].
    """
    X_list = _check_design(model, Xs)
    link = get_loss(model.problem_type).link
    return [link(z) for z in linear_predictor(X_list, model.W, model.C)]


def calc_error(model: MTLModel, Xs: Sequence[Any], Ys: Sequence[Any]) -> float:
    """Task-averaged MSE (Regression) or misclassification rate (Classification)."""
    X_list = _check_design(model, Xs)
    Y_list = _validate_responses(Ys, X_list)
    if model.problem_type is ProblemType.CLASSIFICATION:
        _validate_labels(Y_list)
    loss = get_loss(model.problem_type)
    preds = [loss.link(z) for z in linear_predictor(X_list, model.W, model.C)]
    return loss.error(Y_list, preds)
