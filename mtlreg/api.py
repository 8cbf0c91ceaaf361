"""High-level training entry points and a scikit-learn style estimator."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from functools import partial
from typing import Any

import numpy as np

from ._validation import (
    _parse_problem_type,
    _parse_regularization,
    _validate_cluster_count,
    _validate_graph,
    _validate_lam1_seq,
    _validate_lambdas,
    _validate_options,
    _validate_tasks,
)
from .cv import CVResult, cross_validate
from .model import MTLModel, calc_error, predict
from .path import solve_path, warm_start_sequence
from .solver import SolverOptions
from .strategies import ProblemType, Regularization, get_loss, make_penalty

logger = logging.getLogger(__name__)


def fit_mtl(
    Xs: Sequence[Any],
    Ys: Sequence[Any],
    problem_type: ProblemType | str,
    regularization: Regularization | str,
    lam1: float = 0.1,
    lam2: float = 0.0,
    *,
    G: Any = None,
    k: int | None = None,
    options: SolverOptions | None = None,
    lam1_seq: Sequence[float] | np.ndarray | None = None,
) -> MTLModel:
    """
    Train a regularized multi-task model.

    Minimises

        sum_i loss_i(w_i, c_i) + lam1 * Omega(W) + lam2 * ||W||_F^2

    with the accelerated proximal gradient solver.

    Parameters
    ----------
    Xs : list of (n_i×p) arrays     one design matrix per task
    Ys : list of (n_i,) arrays      responses; labels in {-1, +1} for Classification
    problem_type : "Regression" | "Classification"
    regularization : "Lasso" | "L21" | "Trace" | "Graph" | "CMTL"
    lam1, lam2 : float              regularization strengths
    G : (t×e) array                 task graph, required for Graph
    k : int                         number of task clusters, required for CMTL
    options : SolverOptions         init / tol / max_iter / W0 / C0 ...
    lam1_seq : sequence, optional   if given, the model is warm-started along
                                    the values of ``lam1_seq`` above ``lam1``
                                    before solving at ``lam1``

    Returns
    -------
    MTLModel
        Coefficients of the run at ``lam1`` and that run's objective history.
    """
    problem_type = _parse_problem_type(problem_type)
    regularization = _parse_regularization(regularization)
    Xs, Ys = _validate_tasks(Xs, Ys, problem_type)
    p, t = Xs[0].shape[1], len(Xs)

    lam1, lam2 = _validate_lambdas(regularization, lam1, lam2)
    G_arr = _validate_graph(G, t) if regularization is Regularization.GRAPH else None
    k_int = _validate_cluster_count(k, t) if regularization is Regularization.CMTL else None

    options = SolverOptions() if options is None else options
    _validate_options(options, p, t)

    if lam1_seq is None:
        path = [lam1]
    else:
        path = warm_start_sequence(_validate_lam1_seq(lam1_seq), lam1)

    loss = get_loss(problem_type)
    penalty_for = partial(make_penalty, regularization, lam2=lam2, G=G_arr, k=k_int)
    results = solve_path(Xs, Ys, loss, penalty_for, path, options)
    final = results[-1]

    logger.debug(
        "fit %s/%s lam1=%.3g lam2=%.3g in %d iterations (%s)",
        problem_type.value,
        regularization.value,
        lam1,
        lam2,
        final.n_iter,
        final.status,
    )
    return MTLModel(
        W=final.W,
        C=final.C,
        regularization=regularization,
        problem_type=problem_type,
        n_list=tuple(X.shape[0] for X in Xs),
        lam1=lam1,
        lam2=lam2,
        options=options,
        history=final.history,
        surrogate_history=final.surrogate_history,
        n_iter=final.n_iter,
        converged=final.converged,
        status=final.status,
    )


def cv_mtl(
    Xs: Sequence[Any],
    Ys: Sequence[Any],
    problem_type: ProblemType | str,
    regularization: Regularization | str,
    lam1_seq: Sequence[float] | np.ndarray | None = None,
    lam2: float = 0.0,
    *,
    G: Any = None,
    k: int | None = None,
    options: SolverOptions | None = None,
    nfolds: int = 5,
    stratify: bool = False,
    parallel: bool = False,
    ncores: int = 2,
    random_state: int | None = 0,
) -> CVResult:
    """Cross-validate lam1; see :func:`mtlreg.cv.cross_validate`."""
    return cross_validate(
        Xs,
        Ys,
        problem_type,
        regularization,
        lam1_seq,
        lam2,
        G=G,
        k=k,
        options=options,
        nfolds=nfolds,
        stratify=stratify,
        parallel=parallel,
        ncores=ncores,
        random_state=random_state,
    )


class MTL:
    """Scikit-learn style estimator for regularized multi-task learning."""

    def __init__(
        self,
        *,
        problem_type: ProblemType | str = "Regression",
        regularization: Regularization | str = "Lasso",
        lam1: float = 0.1,
        lam2: float = 0.0,
        G: Any = None,
        k: int | None = None,
        tol: float = 1e-3,
        max_iter: int = 1000,
        max_ls_iter: int = 100,
    ) -> None:
        self.problem_type = problem_type
        self.regularization = regularization
        self.lam1 = lam1
        self.lam2 = lam2
        self.G = G
        self.k = k
        self.tol = tol
        self.max_iter = max_iter
        self.max_ls_iter = max_ls_iter

    # ------------------------------------------------------------------
    # Scikit-learn estimator protocol
    # ------------------------------------------------------------------
    def get_params(self, deep: bool = True) -> dict[str, Any]:
        return {
            "problem_type": self.problem_type,
            "regularization": self.regularization,
            "lam1": self.lam1,
            "lam2": self.lam2,
            "G": self.G,
            "k": self.k,
            "tol": self.tol,
            "max_iter": self.max_iter,
            "max_ls_iter": self.max_ls_iter,
        }

    def set_params(self, **params: Any) -> MTL:
        for key, value in params.items():
            if key not in self.get_params():
                raise ValueError(f"Unknown parameter {key!r}")
            setattr(self, key, value)
        return self

    def _options(self) -> SolverOptions:
        return SolverOptions(
            tol=self.tol, max_iter=self.max_iter, max_ls_iter=self.max_ls_iter
        )

    # ------------------------------------------------------------------
    # Fitting / inference
    # ------------------------------------------------------------------
    def _fit_at(self, Xs, Ys, lam1, lam1_seq) -> MTL:
        model = fit_mtl(
            Xs,
            Ys,
            self.problem_type,
            self.regularization,
            lam1,
            self.lam2,
            G=self.G,
            k=self.k,
            options=self._options(),
            lam1_seq=lam1_seq,
        )
        self.model_ = model
        self.lam1_ = model.lam1
        self.W_ = model.W
        self.C_ = model.C
        self.history_ = model.history
        self.surrogate_history_ = model.surrogate_history
        self.n_iter_ = model.n_iter
        self.converged_ = model.converged
        self.is_fitted_ = True
        return self

    def fit(
        self,
        Xs: Sequence[Any],
        Ys: Sequence[Any],
        lam1_seq: Sequence[float] | np.ndarray | None = None,
    ) -> MTL:
        return self._fit_at(Xs, Ys, self.lam1, lam1_seq)

    def fit_cv(
        self,
        Xs: Sequence[Any],
        Ys: Sequence[Any],
        lam1_seq: Sequence[float] | np.ndarray | None = None,
        **cv_kwargs: Any,
    ) -> MTL:
        """Pick ``lam1`` by cross-validation, then refit on all data along the same path."""
        result = cross_validate(
            Xs,
            Ys,
            self.problem_type,
            self.regularization,
            lam1_seq,
            self.lam2,
            G=self.G,
            k=self.k,
            options=self._options(),
            **cv_kwargs,
        )
        self.cv_result_ = result
        return self._fit_at(Xs, Ys, result.lam1_min, result.lam1_seq)

    def _ensure_fitted(self) -> None:
        if not getattr(self, "is_fitted_", False):
            raise RuntimeError("The estimator has not been fitted yet")

    def predict(self, Xs: Sequence[Any]) -> list[np.ndarray]:
        self._ensure_fitted()
        return predict(self.model_, Xs)

    def score(self, Xs: Sequence[Any], Ys: Sequence[Any]) -> float:
        """Negative MSE or negative misclassification rate (higher is better)."""
        self._ensure_fitted()
        return -calc_error(self.model_, Xs, Ys)
