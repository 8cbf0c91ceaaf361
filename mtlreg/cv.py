"""K-fold cross-validation over a lam1 sequence."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from functools import partial
from typing import Any

import numpy as np
from joblib import Parallel, delayed

from ._validation import (
    _parse_problem_type,
    _parse_regularization,
    _validate_cluster_count,
    _validate_graph,
    _validate_lam1_seq,
    _validate_lambdas,
    _validate_nfolds,
    _validate_options,
    _validate_tasks,
)
from .exceptions import InvalidConfigError
from .losses import linear_predictor
from .path import solve_path
from .solver import SolverOptions
from .strategies import ProblemType, Regularization, get_loss, make_penalty

logger = logging.getLogger(__name__)

DEFAULT_LAM1_SEQ = 10.0 ** np.arange(1, -5, -1)


@dataclass(frozen=True, eq=False)
class CVResult:
    """
    Cross-validation summary.

    ``lam1_seq`` is in decreasing order, ``cvm[j]`` is the mean held-out error
    of ``lam1_seq[j]`` over folds and ``cv_folds`` holds the per-fold errors
    (``nfolds x len(lam1_seq)``).
    """

    lam1_seq: np.ndarray
    cvm: np.ndarray
    cv_folds: np.ndarray
    lam1_min: float
    lam2: float


def make_folds(
    Ys: Sequence[np.ndarray],
    nfolds: int,
    *,
    stratify: bool = False,
    random_state: int | None = 0,
) -> list[np.ndarray]:
    """
    Assign each subject of each task to one of ``nfolds`` folds.

    Subjects are permuted per task and dealt round-robin. With ``stratify``
    the positive subjects are dealt first and the negatives continue the
    rotation, so every fold keeps (up to rounding) the task's class ratio.

    Returns
    -------
    list of (n_i,) integer arrays with fold ids in ``range(nfolds)``.
    """
    rng = np.random.default_rng(random_state)
    folds = []
    for y in Ys:
        y = np.asarray(y)
        if stratify:
            pos = rng.permutation(np.flatnonzero(y > 0))
            neg = rng.permutation(np.flatnonzero(y <= 0))
            order = np.concatenate([pos, neg])
        else:
            order = rng.permutation(y.shape[0])
        fold_id = np.empty(y.shape[0], dtype=int)
        fold_id[order] = np.arange(order.size) % nfolds
        folds.append(fold_id)
    return folds


def _fold_errors(
    train_Xs: list[np.ndarray],
    train_Ys: list[np.ndarray],
    test_Xs: list[np.ndarray],
    test_Ys: list[np.ndarray],
    problem_type: ProblemType,
    regularization: Regularization,
    lam1_seq: np.ndarray,
    lam2: float,
    G: np.ndarray | None,
    k: int | None,
    options: SolverOptions,
) -> np.ndarray:
    """Train one fold along the warm-started path and score every lam1."""
    loss = get_loss(problem_type)
    penalty_for = partial(make_penalty, regularization, lam2=lam2, G=G, k=k)
    results = solve_path(train_Xs, train_Ys, loss, penalty_for, lam1_seq, options)

    errors = np.empty(len(results))
    for j, result in enumerate(results):
        preds = [loss.link(z) for z in linear_predictor(test_Xs, result.W, result.C)]
        errors[j] = loss.error(test_Ys, preds)
    return errors


def cross_validate(
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
    """
    Select lam1 by k-fold cross-validation.

    Every fold is trained on the remaining folds along ``lam1_seq`` (largest
    first, warm-started) and scored on its held-out subjects with MSE
    (Regression) or the misclassification rate (Classification).

    With ``parallel=True`` the folds run as independent joblib jobs on
    ``ncores`` workers; each job gets its own copy of the fold data and builds
    its own solver state, so the result is identical to the sequential run.
    A failure in any fold (e.g. ``LineSearchFailure``) aborts the whole call.

    Ties in the mean error go to the largest lam1.
    """
    problem_type = _parse_problem_type(problem_type)
    regularization = _parse_regularization(regularization)
    Xs, Ys = _validate_tasks(Xs, Ys, problem_type)
    p, t = Xs[0].shape[1], len(Xs)

    seq = _validate_lam1_seq(DEFAULT_LAM1_SEQ if lam1_seq is None else lam1_seq)
    _, lam2 = _validate_lambdas(regularization, seq[-1], lam2)
    G_arr = _validate_graph(G, t) if regularization is Regularization.GRAPH else None
    k_int = _validate_cluster_count(k, t) if regularization is Regularization.CMTL else None

    options = SolverOptions() if options is None else options
    _validate_options(options, p, t)

    nfolds = _validate_nfolds(nfolds, [X.shape[0] for X in Xs])
    if stratify and problem_type is not ProblemType.CLASSIFICATION:
        raise InvalidConfigError("stratify=True is only meaningful for Classification")
    folds = make_folds(Ys, nfolds, stratify=stratify, random_state=random_state)

    def job(f):
        train_Xs = [X[fold != f] for X, fold in zip(Xs, folds, strict=False)]
        train_Ys = [y[fold != f] for y, fold in zip(Ys, folds, strict=False)]
        test_Xs = [X[fold == f] for X, fold in zip(Xs, folds, strict=False)]
        test_Ys = [y[fold == f] for y, fold in zip(Ys, folds, strict=False)]
        return delayed(_fold_errors)(
            train_Xs,
            train_Ys,
            test_Xs,
            test_Ys,
            problem_type,
            regularization,
            seq,
            lam2,
            G_arr,
            k_int,
            options,
        )

    n_jobs = int(ncores) if parallel else 1
    logger.info(
        "cross-validating %s/%s over %d lam1 values, %d folds (n_jobs=%d)",
        problem_type.value,
        regularization.value,
        seq.size,
        nfolds,
        n_jobs,
    )
    fold_errors = Parallel(n_jobs=n_jobs)(job(f) for f in range(nfolds))

    cv_folds = np.vstack(fold_errors)
    cvm = cv_folds.mean(axis=0)
    lam1_min = select_lam1(seq, cvm)
    logger.info("selected lam1=%.3g (mean CV error %.6g)", lam1_min, cvm.min())

    return CVResult(
        lam1_seq=seq,
        cvm=cvm,
        cv_folds=cv_folds,
        lam1_min=lam1_min,
        lam2=lam2,
    )


def select_lam1(lam1_seq: np.ndarray, cvm: np.ndarray) -> float:
    """lam1 with the smallest mean error; ties go to the largest lam1."""
    lam1_seq = np.asarray(lam1_seq, dtype=np.float64)
    cvm = np.asarray(cvm, dtype=np.float64)
    tied = np.flatnonzero(cvm == cvm.min())
    return float(lam1_seq[tied].max())
