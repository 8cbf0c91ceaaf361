"""Input validation and configuration parsing helpers for mtlreg.

This module provides standardized validation functions so that the training,
cross-validation and estimator entry points fail fast, before any solver
iteration, with consistent error messages.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import numpy as np

from .exceptions import DimensionMismatchError, InvalidConfigError
from .strategies import ProblemType, Regularization


def _parse_problem_type(value: Any) -> ProblemType:
    """Resolve a problem type tag (enum member or case-insensitive name)."""
    if isinstance(value, ProblemType):
        return value
    if isinstance(value, str):
        for member in ProblemType:
            if member.value.lower() == value.lower():
                return member
    choices = ", ".join(m.value for m in ProblemType)
    raise InvalidConfigError(
        f"Unsupported problem type {value!r}. Expected one of: {choices}."
    )


def _parse_regularization(value: Any) -> Regularization:
    """Resolve a regularization tag (enum member or case-insensitive name)."""
    if isinstance(value, Regularization):
        return value
    if isinstance(value, str):
        for member in Regularization:
            if member.value.lower() == value.lower():
                return member
    choices = ", ".join(m.value for m in Regularization)
    raise InvalidConfigError(
        f"Unsupported regularization {value!r}. Expected one of: {choices}."
    )


def _validate_design_matrices(Xs: Any, *, name: str = "Xs") -> list[np.ndarray]:
    """Validate and convert per-task design matrices.

    Parameters
    ----------
    Xs : list-like
        One array-like of shape ``(n_i, p)`` per task.
    name : str, optional
        Variable name for error messages.

    Returns
    -------
    list[np.ndarray]
        Validated list of 2D float arrays sharing the same column count.

    Raises
    ------
    DimensionMismatchError
        If the list is empty, a matrix is not 2D, a task has no rows, or the
        column counts differ.
    """
    if not isinstance(Xs, (list, tuple)) or len(Xs) == 0:
        raise DimensionMismatchError(
            f"{name} must be a non-empty list or tuple of arrays. "
            f"Got {type(Xs).__name__} with length {len(Xs) if hasattr(Xs, '__len__') else '?'}"
        )

    validated = []
    for i, X in enumerate(Xs):
        try:
            X_arr = np.asarray(X, dtype=np.float64)
        except (TypeError, ValueError) as e:
            raise DimensionMismatchError(
                f"{name}[{i}] cannot be converted to numeric array: {e}"
            ) from e
        if X_arr.ndim != 2:
            raise DimensionMismatchError(
                f"{name}[{i}] must be 2D, got {X_arr.ndim}D with shape {X_arr.shape}. "
                f"Try {name}[{i}].reshape(-1, 1) for a single predictor."
            )
        if X_arr.shape[0] == 0:
            raise DimensionMismatchError(
                f"{name}[{i}] has no subjects. Every task needs at least one row."
            )
        validated.append(X_arr)

    p = validated[0].shape[1]
    for i, X_arr in enumerate(validated):
        if X_arr.shape[1] != p:
            raise DimensionMismatchError(
                f"{name}[{i}] has {X_arr.shape[1]} predictors but {name}[0] has {p}. "
                f"All tasks must share the same predictor space."
            )
    return validated


def _validate_responses(
    Ys: Any, Xs: list[np.ndarray], *, name: str = "Ys", X_name: str = "Xs"
) -> list[np.ndarray]:
    """Validate per-task responses against the design matrices.

    Column vectors ``(n_i, 1)`` are flattened to ``(n_i,)``.
    """
    if not isinstance(Ys, (list, tuple)) or len(Ys) != len(Xs):
        got = len(Ys) if hasattr(Ys, "__len__") else "?"
        raise DimensionMismatchError(
            f"{name} must be a list with one response per task ({len(Xs)}), got {got}."
        )

    validated = []
    for i, (y, X) in enumerate(zip(Ys, Xs, strict=False)):
        try:
            y_arr = np.asarray(y, dtype=np.float64)
        except (TypeError, ValueError) as e:
            raise DimensionMismatchError(
                f"{name}[{i}] cannot be converted to numeric array: {e}"
            ) from e
        if y_arr.ndim == 2 and y_arr.shape[1] == 1:
            y_arr = y_arr[:, 0]
        if y_arr.ndim != 1:
            raise DimensionMismatchError(
                f"{name}[{i}] must be a vector, got shape {y_arr.shape}."
            )
        if y_arr.shape[0] != X.shape[0]:
            raise DimensionMismatchError(
                f"{X_name}[{i}] has {X.shape[0]} rows but {name}[{i}] has {y_arr.shape[0]}. "
                f"Each task needs one response per subject."
            )
        validated.append(y_arr)
    return validated


def _validate_labels(Ys: list[np.ndarray], *, name: str = "Ys") -> None:
    for i, y in enumerate(Ys):
        if not np.all(np.isin(y, (-1.0, 1.0))):
            raise InvalidConfigError(
                f"{name}[{i}] contains labels outside {{-1, +1}}. "
                f"Try encoding classes as 2 * y - 1 for 0/1 labels."
            )


def _validate_tasks(
    Xs: Any, Ys: Any, problem_type: ProblemType
) -> tuple[list[np.ndarray], list[np.ndarray]]:
    """Comprehensive validation of a task dataset.

    Returns
    -------
    tuple
        Validated ``(Xs, Ys)``.
    """
    Xs_valid = _validate_design_matrices(Xs)
    Ys_valid = _validate_responses(Ys, Xs_valid)
    if problem_type is ProblemType.CLASSIFICATION:
        _validate_labels(Ys_valid)
    return Xs_valid, Ys_valid


def _validate_lambdas(
    regularization: Regularization, lam1: Any, lam2: Any
) -> tuple[float, float]:
    """Check the regularization strengths allowed for ``regularization``."""
    try:
        lam1_f, lam2_f = float(lam1), float(lam2)
    except (TypeError, ValueError) as e:
        raise InvalidConfigError(f"lam1 and lam2 must be numbers: {e}") from e

    if not np.isfinite(lam1_f) or not np.isfinite(lam2_f):
        raise InvalidConfigError("lam1 and lam2 must be finite")
    if lam2_f < 0:
        raise InvalidConfigError(
            f"lam2 must be non-negative, got {lam2_f}. Try lam2=0 for no ridge term."
        )
    if regularization is Regularization.GRAPH:
        if lam1_f < 0:
            raise InvalidConfigError(
                f"lam1 must be non-negative for Graph, got {lam1_f}."
            )
    elif lam1_f <= 0:
        raise InvalidConfigError(
            f"lam1 must be positive for {regularization.value}, got {lam1_f}. "
            f"Try lam1=0.1 for moderate regularization."
        )
    if regularization is Regularization.CMTL and lam2_f <= 0:
        raise InvalidConfigError(
            f"lam2 must be positive for CMTL, got {lam2_f}. "
            f"Try lam2=1e-2; it sets the relaxation strength eta = lam2 / lam1."
        )
    return lam1_f, lam2_f


def _validate_graph(G: Any, t: int) -> np.ndarray:
    """Validate the task graph / incidence matrix ``G`` of shape ``(t, e)``."""
    if G is None:
        raise InvalidConfigError(
            "Graph regularization requires the task graph G (t x e incidence matrix)."
        )
    try:
        G_arr = np.asarray(G, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise InvalidConfigError(f"G cannot be converted to numeric array: {e}") from e
    if G_arr.ndim == 1:
        G_arr = G_arr[:, None]
    if G_arr.ndim != 2 or G_arr.shape[0] != t:
        raise DimensionMismatchError(
            f"G must have one row per task ({t}), got shape {G_arr.shape}."
        )
    return G_arr


def _validate_cluster_count(k: Any, t: int) -> int:
    """Validate the CMTL cluster count."""
    if k is None:
        raise InvalidConfigError("CMTL regularization requires the cluster count k.")
    try:
        k_int = int(k)
    except (TypeError, ValueError) as e:
        raise InvalidConfigError(f"k must be an integer, got {type(k).__name__}") from e
    if k_int != k:
        raise InvalidConfigError(f"k must be an integer, got {k}")
    if not (1 <= k_int <= t):
        raise InvalidConfigError(
            f"k={k_int} must be between 1 and the number of tasks t={t}."
        )
    return k_int


def _validate_options(options: Any, p: int, t: int) -> None:
    """Validate solver options against the problem dimensions."""
    if options.init not in (0, 1):
        raise InvalidConfigError(
            f"options.init must be 0 (zero start) or 1 (warm start), got {options.init!r}."
        )
    if not isinstance(options.max_iter, (int, np.integer)) or options.max_iter < 1:
        raise InvalidConfigError(
            f"max_iter must be a positive integer, got {options.max_iter}. "
            f"Try max_iter=1000 for typical problems."
        )
    if not isinstance(options.tol, (int, float)) or options.tol < 0:
        raise InvalidConfigError(
            f"tol must be non-negative, got {options.tol}. Try tol=1e-3."
        )
    if not isinstance(options.max_ls_iter, (int, np.integer)) or options.max_ls_iter < 1:
        raise InvalidConfigError(
            f"max_ls_iter must be a positive integer, got {options.max_ls_iter}."
        )
    if not options.step_inc > 1.0:
        raise InvalidConfigError(
            f"step_inc must be greater than 1, got {options.step_inc}."
        )
    if options.init == 1:
        if options.W0 is None or options.C0 is None:
            raise InvalidConfigError(
                "Warm start (init=1) requires both W0 and C0. "
                "Try init=0 to start from zero."
            )
        W0 = np.asarray(options.W0)
        C0 = np.asarray(options.C0)
        if W0.shape != (p, t):
            raise DimensionMismatchError(
                f"W0 must have shape (p={p}, t={t}), got {W0.shape}."
            )
        if C0.reshape(-1).shape != (t,):
            raise DimensionMismatchError(f"C0 must have length t={t}, got {C0.shape}.")


def _validate_lam1_seq(lam1_seq: Sequence[float] | np.ndarray) -> np.ndarray:
    """Return the candidate sequence de-duplicated and in decreasing order."""
    seq = np.asarray(lam1_seq, dtype=np.float64).ravel()
    if seq.size == 0:
        raise InvalidConfigError("lam1_seq must contain at least one value")
    if not np.all(np.isfinite(seq)) or np.any(seq < 0):
        raise InvalidConfigError("lam1_seq values must be finite and non-negative")
    return np.unique(seq)[::-1].copy()


def _validate_nfolds(nfolds: Any, n_list: Sequence[int]) -> int:
    if not isinstance(nfolds, (int, np.integer)) or nfolds < 2:
        raise InvalidConfigError(f"nfolds must be an integer >= 2, got {nfolds!r}.")
    smallest = min(n_list)
    if smallest < nfolds:
        raise InvalidConfigError(
            f"nfolds={nfolds} exceeds the smallest task size ({smallest}). "
            f"Try nfolds={max(2, smallest)}."
        )
    return int(nfolds)
