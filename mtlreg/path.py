"""Warm-started solution paths over a decreasing lam1 sequence."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence

import numpy as np

from .exceptions import InvalidConfigError
from .solver import SolveResult, SolverOptions, accelerated_gradient, initial_point
from .strategies import Loss, Penalty

logger = logging.getLogger(__name__)


def warm_start_sequence(lam1_seq: Sequence[float] | np.ndarray, lam1: float) -> list[float]:
    """Values of ``lam1_seq`` above ``lam1`` in decreasing order, then ``lam1`` itself."""
    seq = np.unique(np.asarray(lam1_seq, dtype=np.float64).ravel())[::-1]
    return [float(v) for v in seq if v > lam1] + [float(lam1)]


def solve_path(
    Xs: list[np.ndarray],
    Ys: list[np.ndarray],
    loss: Loss,
    penalty_for: Callable[[float], Penalty],
    lam1_seq: Sequence[float],
    options: SolverOptions,
) -> list[SolveResult]:
    """
    Run the solver once per ``lam1`` (strictly decreasing), seeding each run
    with the previous solution.

    The first run starts from ``options.init``; later runs ignore it and start
    from the ``(W, C)`` returned by the run before. Errors from any step
    propagate and no partial path is returned.
    """
    lam1_seq = [float(v) for v in lam1_seq]
    if len(lam1_seq) == 0:
        raise InvalidConfigError("lam1_seq must contain at least one value")
    if any(b >= a for a, b in zip(lam1_seq, lam1_seq[1:], strict=False)):
        raise InvalidConfigError(
            "A warm-start path needs lam1 values in strictly decreasing order. "
            "Try sorted(set(lam1_seq), reverse=True)."
        )

    p, t = Xs[0].shape[1], len(Xs)
    W, C = initial_point(options, p, t)

    results: list[SolveResult] = []
    for lam1 in lam1_seq:
        result = accelerated_gradient(
            Xs,
            Ys,
            loss,
            penalty_for(lam1),
            W,
            C,
            tol=options.tol,
            max_iter=options.max_iter,
            max_ls_iter=options.max_ls_iter,
            step_inc=options.step_inc,
        )
        logger.debug(
            "path step lam1=%.3g: %d iterations, status=%s", lam1, result.n_iter, result.status
        )
        results.append(result)
        W, C = result.W, result.C
    return results
