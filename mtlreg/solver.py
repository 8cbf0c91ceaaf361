from __future__ import annotations

import logging
from dataclasses import dataclass, field

import numpy as np

from .exceptions import InvalidConfigError, LineSearchFailure
from .strategies import Loss, Penalty

logger = logging.getLogger(__name__)

# Squared step length below which the proximal step is considered stalled.
_STALL_EPS = 1e-20


@dataclass(frozen=True)
class SolverOptions:
    """
    Options for :func:`accelerated_gradient`.

    init : 0 starts from W = 0, C = 0; 1 starts from ``W0``/``C0``.
    tol : relative objective change that stops the iteration.
    max_iter : iteration cap (reaching it is reported, not raised).
    max_ls_iter : bound on step-size shrinks per iteration.
    step_inc : factor applied to the inverse step size on each shrink.
    """

    init: int = 0
    tol: float = 1e-3
    max_iter: int = 1000
    W0: np.ndarray | None = field(default=None, repr=False)
    C0: np.ndarray | None = field(default=None, repr=False)
    max_ls_iter: int = 100
    step_inc: float = 2.0


@dataclass
class SolveResult:
    W: np.ndarray
    C: np.ndarray
    history: list[float]
    surrogate_history: list[float]
    n_iter: int
    converged: bool
    status: str


def initial_point(options: SolverOptions, p: int, t: int) -> tuple[np.ndarray, np.ndarray]:
    """Starting ``(W, C)`` for a run, as fresh arrays."""
    if options.init == 1:
        if options.W0 is None or options.C0 is None:
            raise InvalidConfigError("Warm start (init=1) requires both W0 and C0")
        W = np.array(options.W0, dtype=np.float64, copy=True)
        C = np.array(options.C0, dtype=np.float64, copy=True).reshape(-1)
        return W, C
    return np.zeros((p, t)), np.zeros(t)


def accelerated_gradient(
    Xs,
    Ys,
    loss: Loss,
    penalty: Penalty,
    W0: np.ndarray,
    C0: np.ndarray,
    *,
    tol: float = 1e-3,
    max_iter: int = 1000,
    max_ls_iter: int = 100,
    step_inc: float = 2.0,
) -> SolveResult:
    """
    Accelerated proximal gradient for

        min_{W, C}  loss(W, C) + ridge ||W||_F^2 + penalty(W)

    where ``loss + ridge ||W||^2`` is the smooth part and ``penalty`` is
    handled through its proximal operator. Intercepts ``C`` are unpenalized.

    Each iteration:
      - extrapolates a search point from the last two iterates (Nesterov
        momentum, t_{k+1} = (1 + sqrt(1 + 4 t_k^2)) / 2),
      - takes a gradient step of size 1/gamma and applies the prox,
      - backtracks (gamma *= step_inc) until the smooth part lies under its
        quadratic majorizer at the search point,
      - restarts the momentum when the extrapolated step would increase the
        objective, so the objective history never goes up.

    Parameters
    ----------
    Xs, Ys : lists of (n_i×p) arrays and (n_i,) vectors, already validated
    loss : Loss                 problem-type strategy
    penalty : Penalty           regularizer strategy
    W0, C0 : arrays             starting point (not modified)
    tol : float                 relative objective change for convergence
    max_iter : int              iteration cap
    max_ls_iter : int           backtracking bound per iteration
    step_inc : float            inverse-step growth factor per backtrack

    Returns
    -------
    SolveResult
      history            reported objective (non-relaxed regularizer)
      surrogate_history  minimised objective (differs only for CMTL)
      status             "converged" or "max_iter"; on "max_iter" a relaxed
                         penalty returns the iterate with the lowest reported
                         objective, otherwise the last iterate

    Raises
    ------
    LineSearchFailure
        If no acceptable step is found within ``max_ls_iter`` shrinks.
    """
    ridge = penalty.ridge

    def smooth_value(W, C):
        return loss.value(Xs, Ys, W, C) + ridge * float(np.sum(W * W))

    def smooth_value_and_grad(W, C):
        f, gW, gC = loss.value_and_grad(Xs, Ys, W, C)
        if ridge:
            f += ridge * float(np.sum(W * W))
            gW = gW + 2.0 * ridge * W
        return f, gW, gC

    def prox_step(Ws, Cs, gamma, iteration):
        """Backtracking line search from the search point (Ws, Cs)."""
        fs, gWs, gCs = smooth_value_and_grad(Ws, Cs)
        for _ in range(max_ls_iter):
            step = 1.0 / gamma
            Wz = penalty.prox(Ws - step * gWs, step)
            Cz = Cs - step * gCs

            dW = Wz - Ws
            dC = Cz - Cs
            r_sum = float(np.sum(dW * dW) + dC @ dC)
            if r_sum <= _STALL_EPS:
                return Wz, Cz, gamma, True

            fz = smooth_value(Wz, Cz)
            bound = fs + float(np.sum(dW * gWs) + dC @ gCs) + 0.5 * gamma * r_sum
            if fz <= bound:
                return Wz, Cz, gamma, False
            gamma *= step_inc
        raise LineSearchFailure(
            f"Backtracking exceeded {max_ls_iter} step-size reductions at iteration "
            f"{iteration} (gamma={gamma:.3g}). The loss may be badly scaled; try "
            f"standardizing X or raising max_ls_iter.",
            iteration=iteration,
            gamma=gamma,
        )

    # ----------------------------
    # Initialization
    # ----------------------------
    W = np.array(W0, dtype=np.float64, copy=True)
    C = np.array(C0, dtype=np.float64, copy=True).reshape(-1)
    W_old, C_old = W.copy(), C.copy()

    t_k, t_old = 1.0, 0.0
    gamma = 1.0

    F_cur = smooth_value(W, C) + penalty.value(W)
    history: list[float] = []
    surrogate_history: list[float] = []
    status = "max_iter"
    n_iter = 0
    best = (np.inf, W, C)

    # ----------------------------
    # Main loop
    # ----------------------------
    for it in range(max_iter):
        n_iter = it + 1
        alpha = (t_old - 1.0) / t_k
        Ws = W + alpha * (W - W_old)
        Cs = C + alpha * (C - C_old)

        Wz, Cz, gamma, stalled = prox_step(Ws, Cs, gamma, it)
        F_new = smooth_value(Wz, Cz) + penalty.value(Wz)

        if alpha > 0 and F_new > F_cur:
            # Momentum overshoot: restart from the current iterate
            t_k, t_old = 1.0, 0.0
            Wz, Cz, gamma, stalled = prox_step(W, C, gamma, it)
            F_new = smooth_value(Wz, Cz) + penalty.value(Wz)

        W_old, C_old = W, C
        W, C = Wz, Cz
        F_prev, F_cur = F_cur, F_new

        surrogate_history.append(F_new)
        if penalty.relaxed:
            history.append(loss.value(Xs, Ys, W, C) + penalty.reported(W))
            if history[-1] < best[0]:
                best = (history[-1], W, C)
        else:
            history.append(F_new)

        if stalled:
            status = "converged"
            break

        if it >= 1 and abs(F_cur - F_prev) <= tol * abs(F_prev):
            status = "converged"
            break

        t_old = t_k
        t_k = 0.5 * (1.0 + np.sqrt(1.0 + 4.0 * t_k * t_k))

    converged = status == "converged"
    if penalty.relaxed and not converged:
        # lowest reported objective seen
        _, W, C = best
    if converged:
        logger.debug(
            "%s converged after %d iterations (objective %.6g)",
            penalty.regularization.value,
            n_iter,
            history[-1],
        )
    else:
        logger.warning(
            "%s did not converge within %d iterations (objective %.6g, tol %.3g)",
            penalty.regularization.value,
            max_iter,
            history[-1],
            tol,
        )

    return SolveResult(
        W=W,
        C=C,
        history=history,
        surrogate_history=surrogate_history,
        n_iter=n_iter,
        converged=converged,
        status=status,
    )
