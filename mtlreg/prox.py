"""Proximal operators and penalty values for the cross-task regularizers.

Every ``prox_*`` function solves

    argmin_Z  1/2 ||Z - V||_F^2 + step * penalty(Z)

for a ``(p, t)`` point ``V`` (column ``i`` = task ``i``) and returns a new
array; inputs are never modified.
"""

from __future__ import annotations

import numpy as np
import scipy.linalg

# Singular values below this fraction of the largest one are treated as zeros
# (square roots of round-off level eigenvalues of W^T W land around 1e-8).
_SV_EPS = 1e-8


def soft_threshold(V: np.ndarray, thresh: float) -> np.ndarray:
    """Elementwise ``sign(v) * max(|v| - thresh, 0)`` (prox of the L1 norm)."""
    return np.sign(V) * np.maximum(np.abs(V) - thresh, 0.0)


def prox_l21(V: np.ndarray, thresh: float) -> np.ndarray:
    """
    Row-wise group shrinkage (prox of sum_r ||V_r||_2).

    Rows whose Euclidean norm is at most ``thresh`` map exactly to zero; the
    remaining rows are rescaled by ``1 - thresh / ||V_r||``.
    """
    norms = np.linalg.norm(V, axis=1)
    scale = np.zeros_like(norms)
    keep = norms > thresh
    scale[keep] = 1.0 - thresh / norms[keep]
    return V * scale[:, None]


def prox_trace(V: np.ndarray, thresh: float) -> np.ndarray:
    """Singular value soft-thresholding (prox of the nuclear norm)."""
    U, s, Vt = np.linalg.svd(V, full_matrices=False)
    s_shrunk = np.maximum(s - thresh, 0.0)
    return (U * s_shrunk) @ Vt


def prox_graph(
    V: np.ndarray, step: float, lam1: float, lam2: float, GGt: np.ndarray
) -> np.ndarray:
    """
    Closed-form prox of the quadratic penalty lam1 ||Z G||_F^2 + lam2 ||Z||_F^2.

    Setting the gradient to zero gives

        Z ((1 + 2 step lam2) I + 2 step lam1 G G^T) = V,

    a symmetric positive definite ``t x t`` system solved from the right.
    """
    t = V.shape[1]
    A = (1.0 + 2.0 * step * lam2) * np.eye(t) + 2.0 * step * lam1 * GGt
    return scipy.linalg.solve(A, V.T, assume_a="pos").T


def cluster_weights(
    sv: np.ndarray, k: int, eta: float, *, tol: float = 1e-12, max_bisect: int = 200
) -> np.ndarray:
    """
    Optimal eigenvalues of the CMTL cluster matrix M.

    Solves ``min_m sum_i sv_i^2 / (eta + m_i)`` subject to ``sum(m) = k`` and
    ``0 <= m_i <= 1``. Stationarity gives ``m_i = clip(mu * sv_i - eta, 0, 1)``
    for a multiplier ``mu`` found by bisection (the constrained sum is
    nondecreasing in ``mu``).

    Parameters
    ----------
    sv : (t,) array
        Non-negative singular values of W (square roots of eig(W^T W)).
    k : int
        Number of clusters, ``1 <= k <= t``.
    eta : float
        Relaxation constant ``lam2 / lam1`` (positive).

    Returns
    -------
    m : (t,) array with entries in [0, 1] summing to ``k``.
    """
    sv = np.clip(np.asarray(sv, dtype=float), 0.0, None)
    t = sv.size
    active = sv > _SV_EPS * max(1.0, float(sv.max(initial=0.0)))
    n_active = int(active.sum())

    if n_active <= k:
        # Directions with zero energy do not affect the objective; fill them
        # evenly so the trace constraint holds.
        m = np.zeros(t)
        m[active] = 1.0
        if t > n_active:
            m[~active] = (k - n_active) / (t - n_active)
        return m

    lo, hi = 0.0, (1.0 + eta) / float(sv[active].min())
    for _ in range(max_bisect):
        mu = 0.5 * (lo + hi)
        if np.clip(mu * sv - eta, 0.0, 1.0).sum() < k:
            lo = mu
        else:
            hi = mu
        if hi - lo <= tol * hi:
            break
    m = np.clip(0.5 * (lo + hi) * sv - eta, 0.0, 1.0)

    # Exact solve on the final active set (the sum is linear there)
    free = (m > 0.0) & (m < 1.0)
    if free.any():
        mu = (k - np.count_nonzero(m >= 1.0) + eta * free.sum()) / sv[free].sum()
        m_exact = np.clip(mu * sv - eta, 0.0, 1.0)
        if abs(m_exact.sum() - k) <= abs(m.sum() - k):
            m = m_exact
    return m


def cluster_matrix(W: np.ndarray, k: int, eta: float) -> np.ndarray:
    """
    Relaxed cluster matrix ``M`` minimising ``tr(W (eta I + M)^{-1} W^T)``
    over ``{M : tr(M) = k, 0 <= M <= I}``.

    ``M`` shares the eigenvectors of ``W^T W``; only its spectrum is solved for.
    """
    evals, Q = np.linalg.eigh(W.T @ W)
    m = cluster_weights(np.sqrt(np.clip(evals, 0.0, None)), k, eta)
    return (Q * m) @ Q.T


def prox_cmtl(
    V: np.ndarray,
    step: float,
    c: float,
    eta: float,
    k: int,
    *,
    max_inner: int = 100,
    tol: float = 1e-10,
) -> np.ndarray:
    """
    Prox of the relaxed clustered-MTL penalty ``c * min_M tr(Z (eta I + M)^{-1} Z^T)``.

    Alternates between
      (a) the closed-form cluster matrix ``M`` for the current ``Z``, and
      (b) the shrinkage ``Z = V (I + 2 step c (eta I + M)^{-1})^{-1}``.

    Both updates keep the eigenvectors ``Q`` of ``V^T V``, so the alternation
    runs on the singular values only and ``Z = V Q diag(d) Q^T`` at the end.
    """
    evals, Q = np.linalg.eigh(V.T @ V)
    sv = np.sqrt(np.clip(evals, 0.0, None))
    scale = max(1.0, float(sv.max(initial=0.0)))

    zeta = sv
    shrink = np.ones_like(sv)
    for _ in range(max_inner):
        m = cluster_weights(zeta, k, eta)
        shrink = (eta + m) / (eta + m + 2.0 * step * c)
        zeta_new = shrink * sv
        done = float(np.max(np.abs(zeta_new - zeta), initial=0.0)) <= tol * scale
        zeta = zeta_new
        if done:
            break

    return ((V @ Q) * shrink) @ Q.T


# ----------------------------------------------------------------------
# Penalty values
# ----------------------------------------------------------------------
def l1_norm(W: np.ndarray) -> float:
    return float(np.sum(np.abs(W)))


def l21_norm(W: np.ndarray) -> float:
    return float(np.sum(np.linalg.norm(W, axis=1)))


def trace_norm(W: np.ndarray) -> float:
    return float(np.sum(np.linalg.svd(W, compute_uv=False)))


def graph_penalty(W: np.ndarray, G: np.ndarray, lam1: float, lam2: float) -> float:
    """lam1 ||W G||_F^2 + lam2 ||W||_F^2"""
    WG = W @ G
    return float(lam1 * np.sum(WG * WG) + lam2 * np.sum(W * W))


def cmtl_relaxed_penalty(W: np.ndarray, c: float, eta: float, k: int) -> float:
    """c * min_M tr(W (eta I + M)^{-1} W^T), the value the solver optimises."""
    A = eta * np.eye(W.shape[1]) + cluster_matrix(W, k, eta)
    AinvWt = scipy.linalg.solve(A, W.T, assume_a="pos")
    return float(c * np.sum(W * AinvWt.T))


def cmtl_penalty(W: np.ndarray, lam1: float, lam2: float, k: int) -> float:
    """
    Non-relaxed clustered-MTL penalty

        lam1 (tr(W^T W) - tr(F^T W^T W F)) + lam2 tr(W^T W),

    with ``F`` the top-``k`` eigenvectors of ``W^T W`` (the k-means style
    within-cluster spread of the task weight vectors).
    """
    evals = np.clip(np.linalg.eigvalsh(W.T @ W), 0.0, None)  # ascending
    total = float(evals.sum())
    top = float(evals[-k:].sum())
    return lam1 * (total - top) + lam2 * total
