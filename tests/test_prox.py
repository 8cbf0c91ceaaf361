import numpy as np
import numpy.linalg as npl

from mtlreg.prox import (
    cluster_matrix,
    cluster_weights,
    cmtl_penalty,
    cmtl_relaxed_penalty,
    prox_cmtl,
    prox_graph,
    prox_l21,
    prox_trace,
    soft_threshold,
)
from mtlreg.sim import chain_graph


def test_soft_threshold_identity_and_zero_limits():
    rng = np.random.default_rng(0)
    V = rng.standard_normal((6, 4))

    assert np.array_equal(soft_threshold(V, 0.0), V)
    assert np.array_equal(soft_threshold(V, 1e12), np.zeros_like(V))

    thresh = 0.3
    Z = soft_threshold(V, thresh)
    small = np.abs(V) <= thresh
    assert np.all(Z[small] == 0.0)
    assert np.allclose(np.abs(Z[~small]), np.abs(V[~small]) - thresh)
    assert np.all(np.sign(Z[~small]) == np.sign(V[~small]))


def test_l21_zeroes_rows_below_threshold():
    V = np.array(
        [
            [3.0, 4.0, 0.0],   # norm 5
            [0.3, 0.4, 0.0],   # norm 0.5
            [0.0, 0.0, 0.0],   # zero row
            [1.0, 0.0, 0.0],   # norm 1, exactly at the threshold
        ]
    )
    Z = prox_l21(V, 1.0)

    assert np.all(np.isfinite(Z))
    assert np.all(Z[1:] == 0.0)
    # surviving row keeps its direction, norm shrinks by the threshold
    assert np.isclose(npl.norm(Z[0]), 4.0)
    assert np.allclose(Z[0] / npl.norm(Z[0]), V[0] / 5.0)

    # raising the threshold beyond a row's norm keeps that row at zero
    Z_big = prox_l21(V, 10.0)
    assert np.all(Z_big == 0.0)


def test_trace_prox_shrinks_singular_values():
    rng = np.random.default_rng(1)
    V = rng.standard_normal((8, 5))
    s = npl.svd(V, compute_uv=False)
    thresh = float(np.median(s))

    Z = prox_trace(V, thresh)
    s_z = npl.svd(Z, compute_uv=False)
    assert np.allclose(np.sort(s_z)[::-1], np.maximum(s - thresh, 0.0), atol=1e-10)

    assert np.allclose(prox_trace(np.zeros((4, 3)), 0.5), 0.0)
    assert np.allclose(prox_trace(V, 0.0), V)


def test_graph_prox_satisfies_optimality_condition():
    rng = np.random.default_rng(2)
    p, t = 6, 5
    V = rng.standard_normal((p, t))
    G = chain_graph(t)
    step, lam1, lam2 = 0.7, 0.4, 0.1

    Z = prox_graph(V, step, lam1, lam2, G @ G.T)
    grad = (Z - V) + step * (2 * lam1 * Z @ G @ G.T + 2 * lam2 * Z)
    assert np.allclose(grad, 0.0, atol=1e-12)

    # no penalty -> identity
    assert np.allclose(prox_graph(V, step, 0.0, 0.0, G @ G.T), V)


def test_cluster_weights_feasible_and_ordered():
    rng = np.random.default_rng(3)
    sv = np.abs(rng.standard_normal(7)) * 3
    for k in (1, 2, 4):
        m = cluster_weights(sv, k, eta=0.5)
        assert np.isclose(m.sum(), k, atol=1e-9)
        assert np.all(m >= -1e-12) and np.all(m <= 1 + 1e-12)
        order = np.argsort(sv)
        assert np.all(np.diff(m[order]) >= -1e-12)


def test_cluster_weights_degenerate_spectrum():
    m = cluster_weights(np.array([3.0, 0.0, 0.0, 0.0]), 2, eta=0.1)
    assert np.allclose(m, [1.0, 1 / 3, 1 / 3, 1 / 3])

    m0 = cluster_weights(np.zeros(5), 2, eta=0.1)
    assert np.allclose(m0, 0.4)


def test_cluster_matrix_constraints():
    rng = np.random.default_rng(4)
    W = rng.standard_normal((10, 6))
    M = cluster_matrix(W, 3, eta=0.2)

    assert np.allclose(M, M.T)
    assert np.isclose(np.trace(M), 3.0, atol=1e-9)
    ev = npl.eigvalsh(M)
    assert ev.min() >= -1e-9 and ev.max() <= 1 + 1e-9


def test_relaxed_penalty_uses_optimal_cluster_matrix():
    rng = np.random.default_rng(7)
    W = rng.standard_normal((8, 5))
    c, eta, k = 0.4, 0.25, 2

    evals = np.clip(npl.eigvalsh(W.T @ W), 0.0, None)
    m = cluster_weights(np.sqrt(evals), k, eta)
    spectral = c * np.sum(evals / (eta + m))
    assert np.isclose(cmtl_relaxed_penalty(W, c, eta, k), spectral)

    # a flat feasible M does no better
    M_flat = np.full(5, k / 5)
    flat = c * np.trace(W @ npl.solve(eta * np.eye(5) + np.diag(M_flat), W.T))
    assert cmtl_relaxed_penalty(W, c, eta, k) <= flat + 1e-9


def test_prox_cmtl_is_a_minimizer():
    rng = np.random.default_rng(5)
    V = rng.standard_normal((5, 4))
    step, c, eta, k = 0.8, 0.6, 0.3, 2

    def objective(Z):
        return 0.5 * np.sum((Z - V) ** 2) + step * cmtl_relaxed_penalty(Z, c, eta, k)

    Z = prox_cmtl(V, step, c, eta, k)
    best = objective(Z)
    assert best < objective(V)
    for _ in range(20):
        D = rng.standard_normal(V.shape)
        assert best <= objective(Z + 1e-3 * D) + 1e-12


def test_prox_cmtl_zero_input_stays_finite():
    Z = prox_cmtl(np.zeros((4, 3)), 1.0, 0.5, 0.1, 2)
    assert np.all(np.isfinite(Z))
    assert np.allclose(Z, 0.0)


def test_relaxed_cmtl_penalty_bounds_the_exact_one():
    rng = np.random.default_rng(6)
    lam1, lam2, k = 0.5, 0.2, 2
    eta = lam2 / lam1
    c = lam1 * eta * (1 + eta)

    W = rng.standard_normal((8, 5))
    assert cmtl_relaxed_penalty(W, c, eta, k) <= cmtl_penalty(W, lam1, lam2, k) + 1e-10

    # with at most k directions the relaxation is tight
    W_low = np.outer(rng.standard_normal(8), rng.standard_normal(5))
    assert np.isclose(
        cmtl_relaxed_penalty(W_low, c, eta, k), cmtl_penalty(W_low, lam1, lam2, k)
    )
