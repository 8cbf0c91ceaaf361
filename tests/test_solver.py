import numpy as np
import pytest

from mtlreg import (
    InvalidConfigError,
    LineSearchFailure,
    SolverOptions,
    accelerated_gradient,
    fit_mtl,
    simulate_mtl,
)
from mtlreg.strategies import ProblemType, Regularization, get_loss, make_penalty

def _fit_kwargs(name, data):
    kwargs = {}
    if name == "Graph":
        kwargs["G"] = data.G
    if name == "CMTL":
        kwargs["k"] = 2
    return kwargs


def _assert_non_increasing(history, start=2):
    h = np.asarray(history, dtype=float)[start:]
    assert np.all(np.diff(h) <= 1e-9 * np.abs(h[:-1]) + 1e-12)


@pytest.mark.parametrize("name", ["Lasso", "L21", "Trace", "Graph"])
@pytest.mark.parametrize("problem_type", ["Regression", "Classification"])
def test_objective_history_is_non_increasing(name, problem_type):
    data = simulate_mtl(name, problem_type, n=40, p=8, t=4, seed=11)
    model = fit_mtl(
        data.Xs,
        data.Ys,
        problem_type,
        name,
        lam1=0.05,
        lam2=0.01,
        options=SolverOptions(tol=1e-10, max_iter=300),
        **_fit_kwargs(name, data),
    )
    assert len(model.history) == model.n_iter
    _assert_non_increasing(model.history)
    assert model.surrogate_history == model.history


@pytest.mark.parametrize("problem_type", [ProblemType.REGRESSION, ProblemType.CLASSIFICATION])
def test_cmtl_minimised_objective_is_non_increasing(problem_type):
    data = simulate_mtl("CMTL", problem_type, n=40, p=8, t=4, k=2, seed=12)
    p, t = 8, 4
    result = accelerated_gradient(
        data.Xs,
        data.Ys,
        get_loss(problem_type),
        make_penalty(Regularization.CMTL, 0.05, 0.02, k=2),
        np.zeros((p, t)),
        np.zeros(t),
        tol=1e-10,
        max_iter=300,
    )
    assert len(result.history) == len(result.surrogate_history) == result.n_iter
    _assert_non_increasing(result.surrogate_history)
    # the reported (exact) objective is never below the relaxed one
    assert np.all(
        np.asarray(result.history) >= np.asarray(result.surrogate_history) - 1e-9
    )


@pytest.mark.parametrize("seed", [0, 1, 2])
@pytest.mark.parametrize("problem_type", ["Regression", "Classification"])
def test_fitted_cmtl_model_carries_monotone_history(problem_type, seed):
    data = simulate_mtl("CMTL", problem_type, n=40, p=8, t=4, k=2, seed=seed)
    model = fit_mtl(
        data.Xs,
        data.Ys,
        problem_type,
        "CMTL",
        lam1=0.5,
        lam2=0.05,
        k=2,
        options=SolverOptions(tol=1e-10, max_iter=300),
    )
    assert len(model.surrogate_history) == len(model.history) == model.n_iter
    _assert_non_increasing(model.surrogate_history)
    assert np.all(
        np.asarray(model.history) >= np.asarray(model.surrogate_history) - 1e-9
    )


def test_cmtl_max_iter_returns_best_reported_iterate():
    data = simulate_mtl("CMTL", "Regression", n=40, p=8, t=4, k=2, seed=0)
    loss = get_loss(ProblemType.REGRESSION)
    penalty = make_penalty(Regularization.CMTL, 0.5, 0.05, k=2)
    result = accelerated_gradient(
        data.Xs,
        data.Ys,
        loss,
        penalty,
        np.zeros((8, 4)),
        np.zeros(4),
        tol=0.0,
        max_iter=40,
    )
    assert result.status == "max_iter"
    reported = loss.value(data.Xs, data.Ys, result.W, result.C) + penalty.reported(result.W)
    assert np.isclose(reported, min(result.history))


def test_converges_on_easy_problem():
    data = simulate_mtl("Lasso", "Regression", n=60, p=6, t=3, seed=2)
    model = fit_mtl(data.Xs, data.Ys, "Regression", "Lasso", lam1=0.01)
    assert model.converged
    assert model.status == "converged"
    assert model.n_iter < 1000


def test_max_iter_is_flagged_not_raised():
    data = simulate_mtl("Trace", "Regression", n=30, p=6, t=3, seed=3)
    model = fit_mtl(
        data.Xs,
        data.Ys,
        "Regression",
        "Trace",
        lam1=0.01,
        options=SolverOptions(tol=0.0, max_iter=2),
    )
    assert not model.converged
    assert model.status == "max_iter"
    assert model.n_iter == 2
    assert len(model.history) == 2
    assert np.all(np.isfinite(model.W))


def test_large_lasso_penalty_gives_zero_weights():
    data = simulate_mtl("Lasso", "Regression", n=40, p=6, t=3, seed=4)
    model = fit_mtl(data.Xs, data.Ys, "Regression", "Lasso", lam1=100.0)
    assert np.all(model.W == 0.0)
    # intercepts still fit the task means
    for i, y in enumerate(data.Ys):
        assert abs(model.C[i] - y.mean()) < 0.1 * (1 + abs(y.mean()))


def test_warm_start_requires_initial_point():
    data = simulate_mtl("Lasso", "Regression", n=20, p=4, t=2, seed=5)
    with pytest.raises(InvalidConfigError, match="W0 and C0"):
        fit_mtl(
            data.Xs, data.Ys, "Regression", "Lasso", lam1=0.1, options=SolverOptions(init=1)
        )


def test_warm_start_from_solution_stops_quickly():
    data = simulate_mtl("L21", "Regression", n=50, p=8, t=4, seed=6)
    opts = SolverOptions(tol=1e-8, max_iter=3000)
    cold = fit_mtl(data.Xs, data.Ys, "Regression", "L21", lam1=0.05, options=opts)

    warm_opts = SolverOptions(tol=1e-8, max_iter=3000, init=1, W0=cold.W, C0=cold.C)
    warm = fit_mtl(data.Xs, data.Ys, "Regression", "L21", lam1=0.05, options=warm_opts)

    assert warm.n_iter < cold.n_iter
    assert np.allclose(warm.W, cold.W, atol=1e-3)


def test_line_search_failure_is_raised():
    data = simulate_mtl("Lasso", "Regression", n=30, p=5, t=2, seed=7)
    Xs = [1e3 * X for X in data.Xs]
    with pytest.raises(LineSearchFailure, match="Backtracking"):
        fit_mtl(
            Xs,
            data.Ys,
            "Regression",
            "Lasso",
            lam1=0.1,
            options=SolverOptions(max_ls_iter=1),
        )


def test_solver_does_not_modify_inputs():
    data = simulate_mtl("Trace", "Regression", n=20, p=5, t=3, seed=8)
    W0 = np.ones((5, 3))
    C0 = np.ones(3)
    X0 = [X.copy() for X in data.Xs]
    accelerated_gradient(
        data.Xs,
        data.Ys,
        get_loss(ProblemType.REGRESSION),
        make_penalty(Regularization.TRACE, 0.1),
        W0,
        C0,
        max_iter=20,
    )
    assert np.all(W0 == 1.0) and np.all(C0 == 1.0)
    for X, X_orig in zip(data.Xs, X0, strict=False):
        assert np.array_equal(X, X_orig)
