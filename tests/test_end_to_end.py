import numpy as np

from mtlreg import SolverOptions, calc_error, fit_mtl, simulate_mtl


def _two_cluster_tasks(rng, p=10, per_cluster=3, n=60, noise=0.3):
    a = rng.standard_normal(p)
    b = rng.standard_normal(p)
    # make the two centres uncorrelated
    a_c = a - a.mean()
    b_c = b - b.mean()
    b = b_c - (a_c @ b_c) / (a_c @ a_c) * a_c
    centres = [a, b]

    W = np.column_stack(
        [centres[j] + 0.1 * rng.standard_normal(p) for j in range(2) for _ in range(per_cluster)]
    )
    Xs, Ys = [], []
    for i in range(W.shape[1]):
        X = rng.standard_normal((n, p))
        Xs.append(X)
        Ys.append(X @ W[:, i] + noise * rng.standard_normal(n))
    return Xs, Ys, W


def test_cmtl_recovers_two_task_clusters():
    rng = np.random.default_rng(2024)
    Xs, Ys, _ = _two_cluster_tasks(rng)

    model = fit_mtl(
        Xs,
        Ys,
        "Regression",
        "CMTL",
        lam1=0.1,
        lam2=0.01,
        k=2,
        options=SolverOptions(tol=1e-6, max_iter=2000),
    )
    corr = np.corrcoef(model.W.T)
    first, second = [0, 1, 2], [3, 4, 5]

    within = [corr[i, j] for grp in (first, second) for i in grp for j in grp if i < j]
    across = [corr[i, j] for i in first for j in second]
    assert min(within) > 0.8
    assert max(across) < min(within)


def test_every_regularizer_beats_the_null_model():
    for name, extra in [
        ("Lasso", {}),
        ("L21", {}),
        ("Trace", {}),
        ("Graph", {}),
        ("CMTL", {"k": 2}),
    ]:
        data = simulate_mtl(name, "Regression", n=50, p=8, t=4, n_test=100, seed=5)
        if name == "Graph":
            extra = {"G": data.G}
        model = fit_mtl(
            data.Xs, data.Ys, "Regression", name, lam1=0.01, lam2=0.01, **extra
        )
        null_mse = np.mean([np.mean((y - y.mean()) ** 2) for y in data.test_Ys])
        assert calc_error(model, data.test_Xs, data.test_Ys) < null_mse, name
