"""Jacobi-preconditioned CG with eliminated essential dofs."""

import warnings

import numpy as np
import pytest
import scipy.sparse as sp

from lagrange_hydro.solvers import CGSolver


def _laplacian(n):
    main = 2.0 * np.ones(n)
    off = -1.0 * np.ones(n - 1)
    return sp.diags([off, main, off], [-1, 0, 1]).tocsr()


def test_solves_spd_system():
    A = _laplacian(20) + sp.identity(20)
    x_ref = np.linspace(0.0, 1.0, 20)
    b = A @ x_ref
    res = CGSolver(rel_tol=1e-12).solve(A, b)
    assert res.converged
    assert res.iterations > 0
    np.testing.assert_allclose(res.x, x_ref, rtol=1e-9, atol=1e-10)


def test_essential_dofs_stay_zero():
    A = _laplacian(10) + sp.identity(10)
    b = np.ones(10)
    ess = np.array([0, 9])
    res = CGSolver(rel_tol=1e-12).solve(A, b, ess)
    assert res.x[0] == 0.0 and res.x[9] == 0.0
    free = np.arange(1, 9)
    r = (A @ res.x - b)[free]
    assert np.linalg.norm(r) < 1e-9


def test_zero_rhs_short_circuits():
    res = CGSolver().solve(_laplacian(5), np.zeros(5))
    assert res.converged
    assert res.iterations == 0
    assert not res.x.any()


def test_reduced_block_is_cached():
    solver = CGSolver()
    A = _laplacian(8) + sp.identity(8)
    ess = np.array([0])
    solver.solve(A, np.ones(8), ess)
    cached = solver._cache[3]
    solver.solve(A, 2.0 * np.ones(8), ess)
    assert solver._cache[3] is cached
    solver.solve(A, np.ones(8), np.array([1]))
    assert solver._cache[3] is not cached


def test_non_convergence_warns():
    A = _laplacian(200)
    b = np.random.default_rng(0).normal(size=200)
    with pytest.warns(RuntimeWarning, match="did not converge"):
        res = CGSolver(rel_tol=1e-14, max_iter=2).solve(A, b)
    assert not res.converged
    assert res.residual > 1e-14


def test_converged_solve_does_not_warn():
    A = _laplacian(10) + sp.identity(10)
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        CGSolver().solve(A, np.ones(10))


def test_invalid_settings():
    with pytest.raises(ValueError):
        CGSolver(rel_tol=0.0)
    with pytest.raises(ValueError):
        CGSolver(max_iter=0)
