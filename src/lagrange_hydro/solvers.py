"""Jacobi-preconditioned conjugate gradient service."""

from __future__ import annotations

import warnings
from dataclasses import dataclass
from typing import Optional

import numpy as np
import scipy.sparse as sp
import scipy.sparse.linalg as spla

from lagrange_hydro.fem.bcs import restrict_homogeneous


@dataclass
class SolveResult:
    x: np.ndarray
    iterations: int
    residual: float  # relative, ||b - A x|| / ||b||
    converged: bool


class CGSolver:
    """Solve SPD systems with homogeneous essential dofs.

    Essential dofs are eliminated (``x[ess] = 0``) and CG runs on the free
    block with a Jacobi preconditioner.  The free block of the last matrix is
    cached, so repeated solves with the same operator and constraints do not
    re-slice it.
    """

    def __init__(self, rel_tol: float = 1e-10, max_iter: int = 300):
        if rel_tol <= 0.0:
            raise ValueError(f"rel_tol must be positive, got {rel_tol}")
        if max_iter < 1:
            raise ValueError(f"max_iter must be >= 1, got {max_iter}")
        self.rel_tol = float(rel_tol)
        self.max_iter = int(max_iter)
        self._cache = None
        self.last: Optional[SolveResult] = None

    def _reduced(self, A: sp.csr_matrix, ess: np.ndarray):
        key = np.asarray(ess, dtype=np.int64).tobytes()
        if self._cache is not None and self._cache[0] is A and self._cache[1] == key:
            return self._cache[2:]
        free, A_ff, _ = restrict_homogeneous(A, np.zeros(A.shape[0]), ess)
        A_ff = sp.csr_matrix(A_ff)
        diag = A_ff.diagonal().copy()
        diag[diag == 0.0] = 1.0
        M = spla.LinearOperator(A_ff.shape, matvec=lambda r: r / diag, dtype=float)
        self._cache = (A, key, free, A_ff, M)
        return free, A_ff, M

    def solve(self, A, b: np.ndarray, ess_dofs=None, x0: Optional[np.ndarray] = None) -> SolveResult:
        n = A.shape[0]
        ess = np.zeros(0, dtype=np.int64) if ess_dofs is None else np.asarray(ess_dofs, dtype=np.int64)
        free, A_ff, M = self._reduced(A, ess)
        b_f = np.asarray(b, dtype=float)[free]

        x = np.zeros(n, dtype=float)
        bnorm = float(np.linalg.norm(b_f))
        if bnorm == 0.0:
            self.last = SolveResult(x=x, iterations=0, residual=0.0, converged=True)
            return self.last

        iters = [0]

        def _count(_xk):
            iters[0] += 1

        x0_f = None if x0 is None else np.asarray(x0, dtype=float)[free]
        x_f, info = spla.cg(
            A_ff, b_f, x0=x0_f, rtol=self.rel_tol, atol=0.0,
            maxiter=self.max_iter, M=M, callback=_count,
        )
        x[free] = x_f
        res = float(np.linalg.norm(b_f - A_ff @ x_f)) / bnorm
        converged = info == 0
        if not converged:
            warnings.warn(
                f"CG did not converge: {iters[0]} iterations, relative residual {res:.3e} "
                f"(tol {self.rel_tol:.1e})",
                RuntimeWarning,
            )
        self.last = SolveResult(x=x, iterations=iters[0], residual=res, converged=converged)
        return self.last
