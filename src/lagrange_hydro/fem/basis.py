"""Tensor-product Lagrange bases on the reference cell ``[0, 1]^d``.

Local dofs are numbered lexicographically with the first coordinate running
fastest: ``l = i0 + (p+1) * (i1 + (p+1) * i2)``.
"""

from __future__ import annotations

import numpy as np

from lagrange_hydro.fem.quadrature import gauss_legendre_1d


def h1_nodes_1d(order: int) -> np.ndarray:
    """Closed (equispaced) nodes for continuous spaces."""
    if order < 1:
        raise ValueError(f"H1 order must be >= 1, got {order}")
    return np.linspace(0.0, 1.0, int(order) + 1)


def l2_nodes_1d(order: int) -> np.ndarray:
    """Open (Gauss-Legendre) nodes for discontinuous spaces."""
    if order < 0:
        raise ValueError(f"L2 order must be >= 0, got {order}")
    x, _ = gauss_legendre_1d(int(order) + 1)
    return x


def lagrange_1d(nodes: np.ndarray, x: np.ndarray):
    """1D Lagrange polynomials and derivatives.

    Parameters
    ----------
    nodes : (n,) float
        Interpolation nodes.
    x : (m,) float
        Evaluation points.

    Returns
    -------
    vals : (m, n) float
    ders : (m, n) float
    """
    nodes = np.asarray(nodes, dtype=float)
    x = np.atleast_1d(np.asarray(x, dtype=float))
    n = nodes.shape[0]
    m = x.shape[0]
    vals = np.ones((m, n), dtype=float)
    ders = np.zeros((m, n), dtype=float)
    for j in range(n):
        denom = 1.0
        for k in range(n):
            if k != j:
                denom *= nodes[j] - nodes[k]
        for k in range(n):
            if k != j:
                vals[:, j] *= x - nodes[k]
        # product rule: sum over the dropped factor
        for k in range(n):
            if k == j:
                continue
            term = np.ones(m, dtype=float)
            for l in range(n):
                if l != j and l != k:
                    term *= x - nodes[l]
            ders[:, j] += term
        vals[:, j] /= denom
        ders[:, j] /= denom
    return vals, ders


class TensorBasis:
    """Tensor product of one 1D Lagrange basis in every direction."""

    def __init__(self, nodes_1d: np.ndarray, dim: int):
        self.nodes_1d = np.asarray(nodes_1d, dtype=float)
        self.dim = int(dim)
        self.n1d = int(self.nodes_1d.shape[0])
        self.ndof = self.n1d ** self.dim

    def local_index(self, idx) -> int:
        l = 0
        stride = 1
        for k in range(self.dim):
            l += int(idx[k]) * stride
            stride *= self.n1d
        return l

    def multi_index(self) -> np.ndarray:
        """(ndof, dim) per-direction 1D node index of every local dof."""
        out = np.zeros((self.ndof, self.dim), dtype=np.int64)
        for l in range(self.ndof):
            r = l
            for k in range(self.dim):
                out[l, k] = r % self.n1d
                r //= self.n1d
        return out

    def reference_nodes(self) -> np.ndarray:
        mi = self.multi_index()
        return self.nodes_1d[mi]

    def evaluate(self, points: np.ndarray):
        """Values ``B (np, nd)`` and reference gradients ``G (np, nd, dim)``."""
        points = np.atleast_2d(np.asarray(points, dtype=float))
        npts = points.shape[0]
        mi = self.multi_index()
        v1 = []
        d1 = []
        for k in range(self.dim):
            v, d = lagrange_1d(self.nodes_1d, points[:, k])
            v1.append(v)
            d1.append(d)

        B = np.ones((npts, self.ndof), dtype=float)
        G = np.ones((npts, self.ndof, self.dim), dtype=float)
        for k in range(self.dim):
            vk = v1[k][:, mi[:, k]]
            dk = d1[k][:, mi[:, k]]
            B *= vk
            for g in range(self.dim):
                G[:, :, g] *= dk if g == k else vk
        return B, G
