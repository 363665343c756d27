"""Tensor-product Gauss-Legendre rules on the reference cell ``[0, 1]^d``."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class IntegrationRule:
    """Quadrature points and weights on the reference cell.

    Points are ordered lexicographically with the first coordinate running
    fastest, matching the local dof ordering of :mod:`lagrange_hydro.fem.basis`.
    """

    dim: int
    n1d: int
    points: np.ndarray  # (nq, dim)
    weights: np.ndarray  # (nq,)

    @property
    def nq(self) -> int:
        return int(self.weights.shape[0])


def gauss_legendre_1d(n: int):
    """Gauss-Legendre points/weights mapped to [0, 1]."""
    if n < 1:
        raise ValueError(f"Gauss-Legendre rule needs at least one point, got n={n}")
    x, w = np.polynomial.legendre.leggauss(int(n))
    return 0.5 * (x + 1.0), 0.5 * w


def tensor_rule(dim: int, n1d: int) -> IntegrationRule:
    x1, w1 = gauss_legendre_1d(n1d)
    grids = np.meshgrid(*([x1] * dim), indexing="ij")
    wgrids = np.meshgrid(*([w1] * dim), indexing="ij")
    # reverse axes so that coordinate 0 runs fastest
    pts = np.stack([g.transpose(tuple(range(dim))[::-1]).ravel() for g in grids], axis=1)
    w = np.ones(n1d ** dim, dtype=float)
    for g in wgrids:
        w = w * g.transpose(tuple(range(dim))[::-1]).ravel()
    return IntegrationRule(dim=int(dim), n1d=int(n1d), points=pts, weights=w)


def integration_order(order_v: int, order_e: int, order_q: int = -1) -> int:
    """Polynomial order integrated exactly by the default hydro rule."""
    if order_q > 0:
        return int(order_q)
    return 3 * int(order_v) + int(order_e) - 1


def default_rule(dim: int, order_v: int, order_e: int, order_q: int = -1) -> IntegrationRule:
    order = integration_order(order_v, order_e, order_q)
    # n Gauss points integrate polynomials of degree 2n-1 exactly
    n1d = order // 2 + 1
    return tensor_rule(dim, n1d)
