"""Initial conditions and body-force sources."""

from __future__ import annotations

from typing import Callable

import numpy as np

from lagrange_hydro.fem.spaces import H1Space, L2Space
from lagrange_hydro.state import NSYM


def project_h1(space: H1Space, func: Callable[[np.ndarray], np.ndarray]) -> np.ndarray:
    """Nodal interpolation of a vector field, component-major."""
    X = space.node_coords()
    vals = np.asarray(func(X), dtype=float).reshape(space.ndofs, space.dim)
    return vals.T.reshape(-1).copy()


def project_l2(space: L2Space, func: Callable[[np.ndarray], np.ndarray]) -> np.ndarray:
    """Nodal interpolation at the L2 nodes.

    ``func`` returns ``(n,)`` for a scalar or ``(n, k)`` for ``k`` components;
    components are stacked one after the other.
    """
    X = space.node_coords()
    vals = np.asarray(func(X), dtype=float)
    if vals.ndim == 0:
        return np.full(space.ndofs, float(vals))
    if vals.ndim == 1:
        return vals.reshape(space.ndofs).copy()
    return vals.T.reshape(-1).copy()


def lithostatic_stress(coords: np.ndarray, rho: np.ndarray, gravity: float, thickness: float, dim: int) -> np.ndarray:
    """Voigt stress ``(n, nsym)`` with ``-|thickness - depth| rho g`` on the diagonal.

    The depth coordinate is the last one (y in 2D, z in 3D).
    """
    coords = np.atleast_2d(np.asarray(coords, dtype=float))
    depth = coords[:, dim - 1]
    s = -np.abs(float(thickness) - depth) * np.asarray(rho, dtype=float) * float(gravity)
    out = np.zeros((coords.shape[0], NSYM[dim]))
    for k in range(dim):
        out[:, k] = s
    return out


def gravity_source(dim: int, g: float) -> np.ndarray:
    """Constant acceleration ``-g`` along the last axis."""
    a = np.zeros(dim)
    a[dim - 1] = -float(g)
    return a


def blast_energy(space: L2Space, e_background: float, e_blast: float) -> np.ndarray:
    """Specific energy ``e_blast`` in the element at the mesh origin, background elsewhere."""
    e = np.full(space.ndofs, float(e_background))
    e[space.elem_dofs[0]] = float(e_blast)
    return e
