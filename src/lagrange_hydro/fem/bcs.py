"""Boundary condition helpers."""

from __future__ import annotations

from typing import Sequence, Tuple

import numpy as np
import scipy.sparse as sp

from lagrange_hydro.fem.spaces import H1Space

# velocity components pinned by each integer boundary code
BC_COMPONENTS = {
    1: {0: (), 1: (0,)},
    2: {0: (), 1: (0,), 2: (1,), 3: (0, 1)},
    3: {
        0: (),
        1: (0,),
        2: (1,),
        3: (2,),
        4: (0, 1, 2),
        5: (0, 1),
        6: (0, 2),
        7: (1, 2),
    },
}


def essential_vdofs(space: H1Space, bc_codes: Sequence[int]) -> np.ndarray:
    """Constrained velocity vdofs (zero acceleration), one integer code per boundary attribute."""
    attrs = space.mesh.bdr_attributes
    codes = [int(c) for c in bc_codes]
    if len(codes) != len(attrs):
        raise ValueError(
            f"Got {len(codes)} boundary codes but the mesh has {len(attrs)} boundary attributes"
        )
    table = BC_COMPONENTS[space.dim]
    ess = []
    for attr, code in zip(attrs, codes):
        if code not in table:
            raise ValueError(f"Unknown boundary code {code} for a {space.dim}D mesh (attribute {attr})")
        comps = table[code]
        if not comps:
            continue
        nodes = space.boundary_nodes(attr)
        for c in comps:
            ess.append(space.vdofs(c, nodes))
    if not ess:
        return np.zeros(0, dtype=np.int64)
    return np.unique(np.concatenate(ess))


def apply_boundary_velocity(
    space: H1Space,
    bc_codes: Sequence[int],
    values: Sequence[Sequence[float]],
    v: np.ndarray,
) -> None:
    """Write prescribed velocities into ``v`` on the constrained vdofs.

    Parameters
    ----------
    space : H1Space
        Velocity space.
    bc_codes : sequence of int
        One boundary code per boundary attribute (see ``BC_COMPONENTS``).
    values : sequence of sequences
        ``values[c][i]`` is velocity component ``c`` on boundary attribute
        ``i``.  An empty or missing component list means zero.
    v : np.ndarray
        Component-major velocity vector, modified in place.

    Notes
    -----
    Attributes are processed in order, so on nodes shared by two constrained
    boundaries the later attribute wins.  Only the components its code
    constrains are written.
    """
    attrs = space.mesh.bdr_attributes
    codes = [int(c) for c in bc_codes]
    if len(codes) != len(attrs):
        raise ValueError(
            f"Got {len(codes)} boundary codes but the mesh has {len(attrs)} boundary attributes"
        )
    comps_vals = []
    for c in range(space.dim):
        vals = [float(x) for x in values[c]] if c < len(values) else []
        if vals and len(vals) != len(attrs):
            raise ValueError(
                f"Velocity component {c} has {len(vals)} entries, expected one per boundary attribute ({len(attrs)})"
            )
        comps_vals.append(vals)

    table = BC_COMPONENTS[space.dim]
    for i, (attr, code) in enumerate(zip(attrs, codes)):
        if code not in table:
            raise ValueError(f"Unknown boundary code {code} for a {space.dim}D mesh (attribute {attr})")
        comps = table[code]
        if not comps:
            continue
        nodes = space.boundary_nodes(attr)
        for c in comps:
            vals = comps_vals[c]
            v[space.vdofs(c, nodes)] = vals[i] if vals else 0.0


def free_fixed_split(n: int, fixed: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    all_ids = np.arange(n, dtype=np.int64)
    fixed_ids = np.unique(np.asarray(fixed, dtype=np.int64))
    free = np.setdiff1d(all_ids, fixed_ids)
    return free, fixed_ids


def restrict_homogeneous(A: sp.csr_matrix, b: np.ndarray, fixed: np.ndarray):
    """Free-dof block of ``A x = b`` with ``x[fixed] = 0``.

    Returns ``free, A_ff, b_f``.
    """
    free, _ = free_fixed_split(A.shape[0], fixed)
    A_ff = A[free, :][:, free]
    b_f = b[free]
    return free, A_ff, b_f
