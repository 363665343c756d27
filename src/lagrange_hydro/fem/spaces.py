"""Continuous (H1) and discontinuous (L2) Lagrange spaces on a CartesianMesh."""

from __future__ import annotations

import numpy as np

from lagrange_hydro.fem.basis import TensorBasis, h1_nodes_1d, l2_nodes_1d
from lagrange_hydro.fem.mesh import BOUNDARY_FACES, CartesianMesh


class H1Space:
    """Continuous nodal space of order ``p >= 1``.

    Scalar dofs live on the global node lattice ``(p*nx+1) x (p*ny+1) x ...``.
    Vector fields are stored component-major: ``x[c * ndofs + i]``.
    """

    def __init__(self, mesh: CartesianMesh, order: int):
        self.mesh = mesh
        self.order = int(order)
        self.dim = mesh.dim
        self.basis = TensorBasis(h1_nodes_1d(self.order), self.dim)
        self.n_nodes = tuple(c * self.order + 1 for c in mesh.cells)
        self.ndofs = int(np.prod(self.n_nodes))
        self.vsize = self.dim * self.ndofs
        self.elem_dofs = self._build_elem_dofs()

    def _global_index(self, idx) -> int:
        g = 0
        stride = 1
        for k in range(self.dim):
            g += int(idx[k]) * stride
            stride *= self.n_nodes[k]
        return g

    def _build_elem_dofs(self) -> np.ndarray:
        mesh = self.mesh
        mi = self.basis.multi_index()
        table = np.zeros((mesh.ne, self.basis.ndof), dtype=np.int64)
        for e in range(mesh.ne):
            eidx = mesh.element_multi_index(e)
            for l in range(self.basis.ndof):
                table[e, l] = self._global_index(
                    [eidx[k] * self.order + mi[l, k] for k in range(self.dim)]
                )
        return table

    def node_coords(self) -> np.ndarray:
        """(ndofs, dim) reference coordinates of the global nodes."""
        h = self.mesh.cell_size / self.order
        out = np.zeros((self.ndofs, self.dim), dtype=float)
        for g in range(self.ndofs):
            r = g
            for k in range(self.dim):
                out[g, k] = self.mesh.origin[k] + (r % self.n_nodes[k]) * h[k]
                r //= self.n_nodes[k]
        return out

    def boundary_nodes(self, attribute: int) -> np.ndarray:
        """Scalar node ids on the boundary face carrying ``attribute``."""
        faces = BOUNDARY_FACES[self.dim]
        if attribute not in faces:
            raise ValueError(f"Unknown boundary attribute {attribute} for a {self.dim}D mesh")
        axis, side = faces[attribute]
        target = 0 if side == 0 else self.n_nodes[axis] - 1
        ids = np.arange(self.ndofs, dtype=np.int64)
        stride = int(np.prod(self.n_nodes[:axis])) if axis > 0 else 1
        return ids[(ids // stride) % self.n_nodes[axis] == target]

    def vdofs(self, component: int, nodes: np.ndarray) -> np.ndarray:
        return int(component) * self.ndofs + np.asarray(nodes, dtype=np.int64)

    def element_vector(self, x: np.ndarray, e: int) -> np.ndarray:
        """(nd, dim) nodal values of element ``e`` from a vector field."""
        d = self.elem_dofs[e]
        return np.stack([x[c * self.ndofs + d] for c in range(self.dim)], axis=1)


class L2Space:
    """Discontinuous nodal space of order ``m >= 0`` with element-contiguous dofs."""

    def __init__(self, mesh: CartesianMesh, order: int):
        self.mesh = mesh
        self.order = int(order)
        self.dim = mesh.dim
        self.basis = TensorBasis(l2_nodes_1d(self.order), self.dim)
        self.nd = self.basis.ndof
        self.ndofs = mesh.ne * self.nd
        self.elem_dofs = np.arange(self.ndofs, dtype=np.int64).reshape(mesh.ne, self.nd)

    def node_coords(self) -> np.ndarray:
        """(ndofs, dim) reference coordinates of the element-local nodes."""
        ref = self.basis.reference_nodes()
        org = self.mesh.element_origins()
        h = self.mesh.cell_size
        out = org[:, None, :] + ref[None, :, :] * h[None, None, :]
        return out.reshape(self.ndofs, self.dim)
