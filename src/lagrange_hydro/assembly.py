"""Mass and force operator assembly."""

from __future__ import annotations

from typing import Tuple

import numpy as np
import scipy.sparse as sp

from lagrange_hydro.fem.spaces import H1Space, L2Space
from lagrange_hydro.quadrature_data import QuadratureData


def assemble_h1_mass(h1: H1Space, B: np.ndarray, rho0DetJ0w: np.ndarray) -> sp.csr_matrix:
    """Scalar H1 mass matrix ``sum_q rho0DetJ0w phi_i phi_j``.

    The same matrix serves every velocity component.
    """
    Me = np.einsum("eq,qi,qj->eij", rho0DetJ0w, B, B)
    dofs = h1.elem_dofs
    nd = dofs.shape[1]
    rows = np.repeat(dofs, nd, axis=1).ravel()
    cols = np.tile(dofs, (1, nd)).ravel()
    return sp.csr_matrix((Me.ravel(), (rows, cols)), shape=(h1.ndofs, h1.ndofs))


def lumped(M: sp.csr_matrix) -> sp.csr_matrix:
    """Row-sum lumped diagonal of ``M``."""
    return sp.diags(np.asarray(M.sum(axis=1)).ravel()).tocsr()


def l2_element_mass(B: np.ndarray, rho0DetJ0w: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Per-element L2 mass matrices ``(NE, nd, nd)`` and their inverses."""
    Me = np.einsum("eq,qi,qj->eij", rho0DetJ0w, B, B)
    return Me, np.linalg.inv(Me)


def assemble_l2_mass(l2: L2Space, Me: np.ndarray) -> sp.csr_matrix:
    dofs = l2.elem_dofs
    nd = dofs.shape[1]
    rows = np.repeat(dofs, nd, axis=1).ravel()
    cols = np.tile(dofs, (1, nd)).ravel()
    return sp.csr_matrix((Me.ravel(), (rows, cols)), shape=(l2.ndofs, l2.ndofs))


def apply_element_inverse(Me_inv: np.ndarray, l2: L2Space, rhs: np.ndarray) -> np.ndarray:
    """Block-diagonal solve of an element-contiguous L2 vector."""
    loc = rhs[l2.elem_dofs]
    return np.einsum("eij,ej->ei", Me_inv, loc).reshape(-1)


class ForceOperator:
    """Sparse ``F`` mapping L2 (energy) to H1 vector (momentum) dofs.

    ``F[(c, i), j] = sum_q stressJinvT[c, :] . grad_ref(phi_i) psi_j``.  The
    matrix is rebuilt lazily whenever the quadrature data revision changes.
    """

    def __init__(self, h1: H1Space, l2: L2Space, G_h1: np.ndarray, B_l2: np.ndarray, qdata: QuadratureData):
        self.h1 = h1
        self.l2 = l2
        self.G = G_h1
        self.B = B_l2
        self.qdata = qdata
        self._revision = -1
        self.F = None

        dim = h1.dim
        nd1 = h1.elem_dofs.shape[1]
        nd2 = l2.elem_dofs.shape[1]
        # (NE, dim, nd1, nd2) index patterns
        comp = np.arange(dim)[None, :, None, None] * h1.ndofs
        self._rows = np.broadcast_to(
            comp + h1.elem_dofs[:, None, :, None], (h1.mesh.ne, dim, nd1, nd2)
        ).ravel()
        self._cols = np.broadcast_to(
            l2.elem_dofs[:, None, None, :], (h1.mesh.ne, dim, nd1, nd2)
        ).ravel()

    @property
    def shape(self) -> Tuple[int, int]:
        return (self.h1.vsize, self.l2.ndofs)

    def assemble(self) -> sp.csr_matrix:
        self.qdata.require_valid()
        if self.F is not None and self._revision == self.qdata.revision:
            return self.F
        Fe = np.einsum("eqcd,qid,qj->ecij", self.qdata.stressJinvT, self.G, self.B)
        self.F = sp.csr_matrix((Fe.ravel(), (self._rows, self._cols)), shape=self.shape)
        self._revision = self.qdata.revision
        return self.F

    def mult(self, x: np.ndarray) -> np.ndarray:
        return self.assemble() @ x

    def mult_transpose(self, v: np.ndarray) -> np.ndarray:
        return self.assemble().T @ v
