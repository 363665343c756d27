"""Batched quadrature driver.

Recomputes :class:`~lagrange_hydro.quadrature_data.QuadratureData` for the
current state, element batch by element batch:

1. kinematics at every batch point (Jacobians, inverses, velocity gradients,
   densities, energies, prior stresses, material parameters),
2. one material evaluation for the whole batch,
3. per-point constitutive finalisation and the local ``dt`` minimum.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from lagrange_hydro.fem.mesh import characteristic_length
from lagrange_hydro.fem.quadrature import IntegrationRule
from lagrange_hydro.fem.spaces import H1Space, L2Space
from lagrange_hydro.material import ElementMaterials, evaluate_batch
from lagrange_hydro.numba.kernels_qupdate import select_qkernel
from lagrange_hydro.quadrature_data import QuadratureData, ScratchArena
from lagrange_hydro.reduction import SerialReduction
from lagrange_hydro.state import HydroState
from lagrange_hydro.timer import TimingData


class QuadratureUpdater:
    def __init__(
        self,
        h1: H1Space,
        l2: L2Space,
        rule: IntegrationRule,
        materials: ElementMaterials,
        *,
        cfl: float = 0.25,
        use_viscosity: bool = True,
        use_vorticity: bool = False,
        use_stress: bool = False,
        batch_size: int = 3,
        reduction=None,
        timer: Optional[TimingData] = None,
    ):
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        self.h1 = h1
        self.l2 = l2
        self.rule = rule
        self.materials = materials
        self.dim = h1.dim
        self.ne = h1.mesh.ne
        self.nq = rule.nq
        self.cfl = float(cfl)
        self.use_viscosity = bool(use_viscosity)
        self.use_vorticity = bool(use_vorticity)
        self.use_stress = bool(use_stress)
        self.batch_size = int(min(batch_size, self.ne))
        self.reduction = reduction if reduction is not None else SerialReduction()
        self.timer = timer if timer is not None else TimingData()

        self.kernel = select_qkernel(self.dim, h1.order)
        self.B_h1, self.G_h1 = h1.basis.evaluate(rule.points)
        self.B_l2, _ = l2.basis.evaluate(rule.points)
        self.weights = np.ascontiguousarray(rule.weights)

        self.qdata = QuadratureData(self.dim, self.ne, self.nq)
        self.arena = ScratchArena(self.dim, self.nq, self.batch_size)
        self._elem_ids = np.arange(self.ne, dtype=np.int64)

    # ------------------------------------------------------------------
    # Reference configuration
    # ------------------------------------------------------------------

    def reference_jacobians(self, x0: np.ndarray) -> np.ndarray:
        """(NE, NQ, d, d) Jacobians of the configuration ``x0``."""
        h1 = self.h1
        Xe = np.stack([x0[c * h1.ndofs + h1.elem_dofs] for c in range(self.dim)], axis=-1)
        return np.einsum("eia,qib->eqab", Xe, self.G_h1)

    def setup_reference(self, x0: np.ndarray) -> None:
        J0 = self.reference_jacobians(x0)
        detJ0 = np.linalg.det(J0)
        if np.any(detJ0 <= 0.0):
            raise ValueError("initial mesh has inverted elements")
        Jac0inv = np.linalg.inv(J0)
        rho0DetJ0w = self.materials.rho0[:, None] * detJ0 * self.weights[None, :]

        volume = float(np.sum(detJ0 * self.weights[None, :]))
        glob_volume = self.reduction.global_sum(volume)
        glob_ne = self.reduction.global_sum(float(self.ne))
        h0 = characteristic_length(glob_volume, int(round(glob_ne)), self.dim, self.h1.order)
        self.qdata.setup_reference(Jac0inv, rho0DetJ0w, h0)

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    def update(self, state: HydroState) -> bool:
        """Recompute stale quadrature data; returns ``True`` when work was done."""
        qd = self.qdata
        if qd.is_valid:
            return False

        a = self.arena
        k = self.kernel
        mat = self.materials
        x = state.x
        v = state.v
        e = state.e
        sigma = state.sigma
        h1_dofs = self.h1.elem_dofs
        l2_dofs = self.l2.elem_dofs
        nh1 = self.h1.ndofs
        nl2 = self.l2.ndofs

        dt_local = np.inf
        hmin_local = np.inf
        with self.timer.sw_qdata:
            for start in range(0, self.ne, self.batch_size):
                elems = self._elem_ids[start:start + self.batch_size]
                npts = elems.shape[0] * self.nq
                k.kinematics(
                    elems, x, v, e, sigma, h1_dofs, nh1, l2_dofs, nl2,
                    self.G_h1, self.B_l2, self.weights, qd.rho0DetJ0w,
                    mat.gamma, mat.lambda_, mat.mu, self.use_stress,
                    a.J, a.Jinv, a.detJ, a.gradv, a.sig, a.rho, a.e,
                    a.gamma, a.lam, a.mu, a.pmod, a.gref,
                )
                evaluate_batch(npts, a.gamma, a.rho, a.e, a.pmod, a.p, a.c)
                dt_b, hmin_b = k.finalize(
                    elems, qd.Jac0inv, qd.h0, self.weights,
                    self.use_viscosity, self.use_vorticity, self.use_stress,
                    self.cfl, self.h1.order,
                    a.J, a.Jinv, a.detJ, a.gradv, a.sig, a.rho, a.p, a.c, a.lam, a.mu,
                    qd.stressJinvT, qd.tauJinvT, a.work, a.vwork,
                )
                dt_local = float(np.minimum(dt_local, dt_b))
                hmin_local = min(hmin_local, hmin_b)
        self.timer.quad_points += self.ne * self.nq

        qd.dt_est = float(np.minimum(qd.dt_est, self.reduction.global_min(dt_local)))
        qd.h_min_est = min(qd.h_min_est, self.reduction.global_min(hmin_local))
        qd.mark_valid()
        return True

    def density_at_points(self, state: HydroState) -> np.ndarray:
        """(NE, NQ) current density ``rho0DetJ0w / (detJ w)``."""
        detJ = np.linalg.det(self.reference_jacobians(state.x))
        return self.qdata.rho0DetJ0w / (detJ * self.weights[None, :])
