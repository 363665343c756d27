"""Lagrangian hydro operator: force, energy and stress sub-solves.

Momentum and energy are coupled through the force matrix ``F`` built from
the quadrature stress field::

    M_v dv/dt = -F 1            (velocity, H1)
    M_e de/dt =  F^T v          (specific internal energy, L2)
    M_e ds/dt =  (tau, psi)     (stress, L2, element local)

Every sub-solve first brings the quadrature data up to date for the state it
is given.
"""

from __future__ import annotations

from typing import Callable, Optional

import numpy as np

from lagrange_hydro.assembly import (
    ForceOperator,
    apply_element_inverse,
    assemble_h1_mass,
    assemble_l2_mass,
    l2_element_mass,
    lumped,
)
from lagrange_hydro.fem.quadrature import IntegrationRule
from lagrange_hydro.fem.spaces import H1Space, L2Space
from lagrange_hydro.material import MaterialTable
from lagrange_hydro.qupdate import QuadratureUpdater
from lagrange_hydro.reduction import SerialReduction
from lagrange_hydro.solvers import CGSolver
from lagrange_hydro.state import VOIGT_PAIRS, BlockLayout, HydroState
from lagrange_hydro.timer import TimingData

ENERGY_SOLVES = ("local", "cg")


class LagrangianHydroOperator:
    def __init__(
        self,
        h1: H1Space,
        l2: L2Space,
        rule: IntegrationRule,
        materials: MaterialTable,
        x0: np.ndarray,
        ess_vdofs: np.ndarray,
        *,
        cfl: float = 0.25,
        use_viscosity: bool = True,
        use_vorticity: bool = False,
        use_stress: bool = False,
        batch_size: int = 3,
        solver: Optional[CGSolver] = None,
        mass_lumping: bool = False,
        energy_solve: str = "local",
        damping_factor: float = 0.0,
        accel_source: Optional[np.ndarray] = None,
        energy_source: Optional[Callable[[np.ndarray], np.ndarray]] = None,
        reduction=None,
        timer: Optional[TimingData] = None,
    ):
        if h1.mesh is not l2.mesh:
            raise ValueError("H1 and L2 spaces must live on the same mesh")
        if materials.n_regions != h1.mesh.n_regions:
            raise ValueError(
                f"mesh has {h1.mesh.n_regions} regions but the material table has {materials.n_regions}"
            )
        if energy_solve not in ENERGY_SOLVES:
            raise ValueError(f"energy_solve must be one of {ENERGY_SOLVES}, got {energy_solve!r}")
        if damping_factor < 0.0:
            raise ValueError(f"damping_factor must be >= 0, got {damping_factor}")

        self.h1 = h1
        self.l2 = l2
        self.dim = h1.dim
        self.materials = materials
        self.layout = BlockLayout(self.dim, h1.ndofs, l2.ndofs)
        self.reduction = reduction if reduction is not None else SerialReduction()
        self.timer = timer if timer is not None else TimingData()
        self.solver = solver if solver is not None else CGSolver()
        self.mass_lumping = bool(mass_lumping)
        self.energy_solve = energy_solve
        self.damping_factor = float(damping_factor)
        self.accel_source = None if accel_source is None else np.asarray(accel_source, dtype=float)
        self.energy_source = energy_source
        self.use_stress = bool(use_stress)

        self.qupdate = QuadratureUpdater(
            h1, l2, rule, materials.per_element(h1.mesh.attributes),
            cfl=cfl,
            use_viscosity=use_viscosity,
            use_vorticity=use_vorticity,
            use_stress=use_stress,
            batch_size=batch_size,
            reduction=self.reduction,
            timer=self.timer,
        )
        self.qdata = self.qupdate.qdata
        self.qupdate.setup_reference(np.asarray(x0, dtype=float))

        self.ess_vdofs = np.asarray(ess_vdofs, dtype=np.int64)
        nh1 = h1.ndofs
        self.ess_c = [
            self.ess_vdofs[(self.ess_vdofs >= c * nh1) & (self.ess_vdofs < (c + 1) * nh1)] - c * nh1
            for c in range(self.dim)
        ]

        B_h1 = self.qupdate.B_h1
        B_l2 = self.qupdate.B_l2
        self.Mv = assemble_h1_mass(h1, B_h1, self.qdata.rho0DetJ0w)
        if self.mass_lumping:
            self.Mv = lumped(self.Mv)
            self._Mv_diag = self.Mv.diagonal()
        self._Mv_one = self.Mv @ np.ones(nh1)
        self.Me, self.Me_inv = l2_element_mass(B_l2, self.qdata.rho0DetJ0w)
        self.Me_global = assemble_l2_mass(l2, self.Me) if energy_solve == "cg" else None
        self.force = ForceOperator(h1, l2, self.qupdate.G_h1, B_l2, self.qdata)
        self.one = np.ones(l2.ndofs)
        self.x0 = np.asarray(x0, dtype=float).copy()

    # ------------------------------------------------------------------
    # State helpers
    # ------------------------------------------------------------------

    def new_state(self) -> HydroState:
        """State with ``x = x0 = reference positions`` and all other blocks zero."""
        S = HydroState(self.layout)
        S.x[:] = self.x0
        S.x0[:] = self.x0
        return S

    # ------------------------------------------------------------------
    # Quadrature data lifecycle
    # ------------------------------------------------------------------

    def update_quadrature_data(self, state: HydroState) -> None:
        self.qupdate.update(state)
        self.qdata.require_valid()

    def reset_quadrature_data(self) -> None:
        self.qdata.invalidate()

    def reset_time_step_estimate(self) -> None:
        self.qdata.reset_dt_est()

    def compute_time_step_estimate(self, state: HydroState) -> float:
        """Globally reduced stable time step for ``state``.

        Recomputes the quadrature data only when it is stale; the estimate is
        the minimum over every pass since the last
        :meth:`reset_time_step_estimate`.
        """
        self.update_quadrature_data(state)
        return float(self.qdata.dt_est)

    def length_estimate(self, state: HydroState) -> float:
        """Smallest ``h_min`` (min singular value of J over order) of the current mesh."""
        self.update_quadrature_data(state)
        return float(self.qdata.h_min_est)

    # ------------------------------------------------------------------
    # Sub-solves
    # ------------------------------------------------------------------

    def solve_velocity(self, state: HydroState, dv: np.ndarray) -> None:
        self.update_quadrature_data(state)
        with self.timer.sw_force:
            rhs = -self.force.mult(self.one)

        if self.damping_factor > 0.0:
            sign = np.where(state.v >= 0.0, 1.0, -1.0)
            rhs -= self.damping_factor * np.abs(rhs) * sign

        nh1 = self.h1.ndofs
        if self.accel_source is not None:
            for c in range(self.dim):
                rhs[c * nh1:(c + 1) * nh1] += self.accel_source[c] * self._Mv_one

        dv[:] = 0.0
        for c in range(self.dim):
            rhs_c = rhs[c * nh1:(c + 1) * nh1]
            with self.timer.sw_cg_h1:
                if self.mass_lumping:
                    dvc = rhs_c / self._Mv_diag
                    dvc[self.ess_c[c]] = 0.0
                    self.timer.h1_iter += 1
                else:
                    res = self.solver.solve(self.Mv, rhs_c, self.ess_c[c])
                    dvc = res.x
                    self.timer.h1_iter += res.iterations
            dv[c * nh1:(c + 1) * nh1] = dvc

    def solve_energy(self, state: HydroState, v: np.ndarray, de: np.ndarray) -> None:
        self.update_quadrature_data(state)
        with self.timer.sw_force:
            rhs = self.force.mult_transpose(v)
        if self.energy_source is not None:
            rhs = rhs + self.energy_source_form(state)

        with self.timer.sw_cg_l2:
            if self.energy_solve == "local":
                de[:] = apply_element_inverse(self.Me_inv, self.l2, rhs)
                self.timer.l2_iter += 1
            else:
                res = self.solver.solve(self.Me_global, rhs)
                de[:] = res.x
                self.timer.l2_iter += max(res.iterations, 1)

    def solve_stress(self, state: HydroState, dsig: np.ndarray) -> None:
        self.update_quadrature_data(state)
        nl2 = self.l2.ndofs
        if not self.use_stress:
            dsig[:] = 0.0
            return
        B = self.qupdate.B_l2
        tau = self.qdata.tauJinvT
        for k, (a, b) in enumerate(VOIGT_PAIRS[self.dim]):
            # element-local rhs sum_q tau_ab(q) psi_j(q)
            rhs = np.einsum("eq,qj->ej", tau[:, :, a, b], B).reshape(-1)
            dsig[k * nl2:(k + 1) * nl2] = apply_element_inverse(self.Me_inv, self.l2, rhs)

    def energy_source_form(self, state: HydroState) -> np.ndarray:
        """Linear form ``(f, psi_j)`` of the energy source on the current mesh."""
        qu = self.qupdate
        Xe = np.stack([state.x[c * self.h1.ndofs + self.h1.elem_dofs] for c in range(self.dim)], axis=-1)
        xq = np.einsum("qi,eic->eqc", qu.B_h1, Xe)
        detJ = np.linalg.det(qu.reference_jacobians(state.x))
        f = np.asarray(self.energy_source(xq), dtype=float).reshape(detJ.shape)
        loc = np.einsum("eq,qj->ej", f * detJ * qu.weights[None, :], qu.B_l2)
        return loc.reshape(-1)

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def internal_energy(self, e: np.ndarray) -> float:
        """``sum_q rho0DetJ0w e(q)``, reduced over partitions."""
        eq = e[self.l2.elem_dofs] @ self.qupdate.B_l2.T
        return self.reduction.global_sum(float(np.sum(self.qdata.rho0DetJ0w * eq)))

    def kinetic_energy(self, v: np.ndarray) -> float:
        """``0.5 sum_c v_c^T M_v v_c``, reduced over partitions."""
        nh1 = self.h1.ndofs
        ke = 0.0
        for c in range(self.dim):
            vc = v[c * nh1:(c + 1) * nh1]
            ke += 0.5 * float(vc @ (self.Mv @ vc))
        return self.reduction.global_sum(ke)

    def compute_density(self, state: HydroState) -> np.ndarray:
        """L2 projection of the current density (element local)."""
        qu = self.qupdate
        detJ = np.linalg.det(qu.reference_jacobians(state.x))
        wdet = detJ * qu.weights[None, :]
        B = qu.B_l2
        M = np.einsum("eq,qi,qj->eij", wdet, B, B)
        rhs = np.einsum("eq,qj->ej", self.qdata.rho0DetJ0w, B)
        return np.linalg.solve(M, rhs[:, :, None])[:, :, 0].reshape(-1)
