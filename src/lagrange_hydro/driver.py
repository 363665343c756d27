"""Assemble a complete hydro run from a :class:`~lagrange_hydro.config.HydroConfig`."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np

from lagrange_hydro.config import HydroConfig
from lagrange_hydro.controller import RunResult, StepController
from lagrange_hydro.fem.bcs import apply_boundary_velocity, essential_vdofs
from lagrange_hydro.fem.mesh import CartesianMesh, structured_mesh
from lagrange_hydro.fem.quadrature import IntegrationRule, default_rule
from lagrange_hydro.fem.spaces import H1Space, L2Space
from lagrange_hydro.hydro import LagrangianHydroOperator
from lagrange_hydro.material import MaterialTable
from lagrange_hydro.ode import make_ode_solver
from lagrange_hydro.plasticity import initial_plastic_strain
from lagrange_hydro.problems import blast_energy, gravity_source, lithostatic_stress, project_h1
from lagrange_hydro.reduction import SerialReduction
from lagrange_hydro.solvers import CGSolver
from lagrange_hydro.state import HydroState
from lagrange_hydro.timer import TimingData
from lagrange_hydro.utils.run_info import (
    print_material_summary,
    print_mesh_summary,
    print_run_header,
    print_timing_data,
)


@dataclass
class HydroProblem:
    config: HydroConfig
    mesh: CartesianMesh
    h1: H1Space
    l2: L2Space
    rule: IntegrationRule
    materials: MaterialTable
    operator: LagrangianHydroOperator
    controller: StepController
    state: HydroState
    timer: TimingData


def build_materials(cfg: HydroConfig, n_regions: int) -> MaterialTable:
    m = cfg.mat
    return MaterialTable.from_lists(
        n_regions,
        rho0=m.rho,
        gamma=m.gamma,
        lambda_=m.lambda_,
        mu=m.mu,
        tension_cutoff=m.tension_cutoff,
        cohesion0=m.cohesion0,
        cohesion1=m.cohesion1,
        friction_angle=m.friction_angle,
        dilation_angle=m.dilation_angle,
        pls0=m.pls0,
        pls1=m.pls1,
        plastic_viscosity=m.plastic_viscosity,
        viscoplastic=m.viscoplastic,
    )


def build_problem(
    cfg: HydroConfig,
    mesh: Optional[CartesianMesh] = None,
    reduction=None,
    plasticity=None,
) -> HydroProblem:
    """Mesh, spaces, operator, integrator, controller and initial state."""
    reduction = reduction if reduction is not None else SerialReduction()
    mc = cfg.mesh
    if mesh is None:
        mesh = structured_mesh(mc.lengths, mc.cells, mc.origin)
    if mesh.dim != mc.dim:
        raise ValueError(f"mesh is {mesh.dim}D but the configuration describes {mc.dim}D")

    h1 = H1Space(mesh, mc.order_v)
    l2 = L2Space(mesh, mc.order_e)
    rule = default_rule(mesh.dim, mc.order_v, mc.order_e, mc.order_q)
    materials = build_materials(cfg, mesh.n_regions)

    bc_ids = cfg.bc.bc_ids if cfg.bc.bc_ids else (0,) * len(mesh.bdr_attributes)
    ess = essential_vdofs(h1, bc_ids)

    timer = TimingData()
    x0 = project_h1(h1, lambda X: X)
    accel = gravity_source(mesh.dim, cfg.control.gravity) if cfg.control.gravity > 0.0 else None
    operator = LagrangianHydroOperator(
        h1, l2, rule, materials, x0, ess,
        cfl=cfg.solver.cfl,
        use_viscosity=cfg.solver.use_viscosity,
        use_vorticity=cfg.solver.use_vorticity,
        use_stress=cfg.control.use_stress,
        batch_size=cfg.solver.batch_size,
        solver=CGSolver(cfg.solver.cg_tol, cfg.solver.cg_max_iter),
        mass_lumping=cfg.solver.mass_lumping,
        energy_solve=cfg.solver.energy_solve,
        damping_factor=cfg.control.damping_factor,
        accel_source=accel,
        reduction=reduction,
        timer=timer,
    )

    state = operator.new_state()
    if cfg.bc.has_velocities:
        apply_boundary_velocity(h1, bc_ids, cfg.bc.velocities(), state.v)
    sc = cfg.sim
    if sc.problem == "sedov":
        state.e[:] = blast_energy(l2, sc.e0, sc.e_blast)
    else:
        state.e[:] = sc.e0

    if sc.problem == "lithostatic" or cfg.control.lithostatic:
        rho_el = materials.rho0[mesh.attributes - 1]
        rho_nodes = np.repeat(rho_el, l2.nd)
        s = lithostatic_stress(l2.node_coords(), rho_nodes, cfg.control.gravity, cfg.control.thickness, mesh.dim)
        for k in range(s.shape[1]):
            state.sigma_component(k)[:] = s[:, k]

    pls = None
    if cfg.mat.plastic and cfg.mat.weak_rad > 0.0:
        pls = initial_plastic_strain(l2.node_coords(), cfg.mat.weak_center, cfg.mat.weak_rad, cfg.mat.ini_pls)

    controller = StepController(
        operator,
        make_ode_solver(cfg.solver.ode_solver_type),
        sc.t_final_seconds,
        sc.max_tsteps,
        dt_min=cfg.control.dt_min,
        shrink=cfg.control.dt_shrink,
        grow=cfg.control.dt_grow,
        grow_ratio=cfg.control.dt_grow_ratio,
        plasticity=plasticity,
        plastic_strain=pls,
        verbose=sc.verbose,
        vis_steps=sc.vis_steps,
        year=sc.year,
    )
    return HydroProblem(
        config=cfg,
        mesh=mesh,
        h1=h1,
        l2=l2,
        rule=rule,
        materials=materials,
        operator=operator,
        controller=controller,
        state=state,
        timer=timer,
    )


def run(cfg: HydroConfig, tag: str = "hydro", **kwargs) -> RunResult:
    prob = build_problem(cfg, **kwargs)
    if cfg.sim.verbose:
        print_run_header(tag)
        print_mesh_summary(prob.mesh.ne, prob.h1.ndofs, prob.l2.ndofs, prob.mesh.dim,
                           prob.h1.order, prob.l2.order, prob.rule.nq)
        print_material_summary(prob.materials)
    result = prob.controller.run(prob.state)
    if cfg.sim.verbose:
        print(repr(result.history))
        print_timing_data(prob.timer, result.steps, prob.h1.vsize, prob.l2.ndofs)
    return result
