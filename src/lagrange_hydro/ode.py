"""Explicit time integrators for the hydro state."""

from __future__ import annotations

import numpy as np

from lagrange_hydro.hydro import LagrangianHydroOperator
from lagrange_hydro.state import HydroState

ODE_SOLVERS = {
    "rk2avg": "rk2avg",
    "rk2_avg": "rk2avg",
    "7": "rk2avg",
}


class HydroODESolver:
    """Base class: ``init`` once, then ``step`` repeatedly."""

    def __init__(self):
        self.op = None

    def init(self, operator: LagrangianHydroOperator) -> None:
        self.op = operator

    def step(self, state: HydroState, t: float, dt: float) -> float:
        raise NotImplementedError


class RK2AvgSolver(HydroODESolver):
    """Two-stage midpoint scheme with a time-centred velocity.

    Energy and stress rates are evaluated with ``V = v0 + dt/2 dv/dt``, which
    makes the internal + kinetic energy exchange exact for the discrete
    system.  The integrator never rejects a step; that is the controller's
    call.
    """

    def init(self, operator: LagrangianHydroOperator) -> None:
        super().init(operator)
        layout = operator.layout
        self.S0 = HydroState(layout)
        self.dS_dt = HydroState(layout)
        self.V = np.zeros(layout.h1v)

    def _stage(self, state: HydroState, dt: float) -> None:
        op = self.op
        dS = self.dS_dt
        dS.data[:] = 0.0
        op.solve_velocity(state, dS.v)
        self.V[:] = self.S0.v + 0.5 * dt * dS.v
        op.solve_energy(state, self.V, dS.e)
        op.solve_stress(state, dS.sigma)
        dS.x[:] = self.V

    def step(self, state: HydroState, t: float, dt: float) -> float:
        if self.op is None:
            raise RuntimeError("call init(operator) before step()")
        self.S0.assign(state)

        self._stage(state, dt)
        state.data[:] = self.S0.data + 0.5 * dt * self.dS_dt.data
        self.op.reset_quadrature_data()

        self._stage(state, dt)
        state.data[:] = self.S0.data + dt * self.dS_dt.data
        self.op.reset_quadrature_data()
        return t + dt


def make_ode_solver(name: str) -> HydroODESolver:
    key = ODE_SOLVERS.get(str(name).strip().lower())
    if key is None:
        raise ValueError(f"Unknown ODE solver {name!r}; known: {sorted(ODE_SOLVERS)}")
    return RK2AvgSolver()
