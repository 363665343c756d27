"""Adaptive time-step control around the explicit integrator.

Each attempt snapshots the state, resets the running ``dt`` estimate, takes
one integrator step, applies the plastic return map and asks the operator
for the new stable step.  A step is rejected (state restored, ``dt`` halved)
when the estimate drops below the step just taken, which includes inverted
elements (estimate 0), or when the state is no longer finite.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from lagrange_hydro.hydro import LagrangianHydroOperator
from lagrange_hydro.ode import HydroODESolver
from lagrange_hydro.output.energy import EnergyHistory, EnergyRecord
from lagrange_hydro.plasticity import NoPlasticity, ReturnMap
from lagrange_hydro.state import HydroState
from lagrange_hydro.utils.run_info import print_rejected_step, print_step_line


@dataclass
class StepResult:
    accepted: bool
    t: float          # time after the attempt (unchanged when rejected)
    dt: float         # step size attempted
    dt_next: float    # step size for the next attempt
    dt_est: float     # stable step reported after the attempt


@dataclass
class RunResult:
    t: float
    steps: int
    rejected: int
    dt: float
    history: EnergyHistory = field(default_factory=EnergyHistory)


class StepController:
    def __init__(
        self,
        operator: LagrangianHydroOperator,
        ode_solver: HydroODESolver,
        t_final: float,
        max_steps: int = -1,
        *,
        dt_min: float = 1e-38,
        shrink: float = 0.5,
        grow: float = 1.02,
        grow_ratio: float = 1.25,
        plasticity: Optional[ReturnMap] = None,
        plastic_strain: Optional[np.ndarray] = None,
        verbose: bool = False,
        vis_steps: int = 1,
        year: bool = False,
    ):
        if not (0.0 < shrink < 1.0):
            raise ValueError(f"shrink must be in (0, 1), got {shrink}")
        if grow < 1.0:
            raise ValueError(f"grow must be >= 1, got {grow}")
        self.op = operator
        self.ode = ode_solver
        if self.ode.op is not operator:
            self.ode.init(operator)
        self.t_final = float(t_final)
        self.max_steps = int(max_steps)
        self.dt_min = float(dt_min)
        self.shrink = float(shrink)
        self.grow = float(grow)
        self.grow_ratio = float(grow_ratio)
        self.plasticity = plasticity if plasticity is not None else NoPlasticity()
        if plastic_strain is None:
            plastic_strain = np.zeros(operator.l2.ndofs)
        self.plastic_strain = np.asarray(plastic_strain, dtype=float)
        self.verbose = bool(verbose)
        self.vis_steps = max(int(vis_steps), 1)
        self.year = bool(year)
        self._snapshot = HydroState(operator.layout)
        self._pls_snapshot = self.plastic_strain.copy()

    def initial_dt(self, state: HydroState) -> float:
        self.op.reset_time_step_estimate()
        return self.op.compute_time_step_estimate(state)

    def attempt(self, state: HydroState, t: float, dt: float) -> StepResult:
        op = self.op
        self._snapshot.assign(state)
        self._pls_snapshot[:] = self.plastic_strain

        op.reset_time_step_estimate()
        t_new = self.ode.step(state, t, dt)

        stress, pls = self.plasticity.return_map(state.sigma, self.plastic_strain, op.materials, dt)
        state.sigma[:] = stress
        self.plastic_strain[:] = pls
        op.reset_quadrature_data()

        dt_est = op.compute_time_step_estimate(state)
        if dt_est < dt or np.isnan(dt_est) or not state.is_finite():
            state.assign(self._snapshot)
            self.plastic_strain[:] = self._pls_snapshot
            op.reset_quadrature_data()
            dt_next = dt * self.shrink
            if dt_next < self.dt_min:
                raise RuntimeError(
                    f"time step collapsed at t={t:.6e}: dt={dt_next:.3e} fell below min_dt={self.dt_min:.1e}"
                )
            return StepResult(accepted=False, t=t, dt=dt, dt_next=dt_next, dt_est=dt_est)

        dt_next = dt * self.grow if dt_est > self.grow_ratio * dt else dt
        return StepResult(accepted=True, t=t_new, dt=dt, dt_next=dt_next, dt_est=dt_est)

    def _record(self, state: HydroState, step: int, t: float, dt: float) -> EnergyRecord:
        return EnergyRecord(
            step=step,
            t=t,
            dt=dt,
            ie=self.op.internal_energy(state.e),
            ke=self.op.kinetic_energy(state.v),
        )

    def run(self, state: HydroState, t: float = 0.0, dt: Optional[float] = None) -> RunResult:
        if dt is None:
            dt = self.initial_dt(state)
        result = RunResult(t=float(t), steps=0, rejected=0, dt=float(dt))
        result.history.append(self._record(state, 0, t, 0.0))

        while t < self.t_final:
            if 0 <= self.max_steps <= result.steps:
                break
            last = t + dt >= self.t_final
            dt_try = self.t_final - t if last else dt

            res = self.attempt(state, t, dt_try)
            if not res.accepted:
                result.rejected += 1
                if self.verbose:
                    print_rejected_step(result.steps + 1, res.dt_est, dt_try, res.dt_next)
                dt = res.dt_next
                continue

            result.steps += 1
            t = self.t_final if last else res.t
            dt = res.dt_next
            rec = self._record(state, result.steps, t, dt_try)
            result.history.append(rec)
            if self.verbose and (last or result.steps % self.vis_steps == 0):
                print_step_line(result.steps, t, dt_try, rec.ie, rec.ke, year=self.year)

        result.t = t
        result.dt = dt
        return result
