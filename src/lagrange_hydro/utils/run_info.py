"""Run-time info printing utilities."""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

import numpy as np

from lagrange_hydro.material import NO_VISCOPLASTICITY, MaterialTable
from lagrange_hydro.timer import TimingData
from lagrange_hydro.units import SECONDS_PER_YEAR


def _fmt_pa(x: float) -> str:
    x = float(x)
    if abs(x) >= 1e9:
        return f"{x/1e9:.3g} GPa"
    if abs(x) >= 1e6:
        return f"{x/1e6:.3g} MPa"
    if abs(x) >= 1e3:
        return f"{x/1e3:.3g} kPa"
    return f"{x:.3g} Pa"


def _fmt_float(x: Optional[float], fmt: str = "{:.3g}") -> str:
    if x is None:
        return "n/a"
    try:
        return fmt.format(float(x))
    except (TypeError, ValueError):
        return "n/a"


def print_run_header(tag: str) -> None:
    # Use a stable timezone so logs are comparable across machines.
    ts = datetime.now(ZoneInfo("Europe/Berlin")).strftime("%Y-%m-%d %H:%M:%S %Z")
    print(f"\n[run] {tag}  start={ts}")


def print_mesh_summary(ne: int, nh1: int, nl2: int, dim: int, order_v: int, order_e: int, nq: int) -> None:
    print(
        f"[mesh] dim={dim}  zones={ne}  H1 order={order_v} ({dim * nh1} vdofs)"
        f"  L2 order={order_e} ({nl2} dofs)  qpts/zone={nq}"
    )


def print_material_summary(table: MaterialTable) -> None:
    for r in range(table.n_regions):
        pmod = table.lambda_[r] + 2.0 * table.mu[r]
        print(
            f"[material] region {r + 1}: rho0={table.rho0[r]:.4g}  gamma={table.gamma[r]:.4g}"
            f"  lambda={_fmt_pa(table.lambda_[r])}  mu={_fmt_pa(table.mu[r])}"
            f"  pmod={_fmt_pa(pmod)}"
        )
        if table.cohesion0[r] > 0.0 or table.friction_angle[r] > 0.0:
            visc = table.plastic_viscosity[r]
            print(
                f"[material] region {r + 1}: cohesion={_fmt_pa(table.cohesion0[r])}->{_fmt_pa(table.cohesion1[r])}"
                f"  phi={table.friction_angle[r]:.3g} deg  psi={table.dilation_angle[r]:.3g} deg"
                f"  T={_fmt_pa(table.tension_cutoff[r])}"
                f"  eta={'off' if visc >= NO_VISCOPLASTICITY else _fmt_float(visc)}"
            )


def print_step_line(step: int, t: float, dt: float, ie: float, ke: float, year: bool = False) -> None:
    if year:
        t, dt, unit = t / SECONDS_PER_YEAR, dt / SECONDS_PER_YEAR, " yr"
    else:
        unit = ""
    print(
        f"[step] {step:6d}  t={t:.6e}{unit}  dt={dt:.6e}{unit}"
        f"  |IE|={abs(ie):.10e}  |KE|={abs(ke):.10e}  |E|={abs(ie + ke):.10e}"
    )


def print_rejected_step(step: int, dt_est: float, dt: float, dt_new: float) -> None:
    print(f"[step] {step:6d}  rejected: dt_est={_fmt_float(dt_est, '{:.3e}')} < dt={dt:.3e}, retry dt={dt_new:.3e}")


def print_timing_data(timer: TimingData, steps: int, h1_size: int, l2_size: int) -> None:
    s = timer.summary()
    cg_h1 = s["cg_h1_s"]
    cg_l2 = s["cg_l2_s"]
    fr = s["force_s"]
    qd = s["qdata_s"]
    print(f"[timing] steps={steps}")
    print(f"[timing] CG (H1) total time: {cg_h1:.4g} s  iterations={timer.h1_iter}")
    if cg_h1 > 0.0:
        print(f"[timing] CG (H1) rate (megadofs x cg_iterations / second): {1e-6 * h1_size * timer.h1_iter / cg_h1:.4g}")
    print(f"[timing] CG (L2) total time: {cg_l2:.4g} s  iterations={timer.l2_iter}")
    if cg_l2 > 0.0:
        print(f"[timing] CG (L2) rate (megadofs x cg_iterations / second): {1e-6 * l2_size * timer.l2_iter / cg_l2:.4g}")
    print(f"[timing] Forces total time: {fr:.4g} s")
    print(f"[timing] UpdateQuadData total time: {qd:.4g} s")
    if qd > 0.0:
        print(f"[timing] UpdateQuadData rate (megaquads x timesteps / second): {1e-6 * timer.quad_points / qd:.4g}")
    total = float(np.sum([cg_h1, cg_l2, fr, qd]))
    print(f"[timing] Major kernels total time: {total:.4g} s")
