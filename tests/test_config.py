"""HydroConfig parsing, validation and file round-trips."""

import pytest

from lagrange_hydro.config import (
    BoundaryConfig,
    ControlConfig,
    HydroConfig,
    MaterialConfig,
    MeshConfig,
    SimConfig,
    SolverConfig,
)
from lagrange_hydro.units import SECONDS_PER_YEAR


def test_defaults():
    cfg = HydroConfig()
    assert cfg.sim.problem == "sedov"
    assert cfg.solver.ode_solver_type == "rk2avg"
    assert cfg.mesh.dim == 2
    assert cfg.control.damping_factor == 0.0


def test_from_dict_normalises_values():
    cfg = HydroConfig.from_dict(
        {
            "sim": {"problem": " Uniform "},
            "solver": {"ode_solver_type": "7", "energy_solve": "CG"},
            "mesh": {"lengths": [1, 2, 3], "cells": [1.0, 2.0, 3.0]},
            "mat": {"rho": 2.5, "lambda": [1.0, 2.0]},
            "bc": {"bc_ids": ["1", 2]},
        }
    )
    assert cfg.sim.problem == "uniform"
    assert cfg.solver.ode_solver_type == "rk2avg"
    assert cfg.solver.energy_solve == "cg"
    assert cfg.mesh.dim == 3
    assert cfg.mesh.cells == (1, 2, 3)
    assert cfg.mat.rho == (2.5,)
    assert cfg.mat.lambda_ == (1.0, 2.0)
    assert cfg.bc.bc_ids == (1, 2)


def test_unknown_section_and_key_rejected():
    with pytest.raises(ValueError, match="section"):
        HydroConfig.from_dict({"output": {}})
    with pytest.raises(ValueError, match="solver"):
        HydroConfig.from_dict({"solver": {"tolerance": 1e-8}})


def test_impose_visc_forces_viscosity_on():
    s = SolverConfig(impose_visc=True, use_viscosity=False)
    assert s.use_viscosity
    s = SolverConfig(impose_visc=False, use_viscosity=False)
    assert not s.use_viscosity


@pytest.mark.parametrize(
    "factory",
    [
        lambda: SimConfig(problem="noh"),
        lambda: SimConfig(t_final=0.0),
        lambda: SolverConfig(ode_solver_type="rk4"),
        lambda: SolverConfig(cfl=-0.1),
        lambda: SolverConfig(cg_tol=0.0),
        lambda: SolverConfig(cg_max_iter=0),
        lambda: SolverConfig(energy_solve="direct"),
        lambda: SolverConfig(batch_size=0),
        lambda: ControlConfig(dt_shrink=1.0),
        lambda: ControlConfig(dyn_factor=-1.0),
        lambda: ControlConfig(lithostatic=True, gravity=0.0),
        lambda: MeshConfig(lengths=(1.0, 1.0), cells=(1,)),
        lambda: MeshConfig(order_v=0),
        lambda: BoundaryConfig(bc_ids=(1, 0), bc_vxs=(1.0,)),
        lambda: BoundaryConfig(bc_ids=(1,), bc_vxs=(1.0,), bc_unit="km/h"),
    ],
)
def test_invalid_values_raise(factory):
    with pytest.raises(ValueError):
        factory()


def test_damping_factor_only_when_enabled():
    assert ControlConfig(dyn_damping=True, dyn_factor=0.8).damping_factor == 0.8
    assert ControlConfig(dyn_damping=False, dyn_factor=0.8).damping_factor == 0.0


def test_weak_center():
    m = MaterialConfig(weak_x=1.0, weak_y=2.0, weak_z=3.0)
    assert m.weak_center == (1.0, 2.0, 3.0)


def test_to_dict_roundtrip():
    cfg = HydroConfig.from_dict({"mat": {"lambda": [3.0]}, "bc": {"bc_ids": [1, 2, 1, 2]}})
    data = cfg.to_dict()
    assert "lambda" in data["mat"]
    assert data["mat"]["lambda"] == [3.0]
    cfg2 = HydroConfig.from_dict(data)
    assert cfg2 == cfg


@pytest.mark.parametrize("fmt", ["json", "yaml"])
def test_file_roundtrip(tmp_path, fmt):
    cfg = HydroConfig.from_dict(
        {
            "sim": {"problem": "uniform", "t_final": 0.5, "e0": 2.0},
            "solver": {"cfl": 0.3, "mass_lumping": True},
            "mesh": {"lengths": [2.0, 1.0], "cells": [4, 2], "order_v": 3},
            "mat": {"rho": [1.0, 2.0], "gamma": [1.4, 5.0 / 3.0]},
        }
    )
    path = tmp_path / f"run.{fmt}"
    if fmt == "json":
        cfg.save_json(str(path))
        loaded = HydroConfig.load_json(str(path))
    else:
        cfg.save_yaml(str(path))
        loaded = HydroConfig.load_yaml(str(path))
    assert loaded == cfg


def test_boundary_velocities_scaled_to_si():
    cfg = HydroConfig.from_dict(
        {"bc": {"bc_ids": [1, 0, 0, 0], "bc_vxs": [1.0, 0, 0, 0], "bc_unit": "cm/yr"}}
    )
    bc = cfg.bc
    assert bc.has_velocities
    vx, vy, vz = bc.velocities()
    assert vx[0] == pytest.approx(0.01 / SECONDS_PER_YEAR)
    assert vx[1:] == (0.0, 0.0, 0.0)
    assert vy == () and vz == ()
    assert HydroConfig.from_dict(cfg.to_dict()) == cfg
    assert not BoundaryConfig(bc_ids=(1, 1), bc_vxs=(0.0, 0.0)).has_velocities


def test_year_converts_final_time():
    assert SimConfig(t_final=2.0).t_final_seconds == 2.0
    assert SimConfig(t_final=2.0, year=True).t_final_seconds == pytest.approx(2.0 * 86400.0 * 365.25)
