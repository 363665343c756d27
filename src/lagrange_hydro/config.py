"""Parameter containers for a hydro run.

The tree mirrors the sections of a classic run file::

    [sim] [solver] [control] [mesh] [mat] [bc]

and is built from an already-parsed nested mapping with
:meth:`HydroConfig.from_dict`.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml

from lagrange_hydro.hydro import ENERGY_SOLVES
from lagrange_hydro.ode import ODE_SOLVERS
from lagrange_hydro.units import SECONDS_PER_YEAR, velocity_scale

PROBLEMS = ("sedov", "uniform", "lithostatic")


@dataclass
class SimConfig:
    problem: str = "sedov"
    t_final: float = 1.0
    max_tsteps: int = -1
    vis_steps: int = 5
    verbose: bool = False
    year: bool = False  # t_final given in years
    # initial specific internal energy (background / blast zone)
    e0: float = 0.0
    e_blast: float = 0.0

    def __post_init__(self):
        self.problem = str(self.problem).strip().lower()
        if self.problem not in PROBLEMS:
            raise ValueError(f"sim.problem must be one of {PROBLEMS}, got {self.problem!r}")
        if self.t_final <= 0.0:
            raise ValueError(f"sim.t_final must be positive, got {self.t_final}")
        self.max_tsteps = int(self.max_tsteps)
        self.vis_steps = int(self.vis_steps)

    @property
    def t_final_seconds(self) -> float:
        return self.t_final * SECONDS_PER_YEAR if self.year else self.t_final


@dataclass
class SolverConfig:
    ode_solver_type: str = "rk2avg"
    cfl: float = 0.25
    cg_tol: float = 1.0e-10
    cg_max_iter: int = 300
    impose_visc: bool = True
    use_viscosity: bool = True
    use_vorticity: bool = False
    mass_lumping: bool = False
    energy_solve: str = "local"
    batch_size: int = 3

    def __post_init__(self):
        key = str(self.ode_solver_type).strip().lower()
        if key not in ODE_SOLVERS:
            raise ValueError(f"solver.ode_solver_type {self.ode_solver_type!r} is not supported")
        self.ode_solver_type = ODE_SOLVERS[key]
        if self.impose_visc:
            self.use_viscosity = True
        if self.cfl <= 0.0:
            raise ValueError(f"solver.cfl must be positive, got {self.cfl}")
        if self.cg_tol <= 0.0:
            raise ValueError(f"solver.cg_tol must be positive, got {self.cg_tol}")
        if int(self.cg_max_iter) < 1:
            raise ValueError(f"solver.cg_max_iter must be >= 1, got {self.cg_max_iter}")
        self.cg_max_iter = int(self.cg_max_iter)
        self.energy_solve = str(self.energy_solve).strip().lower()
        if self.energy_solve not in ENERGY_SOLVES:
            raise ValueError(f"solver.energy_solve must be one of {ENERGY_SOLVES}, got {self.energy_solve!r}")
        if int(self.batch_size) < 1:
            raise ValueError(f"solver.batch_size must be >= 1, got {self.batch_size}")
        self.batch_size = int(self.batch_size)


@dataclass
class ControlConfig:
    use_stress: bool = False  # corotational elastic stress update
    dyn_damping: bool = False
    dyn_factor: float = 0.8
    lithostatic: bool = False
    gravity: float = 0.0
    thickness: float = 1.0
    dt_min: float = 1.0e-38
    dt_shrink: float = 0.5
    dt_grow: float = 1.02
    dt_grow_ratio: float = 1.25

    def __post_init__(self):
        if self.dyn_factor < 0.0:
            raise ValueError(f"control.dyn_factor must be >= 0, got {self.dyn_factor}")
        if not (0.0 < self.dt_shrink < 1.0):
            raise ValueError(f"control.dt_shrink must be in (0, 1), got {self.dt_shrink}")
        if self.lithostatic and self.gravity <= 0.0:
            raise ValueError("control.lithostatic needs a positive control.gravity")

    @property
    def damping_factor(self) -> float:
        return float(self.dyn_factor) if self.dyn_damping else 0.0


@dataclass
class MeshConfig:
    lengths: Tuple[float, ...] = (1.0, 1.0)
    cells: Tuple[int, ...] = (4, 4)
    origin: Tuple[float, ...] = ()
    order_v: int = 2
    order_e: int = 1
    order_q: int = -1

    def __post_init__(self):
        self.lengths = tuple(float(v) for v in self.lengths)
        self.cells = tuple(int(v) for v in self.cells)
        self.origin = tuple(float(v) for v in self.origin)
        if len(self.lengths) not in (1, 2, 3) or len(self.cells) != len(self.lengths):
            raise ValueError("mesh.lengths and mesh.cells must both have 1, 2 or 3 entries")
        if int(self.order_v) < 1:
            raise ValueError(f"mesh.order_v must be >= 1, got {self.order_v}")
        if int(self.order_e) < 0:
            raise ValueError(f"mesh.order_e must be >= 0, got {self.order_e}")
        self.order_v = int(self.order_v)
        self.order_e = int(self.order_e)
        self.order_q = int(self.order_q)

    @property
    def dim(self) -> int:
        return len(self.lengths)


@dataclass
class MaterialConfig:
    rho: Tuple[float, ...] = (1.0,)
    gamma: Tuple[float, ...] = (1.4,)
    lambda_: Tuple[float, ...] = (0.0,)
    mu: Tuple[float, ...] = (0.0,)
    tension_cutoff: Tuple[float, ...] = (0.0,)
    cohesion0: Tuple[float, ...] = (0.0,)
    cohesion1: Tuple[float, ...] = (0.0,)
    friction_angle: Tuple[float, ...] = (0.0,)
    dilation_angle: Tuple[float, ...] = (0.0,)
    pls0: Tuple[float, ...] = (0.0,)
    pls1: Tuple[float, ...] = (0.0,)
    plastic_viscosity: Tuple[float, ...] = (0.0,)
    plastic: bool = False
    viscoplastic: bool = False
    weak_rad: float = 0.0
    weak_x: float = 0.0
    weak_y: float = 0.0
    weak_z: float = 0.0
    ini_pls: float = 0.0

    def __post_init__(self):
        for f in fields(self):
            val = getattr(self, f.name)
            if f.type.startswith("Tuple") and not isinstance(val, tuple):
                if isinstance(val, (int, float)):
                    val = (val,)
                setattr(self, f.name, tuple(float(v) for v in val))

    @property
    def weak_center(self) -> Tuple[float, float, float]:
        return (self.weak_x, self.weak_y, self.weak_z)


@dataclass
class BoundaryConfig:
    bc_ids: Tuple[int, ...] = ()
    # prescribed velocity per boundary attribute on the constrained components
    bc_vxs: Tuple[float, ...] = ()
    bc_vys: Tuple[float, ...] = ()
    bc_vzs: Tuple[float, ...] = ()
    bc_unit: str = "m/s"

    def __post_init__(self):
        self.bc_ids = tuple(int(v) for v in self.bc_ids)
        self.bc_unit = str(self.bc_unit).strip().lower()
        velocity_scale(self.bc_unit)
        for name in ("bc_vxs", "bc_vys", "bc_vzs"):
            vals = tuple(float(v) for v in getattr(self, name))
            if vals and len(vals) != len(self.bc_ids):
                raise ValueError(
                    f"bc.{name} has {len(vals)} entries but bc.bc_ids has {len(self.bc_ids)}"
                )
            setattr(self, name, vals)

    @property
    def has_velocities(self) -> bool:
        return any(any(v != 0.0 for v in vals) for vals in (self.bc_vxs, self.bc_vys, self.bc_vzs))

    def velocities(self) -> Tuple[Tuple[float, ...], ...]:
        """Per-component boundary velocities in m/s."""
        s = velocity_scale(self.bc_unit)
        return tuple(tuple(v * s for v in vals) for vals in (self.bc_vxs, self.bc_vys, self.bc_vzs))


_SECTIONS = {
    "sim": SimConfig,
    "solver": SolverConfig,
    "control": ControlConfig,
    "mesh": MeshConfig,
    "mat": MaterialConfig,
    "bc": BoundaryConfig,
}

# mapping keys that are Python keywords
_KEY_ALIASES = {"lambda": "lambda_"}


@dataclass
class HydroConfig:
    sim: SimConfig = field(default_factory=SimConfig)
    solver: SolverConfig = field(default_factory=SolverConfig)
    control: ControlConfig = field(default_factory=ControlConfig)
    mesh: MeshConfig = field(default_factory=MeshConfig)
    mat: MaterialConfig = field(default_factory=MaterialConfig)
    bc: BoundaryConfig = field(default_factory=BoundaryConfig)

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Mapping[str, Any]]] = None) -> "HydroConfig":
        data = dict(data or {})
        unknown = set(data) - set(_SECTIONS)
        if unknown:
            raise ValueError(f"Unknown configuration section(s): {sorted(unknown)}")
        kwargs: Dict[str, Any] = {}
        for name, klass in _SECTIONS.items():
            raw = dict(data.get(name) or {})
            raw = {_KEY_ALIASES.get(k, k): v for k, v in raw.items()}
            allowed = {f.name for f in fields(klass)}
            bad = set(raw) - allowed
            if bad:
                raise ValueError(f"Unknown key(s) in [{name}]: {sorted(bad)}")
            kwargs[name] = klass(**raw)
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        """Plain nested dict (tuples as lists); inverse of :meth:`from_dict`."""
        reverse = {v: k for k, v in _KEY_ALIASES.items()}
        out: Dict[str, Dict[str, Any]] = {}
        for name in _SECTIONS:
            sec = getattr(self, name)
            entries = {}
            for f in fields(sec):
                val = getattr(sec, f.name)
                entries[reverse.get(f.name, f.name)] = list(val) if isinstance(val, tuple) else val
            out[name] = entries
        return out

    def save_json(self, filepath: str) -> None:
        with open(filepath, "w") as f:
            json.dump(self.to_dict(), f, indent=2)

    def save_yaml(self, filepath: str) -> None:
        with open(filepath, "w") as f:
            yaml.safe_dump(self.to_dict(), f, default_flow_style=False)

    @classmethod
    def load_json(cls, filepath: str) -> "HydroConfig":
        with open(filepath, "r") as f:
            data = json.load(f)
        return cls.from_dict(data)

    @classmethod
    def load_yaml(cls, filepath: str) -> "HydroConfig":
        with open(filepath, "r") as f:
            data = yaml.safe_load(f)
        return cls.from_dict(data)
