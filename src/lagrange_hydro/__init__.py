"""Explicit Lagrangian hydrodynamics on moving high-order meshes."""

from lagrange_hydro.state import BlockLayout, HydroState
from lagrange_hydro.material import MaterialTable
from lagrange_hydro.quadrature_data import CacheState, QuadratureData
from lagrange_hydro.hydro import LagrangianHydroOperator
from lagrange_hydro.ode import RK2AvgSolver
from lagrange_hydro.controller import StepController
from lagrange_hydro.config import HydroConfig

__all__ = [
    "BlockLayout",
    "HydroState",
    "MaterialTable",
    "CacheState",
    "QuadratureData",
    "LagrangianHydroOperator",
    "RK2AvgSolver",
    "StepController",
    "HydroConfig",
]

__version__ = "0.1.0"
