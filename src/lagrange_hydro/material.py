"""Region-wise material table and the ideal-gas closure.

Parameters are piecewise constant over mesh regions (element attributes
``1..R``).  The gas closure is

    p = (gamma - 1) * rho * max(e, 0)
    c = sqrt(gamma * (gamma - 1) * max(e, 0) + pmod / rho)

where ``pmod = lambda + 2 mu`` is the P-wave modulus of the elastic skeleton;
with ``pmod = 0`` it reduces to the plain ideal gas.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, fields
from typing import Dict, Optional, Sequence

import numpy as np
from numba import njit

# plastic viscosity used when viscoplasticity is disabled
NO_VISCOPLASTICITY = 1.0e300


@njit(cache=True)
def evaluate(rho: float, e: float, gamma: float, pmod: float = 0.0):
    """Pressure and sound speed at one point."""
    ep = max(e, 0.0)
    p = (gamma - 1.0) * rho * ep
    c2 = gamma * (gamma - 1.0) * ep
    if pmod > 0.0:
        c2 += pmod / rho
    return p, math.sqrt(max(c2, 0.0))


@njit(cache=True, error_model="numpy")
def evaluate_batch(n, gamma, rho, e, pmod, p_out, c_out):
    """Fill ``p_out[:n]`` and ``c_out[:n]``; no allocation."""
    for k in range(n):
        ep = max(e[k], 0.0)
        g = gamma[k]
        p_out[k] = (g - 1.0) * rho[k] * ep
        c2 = g * (g - 1.0) * ep
        if pmod[k] > 0.0:
            c2 += pmod[k] / rho[k]
        c_out[k] = math.sqrt(max(c2, 0.0))


@dataclass
class MaterialTable:
    """One entry per region for every parameter."""

    rho0: np.ndarray
    gamma: np.ndarray
    lambda_: np.ndarray
    mu: np.ndarray
    tension_cutoff: np.ndarray
    cohesion0: np.ndarray
    cohesion1: np.ndarray
    friction_angle: np.ndarray
    dilation_angle: np.ndarray
    pls0: np.ndarray
    pls1: np.ndarray
    plastic_viscosity: np.ndarray

    def __post_init__(self):
        n = None
        for f in fields(self):
            arr = np.asarray(getattr(self, f.name), dtype=float).reshape(-1)
            setattr(self, f.name, arr)
            if n is None:
                n = arr.shape[0]
            elif arr.shape[0] != n:
                raise ValueError(f"material parameter '{f.name}' has {arr.shape[0]} entries, expected {n}")
        if np.any(self.rho0 <= 0.0):
            raise ValueError("rho0 must be positive in every region")
        if np.any(self.gamma <= 1.0):
            raise ValueError("gamma must be > 1 in every region")

    @property
    def n_regions(self) -> int:
        return int(self.rho0.shape[0])

    @classmethod
    def from_lists(
        cls,
        n_regions: int,
        rho0: Sequence[float],
        gamma: Sequence[float],
        lambda_: Sequence[float] = (0.0,),
        mu: Sequence[float] = (0.0,),
        tension_cutoff: Sequence[float] = (0.0,),
        cohesion0: Sequence[float] = (0.0,),
        cohesion1: Sequence[float] = (0.0,),
        friction_angle: Sequence[float] = (0.0,),
        dilation_angle: Sequence[float] = (0.0,),
        pls0: Sequence[float] = (0.0,),
        pls1: Sequence[float] = (0.0,),
        plastic_viscosity: Optional[Sequence[float]] = None,
        viscoplastic: bool = False,
    ) -> "MaterialTable":
        """Build a table from per-region lists.

        A list of length 1 is broadcast to every region; a list of length
        ``n_regions`` is used as is; anything else is rejected.
        """
        n_regions = int(n_regions)
        if n_regions < 1:
            raise ValueError(f"n_regions must be >= 1, got {n_regions}")

        if not viscoplastic or plastic_viscosity is None:
            plastic_viscosity = (NO_VISCOPLASTICITY,)

        raw: Dict[str, Sequence[float]] = dict(
            rho0=rho0,
            gamma=gamma,
            lambda_=lambda_,
            mu=mu,
            tension_cutoff=tension_cutoff,
            cohesion0=cohesion0,
            cohesion1=cohesion1,
            friction_angle=friction_angle,
            dilation_angle=dilation_angle,
            pls0=pls0,
            pls1=pls1,
            plastic_viscosity=plastic_viscosity,
        )
        out = {}
        for name, values in raw.items():
            arr = np.atleast_1d(np.asarray(values, dtype=float))
            if arr.shape[0] == 1:
                arr = np.full(n_regions, float(arr[0]))
            elif arr.shape[0] != n_regions:
                raise ValueError(
                    f"material parameter '{name.rstrip('_')}' has {arr.shape[0]} values; "
                    f"expected 1 or {n_regions} (one per region)"
                )
            out[name] = arr
        return cls(**out)

    def per_element(self, attributes: np.ndarray) -> "ElementMaterials":
        attributes = np.asarray(attributes, dtype=np.int64)
        if attributes.size and (attributes.min() < 1 or attributes.max() > self.n_regions):
            raise ValueError(
                f"element attributes span {attributes.min()}..{attributes.max()} "
                f"but the material table has {self.n_regions} regions"
            )
        idx = attributes - 1
        return ElementMaterials(
            rho0=self.rho0[idx],
            gamma=self.gamma[idx],
            lambda_=self.lambda_[idx],
            mu=self.mu[idx],
            attributes=attributes,
        )


@dataclass
class ElementMaterials:
    """Material parameters gathered per element (read by the quadrature kernels)."""

    rho0: np.ndarray
    gamma: np.ndarray
    lambda_: np.ndarray
    mu: np.ndarray
    attributes: np.ndarray
