"""Plasticity service interface.

The hydro core only needs a return map applied once per accepted step, after
the stress update is committed.  Yield surfaces live outside the package.
"""

from __future__ import annotations

from typing import Protocol, Sequence, Tuple

import numpy as np

from lagrange_hydro.material import MaterialTable


class ReturnMap(Protocol):
    def return_map(
        self,
        stress: np.ndarray,
        plastic_strain: np.ndarray,
        materials: MaterialTable,
        dt: float,
    ) -> Tuple[np.ndarray, np.ndarray]:
        ...


class NoPlasticity:
    """Identity return map."""

    def return_map(self, stress, plastic_strain, materials, dt):
        return stress, plastic_strain


def initial_plastic_strain(
    coords: np.ndarray,
    center: Sequence[float],
    radius: float,
    ini_pls: float,
) -> np.ndarray:
    """Seed plastic strain ``ini_pls`` inside a circular/spherical weak zone.

    Parameters
    ----------
    coords : (n, dim) float
        Coordinates of the L2 nodes.
    center : (dim,) float
    radius : float
        Points with ``|x - center| <= radius`` are weakened.
    ini_pls : float
    """
    coords = np.atleast_2d(np.asarray(coords, dtype=float))
    center = np.asarray(center, dtype=float)[: coords.shape[1]]
    r = np.linalg.norm(coords - center[None, :], axis=1)
    return np.where(r <= float(radius), float(ini_pls), 0.0)
