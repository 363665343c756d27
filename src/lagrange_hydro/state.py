"""Monolithic hydro state vector and its block layout.

Blocks, in order: position ``x`` and velocity ``v`` (H1 vector fields,
component-major), specific internal energy ``e`` (L2), symmetric stress
``sigma`` (``nsym`` L2 components, Voigt order) and the reference position
``x0`` (H1 vector).  Block accessors return views of the single array.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np

NSYM = {1: 1, 2: 3, 3: 6}

# Voigt component order per dimension
VOIGT_PAIRS = {
    1: ((0, 0),),
    2: ((0, 0), (1, 1), (0, 1)),
    3: ((0, 0), (1, 1), (2, 2), (0, 1), (1, 2), (0, 2)),
}


def voigt_index(dim: int) -> np.ndarray:
    """(dim, dim) map from tensor indices to the Voigt component id."""
    idx = np.zeros((dim, dim), dtype=np.int64)
    for k, (i, j) in enumerate(VOIGT_PAIRS[dim]):
        idx[i, j] = k
        idx[j, i] = k
    return idx


@dataclass(frozen=True)
class BlockLayout:
    dim: int
    nh1: int  # scalar H1 dofs
    nl2: int  # scalar L2 dofs

    @property
    def nsym(self) -> int:
        return NSYM[self.dim]

    @property
    def h1v(self) -> int:
        return self.dim * self.nh1

    @property
    def offsets(self) -> Tuple[int, ...]:
        sizes = (self.h1v, self.h1v, self.nl2, self.nsym * self.nl2, self.h1v)
        out = [0]
        for s in sizes:
            out.append(out[-1] + s)
        return tuple(out)

    @property
    def size(self) -> int:
        return self.offsets[-1]


class HydroState:
    """Owner of the contiguous state array ``S``."""

    def __init__(self, layout: BlockLayout, data: np.ndarray = None):
        self.layout = layout
        if data is None:
            data = np.zeros(layout.size, dtype=np.float64)
        data = np.asarray(data, dtype=np.float64)
        if data.shape != (layout.size,):
            raise ValueError(f"State array has shape {data.shape}, layout needs ({layout.size},)")
        self.data = data

    def _block(self, k: int) -> np.ndarray:
        o = self.layout.offsets
        return self.data[o[k]:o[k + 1]]

    @property
    def x(self) -> np.ndarray:
        return self._block(0)

    @property
    def v(self) -> np.ndarray:
        return self._block(1)

    @property
    def e(self) -> np.ndarray:
        return self._block(2)

    @property
    def sigma(self) -> np.ndarray:
        return self._block(3)

    @property
    def x0(self) -> np.ndarray:
        return self._block(4)

    def sigma_component(self, k: int) -> np.ndarray:
        nl2 = self.layout.nl2
        return self.sigma[k * nl2:(k + 1) * nl2]

    def copy(self) -> "HydroState":
        return HydroState(self.layout, self.data.copy())

    def assign(self, other: "HydroState") -> None:
        self.data[:] = other.data

    def is_finite(self) -> bool:
        return bool(np.all(np.isfinite(self.data)))
