"""Structured Cartesian tensor-product meshes in 1D, 2D and 3D.

Elements are numbered lexicographically (x fastest).  Boundary attributes:

* 1D: 1 at ``x = x0``, 2 at ``x = x0 + L``
* 2D: 1 bottom, 2 right, 3 top, 4 left
* 3D: 1 ``z = z0``, 2 ``y = y0``, 3 ``x = x1``, 4 ``y = y1``, 5 ``x = x0``, 6 ``z = z1``
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Sequence, Tuple

import numpy as np


# (axis, side) for every boundary attribute, side 0 = low end, 1 = high end
BOUNDARY_FACES = {
    1: {1: (0, 0), 2: (0, 1)},
    2: {1: (1, 0), 2: (0, 1), 3: (1, 1), 4: (0, 0)},
    3: {1: (2, 0), 2: (1, 0), 3: (0, 1), 4: (1, 1), 5: (0, 0), 6: (2, 1)},
}


@dataclass
class CartesianMesh:
    """Axis-aligned box split into ``cells[0] x cells[1] x ...`` elements."""

    lengths: Tuple[float, ...]
    cells: Tuple[int, ...]
    origin: Tuple[float, ...] = ()
    attributes: Optional[np.ndarray] = None  # (NE,) region ids, 1-based
    dim: int = field(init=False)

    def __post_init__(self):
        self.lengths = tuple(float(v) for v in self.lengths)
        self.cells = tuple(int(n) for n in self.cells)
        self.dim = len(self.lengths)
        if self.dim not in (1, 2, 3):
            raise ValueError(f"Only 1D, 2D and 3D meshes are supported, got dim={self.dim}")
        if len(self.cells) != self.dim:
            raise ValueError("lengths and cells must have the same length")
        if any(n < 1 for n in self.cells):
            raise ValueError(f"Every direction needs at least one cell, got {self.cells}")
        if any(L <= 0.0 for L in self.lengths):
            raise ValueError(f"Mesh lengths must be positive, got {self.lengths}")
        if not self.origin:
            self.origin = (0.0,) * self.dim
        self.origin = tuple(float(v) for v in self.origin)
        if len(self.origin) != self.dim:
            raise ValueError("origin must have one entry per direction")

        if self.attributes is None:
            self.attributes = np.ones(self.ne, dtype=np.int64)
        else:
            self.attributes = np.asarray(self.attributes, dtype=np.int64).reshape(-1)
            if self.attributes.shape[0] != self.ne:
                raise ValueError(
                    f"attributes has {self.attributes.shape[0]} entries, mesh has {self.ne} elements"
                )
            if np.any(self.attributes < 1):
                raise ValueError("element attributes are 1-based region ids")

    @property
    def ne(self) -> int:
        return int(np.prod(self.cells))

    @property
    def cell_size(self) -> np.ndarray:
        return np.array(self.lengths) / np.array(self.cells, dtype=float)

    @property
    def n_regions(self) -> int:
        return int(self.attributes.max())

    @property
    def bdr_attributes(self) -> Tuple[int, ...]:
        return tuple(sorted(BOUNDARY_FACES[self.dim].keys()))

    def element_multi_index(self, e: int) -> Tuple[int, ...]:
        idx = []
        r = int(e)
        for k in range(self.dim):
            idx.append(r % self.cells[k])
            r //= self.cells[k]
        return tuple(idx)

    def element_origins(self) -> np.ndarray:
        """(NE, dim) lower corner of every element."""
        h = self.cell_size
        out = np.zeros((self.ne, self.dim), dtype=float)
        for e in range(self.ne):
            idx = self.element_multi_index(e)
            for k in range(self.dim):
                out[e, k] = self.origin[k] + idx[k] * h[k]
        return out

    def element_centroids(self) -> np.ndarray:
        return self.element_origins() + 0.5 * self.cell_size[None, :]

    def volume(self) -> float:
        return float(np.prod(self.lengths))

    def set_attributes_by(self, func) -> None:
        """Assign region ids from ``func(centroid) -> int``."""
        c = self.element_centroids()
        self.attributes = np.array([int(func(c[e])) for e in range(self.ne)], dtype=np.int64)
        if np.any(self.attributes < 1):
            raise ValueError("element attributes are 1-based region ids")


def structured_mesh(
    lengths: Sequence[float],
    cells: Sequence[int],
    origin: Sequence[float] = (),
    attributes=None,
) -> CartesianMesh:
    return CartesianMesh(tuple(lengths), tuple(cells), tuple(origin), attributes)


def characteristic_length(total_volume: float, total_elements: int, dim: int, order_v: int) -> float:
    """Initial element size ``h0`` divided by the velocity order."""
    v = float(total_volume) / float(total_elements)
    if dim == 1:
        h = v
    elif dim == 2:
        h = np.sqrt(v)
    else:
        h = np.cbrt(v)
    return float(h) / float(order_v)
