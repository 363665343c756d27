"""Per-quadrature-point cache and batch scratch buffers."""

from __future__ import annotations

from enum import Enum

import numpy as np


class CacheState(Enum):
    STALE = 0
    VALID = 1


class QuadratureData:
    """Fields keyed by (element, quadrature point).

    ``Jac0inv``, ``rho0DetJ0w`` and ``h0`` describe the initial configuration
    and are frozen by :meth:`setup_reference`.  ``stressJinvT``, ``tauJinvT``
    and ``dt_est`` belong to the current configuration and are only meaningful
    while the cache is ``VALID``.
    """

    def __init__(self, dim: int, ne: int, nq: int):
        self.dim = int(dim)
        self.ne = int(ne)
        self.nq = int(nq)
        self.Jac0inv = np.zeros((ne, nq, dim, dim))
        self.rho0DetJ0w = np.zeros((ne, nq))
        self.h0 = 0.0
        self.stressJinvT = np.zeros((ne, nq, dim, dim))
        self.tauJinvT = np.zeros((ne, nq, dim, dim))
        self.dt_est = np.inf
        self.h_min_est = np.inf
        self.state = CacheState.STALE
        self.revision = 0
        self._reference_set = False

    def setup_reference(self, Jac0inv: np.ndarray, rho0DetJ0w: np.ndarray, h0: float) -> None:
        if self._reference_set:
            raise RuntimeError("reference quadrature data can only be set once")
        self.Jac0inv[...] = Jac0inv
        self.rho0DetJ0w[...] = rho0DetJ0w
        self.h0 = float(h0)
        self.Jac0inv.flags.writeable = False
        self.rho0DetJ0w.flags.writeable = False
        self._reference_set = True

    @property
    def is_valid(self) -> bool:
        return self.state is CacheState.VALID

    def invalidate(self) -> None:
        self.state = CacheState.STALE

    def mark_valid(self) -> None:
        self.state = CacheState.VALID
        self.revision += 1

    def require_valid(self) -> None:
        if self.state is not CacheState.VALID:
            raise RuntimeError("quadrature data is stale; update it before reading stress fields")

    def reset_dt_est(self) -> None:
        self.dt_est = np.inf
        self.h_min_est = np.inf


class ScratchArena:
    """Batch buffers sized to ``batch_size * nq`` points, reused across batches."""

    def __init__(self, dim: int, nq: int, batch_size: int):
        n = int(batch_size) * int(nq)
        self.dim = int(dim)
        self.batch_size = int(batch_size)
        self.npts = n
        self.J = np.zeros((n, dim, dim))
        self.Jinv = np.zeros((n, dim, dim))
        self.detJ = np.zeros(n)
        self.gradv = np.zeros((n, dim, dim))
        self.sig = np.zeros((n, dim, dim))
        self.rho = np.zeros(n)
        self.e = np.zeros(n)
        self.gamma = np.zeros(n)
        self.lam = np.zeros(n)
        self.mu = np.zeros(n)
        self.pmod = np.zeros(n)
        self.p = np.zeros(n)
        self.c = np.zeros(n)
        # per-point constitutive scratch
        self.gref = np.zeros((dim, dim))
        self.work = np.zeros((5, 3, 3))
        self.vwork = np.zeros((2, 3))
