"""Global reductions across mesh partitions."""

from __future__ import annotations


class SerialReduction:
    """Single-partition reductions (identity)."""

    def global_min(self, value: float) -> float:
        return float(value)

    def global_sum(self, value: float) -> float:
        return float(value)


class MPIReduction:
    """Allreduce over an ``mpi4py`` communicator (``pip install lagrange-hydro[mpi]``)."""

    def __init__(self, comm=None):
        from mpi4py import MPI

        self._MPI = MPI
        self.comm = MPI.COMM_WORLD if comm is None else comm

    @property
    def rank(self) -> int:
        return int(self.comm.Get_rank())

    def global_min(self, value: float) -> float:
        return float(self.comm.allreduce(float(value), op=self._MPI.MIN))

    def global_sum(self, value: float) -> float:
        return float(self.comm.allreduce(float(value), op=self._MPI.SUM))
