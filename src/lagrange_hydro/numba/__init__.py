"""Numba-compiled kernels.

This subpackage contains small, *stateless* computational kernels compiled in
Numba's ``nopython`` mode.  They operate on primitive NumPy arrays and floats
only; buffers are owned by the caller.
"""

from .kernels_qupdate import QKernel, quadrature_point_update, select_qkernel
from .kernels_tensor import det_small, inv_small, min_singular_value, smooth_step_01, sym_eig_min

__all__ = [
    "QKernel",
    "quadrature_point_update",
    "select_qkernel",
    "det_small",
    "inv_small",
    "min_singular_value",
    "smooth_step_01",
    "sym_eig_min",
]
