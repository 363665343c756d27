"""Small dense tensor kernels for 1x1, 2x2 and 3x3 matrices.

All helpers are allocation free: results go to caller-provided buffers and the
dimension is read from the input shape.
"""

from __future__ import annotations

import math

import numpy as np
from numba import njit


# -----------------------------------------------------------------------------
# Determinant / inverse
# -----------------------------------------------------------------------------


@njit(cache=True)
def det_small(A: np.ndarray) -> float:
    d = A.shape[0]
    if d == 1:
        return A[0, 0]
    if d == 2:
        return A[0, 0] * A[1, 1] - A[0, 1] * A[1, 0]
    return (
        A[0, 0] * (A[1, 1] * A[2, 2] - A[1, 2] * A[2, 1])
        - A[0, 1] * (A[1, 0] * A[2, 2] - A[1, 2] * A[2, 0])
        + A[0, 2] * (A[1, 0] * A[2, 1] - A[1, 1] * A[2, 0])
    )


@njit(cache=True)
def inv_small(A: np.ndarray, out: np.ndarray) -> float:
    """Write ``inv(A)`` into ``out`` and return ``det(A)``.

    A singular matrix yields non-finite entries; callers detect it through the
    returned determinant.
    """
    d = A.shape[0]
    det = det_small(A)
    if d == 1:
        out[0, 0] = 1.0 / det
        return det
    if d == 2:
        out[0, 0] = A[1, 1] / det
        out[0, 1] = -A[0, 1] / det
        out[1, 0] = -A[1, 0] / det
        out[1, 1] = A[0, 0] / det
        return det
    out[0, 0] = (A[1, 1] * A[2, 2] - A[1, 2] * A[2, 1]) / det
    out[0, 1] = (A[0, 2] * A[2, 1] - A[0, 1] * A[2, 2]) / det
    out[0, 2] = (A[0, 1] * A[1, 2] - A[0, 2] * A[1, 1]) / det
    out[1, 0] = (A[1, 2] * A[2, 0] - A[1, 0] * A[2, 2]) / det
    out[1, 1] = (A[0, 0] * A[2, 2] - A[0, 2] * A[2, 0]) / det
    out[1, 2] = (A[0, 2] * A[1, 0] - A[0, 0] * A[1, 2]) / det
    out[2, 0] = (A[1, 0] * A[2, 1] - A[1, 1] * A[2, 0]) / det
    out[2, 1] = (A[0, 1] * A[2, 0] - A[0, 0] * A[2, 1]) / det
    out[2, 2] = (A[0, 0] * A[1, 1] - A[0, 1] * A[1, 0]) / det
    return det


# -----------------------------------------------------------------------------
# Symmetric eigen problems
# -----------------------------------------------------------------------------


@njit(cache=True)
def _jacobi_sym3(a: np.ndarray, vecs: np.ndarray) -> None:
    """Cyclic Jacobi sweeps on a symmetric 3x3 matrix, in place.

    On return the diagonal of ``a`` holds the eigenvalues and the columns of
    ``vecs`` the matching eigenvectors.
    """
    for i in range(3):
        for j in range(3):
            vecs[i, j] = 1.0 if i == j else 0.0

    for _sweep in range(50):
        off = abs(a[0, 1]) + abs(a[0, 2]) + abs(a[1, 2])
        if off == 0.0:
            break
        for p in range(2):
            for q in range(p + 1, 3):
                apq = a[p, q]
                if apq == 0.0:
                    continue
                theta = (a[q, q] - a[p, p]) / (2.0 * apq)
                if abs(theta) > 1e150:
                    t = 0.5 / theta
                else:
                    t = 1.0 / (abs(theta) + math.sqrt(theta * theta + 1.0))
                    if theta < 0.0:
                        t = -t
                c = 1.0 / math.sqrt(t * t + 1.0)
                s = t * c
                for k in range(3):
                    akp = a[k, p]
                    akq = a[k, q]
                    a[k, p] = c * akp - s * akq
                    a[k, q] = s * akp + c * akq
                for k in range(3):
                    apk = a[p, k]
                    aqk = a[q, k]
                    a[p, k] = c * apk - s * aqk
                    a[q, k] = s * apk + c * aqk
                for k in range(3):
                    vkp = vecs[k, p]
                    vkq = vecs[k, q]
                    vecs[k, p] = c * vkp - s * vkq
                    vecs[k, q] = s * vkp + c * vkq
                a[p, q] = 0.0
                a[q, p] = 0.0


@njit(cache=True)
def _eig_min_2x2(a: float, b: float, c: float) -> float:
    half = 0.5 * (a - c)
    return 0.5 * (a + c) - math.sqrt(half * half + b * b)


@njit(cache=True)
def sym_eig_min(A: np.ndarray, vec: np.ndarray, work: np.ndarray) -> float:
    """Smallest eigenvalue of symmetric ``A``; its unit eigenvector goes to ``vec``.

    Parameters
    ----------
    A : (d, d) float
        Symmetric matrix, ``d`` in {1, 2, 3}.
    vec : (d,) float
        Output eigenvector.
    work : (>=2, 3, 3) float
        Scratch used by the 3x3 path.
    """
    d = A.shape[0]
    if d == 1:
        vec[0] = 1.0
        return A[0, 0]
    if d == 2:
        a = A[0, 0]
        b = 0.5 * (A[0, 1] + A[1, 0])
        c = A[1, 1]
        lam = _eig_min_2x2(a, b, c)
        if b != 0.0:
            v0 = b
            v1 = lam - a
        elif a <= c:
            v0 = 1.0
            v1 = 0.0
        else:
            v0 = 0.0
            v1 = 1.0
        nrm = math.sqrt(v0 * v0 + v1 * v1)
        vec[0] = v0 / nrm
        vec[1] = v1 / nrm
        return lam

    a3 = work[0]
    vecs = work[1]
    for i in range(3):
        for j in range(3):
            a3[i, j] = 0.5 * (A[i, j] + A[j, i])
    _jacobi_sym3(a3, vecs)
    k = 0
    for i in range(1, 3):
        if a3[i, i] < a3[k, k]:
            k = i
    for i in range(3):
        vec[i] = vecs[i, k]
    return a3[k, k]


@njit(cache=True)
def min_singular_value(J: np.ndarray, work: np.ndarray) -> float:
    """Smallest singular value, ``sqrt(min eig(J^T J))``.

    ``work`` is a (>=2, 3, 3) scratch buffer.
    """
    d = J.shape[0]
    if d == 1:
        return abs(J[0, 0])
    JtJ = work[0]
    for i in range(d):
        for j in range(d):
            s = 0.0
            for k in range(d):
                s += J[k, i] * J[k, j]
            JtJ[i, j] = s
    if d == 2:
        lam = _eig_min_2x2(JtJ[0, 0], JtJ[0, 1], JtJ[1, 1])
    else:
        _jacobi_sym3(JtJ, work[1])
        lam = min(JtJ[0, 0], min(JtJ[1, 1], JtJ[2, 2]))
    if lam < 0.0:
        lam = 0.0
    return math.sqrt(lam)


# -----------------------------------------------------------------------------
# Scalar helpers
# -----------------------------------------------------------------------------


@njit(cache=True)
def smooth_step_01(x: float, eps: float) -> float:
    """Cubic Hermite ramp from 0 at ``x = -eps`` to 1 at ``x = +eps``."""
    y = (x + eps) / (2.0 * eps)
    if y < 0.0:
        return 0.0
    if y > 1.0:
        return 1.0
    return (3.0 - 2.0 * y) * y * y
