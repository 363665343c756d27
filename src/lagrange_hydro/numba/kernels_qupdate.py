"""Quadrature-point constitutive kernels.

``quadrature_point_update`` turns the kinematics at one point into the force
contribution ``stress J^{-T} w detJ``, the scaled corotational stress rate and
a local stable time step.  ``select_qkernel`` hands out the batch kernels
(kinematics / finalize) specialised for a mesh dimension.

Notes
-----
* All kernels compile with ``error_model="numpy"``: a degenerate Jacobian gives
  ``inf``/``nan`` instead of raising, and the ``detJ <= 0`` test turns it into
  a zero time step estimate.  A nan estimate is kept as nan.
* Loops are explicit and the reductions are plain minima, so results do not
  depend on how elements are grouped into batches.
"""

from __future__ import annotations

import math
from typing import Callable, NamedTuple

import numpy as np
from numba import njit

from lagrange_hydro.numba.kernels_tensor import (
    inv_small,
    min_singular_value,
    smooth_step_01,
    sym_eig_min,
)
from lagrange_hydro.state import voigt_index

# smoothstep half width around zero compression
VISC_EPS = 1e-12

MAX_ORDER = 8


# -----------------------------------------------------------------------------
# Single point
# -----------------------------------------------------------------------------


@njit(cache=True, error_model="numpy")
def quadrature_point_update(
    J: np.ndarray,
    Jinv: np.ndarray,
    detJ: float,
    gradv: np.ndarray,
    Jac0inv: np.ndarray,
    h0: float,
    w: float,
    rho: float,
    p: float,
    c: float,
    lam: float,
    mu: float,
    sig: np.ndarray,
    use_viscosity: bool,
    use_vorticity: bool,
    use_stress: bool,
    cfl: float,
    order_v: int,
    dt_est: float,
    stressJinvT: np.ndarray,
    tau: np.ndarray,
    work: np.ndarray,
    vwork: np.ndarray,
):
    """Constitutive update at one quadrature point.

    Parameters
    ----------
    J, Jinv : (d, d) float
        Reference-to-physical Jacobian and its inverse.
    detJ : float
    gradv : (d, d) float
        Physical velocity gradient, ``gradv[i, j] = dv_i / dx_j``.
    Jac0inv : (d, d) float
        Inverse Jacobian of the initial configuration.
    h0, w, rho, p, c : float
        Initial length scale, quadrature weight, density, pressure, sound speed.
    lam, mu : float
        Lame parameters.
    sig : (d, d) float
        Prior stress (used when ``use_stress``).
    dt_est : float
        Running minimum, returned updated.
    stressJinvT, tau : (d, d) float
        Outputs.
    work : (5, 3, 3) float, vwork : (2, 3) float
        Scratch.

    Returns
    -------
    dt_est : float
    h_min : float
    visc : float
        Artificial viscosity coefficient.
    """
    d = J.shape[0]
    S = work[2, :d, :d]
    D = work[3, :d, :d]
    Jpi = work[4, :d, :d]
    vec = vwork[0, :d]
    ph = vwork[1, :d]

    for i in range(d):
        for j in range(d):
            S[i, j] = sig[i, j] if use_stress else 0.0
            D[i, j] = 0.5 * (gradv[i, j] + gradv[j, i])
        S[i, i] -= p

    visc = 0.0
    if use_viscosity:
        vort = 1.0
        if use_vorticity:
            nrm2 = 0.0
            tr = 0.0
            for i in range(d):
                tr += gradv[i, i]
                for j in range(d):
                    nrm2 += gradv[i, j] * gradv[i, j]
            if nrm2 > 0.0:
                vort = abs(tr) / math.sqrt(nrm2)

        # compression direction: eigenvector of the smallest strain-rate eigenvalue
        mu_min = sym_eig_min(D, vec, work)
        for i in range(d):
            for j in range(d):
                s = 0.0
                for k in range(d):
                    s += J[i, k] * Jac0inv[k, j]
                Jpi[i, j] = s
        dn = 0.0
        pn = 0.0
        for i in range(d):
            s = 0.0
            for k in range(d):
                s += Jpi[i, k] * vec[k]
            ph[i] = s
            pn += s * s
            dn += vec[i] * vec[i]
        h = h0 * math.sqrt(pn) / math.sqrt(dn) if dn > 0.0 else 0.0

        visc = 2.0 * rho * h * h * abs(mu_min)
        visc += 0.5 * rho * h * c * vort * (1.0 - smooth_step_01(mu_min - 2.0 * VISC_EPS, VISC_EPS))
        for i in range(d):
            for j in range(d):
                S[i, j] += visc * D[i, j]

    # Jaumann rate: tau = 2 mu D + lam tr(D) I + sig W - W sig
    if use_stress:
        trD = 0.0
        for i in range(d):
            trD += D[i, i]
        scale = rho * w * detJ
        for i in range(d):
            for j in range(d):
                t = 2.0 * mu * D[i, j]
                if i == j:
                    t += lam * trD
                for k in range(d):
                    t += sig[i, k] * (gradv[k, j] - D[k, j]) - (gradv[i, k] - D[i, k]) * sig[k, j]
                tau[i, j] = t * scale
    else:
        for i in range(d):
            for j in range(d):
                tau[i, j] = 0.0

    h_min = min_singular_value(J, work) / order_v
    inv_dt = c / h_min + 2.5 * visc / (rho * h_min * h_min)
    # nan is sticky
    if dt_est != dt_est:
        pass
    elif detJ <= 0.0:
        dt_est = 0.0
    elif inv_dt != inv_dt:
        dt_est = np.nan
    elif inv_dt > 0.0:
        dt_est = min(dt_est, cfl / inv_dt)

    wd = w * detJ
    for i in range(d):
        for j in range(d):
            s = 0.0
            for k in range(d):
                s += S[i, k] * Jinv[j, k]
            stressJinvT[i, j] = s * wd

    return dt_est, h_min, visc


# -----------------------------------------------------------------------------
# Batch kernels
# -----------------------------------------------------------------------------


class QKernel(NamedTuple):
    dim: int
    kinematics: Callable
    finalize: Callable


def _build_qkernel(DIM: int) -> QKernel:
    VIDX = voigt_index(DIM)

    @njit(error_model="numpy")
    def kinematics(
        elems, x, v, e, sigma, h1_dofs, nh1, l2_dofs, nl2, G, B, weights,
        rho0DetJ0w, gamma_el, lam_el, mu_el, use_stress,
        J_b, Jinv_b, detJ_b, gradv_b, sig_b, rho_b, e_b, gamma_b, lam_b, mu_b, pmod_b, gref,
    ):
        nq = weights.shape[0]
        nd = G.shape[1]
        nl = B.shape[1]
        for b in range(elems.shape[0]):
            el = elems[b]
            for q in range(nq):
                k = b * nq + q
                J = J_b[k]
                for a in range(DIM):
                    for g in range(DIM):
                        sj = 0.0
                        sv = 0.0
                        for i in range(nd):
                            gi = a * nh1 + h1_dofs[el, i]
                            sj += x[gi] * G[q, i, g]
                            sv += v[gi] * G[q, i, g]
                        J[a, g] = sj
                        gref[a, g] = sv
                detJ = inv_small(J, Jinv_b[k])
                detJ_b[k] = detJ
                Jinv = Jinv_b[k]
                gradv = gradv_b[k]
                for a in range(DIM):
                    for g in range(DIM):
                        s = 0.0
                        for m in range(DIM):
                            s += gref[a, m] * Jinv[m, g]
                        gradv[a, g] = s

                rho_b[k] = rho0DetJ0w[el, q] / (detJ * weights[q])
                s = 0.0
                for j in range(nl):
                    s += e[l2_dofs[el, j]] * B[q, j]
                e_b[k] = s

                sg = sig_b[k]
                for a in range(DIM):
                    for g in range(DIM):
                        if use_stress:
                            off = VIDX[a, g] * nl2
                            s = 0.0
                            for j in range(nl):
                                s += sigma[off + l2_dofs[el, j]] * B[q, j]
                            sg[a, g] = s
                        else:
                            sg[a, g] = 0.0

                gamma_b[k] = gamma_el[el]
                lam_b[k] = lam_el[el]
                mu_b[k] = mu_el[el]
                pmod_b[k] = lam_el[el] + 2.0 * mu_el[el]

    @njit(error_model="numpy")
    def finalize(
        elems, Jac0inv, h0, weights, use_viscosity, use_vorticity, use_stress, cfl, order_v,
        J_b, Jinv_b, detJ_b, gradv_b, sig_b, rho_b, p_b, c_b, lam_b, mu_b,
        stressJinvT, tauJinvT, work, vwork,
    ):
        nq = weights.shape[0]
        dt_est = np.inf
        h_min = np.inf
        for b in range(elems.shape[0]):
            el = elems[b]
            for q in range(nq):
                k = b * nq + q
                dt_est, hq, _visc = quadrature_point_update(
                    J_b[k], Jinv_b[k], detJ_b[k], gradv_b[k], Jac0inv[el, q], h0, weights[q],
                    rho_b[k], p_b[k], c_b[k], lam_b[k], mu_b[k], sig_b[k],
                    use_viscosity, use_vorticity, use_stress, cfl, order_v, dt_est,
                    stressJinvT[el, q], tauJinvT[el, q], work, vwork,
                )
                if hq < h_min:
                    h_min = hq
        return dt_est, h_min

    return QKernel(dim=DIM, kinematics=kinematics, finalize=finalize)


_KERNELS_BY_DIM = {dim: _build_qkernel(dim) for dim in (1, 2, 3)}

QKERNEL_TABLE = {
    (dim, order): _KERNELS_BY_DIM[dim]
    for dim in (1, 2, 3)
    for order in range(1, MAX_ORDER + 1)
}


def select_qkernel(dim: int, order_v: int) -> QKernel:
    key = (int(dim), int(order_v))
    if key not in QKERNEL_TABLE:
        raise ValueError(
            f"No quadrature kernel for dim={dim}, order_v={order_v} "
            f"(supported: dim 1-3, order 1-{MAX_ORDER})"
        )
    return QKERNEL_TABLE[key]
