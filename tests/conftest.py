"""
Pytest configuration for lagrange-hydro tests.

Adds src/ to sys.path so tests can import lagrange_hydro without an
installed package, and provides a few small problem builders.
"""

import os
import sys

import numpy as np
import pytest

repo_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
src_path = os.path.join(repo_root, "src")

if src_path not in sys.path:
    sys.path.insert(0, src_path)


def make_operator(
    lengths=(1.0, 1.0),
    cells=(1, 1),
    order_v=2,
    order_e=1,
    bc=None,
    rho=1.0,
    gamma=1.4,
    lam=0.0,
    mu=0.0,
    **kwargs,
):
    """Small LagrangianHydroOperator on a structured box."""
    from lagrange_hydro.fem.bcs import essential_vdofs
    from lagrange_hydro.fem.mesh import structured_mesh
    from lagrange_hydro.fem.quadrature import default_rule
    from lagrange_hydro.fem.spaces import H1Space, L2Space
    from lagrange_hydro.hydro import LagrangianHydroOperator
    from lagrange_hydro.material import MaterialTable
    from lagrange_hydro.problems import project_h1

    mesh = structured_mesh(lengths, cells)
    h1 = H1Space(mesh, order_v)
    l2 = L2Space(mesh, order_e)
    rule = default_rule(mesh.dim, order_v, order_e)
    mat = MaterialTable.from_lists(1, rho0=[rho], gamma=[gamma], lambda_=[lam], mu=[mu])
    if bc is None:
        bc = (0,) * len(mesh.bdr_attributes)
    ess = essential_vdofs(h1, bc)
    x0 = project_h1(h1, lambda X: X)
    return LagrangianHydroOperator(h1, l2, rule, mat, x0, ess, **kwargs)


@pytest.fixture
def unit_square_op():
    return make_operator(use_viscosity=False)


@pytest.fixture
def rng():
    return np.random.default_rng(1234)
