"""Finite element services: meshes, quadrature, bases, spaces and boundary conditions."""

from lagrange_hydro.fem.bcs import essential_vdofs
from lagrange_hydro.fem.mesh import CartesianMesh, structured_mesh
from lagrange_hydro.fem.quadrature import IntegrationRule, default_rule, tensor_rule
from lagrange_hydro.fem.spaces import H1Space, L2Space

__all__ = [
    "CartesianMesh",
    "structured_mesh",
    "IntegrationRule",
    "default_rule",
    "tensor_rule",
    "H1Space",
    "L2Space",
    "essential_vdofs",
]
