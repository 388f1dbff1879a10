"""Core finite element data: Q1 elements, quadrature and integration domains."""

from .elements import edge_quadrature, gauss_legendre, geometry, quad_quadrature, shape_functions
from .domains import CellDomain, Domain, InterfaceDomain

__all__ = [
    "edge_quadrature",
    "gauss_legendre",
    "geometry",
    "quad_quadrature",
    "shape_functions",
    "CellDomain",
    "Domain",
    "InterfaceDomain",
]
