"""Finite element spaces, weak forms and assembly for the FSI problem.

Package Structure:
------------------
core/            Q1 elements, quadrature, integration domains
spaces.py        Nodal field spaces and Dirichlet bindings
assembly/        FE terms, operators, sparsity patterns
weak_forms.py    Bootstrap and FSI kernels, mesh strategies
linear_solvers/  Sparse linear solvers
"""

from .core import CellDomain, InterfaceDomain
from .spaces import (
    BoundaryConditions,
    FieldSpace,
    FieldSpaces,
    FrozenValue,
    MultiFieldSpace,
    build_field_spaces,
    get_boundary_conditions,
)
from .assembly import FEOperator, FETerm, TransientFEOperator
from .weak_forms import MeshStrategy, WeakForms, lame_parameters, weak_forms

__all__ = [
    "CellDomain",
    "InterfaceDomain",
    "BoundaryConditions",
    "FieldSpace",
    "FieldSpaces",
    "FrozenValue",
    "MultiFieldSpace",
    "build_field_spaces",
    "get_boundary_conditions",
    "FEOperator",
    "FETerm",
    "TransientFEOperator",
    "MeshStrategy",
    "WeakForms",
    "lame_parameters",
    "weak_forms",
]
