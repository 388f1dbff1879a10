"""Assembly of finite element terms into sparse operators."""

from .operators import FEOperator, FETerm, QuadratureState, TransientFEOperator
from .sparsity import SparsityPattern

__all__ = [
    "FEOperator",
    "FETerm",
    "QuadratureState",
    "TransientFEOperator",
    "SparsityPattern",
]
