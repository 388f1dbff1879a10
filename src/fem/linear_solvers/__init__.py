"""Linear solvers for the FEM systems."""

from .scipy_solver import scipy_solver

__all__ = ["scipy_solver"]
