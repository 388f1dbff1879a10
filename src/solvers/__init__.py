"""Partitioned-mesh FSI solver framework.

Solver Pipeline:
----------------
FSISolver (problem driver)
├── StokesBootstrapSolver (linear Stokes solve on the fluid region)
└── ThetaMethod (implicit time stepping)
    └── NewtonSolver (damped Newton with backtracking line search)
"""

from .datastructures import FSIParameters, Metrics, Snapshot, TimeSeries, Trajectory
from .analytical import AnalyticalSolution
from .newton import NewtonParameters, NewtonResult, NewtonSolver
from .theta_method import ThetaMethod
from .bootstrap import StokesBootstrapSolver
from .fsi_solver import FSISolver


__all__ = [
    # Driver
    "FSISolver",
    # Data structures
    "FSIParameters",
    "Metrics",
    "Snapshot",
    "TimeSeries",
    "Trajectory",
    # Collaborators
    "AnalyticalSolution",
    # Nonlinear / time integration
    "NewtonParameters",
    "NewtonResult",
    "NewtonSolver",
    "ThetaMethod",
    "StokesBootstrapSolver",
]
