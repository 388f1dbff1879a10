"""Linear Stokes-like solve on the fluid region, used as initial state."""

import logging

import numpy as np

from fem.assembly.operators import FEOperator
from fem.linear_solvers import scipy_solver

log = logging.getLogger(__name__)


class StokesBootstrapSolver:
    """One direct linear solve of a stationary (linear) operator.

    The Dirichlet DOFs are lifted to their prescribed values, the residual
    and Jacobian are assembled once at the lifted state, and

        J_ff dx_f = -R_f

    is solved for the free DOFs. For a linear operator this is the exact
    solution; the result depends only on the operator and its boundary data.

    Parameters
    ----------
    op : FEOperator
        Stationary operator over the bootstrap space.
    linear_solver : callable, optional
        ``solve(A, b, method=...) -> (x, info)``.
    method : str, optional
        Linear solver method (default: "direct").
    """

    def __init__(self, op: FEOperator, linear_solver=scipy_solver, method: str = "direct"):
        self.op = op
        self.linear_solver = linear_solver
        self.method = method

    def solve(self, t: float = 0.0) -> np.ndarray:
        space = self.op.space
        x = space.apply_dirichlet(space.zeros(), t)
        free = space.free_dofs
        if free.size == 0:
            log.info("Bootstrap problem has no free DOFs; returning boundary data")
            return x

        r = self.op.residual(x)[free]
        J = self.op.jacobian(x)[free][:, free]
        dx, _ = self.linear_solver(J.tocsr(), -r, method=self.method)
        x[free] += dx

        log.info(
            f"Bootstrap solve: {free.size} unknowns, "
            f"|R|_inf after solve = {np.max(np.abs(self.op.residual(x)[free])):.3e}"
        )
        return x
