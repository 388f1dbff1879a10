"""Damped Newton solver with backtracking line search.

Solves R(x) = 0 restricted to the free DOFs of a multi-field space. The
Dirichlet DOFs of the initial guess are kept fixed. Each iteration solves

    J_ff dx_f = -R_f

and backtracks on the merit function 1/2 ||R_f||^2 until the Armijo
condition holds, so the residual 2-norm never increases between accepted
iterates. Convergence is declared on the max-norm of R_f.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, List

import numpy as np
from scipy.sparse import csr_matrix

from fem.linear_solvers import scipy_solver
from utilities.exceptions import NewtonConvergenceError

log = logging.getLogger(__name__)


@dataclass
class NewtonParameters:
    """Newton iteration controls."""

    ftol: float = 1e-6
    max_iterations: int = 50
    line_search: bool = True
    ls_max_iterations: int = 12
    ls_reduction: float = 0.5
    ls_c1: float = 1e-4
    linear_solver: str = "direct"


@dataclass
class NewtonResult:
    """Converged iterate and its convergence history."""

    x: np.ndarray
    iterations: int
    residual_norm: float
    # 2-norm of the free residual, one entry per accepted iterate
    residual_history: List[float] = field(default_factory=list)


class NewtonSolver:
    """Newton-Raphson on the free DOFs with an Armijo line search.

    Parameters
    ----------
    params : NewtonParameters, optional
        Iteration controls. If not provided, kwargs are used to create them.
    linear_solver : callable, optional
        ``solve(A, b, method=...) -> (x, info)``; scipy by default.
    """

    def __init__(self, params: NewtonParameters = None, linear_solver: Callable = scipy_solver, **kwargs):
        self.params = params if params is not None else NewtonParameters(**kwargs)
        self.linear_solver = linear_solver

    def solve(
        self,
        residual: Callable[[np.ndarray], np.ndarray],
        jacobian: Callable[[np.ndarray], csr_matrix],
        x0: np.ndarray,
        free_dofs: np.ndarray,
    ) -> NewtonResult:
        """Iterate from x0 until ||R_f||_inf < ftol.

        Parameters
        ----------
        residual : callable
            Full residual vector R(x).
        jacobian : callable
            Full Jacobian dR/dx (CSR).
        x0 : np.ndarray
            Initial guess with the Dirichlet DOFs already set.
        free_dofs : np.ndarray
            Indices of the unknowns.

        Raises
        ------
        NewtonConvergenceError
            When the iteration budget is exhausted or the line search fails.
        LinearSolveError
            Propagated from the linear solver.
        """
        p = self.params
        x = np.array(x0, dtype=float)

        r = residual(x)[free_dofs]
        norm_inf = _max_norm(r)
        history = [float(np.linalg.norm(r))]
        log.debug(f"Newton iter 0: |R|_inf = {norm_inf:.3e}")

        iteration = 0
        while norm_inf >= p.ftol:
            if iteration >= p.max_iterations:
                raise NewtonConvergenceError(
                    f"Newton did not converge in {p.max_iterations} iterations "
                    f"(|R|_inf = {norm_inf:.3e}, ftol = {p.ftol:.1e})",
                    iterations=iteration,
                    residual_norm=norm_inf,
                    x=x,
                )

            J = jacobian(x)[free_dofs][:, free_dofs]
            dx, _ = self.linear_solver(J.tocsr(), -r, method=p.linear_solver)

            x, r = self._line_search(residual, x, r, dx, free_dofs, iteration)
            iteration += 1
            norm_inf = _max_norm(r)
            history.append(float(np.linalg.norm(r)))
            log.debug(f"Newton iter {iteration}: |R|_inf = {norm_inf:.3e}")

        return NewtonResult(x=x, iterations=iteration, residual_norm=norm_inf, residual_history=history)

    def _line_search(self, residual, x, r, dx, free_dofs, iteration):
        """Backtracking on 1/2 ||R_f||^2 (Armijo with the Newton slope -||R_f||^2)."""
        p = self.params
        merit0 = 0.5 * float(r @ r)
        alpha = 1.0

        for _ in range(p.ls_max_iterations if p.line_search else 1):
            x_trial = x.copy()
            x_trial[free_dofs] += alpha * dx
            r_trial = residual(x_trial)[free_dofs]
            merit = 0.5 * float(r_trial @ r_trial)
            if not p.line_search or merit <= (1.0 - 2.0 * p.ls_c1 * alpha) * merit0:
                return x_trial, r_trial
            alpha *= p.ls_reduction

        raise NewtonConvergenceError(
            f"Line search failed at Newton iteration {iteration + 1} "
            f"(|R|_inf = {_max_norm(r):.3e})",
            iterations=iteration,
            residual_norm=_max_norm(r),
            x=x,
        )


def _max_norm(r: np.ndarray) -> float:
    return float(np.max(np.abs(r))) if r.size else 0.0
