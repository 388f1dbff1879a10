"""Implicit theta-method for transient FE operators.

Each step solves for the state at the intermediate time t_n + theta dt,

    R(t_n + theta dt, x_theta, (x_theta - x_n) / (theta dt)) = 0,

with the Newton Jacobian dR/dx + dR/dxt / (theta dt), and then extrapolates
to the end of the step:

    x_{n+1} = x_n + (x_theta - x_n) / theta,

with the Dirichlet DOFs of x_{n+1} reset to their values at t_n + dt.

theta = 1 is backward Euler, theta = 1/2 is Crank-Nicolson (midpoint).
"""

import logging
from typing import Iterator, Tuple

import numpy as np

from fem.assembly.operators import TransientFEOperator
from utilities.exceptions import LinearSolveError, NewtonConvergenceError

from .newton import NewtonResult, NewtonSolver

log = logging.getLogger(__name__)


class ThetaMethod:
    """Theta time stepping driven by a Newton solver.

    Parameters
    ----------
    nls : NewtonSolver
        Nonlinear solver used at every step.
    dt : float
        Time step.
    theta : float, optional
        Implicitness in (0, 1] (default: 0.5).
    """

    def __init__(self, nls: NewtonSolver, dt: float, theta: float = 0.5):
        if dt <= 0:
            raise ValueError(f"Time step must be positive, got {dt}")
        if not 0.0 < theta <= 1.0:
            raise ValueError(f"theta must lie in (0, 1], got {theta}")
        self.nls = nls
        self.dt = float(dt)
        self.theta = float(theta)

    def time_levels(self, t0: float, tf: float) -> np.ndarray:
        """Times t0 + k dt <= tf, k >= 1."""
        n_steps = int(np.floor((tf - t0) / self.dt + 1e-10))
        return t0 + self.dt * np.arange(1, n_steps + 1)

    def step(self, op: TransientFEOperator, x_n: np.ndarray, t_n: float) -> Tuple[np.ndarray, NewtonResult]:
        """Advance one step from (x_n, t_n); returns x_{n+1} and the Newton result."""
        space = op.space
        theta_dt = self.theta * self.dt
        t_theta = t_n + theta_dt

        def xt_of(x):
            return (x - x_n) / theta_dt

        def residual(x):
            return op.residual(t_theta, x, xt_of(x))

        def jacobian(x):
            return op.jacobian_shifted(t_theta, x, xt_of(x), 1.0 / theta_dt)

        x_guess = space.apply_dirichlet(x_n, t_theta)
        result = self.nls.solve(residual, jacobian, x_guess, space.free_dofs)

        x_next = x_n + (result.x - x_n) / self.theta
        x_next = space.apply_dirichlet(x_next, t_n + self.dt)
        return x_next, result

    def iterate(self, op: TransientFEOperator, x0: np.ndarray, t0: float, tf: float) -> Iterator[Tuple[float, np.ndarray, NewtonResult]]:
        """Yield (t_{n+1}, x_{n+1}, newton_result) for every accepted step.

        A failed step aborts the integration: the error is re-raised with
        the step index and time attached.
        """
        x = np.array(x0, dtype=float)
        t = float(t0)
        for k, t_next in enumerate(self.time_levels(t0, tf), start=1):
            try:
                x, result = self.step(op, x, t)
            except NewtonConvergenceError as exc:
                exc.step, exc.time = k, float(t_next)
                log.error(f"Step {k} (t={t_next:.4g}) failed: {exc}")
                raise
            except LinearSolveError as exc:
                raise LinearSolveError(f"Step {k} (t={t_next:.4g}): {exc}") from exc

            t = float(t_next)
            log.info(
                f"Step {k}: t={t:.4g}, newton iterations={result.iterations}, "
                f"|R|_inf={result.residual_norm:.3e}"
            )
            yield t, x, result

    def solve(self, op: TransientFEOperator, x0: np.ndarray, t0: float, tf: float):
        """Run all steps, returning the list of (t, x, newton_result)."""
        return list(self.iterate(op, x0, t0, tf))
