"""Tests for the damped Newton solver."""

import numpy as np
import pytest
from scipy.sparse import csr_matrix

from solvers import NewtonParameters, NewtonSolver
from utilities.exceptions import NewtonConvergenceError


def arctan_problem():
    def residual(x):
        return np.arctan(x)

    def jacobian(x):
        return csr_matrix(np.diag(1.0 / (1.0 + x**2)))

    return residual, jacobian


class TestNewtonSolver:
    """Tests for convergence, damping and Dirichlet handling."""

    def test_linear_problem_one_iteration(self):
        A = np.array([[4.0, 1.0], [1.0, 3.0]])
        b = np.array([1.0, 2.0])
        nls = NewtonSolver(ftol=1e-12)
        result = nls.solve(lambda x: A @ x - b, lambda x: csr_matrix(A), np.zeros(2), np.arange(2))
        assert result.iterations == 1
        np.testing.assert_allclose(A @ result.x, b, atol=1e-12)

    def test_line_search_globalizes_arctan(self):
        """Undamped Newton diverges on arctan from x0 = 2; the damped one converges."""
        residual, jacobian = arctan_problem()
        nls = NewtonSolver(ftol=1e-10, max_iterations=30)
        result = nls.solve(residual, jacobian, np.array([2.0]), np.array([0]))
        assert abs(result.x[0]) < 1e-10
        history = np.array(result.residual_history)
        assert np.all(np.diff(history) <= 0)

    def test_undamped_arctan_fails(self):
        residual, jacobian = arctan_problem()
        nls = NewtonSolver(ftol=1e-10, max_iterations=4, line_search=False)
        with pytest.raises(NewtonConvergenceError):
            nls.solve(residual, jacobian, np.array([2.0]), np.array([0]))

    def test_iteration_budget(self):
        residual, jacobian = arctan_problem()
        nls = NewtonSolver(NewtonParameters(ftol=1e-14, max_iterations=1))
        with pytest.raises(NewtonConvergenceError) as excinfo:
            nls.solve(residual, jacobian, np.array([0.5]), np.array([0]))
        assert excinfo.value.iterations == 1
        assert excinfo.value.residual_norm > 1e-14
        assert excinfo.value.x is not None

    def test_dirichlet_dofs_fixed(self):
        """Only the free DOFs move; the constrained value enters the residual."""
        A = np.array([[1.0, 0.0], [1.0, 2.0]])

        def residual(x):
            return A @ x - np.array([0.0, 4.0])

        x0 = np.array([2.0, 0.0])
        result = NewtonSolver(ftol=1e-12).solve(residual, lambda x: csr_matrix(A), x0, np.array([1]))
        assert result.x[0] == 2.0
        assert result.x[1] == pytest.approx(1.0)

    def test_already_converged(self):
        residual, jacobian = arctan_problem()
        result = NewtonSolver().solve(residual, jacobian, np.array([0.0]), np.array([0]))
        assert result.iterations == 0
        assert result.residual_norm == 0.0
