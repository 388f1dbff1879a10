"""Tests for the Stokes bootstrap solve."""

import numpy as np
import pytest

from solvers import FSISolver, StokesBootstrapSolver


@pytest.fixture(scope="module")
def solver():
    """6x6 mesh: the fluid has vertices away from both the boundary and the interface."""
    return FSISolver(n_m=6)


class TestStokesBootstrap:
    """Tests for the linear initial-state solve."""

    def test_free_velocity_dofs(self, solver):
        boot = solver.spaces.bootstrap
        free_v = np.intersect1d(boot.free_dofs, np.arange(boot.n_dofs)[boot.block("v")])
        assert free_v.size > 0

    def test_residual_vanishes(self, solver):
        op = solver.stokes_op
        x = StokesBootstrapSolver(op).solve(0.0)
        r = op.residual(x)[op.space.free_dofs]
        assert np.max(np.abs(r)) < 1e-10

    def test_dirichlet_values(self, solver):
        op = solver.stokes_op
        space = op.space
        x = StokesBootstrapSolver(op).solve(0.0)
        np.testing.assert_allclose(x[space.dirichlet_dofs], space.dirichlet_values(0.0))

    def test_deterministic(self, solver):
        op = solver.stokes_op
        x1 = StokesBootstrapSolver(op).solve(0.0)
        x2 = StokesBootstrapSolver(op).solve(0.0)
        np.testing.assert_array_equal(x1, x2)

    def test_iterative_solver_agrees(self, solver):
        op = solver.stokes_op
        x_direct = StokesBootstrapSolver(op).solve(0.0)
        x_iter = StokesBootstrapSolver(op, method="bicgstab").solve(0.0)
        np.testing.assert_allclose(x_iter, x_direct, atol=1e-8)

    def test_mesh_motion_vanishes(self, solver):
        """Zero displacement data at t0 gives a zero displacement field."""
        x = StokesBootstrapSolver(solver.stokes_op).solve(0.0)
        u = solver.spaces.bootstrap.split(x)["u"]
        np.testing.assert_allclose(u, 0.0, atol=1e-14)

    def test_empty_fluid(self):
        all_solid = FSISolver(n_m=4, is_in=lambda xy: True)
        x = StokesBootstrapSolver(all_solid.stokes_op).solve(0.0)
        assert x.size == 0
