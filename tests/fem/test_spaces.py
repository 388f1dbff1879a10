"""Tests for nodal field spaces, Dirichlet bindings and DOF numbering."""

import numpy as np
import pytest

from fem.spaces import (
    FieldSpace,
    FrozenValue,
    MultiFieldSpace,
    build_field_spaces,
    evaluate_value,
)
from solvers.analytical import AnalyticalSolution
from utilities.exceptions import ConfigurationError


@pytest.fixture
def solution():
    return AnalyticalSolution()


@pytest.fixture
def spaces(square_mesh, disk_partition, fluid_labeling, solution):
    return build_field_spaces(
        square_mesh, disk_partition.fluid, fluid_labeling, solution.boundary_conditions(0.0)
    )


class TestFieldSpace:
    """Tests for a single field."""

    def test_unknown_tag_names_field(self, square_mesh):
        with pytest.raises(ConfigurationError) as excinfo:
            FieldSpace("u", square_mesh, 2, ["outlet"], [0.0])
        assert excinfo.value.parameter == "u"
        assert "outlet" in str(excinfo.value)

    def test_tag_value_mismatch(self, square_mesh):
        with pytest.raises(ConfigurationError) as excinfo:
            FieldSpace("v", square_mesh, 2, ["boundary", "left"], [0.0])
        assert excinfo.value.parameter == "v"

    def test_dirichlet_nodes_on_boundary(self, square_mesh):
        f = FieldSpace("u", square_mesh, 2, ["boundary"], [0.0])
        assert f.n_dofs == 50
        assert f.dirichlet_nodes.size == 16
        assert f.dirichlet_dofs.size == 32

    def test_first_tag_wins(self, square_mesh):
        """The corner shared by 'left' and 'bottom' takes the value of 'left'."""
        f = FieldSpace("p", square_mesh, 1, ["left", "bottom"], [1.0, 2.0])
        values = dict(zip(f.dirichlet_nodes, f.dirichlet_dof_values(0.0)))
        corner = int(np.flatnonzero(np.all(square_mesh.vertices == [-1.0, -1.0], axis=1))[0])
        assert values[corner] == 1.0
        assert f.dirichlet_nodes.size == 9

    def test_nested_submesh_maps_to_root(self, square_mesh):
        """Nodes of a sub-mesh of a sub-mesh index the root vertices."""
        from meshing import submesh

        outer = submesh(square_mesh, [5, 6, 9, 10])
        inner = submesh(outer, [3])
        f = FieldSpace("p", inner, 1)
        assert f.n_nodes == 4
        np.testing.assert_allclose(square_mesh.vertices[f.node_to_root], inner.vertices)
        assert np.count_nonzero(f.root_to_node >= 0) == 4
        assert f.root_to_node.size == square_mesh.n_vertices

    def test_transient_values(self, square_mesh, solution):
        f = FieldSpace("u", square_mesh, 2, ["boundary"], [solution.u])
        x = square_mesh.vertices[f.dirichlet_nodes]
        np.testing.assert_allclose(
            f.dirichlet_dof_values(0.3).reshape(-1, 2), solution.u(x, 0.3)
        )

    def test_scalar_callable(self, square_mesh, solution):
        values = evaluate_value(solution.p, square_mesh.vertices, 1.0, 1)
        assert values.shape == (25, 1)
        np.testing.assert_allclose(values[:, 0], square_mesh.vertices.sum(axis=1))

    def test_frozen_value_ignores_time(self, square_mesh, solution):
        frozen = FrozenValue(solution.u, 0.2)
        np.testing.assert_allclose(
            frozen(square_mesh.vertices, 5.0), solution.u(square_mesh.vertices, 0.2)
        )


class TestMultiFieldSpace:
    """Tests for the bootstrap and FSI products."""

    def test_fsi_dof_counts(self, spaces):
        """u, v on all 25 parent vertices; p on the 24 fluid vertices."""
        fsi = spaces.fsi
        assert fsi.names == ["u", "v", "p"]
        assert fsi["u"].n_dofs == 50
        assert fsi["v"].n_dofs == 50
        assert fsi["p"].n_dofs == 24
        assert fsi.n_dofs == 124
        assert fsi.offsets == {"u": 0, "v": 50, "p": 100}

    def test_contains(self, spaces):
        assert "p" in spaces.fsi
        assert "p" in spaces.bootstrap
        assert "q" not in spaces.fsi

    def test_pressure_only_on_fluid(self, spaces, square_mesh):
        center = int(np.flatnonzero(np.all(square_mesh.vertices == [0.0, 0.0], axis=1))[0])
        assert spaces.fsi["p"].root_to_node[center] == -1
        assert spaces.fsi["u"].root_to_node[center] >= 0

    def test_bootstrap_constrains_interface(self, spaces):
        """On the 4x4 disk mesh every fluid vertex is on the boundary or the interface."""
        boot = spaces.bootstrap
        assert boot["u"].dirichlet_nodes.size == 24
        assert boot["v"].dirichlet_nodes.size == 24
        np.testing.assert_array_equal(boot.free_dofs, np.arange(96, 120))

    def test_fsi_interface_is_free(self, spaces):
        """Transient bindings only cover the outer boundary."""
        assert spaces.fsi["u"].dirichlet_nodes.size == 16
        assert spaces.fsi.free_dofs.size == 124 - 64

    def test_free_and_dirichlet_partition(self, spaces):
        fsi = spaces.fsi
        all_dofs = np.sort(np.concatenate([fsi.free_dofs, fsi.dirichlet_dofs]))
        np.testing.assert_array_equal(all_dofs, np.arange(fsi.n_dofs))

    def test_split_join(self, spaces, rng):
        fsi = spaces.fsi
        x = rng.standard_normal(fsi.n_dofs)
        parts = fsi.split(x)
        assert parts["u"].shape == (25, 2)
        assert parts["p"].shape == (24, 1)
        np.testing.assert_array_equal(fsi.join(parts), x)

    def test_apply_dirichlet(self, spaces, solution, square_mesh):
        fsi = spaces.fsi
        x = fsi.apply_dirichlet(fsi.zeros(), 0.5)
        u = fsi.split(x)["u"]
        nodes = fsi["u"].dirichlet_nodes
        np.testing.assert_allclose(u[nodes], solution.u(square_mesh.vertices[nodes], 0.5))

    def test_bootstrap_values_frozen(self, square_mesh, disk_partition, fluid_labeling, solution):
        """Bootstrap bindings use the fields at t0 regardless of the solve time."""
        frozen = build_field_spaces(
            square_mesh, disk_partition.fluid, fluid_labeling, solution.boundary_conditions(0.5)
        )
        boot = frozen.bootstrap
        x = boot.apply_dirichlet(boot.zeros(), 1.0)
        u = boot.split(x)["u"]
        np.testing.assert_allclose(u, solution.u(disk_partition.fluid.vertices, 0.5))

    def test_duplicate_names(self, square_mesh):
        f = FieldSpace("u", square_mesh, 2)
        with pytest.raises(ConfigurationError):
            MultiFieldSpace([f, f])
