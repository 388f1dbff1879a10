"""Tests for partitioning a mesh into solid and fluid sub-meshes."""

import numpy as np
import pytest

from meshing import InsideCircle, create_cartesian_mesh, partition_mesh, submesh


class TestCartesianMesh:
    """Tests for the structured mesh generator."""

    def test_counts(self, square_mesh):
        """4x4 mesh has 16 cells, 25 vertices and 40 edges."""
        assert square_mesh.n_cells == 16
        assert square_mesh.n_vertices == 25
        assert square_mesh.topology.n_faces(1) == 40

    def test_boundary_tag_covers_outer_edges(self, square_mesh):
        """The boundary tag holds exactly the 16 edges with one adjacent cell."""
        tagged = square_mesh.labeling.face_mask("boundary", 1)
        assert tagged.sum() == 16
        np.testing.assert_array_equal(tagged, square_mesh.topology.is_boundary_face(1))

    def test_side_tags_include_corners(self, square_mesh):
        """Each side tag holds its 5 vertices, corners included."""
        for side in ("bottom", "top", "left", "right"):
            assert square_mesh.labeling.face_mask(side, 0).sum() == 5

    def test_cells_counter_clockwise(self, square_mesh):
        """All cells have positive signed area."""
        xy = square_mesh.cell_coordinates()
        x, y = xy[..., 0], xy[..., 1]
        signed = 0.5 * np.sum(x * np.roll(y, -1, axis=1) - np.roll(x, -1, axis=1) * y, axis=1)
        assert np.all(signed > 0)


class TestPartition:
    """Tests for predicate-driven partitioning."""

    def test_disk_scenario(self, disk_partition):
        """Four central cells are solid, the other twelve fluid."""
        assert disk_partition.solid.n_cells == 4
        assert disk_partition.fluid.n_cells == 12

        centers = disk_partition.parent.cell_coordinates().mean(axis=1)
        solid_centers = centers[disk_partition.incell_to_cell]
        np.testing.assert_allclose(np.abs(solid_centers), 0.25)

    def test_regions_disjoint_and_complete(self, disk_partition):
        """Every parent cell belongs to exactly one region."""
        solid = set(disk_partition.solid.cell_to_parent.tolist())
        fluid = set(disk_partition.fluid.cell_to_parent.tolist())
        assert solid.isdisjoint(fluid)
        assert solid | fluid == set(range(disk_partition.parent.n_cells))

    def test_parent_to_local_inverts_local_to_parent(self, disk_partition):
        """parent_to_local is the partial inverse of local_to_parent."""
        fluid = disk_partition.fluid
        inverse = fluid.parent_to_local()
        np.testing.assert_array_equal(inverse[fluid.cell_to_parent], np.arange(fluid.n_cells))
        assert np.all(inverse[disk_partition.solid.cell_to_parent] == -1)

    def test_submesh_geometry_matches_parent(self, disk_partition):
        """Sub-mesh cells have the coordinates of their parent cells."""
        parent = disk_partition.parent
        for region in (disk_partition.solid, disk_partition.fluid):
            np.testing.assert_allclose(
                region.cell_coordinates(), parent.cell_coordinates()[region.cell_to_parent]
            )

    def test_submesh_inherits_boundary_labels(self, disk_partition):
        """Fluid edges on the outer boundary keep the boundary tag; solid has none."""
        assert disk_partition.fluid.labeling.face_mask("boundary", 1).sum() == 16
        assert disk_partition.solid.labeling.face_mask("boundary", 1).sum() == 0

    def test_all_solid(self, square_mesh):
        """A predicate that is always true leaves the fluid region empty."""
        partition = partition_mesh(square_mesh, InsideCircle(10.0))
        assert partition.solid.n_cells == 16
        assert partition.fluid.n_cells == 0
        assert partition.fluid.n_vertices == 0

    def test_arbitrary_predicate(self, square_mesh):
        """Partitioning is not tied to circles: a half-plane predicate works."""
        partition = partition_mesh(square_mesh, lambda coords: coords[:, 0].mean() < 0.0)
        assert partition.solid.n_cells == 8
        assert partition.fluid.n_cells == 8

    def test_predicate_sees_cell_vertices(self, square_mesh):
        """The predicate receives a (4, 2) coordinate array per cell."""
        shapes = []

        def record(coords):
            shapes.append(coords.shape)
            return False

        partition_mesh(square_mesh, record)
        assert shapes == [(4, 2)] * 16


class TestSubmesh:
    """Tests for sub-mesh index maps."""

    def test_vertex_map(self):
        """Vertex maps point to the parent vertices used by the cells."""
        mesh = create_cartesian_mesh((0.0, 1.0, 0.0, 1.0), (2, 1))
        sub = submesh(mesh, [1])
        assert sub.n_vertices == 4
        np.testing.assert_allclose(sub.vertices, mesh.vertices[sub.vertex_to_parent])
        assert sub.root is mesh

    def test_face_to_parent(self):
        """Local edges map to the parent edges with the same vertices."""
        mesh = create_cartesian_mesh((0.0, 1.0, 0.0, 1.0), (2, 2))
        sub = submesh(mesh, [0, 3])
        local = np.sort(sub.vertex_to_parent[sub.topology.face_to_vertices(1)], axis=1)
        parent = np.sort(mesh.topology.face_to_vertices(1)[sub.face_to_parent[1]], axis=1)
        np.testing.assert_array_equal(local, parent)

    @pytest.mark.parametrize("radius", [0.3, 0.8, 1.2])
    def test_counts_add_up(self, radius):
        """Solid and fluid cell counts add up for any radius."""
        mesh = create_cartesian_mesh((-1.0, 1.0, -1.0, 1.0), (6, 6))
        partition = partition_mesh(mesh, InsideCircle(radius))
        assert partition.solid.n_cells + partition.fluid.n_cells == 36
