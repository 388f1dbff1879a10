"""Tests for interface extraction and region measures."""

import numpy as np
import pytest

from meshing import (
    InsideCircle,
    cell_measures,
    extract_interface,
    interface_facet_cells,
    partition_mesh,
    region_measures,
)
from utilities.exceptions import ConfigurationError


class TestInterfaceExtraction:
    """Tests for tagging the fluid/solid interface."""

    def test_disk_interface_edges(self, disk_partition, fluid_labeling):
        """Eight edges separate the four solid cells from the fluid."""
        edges = fluid_labeling.tagged_faces("interface", 1)
        assert edges.size == 8

        fluid = disk_partition.fluid
        midpoints = fluid.vertices[fluid.topology.face_to_vertices(1)[edges]].mean(axis=1)
        # Edges of the square [-0.5, 0.5]^2
        assert np.allclose(np.max(np.abs(midpoints), axis=1), 0.5)

    def test_disk_interface_vertices(self, disk_partition, fluid_labeling):
        """The interface ring has eight vertices, none on the outer boundary."""
        fluid = disk_partition.fluid
        vertices = fluid_labeling.tagged_faces("interface", 0)
        assert vertices.size == 8
        np.testing.assert_allclose(np.max(np.abs(fluid.vertices[vertices]), axis=1), 0.5)

    def test_disjoint_from_outer_boundary(self, fluid_labeling):
        """No boundary face is re-tagged as interface."""
        for d in (0, 1):
            interface = fluid_labeling.face_mask("interface", d)
            boundary = fluid_labeling.face_mask("boundary", d)
            assert not np.any(interface & boundary)

    def test_interface_is_fluid_boundary(self, disk_partition, fluid_labeling):
        """Interface and outer boundary together form the fluid boundary."""
        topo = disk_partition.fluid.topology
        union = fluid_labeling.face_mask(["interface", "boundary"], 1)
        np.testing.assert_array_equal(union, topo.is_boundary_face(1))

    def test_new_entity_id(self, disk_partition, fluid_labeling):
        """The interface gets a fresh entity id."""
        (entity,) = fluid_labeling.tags["interface"]
        assert entity == disk_partition.fluid.labeling.max_entity() + 1

    def test_input_labeling_unchanged(self, disk_partition):
        """Extraction returns a new labeling and leaves the mesh untouched."""
        fluid = disk_partition.fluid
        before = [fluid.labeling.face_to_entity(d).copy() for d in range(3)]
        labeling = extract_interface(fluid)

        assert labeling is not fluid.labeling
        assert not fluid.labeling.has_tag("interface")
        for d in range(3):
            np.testing.assert_array_equal(fluid.labeling.face_to_entity(d), before[d])

    def test_labeling_arrays_read_only(self, fluid_labeling):
        """Labeling arrays cannot be mutated in place."""
        with pytest.raises(ValueError):
            fluid_labeling.face_to_entity(1)[0] = 42

    def test_idempotent(self, disk_partition, fluid_labeling):
        """Re-extracting on the tagged labeling gives the same faces and entity."""
        fluid = disk_partition.fluid.with_labeling(fluid_labeling)
        again = extract_interface(fluid)
        assert again.tags["interface"] == fluid_labeling.tags["interface"]
        for d in (0, 1):
            np.testing.assert_array_equal(
                again.tagged_faces("interface", d), fluid_labeling.tagged_faces("interface", d)
            )

    def test_empty_fluid(self, square_mesh):
        """An empty fluid mesh yields an empty interface without failing."""
        partition = partition_mesh(square_mesh, InsideCircle(10.0))
        labeling = extract_interface(partition.fluid)
        assert labeling.has_tag("interface")
        for d in (0, 1):
            assert labeling.tagged_faces("interface", d).size == 0

    def test_all_fluid_has_no_interface(self, square_mesh):
        """Without solid cells the interface is empty."""
        partition = partition_mesh(square_mesh, lambda coords: False)
        labeling = extract_interface(partition.fluid)
        assert labeling.tagged_faces("interface", 1).size == 0

    def test_missing_boundary_tag(self, disk_partition):
        """An unknown outer boundary tag is a configuration error."""
        with pytest.raises(ConfigurationError) as excinfo:
            extract_interface(disk_partition.fluid, boundary_tag="walls")
        assert excinfo.value.parameter == "boundary_tag"

    def test_facet_cells_are_adjacent(self, disk_partition, fluid_labeling):
        """Each interface facet is a local edge of its reported fluid cell."""
        fluid = disk_partition.fluid
        facets, cells, local = interface_facet_cells(fluid, fluid_labeling)
        np.testing.assert_array_equal(fluid.topology.cell_to_faces(1)[cells, local], facets)


class TestRegionMeasures:
    """Tests for cell measures re-indexed onto the regions."""

    def test_cell_measures(self, square_mesh):
        """Every cell of the 4x4 mesh of [-1, 1]^2 has area 0.25."""
        np.testing.assert_allclose(cell_measures(square_mesh), 0.25)

    def test_conservation(self, disk_partition, fluid_labeling):
        """Fluid and solid measures add up to the parent measure."""
        _, cells, _ = interface_facet_cells(disk_partition.fluid, fluid_labeling)
        measures = region_measures(disk_partition, cells)
        assert measures.fluid.sum() + measures.solid.sum() == pytest.approx(4.0)
        assert measures.solid.sum() == pytest.approx(1.0)

    def test_interface_uses_adjacent_fluid_cell(self, disk_partition, fluid_labeling):
        """Interface measures are the areas of the adjacent fluid cells."""
        _, cells, _ = interface_facet_cells(disk_partition.fluid, fluid_labeling)
        measures = region_measures(disk_partition, cells)
        assert measures.interface.shape == (8,)
        np.testing.assert_allclose(measures.interface, 0.25)

    def test_views_read_only(self, disk_partition):
        """Re-indexed measures are read-only views."""
        measures = region_measures(disk_partition)
        with pytest.raises(ValueError):
            measures.fluid[0] = 1.0

    def test_non_uniform_cells(self):
        """Measures follow the parent cells through the index maps."""
        from meshing import Mesh

        vertices = [[0, 0], [1, 0], [3, 0], [0, 1], [1, 1], [3, 1]]
        cells = [[0, 1, 4, 3], [1, 2, 5, 4]]
        mesh = Mesh(vertices, cells)
        partition = partition_mesh(mesh, lambda coords: coords[:, 0].mean() > 1.0)
        measures = region_measures(partition)
        np.testing.assert_allclose(measures.solid, [2.0])
        np.testing.assert_allclose(measures.fluid, [1.0])
