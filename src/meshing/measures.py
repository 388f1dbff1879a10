"""Cell measures and their re-indexing onto the partitioned regions."""

from dataclasses import dataclass

import numpy as np

from .mesh_data import Mesh
from .partition import MeshPartition


def cell_measures(mesh: Mesh) -> np.ndarray:
    """Area of every cell of a 2D mesh (shoelace formula).

    The area of a bilinear quadrilateral equals the area of the polygon
    through its vertices, so no quadrature is needed.
    """
    if mesh.dim != 2:
        raise NotImplementedError(f"Cell measures are implemented for 2D meshes, got dim={mesh.dim}")
    xy = mesh.cell_coordinates()
    x, y = xy[..., 0], xy[..., 1]
    return 0.5 * np.abs(np.sum(x * np.roll(y, -1, axis=1) - np.roll(x, -1, axis=1) * y, axis=1))


def _view(array: np.ndarray) -> np.ndarray:
    array = np.asarray(array, dtype=float)
    array.flags.writeable = False
    return array


@dataclass(frozen=True)
class RegionMeasures:
    """Parent cell measures seen from each region.

    Attributes
    ----------
    parent : np.ndarray
        Measure of every parent cell.
    fluid, solid : np.ndarray
        Measure of every local cell of the fluid / solid sub-mesh.
    interface : np.ndarray
        Measure of the fluid cell adjacent to every interface facet.
    """

    parent: np.ndarray
    fluid: np.ndarray
    solid: np.ndarray
    interface: np.ndarray


def region_measures(partition: MeshPartition, interface_cells=None, parent_measures=None) -> RegionMeasures:
    """Re-index parent cell measures onto fluid cells, solid cells and interface facets.

    Parameters
    ----------
    partition : MeshPartition
        Solid/fluid split of the parent mesh.
    interface_cells : np.ndarray, optional
        Local fluid cell adjacent to each interface facet.
    parent_measures : np.ndarray, optional
        Per-cell measures of the parent mesh (computed when omitted).
    """
    if parent_measures is None:
        parent_measures = cell_measures(partition.parent)
    parent_measures = np.asarray(parent_measures, dtype=float)

    fluid = parent_measures[partition.fluid.cell_to_parent]
    solid = parent_measures[partition.solid.cell_to_parent]
    if interface_cells is None:
        interface = np.empty(0)
    else:
        interface = fluid[np.asarray(interface_cells, dtype=int)]

    return RegionMeasures(
        parent=_view(parent_measures.copy()),
        fluid=_view(fluid),
        solid=_view(solid),
        interface=_view(interface),
    )
