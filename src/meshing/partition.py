"""Split one background mesh into a solid and a fluid sub-mesh.

Cells are classified by a predicate evaluated on their vertex coordinates.
Both regions keep explicit index maps back to the parent mesh, so data
defined on parent cells (or parent faces) can be re-indexed onto either
region without copying geometry.
"""

import logging
from dataclasses import dataclass
from typing import Callable

import numpy as np

from .mesh_data import Mesh

log = logging.getLogger(__name__)

CellPredicate = Callable[[np.ndarray], bool]


class SubMesh(Mesh):
    """Mesh induced by a subset of the cells of a parent mesh.

    Parameters
    ----------
    parent : Mesh
        Mesh the cells are taken from.
    cell_ids : np.ndarray
        Parent cell indices, in the order they become local cells.
    """

    def __init__(self, parent: Mesh, cell_ids):
        cell_ids = np.asarray(cell_ids, dtype=int).reshape(-1)
        parent_cells = parent.cells[cell_ids]

        # Compact vertex numbering, sorted by parent id
        vertex_ids, local_cells = np.unique(parent_cells, return_inverse=True)
        local_cells = local_cells.reshape(parent_cells.shape)

        super().__init__(parent.vertices[vertex_ids], local_cells, parent.cell_type)

        self.parent = parent
        self._cell_to_parent = cell_ids
        self._vertex_to_parent = vertex_ids

        # Local d-faces map to parent d-faces through the shared local tables
        face_to_parent = []
        for d in range(self.dim + 1):
            mapping = np.full(self.topology.n_faces(d), -1, dtype=int)
            mapping[self.topology.cell_to_faces(d)] = parent.topology.cell_to_faces(d)[cell_ids]
            face_to_parent.append(mapping)
        self.face_to_parent = tuple(face_to_parent)

        self.labeling = parent.labeling.restrict(self.face_to_parent)

    @property
    def root(self) -> Mesh:
        return self.parent.root

    @property
    def cell_to_parent(self) -> np.ndarray:
        return self._cell_to_parent

    @property
    def vertex_to_parent(self) -> np.ndarray:
        return self._vertex_to_parent

    @property
    def vertex_to_root(self) -> np.ndarray:
        return self.parent.vertex_to_root[self._vertex_to_parent]

    def parent_to_local(self, parent_cells=None) -> np.ndarray:
        """Local index of parent cells (-1 for cells outside this sub-mesh)."""
        inverse = np.full(self.parent.n_cells, -1, dtype=int)
        inverse[self._cell_to_parent] = np.arange(self.n_cells)
        if parent_cells is None:
            return inverse
        return inverse[np.asarray(parent_cells, dtype=int)]


def submesh(parent: Mesh, cell_ids) -> SubMesh:
    return SubMesh(parent, cell_ids)


# ========================================================
# Predicates
# ========================================================


class InsideCircle:
    """Cell predicate: the average of the cell vertices lies inside a circle.

    Parameters
    ----------
    radius : float
        Circle radius.
    center : tuple, optional
        Circle center (default: origin).
    """

    def __init__(self, radius: float, center=(0.0, 0.0)):
        self.radius = float(radius)
        self.center = np.asarray(center, dtype=float)

    def __call__(self, coords: np.ndarray) -> bool:
        xm = np.asarray(coords, dtype=float).mean(axis=0)
        return bool(np.sum((xm - self.center) ** 2) - self.radius**2 < 0.0)

    def __repr__(self):
        return f"InsideCircle(radius={self.radius}, center={tuple(self.center)})"


# ========================================================
# Partition
# ========================================================


@dataclass(frozen=True)
class MeshPartition:
    """Solid and fluid regions of a parent mesh.

    ``cell_mask[c]`` is True for solid cells. The two regions are disjoint
    and together cover every parent cell.
    """

    parent: Mesh
    solid: SubMesh
    fluid: SubMesh
    cell_mask: np.ndarray

    @property
    def incell_to_cell(self) -> np.ndarray:
        return self.solid.cell_to_parent

    @property
    def outcell_to_cell(self) -> np.ndarray:
        return self.fluid.cell_to_parent


def classify_cells(mesh: Mesh, is_in: CellPredicate) -> np.ndarray:
    """Evaluate the predicate on every cell's vertex coordinates."""
    coords = mesh.cell_coordinates()
    return np.fromiter((bool(is_in(c)) for c in coords), dtype=bool, count=mesh.n_cells)


def partition_mesh(mesh: Mesh, is_in: CellPredicate) -> MeshPartition:
    """Partition a mesh into solid (predicate true) and fluid (predicate false) cells.

    Parameters
    ----------
    mesh : Mesh
        Background mesh.
    is_in : callable
        Predicate on a (n_vertices_per_cell, dim) coordinate array.

    Returns
    -------
    MeshPartition
        Either region may be empty.
    """
    mask = classify_cells(mesh, is_in)
    mask.flags.writeable = False

    solid = submesh(mesh, np.flatnonzero(mask))
    fluid = submesh(mesh, np.flatnonzero(~mask))

    log.info(f"Partitioned {mesh.n_cells} cells: {solid.n_cells} solid, {fluid.n_cells} fluid")
    return MeshPartition(parent=mesh, solid=solid, fluid=fluid, cell_mask=mask)
