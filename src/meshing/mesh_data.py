"""
Mesh: Core data layout for the partitioned finite element FSI problem.

This module defines the static geometry, the connectivity between cells and
their lower-dimensional faces, and the entity labeling used to tag boundary
regions.

Indexing Conventions:
- A "face of dimension d" (a d-face) is a vertex (d=0), an edge (d=1) or a
  cell (d=D). Every d-face has an index 0..n_faces(d)-1.
- cell_to_faces(d)[c, k] is the d-face sitting at local position k of cell c,
  following the local tables of the CellType.
- Vertices of a cell are ordered counter-clockwise so that the outward
  normal of a local edge (a -> b) is the tangent rotated clockwise.

Entity Labeling:
- Every d-face carries an integer entity id (ids start at 1).
- Named tags group entity ids ("boundary", "interior", "interface", ...).
- Labelings are immutable. Adding an entity or a tag returns a new labeling.
"""

import copy
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional, Sequence, Tuple

import numpy as np


# ========================================================
# Cell Types
# ========================================================


@dataclass(frozen=True)
class CellType:
    """Reference topology of a cell."""

    name: str
    dim: int
    reference_vertices: Tuple[Tuple[float, ...], ...]
    # local_faces[d] lists the local vertices of every d-face, 0 < d < dim
    local_faces: Mapping[int, Tuple[Tuple[int, ...], ...]] = field(default_factory=dict)

    @property
    def n_vertices(self) -> int:
        return len(self.reference_vertices)

    def faces(self, d: int) -> Tuple[Tuple[int, ...], ...]:
        """Local vertex tuples of the d-faces of the reference cell."""
        if d == 0:
            return tuple((a,) for a in range(self.n_vertices))
        if d == self.dim:
            return (tuple(range(self.n_vertices)),)
        return self.local_faces[d]


QUAD4 = CellType(
    name="QUAD4",
    dim=2,
    reference_vertices=((-1.0, -1.0), (1.0, -1.0), (1.0, 1.0), (-1.0, 1.0)),
    local_faces={1: ((0, 1), (1, 2), (2, 3), (3, 0))},
)


# ========================================================
# Topology
# ========================================================


class GridTopology:
    """Face connectivity of an unstructured mesh for all dimensions 0..D.

    Parameters
    ----------
    cells : np.ndarray
        Cell to vertex connectivity, shape (n_cells, n_vertices_per_cell).
    n_vertices : int
        Number of vertices of the mesh.
    cell_type : CellType
        Reference topology shared by all cells.
    """

    def __init__(self, cells: np.ndarray, n_vertices: int, cell_type: CellType):
        self.dim = cell_type.dim
        self.cell_type = cell_type
        n_cells = cells.shape[0]

        self._face_to_vertices = {}
        self._cell_to_faces = {}
        self._face_cell_count = {}
        self._face_owner = {}

        # --- Vertices ---
        self._face_to_vertices[0] = np.arange(n_vertices).reshape(-1, 1)
        self._cell_to_faces[0] = cells.copy()

        # --- Intermediate faces (edges in 2D) ---
        for d in range(1, self.dim):
            local = np.asarray(cell_type.faces(d), dtype=int)
            n_local, n_fv = local.shape
            if n_cells == 0:
                faces = np.empty((0, n_fv), dtype=int)
                inverse = np.empty(0, dtype=int)
            else:
                keys = np.sort(cells[:, local].reshape(-1, n_fv), axis=1)
                _, first, inverse = np.unique(
                    keys, axis=0, return_index=True, return_inverse=True
                )
                inverse = inverse.reshape(-1)
                # keep the vertex order of the first cell that sees the face
                faces = cells[:, local].reshape(-1, n_fv)[first]
            self._face_to_vertices[d] = faces
            self._cell_to_faces[d] = inverse.reshape(n_cells, n_local)

        # --- Cells ---
        self._face_to_vertices[self.dim] = cells.copy()
        self._cell_to_faces[self.dim] = np.arange(n_cells).reshape(-1, 1)

        for d in range(self.dim + 1):
            slots = self._cell_to_faces[d].reshape(-1)
            n_faces = self.n_faces(d)
            self._face_cell_count[d] = np.bincount(slots, minlength=n_faces)
            # flat slot (cell * n_local + k) of one adjacent cell; unique for
            # faces that border exactly one cell
            owner = np.full(n_faces, -1, dtype=int)
            owner[slots[::-1]] = np.arange(slots.size)[::-1]
            self._face_owner[d] = owner

        self._boundary = {}

    def n_faces(self, d: int) -> int:
        return self._face_to_vertices[d].shape[0]

    def face_to_vertices(self, d: int) -> np.ndarray:
        return self._face_to_vertices[d]

    def cell_to_faces(self, d: int) -> np.ndarray:
        return self._cell_to_faces[d]

    def face_cell_count(self, d: int) -> np.ndarray:
        """Number of cells adjacent to each d-face."""
        return self._face_cell_count[d]

    def face_owner(self, d: int) -> Tuple[np.ndarray, np.ndarray]:
        """First adjacent cell and local position of every d-face."""
        n_local = self._cell_to_faces[d].shape[1]
        slot = self._face_owner[d]
        return slot // n_local, slot % n_local

    def is_boundary_face(self, d: int) -> np.ndarray:
        """Boolean mask of d-faces lying on the boundary of the mesh.

        A (D-1)-face is on the boundary when exactly one cell borders it. A
        lower-dimensional face is on the boundary when it belongs to some
        boundary (D-1)-face. Cells are never boundary faces.
        """
        if d in self._boundary:
            return self._boundary[d]

        if d == self.dim:
            mask = np.zeros(self.n_faces(d), dtype=bool)
        elif d == self.dim - 1:
            mask = self._face_cell_count[d] == 1
        else:
            facets = np.flatnonzero(self.is_boundary_face(self.dim - 1))
            mask = np.zeros(self.n_faces(d), dtype=bool)
            if facets.size:
                sub = self._facet_subfaces(d)[facets]
                mask[sub.reshape(-1)] = True

        mask.flags.writeable = False
        self._boundary[d] = mask
        return mask

    def _facet_subfaces(self, d: int) -> np.ndarray:
        """d-faces of every (D-1)-face, shape (n_facets, n_subfaces)."""
        if d == 0:
            return self._face_to_vertices[self.dim - 1]
        raise NotImplementedError("Only vertex sub-faces of facets are supported")


# ========================================================
# Entity Labeling
# ========================================================


def _frozen(array: np.ndarray) -> np.ndarray:
    array = np.array(array, dtype=int)
    array.flags.writeable = False
    return array


class EntityLabeling:
    """Face to entity ids per dimension, plus named tags of entity ids.

    Parameters
    ----------
    face_to_entity : sequence of np.ndarray
        face_to_entity[d][f] is the entity id of d-face f.
    tag_to_entities : mapping
        Tag name to the entity ids it groups.
    """

    def __init__(
        self,
        face_to_entity: Sequence[np.ndarray],
        tag_to_entities: Mapping[str, Iterable[int]],
    ):
        self._face_to_entity = tuple(_frozen(a) for a in face_to_entity)
        self._tags = MappingProxyType(
            {name: tuple(int(e) for e in ids) for name, ids in tag_to_entities.items()}
        )

    @property
    def dim(self) -> int:
        return len(self._face_to_entity) - 1

    @property
    def tags(self) -> Mapping[str, Tuple[int, ...]]:
        return self._tags

    def face_to_entity(self, d: int) -> np.ndarray:
        return self._face_to_entity[d]

    def max_entity(self) -> int:
        """Largest entity id in use (0 for an empty labeling)."""
        ids = [int(a.max()) for a in self._face_to_entity if a.size]
        ids += [e for entities in self._tags.values() for e in entities]
        return max(ids, default=0)

    def has_tag(self, tag: str) -> bool:
        return tag in self._tags

    def face_mask(self, tags, d: int) -> np.ndarray:
        """Boolean mask of d-faces whose entity belongs to any of the given tags."""
        if isinstance(tags, str):
            tags = [tags]
        entities = [e for tag in tags for e in self._tags[tag]]
        return np.isin(self._face_to_entity[d], entities)

    def tagged_faces(self, tags, d: int) -> np.ndarray:
        return np.flatnonzero(self.face_mask(tags, d))

    # --- Builders (return new labelings) ---

    def with_tag(self, tag: str, entities: Iterable[int]) -> "EntityLabeling":
        tags = dict(self._tags)
        tags[tag] = tuple(entities)
        return EntityLabeling(self._face_to_entity, tags)

    def with_entity(
        self, faces: Dict[int, np.ndarray], entity: int, tag: Optional[str] = None
    ) -> "EntityLabeling":
        """Assign ``entity`` to the given d-faces (dict d -> indices)."""
        arrays = []
        for d, current in enumerate(self._face_to_entity):
            updated = current.copy()
            if d in faces:
                updated[np.asarray(faces[d], dtype=int)] = entity
            arrays.append(updated)
        labeling = EntityLabeling(arrays, self._tags)
        if tag is not None:
            labeling = labeling.with_tag(tag, (entity,))
        return labeling

    def restrict(self, face_to_parent: Sequence[np.ndarray]) -> "EntityLabeling":
        """Labeling of a sub-mesh whose d-faces map to parent d-faces."""
        arrays = [self._face_to_entity[d][np.asarray(f, dtype=int)] for d, f in enumerate(face_to_parent)]
        return EntityLabeling(arrays, self._tags)


# ========================================================
# Mesh
# ========================================================


class Mesh:
    """Unstructured conforming mesh of a single cell type.

    Parameters
    ----------
    vertices : np.ndarray
        Vertex coordinates, shape (n_vertices, dim).
    cells : np.ndarray
        Cell to vertex connectivity, shape (n_cells, n_vertices_per_cell).
    cell_type : CellType
        Reference topology of the cells.
    labeling : EntityLabeling, optional
        Face labeling. When omitted every face gets entity 1 and no tags.
    topology : GridTopology, optional
        Precomputed topology for ``cells``; built when omitted.
    """

    def __init__(self, vertices, cells, cell_type=QUAD4, labeling=None, topology=None):
        self.vertices = np.asarray(vertices, dtype=float).reshape(-1, cell_type.dim)
        self.cells = np.asarray(cells, dtype=int).reshape(-1, cell_type.n_vertices)
        self.cell_type = cell_type
        self.topology = topology or GridTopology(self.cells, len(self.vertices), cell_type)
        if labeling is None:
            labeling = EntityLabeling(
                [np.ones(self.topology.n_faces(d), dtype=int) for d in range(self.dim + 1)],
                {},
            )
        self.labeling = labeling

    @property
    def dim(self) -> int:
        return self.cell_type.dim

    @property
    def n_cells(self) -> int:
        return self.cells.shape[0]

    @property
    def n_vertices(self) -> int:
        return self.vertices.shape[0]

    @property
    def root(self) -> "Mesh":
        """Top-level mesh this mesh was derived from (itself for a root mesh)."""
        return self

    @property
    def cell_to_parent(self) -> np.ndarray:
        return np.arange(self.n_cells)

    @property
    def vertex_to_parent(self) -> np.ndarray:
        return np.arange(self.n_vertices)

    @property
    def vertex_to_root(self) -> np.ndarray:
        """Index of every vertex in ``root.vertices``."""
        return np.arange(self.n_vertices)

    def cell_coordinates(self) -> np.ndarray:
        """Vertex coordinates of every cell, shape (n_cells, n_vertices_per_cell, dim)."""
        return self.vertices[self.cells]

    def with_labeling(self, labeling: EntityLabeling) -> "Mesh":
        """Shallow copy sharing geometry, topology and index maps, with another labeling."""
        mesh = copy.copy(self)
        mesh.labeling = labeling
        return mesh

    def __repr__(self):
        return f"{type(self).__name__}(n_cells={self.n_cells}, n_vertices={self.n_vertices})"
