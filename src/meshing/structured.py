"""Structured Cartesian quadrilateral meshes with boundary entity labeling."""

import logging

import numpy as np

from .mesh_data import QUAD4, EntityLabeling, Mesh

log = logging.getLogger(__name__)

# Entity ids of a 2D Cartesian model
CORNER_ENTITIES = (1, 2, 3, 4)  # (x0,y0), (x1,y0), (x0,y1), (x1,y1)
SIDE_ENTITIES = {"bottom": 5, "top": 6, "left": 7, "right": 8}
INTERIOR_ENTITY = 9


def create_cartesian_mesh(domain=(0.0, 1.0, 0.0, 1.0), partition=(4, 4)) -> Mesh:
    """Create a Cartesian quadrilateral mesh of a rectangle.

    Parameters
    ----------
    domain : tuple
        (x0, x1, y0, y1) bounds of the rectangle.
    partition : tuple
        Number of cells (nx, ny) along each direction.

    Returns
    -------
    Mesh
        Mesh with tags "boundary" (corners and sides), "interior", and one
        tag per side ("bottom", "top", "left", "right") including its corners.
    """
    x0, x1, y0, y1 = (float(b) for b in domain)
    nx, ny = (int(n) for n in partition)
    if nx < 1 or ny < 1:
        raise ValueError(f"Partition must have at least one cell per direction, got {partition}")

    x = np.linspace(x0, x1, nx + 1)
    y = np.linspace(y0, y1, ny + 1)
    X, Y = np.meshgrid(x, y)  # row j, column i
    vertices = np.column_stack([X.ravel(), Y.ravel()])

    # Vertex (i, j) has index j * (nx + 1) + i
    i, j = np.meshgrid(np.arange(nx), np.arange(ny))
    v00 = (j * (nx + 1) + i).ravel()
    cells = np.column_stack([v00, v00 + 1, v00 + nx + 2, v00 + nx + 1])

    mesh = Mesh(vertices, cells, QUAD4)
    labeling = _label_boundary(mesh, (x0, x1, y0, y1))
    log.debug(f"Cartesian mesh {nx}x{ny} on {domain}: {mesh.n_cells} cells")
    return mesh.with_labeling(labeling)


def _label_boundary(mesh: Mesh, bounds) -> EntityLabeling:
    x0, x1, y0, y1 = bounds
    topo = mesh.topology
    tol = 1e-12 * max(x1 - x0, y1 - y0)

    def on_sides(points):
        return {
            "bottom": np.abs(points[:, 1] - y0) < tol,
            "top": np.abs(points[:, 1] - y1) < tol,
            "left": np.abs(points[:, 0] - x0) < tol,
            "right": np.abs(points[:, 0] - x1) < tol,
        }

    # --- Vertices ---
    v_entity = np.full(mesh.n_vertices, INTERIOR_ENTITY, dtype=int)
    sides = on_sides(mesh.vertices)
    for name, mask in sides.items():
        v_entity[mask] = SIDE_ENTITIES[name]
    corners = [
        sides["bottom"] & sides["left"],
        sides["bottom"] & sides["right"],
        sides["top"] & sides["left"],
        sides["top"] & sides["right"],
    ]
    for entity, mask in zip(CORNER_ENTITIES, corners):
        v_entity[mask] = entity

    # --- Edges ---
    midpoints = mesh.vertices[topo.face_to_vertices(1)].mean(axis=1)
    e_entity = np.full(topo.n_faces(1), INTERIOR_ENTITY, dtype=int)
    for name, mask in on_sides(midpoints).items():
        e_entity[mask] = SIDE_ENTITIES[name]

    c_entity = np.full(mesh.n_cells, INTERIOR_ENTITY, dtype=int)

    corner_of = {"bottom": (1, 2), "top": (3, 4), "left": (1, 3), "right": (2, 4)}
    tags = {
        "boundary": CORNER_ENTITIES + tuple(SIDE_ENTITIES.values()),
        "interior": (INTERIOR_ENTITY,),
    }
    for name, entity in SIDE_ENTITIES.items():
        tags[name] = corner_of[name] + (entity,)

    return EntityLabeling([v_entity, e_entity, c_entity], tags)
