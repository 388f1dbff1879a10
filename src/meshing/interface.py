"""Identify and tag the fluid/solid interface on the fluid sub-mesh.

The interface is the part of the fluid region's boundary that is not on
the outer boundary of the domain. For every dimension d < D the faces
satisfying

    is_boundary_face(d) XOR face_mask("boundary", d)

are assigned one fresh entity id, registered under the "interface" tag.
"""

import logging

import numpy as np

from utilities.exceptions import ConfigurationError

from .mesh_data import EntityLabeling, Mesh

log = logging.getLogger(__name__)


def extract_interface(
    fluid: Mesh, tag: str = "interface", boundary_tag: str = "boundary"
) -> EntityLabeling:
    """Return a new labeling of the fluid mesh carrying the interface tag.

    Parameters
    ----------
    fluid : Mesh
        Fluid sub-mesh, labeled with the parent's outer boundary tag.
    tag : str
        Name of the interface tag to register.
    boundary_tag : str
        Tag of the outer domain boundary.

    Returns
    -------
    EntityLabeling
        Copy of ``fluid.labeling`` extended with the interface entity. The
        labeling of ``fluid`` itself is left untouched.
    """
    labeling = fluid.labeling
    if not labeling.has_tag(boundary_tag):
        raise ConfigurationError(
            "boundary_tag", f"tag {boundary_tag!r} is not defined on the fluid mesh"
        )

    # Re-tagging reuses the dedicated entity so repeated extraction is stable
    existing = labeling.tags.get(tag, ())
    entity = existing[0] if len(existing) == 1 else labeling.max_entity() + 1

    topo = fluid.topology
    faces = {}
    for d in range(fluid.dim):
        mask = topo.is_boundary_face(d) ^ labeling.face_mask(boundary_tag, d)
        faces[d] = np.flatnonzero(mask)

    log.info(
        f"Interface '{tag}' (entity {entity}): "
        + ", ".join(f"{len(f)} faces of dim {d}" for d, f in faces.items())
    )
    return labeling.with_entity(faces, entity, tag=tag)


def interface_facet_cells(fluid: Mesh, labeling: EntityLabeling, tag: str = "interface"):
    """Interface facets (dimension D-1) with their adjacent fluid cell.

    Returns
    -------
    facets : np.ndarray
        Facet indices on the fluid mesh.
    cells : np.ndarray
        Local fluid cell adjacent to each facet.
    local_faces : np.ndarray
        Position of each facet within its cell's local face table.
    """
    d = fluid.dim - 1
    facets = labeling.tagged_faces(tag, d)
    owner_cell, owner_local = fluid.topology.face_owner(d)
    return facets, owner_cell[facets], owner_local[facets]
