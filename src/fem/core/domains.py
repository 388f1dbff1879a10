"""Integration domains: cells of a (sub-)mesh and interface facets.

A domain precomputes everything the weak-form kernels need at the
quadrature points of its cells, once, at construction:

- shape   : basis values, (n_cells, n_q, n_basis)
- grad    : basis gradients, (n_cells, n_q, n_basis, dim)
- weights : quadrature weights times the measure, (n_cells, n_q)
- points  : physical quadrature points, (n_cells, n_q, dim)
- normals : outward unit normals on facets, (n_cells, n_q, dim) or None

"cells" of an interface domain are facets; their basis functions are those
of the adjacent fluid cell restricted to the facet.
"""

import numpy as np

from meshing.interface import interface_facet_cells
from meshing.mesh_data import EntityLabeling, Mesh

from .elements import edge_quadrature, geometry, quad_quadrature, shape_functions


class Domain:
    """Base integration domain."""

    def __init__(self, name, root_vertices, shape, grad, weights, points, normals=None):
        self.name = name
        self.root_vertices = root_vertices
        self.shape = shape
        self.grad = grad
        self.weights = weights
        self.points = points
        self.normals = normals

    @property
    def n_cells(self) -> int:
        return self.weights.shape[0]

    @property
    def n_basis(self) -> int:
        return self.shape.shape[2]

    def integrate(self, values: np.ndarray) -> float:
        """Integrate a quantity sampled at the quadrature points, shape (n_cells, n_q)."""
        return float(np.sum(self.weights * values))

    def __repr__(self):
        return f"{type(self).__name__}({self.name!r}, n_cells={self.n_cells})"


class CellDomain(Domain):
    """All cells of a mesh (typically a region sub-mesh).

    Parameters
    ----------
    mesh : Mesh
        Cells to integrate over.
    degree : int
        Polynomial degree integrated exactly by the quadrature.
    name : str, optional
        Label used in logs.
    """

    def __init__(self, mesh: Mesh, degree: int, name: str = "cells"):
        ref_points, ref_weights = quad_quadrature(degree)
        N, dN = shape_functions(ref_points)
        points, _, grad, detJ = geometry(mesh.cell_coordinates(), N, dN)

        super().__init__(
            name=name,
            root_vertices=mesh.vertex_to_root[mesh.cells],
            shape=np.broadcast_to(N, (mesh.n_cells,) + N.shape),
            grad=grad,
            weights=ref_weights[None, :] * np.abs(detJ),
            points=points,
        )
        self.mesh = mesh
        self.degree = degree


class InterfaceDomain(Domain):
    """Interface facets of the fluid mesh, integrated from the fluid side.

    Parameters
    ----------
    fluid : Mesh
        Fluid sub-mesh.
    labeling : EntityLabeling
        Fluid labeling carrying the interface tag.
    degree : int
        Polynomial degree integrated exactly along each facet.
    tag : str, optional
        Interface tag name.
    """

    def __init__(self, fluid: Mesh, labeling: EntityLabeling, degree: int, tag: str = "interface"):
        facets, cells, local = interface_facet_cells(fluid, labeling, tag)
        local_edges = fluid.cell_type.faces(fluid.dim - 1)

        # Reference data per local edge, then gathered per facet
        per_edge = [edge_quadrature(degree, edge) for edge in local_edges]
        ref_points = np.stack([p for p, _, _ in per_edge])
        ref_weights = per_edge[0][1]
        tangents = np.stack([t for _, _, t in per_edge])
        N_all, dN_all = zip(*(shape_functions(p) for p in ref_points))
        N = np.stack(N_all)[local]
        dN = np.stack(dN_all)[local]

        coords = fluid.cell_coordinates()[cells]
        points, J, grad, detJ = geometry(coords, N, dN)

        t = np.einsum("cqij,cj->cqi", J, tangents[local])
        length = np.linalg.norm(t, axis=-1)
        # Counter-clockwise cells: outward normal is the tangent rotated clockwise
        normals = np.stack([t[..., 1], -t[..., 0]], axis=-1) / length[..., None]
        normals *= np.sign(detJ)[..., None]

        super().__init__(
            name=tag,
            root_vertices=fluid.vertex_to_root[fluid.cells[cells]],
            shape=N,
            grad=grad,
            weights=ref_weights[None, :] * length,
            points=points,
            normals=normals,
        )
        self.facets = facets
        self.cells = cells
        self.degree = degree
