"""Nodal field spaces with Dirichlet bindings, and their multi-field products.

Every field is a continuous Q1 Lagrange field: one node per mesh vertex,
``ncomp`` components per node. Fields defined on a sub-mesh only have nodes
on the sub-mesh vertices. Degrees of freedom of a multi-field space are
numbered block-wise:

    dof = offset(field) + node * ncomp + comp
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Union

import numpy as np

from meshing.mesh_data import EntityLabeling, Mesh
from utilities.exceptions import ConfigurationError

log = logging.getLogger(__name__)

BoundaryValue = Union[Callable[[np.ndarray, float], np.ndarray], float, Sequence[float]]


# ========================================================
# Boundary values
# ========================================================


class FrozenValue:
    """Time-independent snapshot ``x -> value(x, t0)`` of a transient value."""

    def __init__(self, value, t0: float):
        self.value = value
        self.t0 = float(t0)

    def __call__(self, x, t=None):
        return self.value(x, self.t0)

    def __repr__(self):
        return f"FrozenValue({getattr(self.value, '__name__', self.value)!r}, t0={self.t0})"


def evaluate_value(value: BoundaryValue, x: np.ndarray, t: float, ncomp: int) -> np.ndarray:
    """Evaluate a boundary value at points x, returning shape (n_points, ncomp)."""
    if callable(value):
        out = np.asarray(value(x, t), dtype=float)
    else:
        out = np.asarray(value, dtype=float)
    n = x.shape[0]
    if out.ndim >= 1 and out.shape[0] == n and out.size == n * ncomp:
        return out.reshape(n, ncomp)
    return np.broadcast_to(out, (n, ncomp))


@dataclass
class BoundaryConditions:
    """Tags and values of the Dirichlet bindings of all fields.

    ``fsi_*`` bindings are transient and applied on the parent mesh;
    ``bootstrap_*`` bindings are frozen at the initial time and applied on
    the fluid mesh, including its interface.
    """

    fsi_u_tags: List[str] = field(default_factory=list)
    fsi_u_values: List[BoundaryValue] = field(default_factory=list)
    fsi_v_tags: List[str] = field(default_factory=list)
    fsi_v_values: List[BoundaryValue] = field(default_factory=list)
    bootstrap_u_tags: List[str] = field(default_factory=list)
    bootstrap_u_values: List[BoundaryValue] = field(default_factory=list)
    bootstrap_v_tags: List[str] = field(default_factory=list)
    bootstrap_v_values: List[BoundaryValue] = field(default_factory=list)


def get_boundary_conditions(u, v, t0: float = 0.0, boundary_tag="boundary", interface_tag="interface"):
    """Boundary conditions of the FSI problem driven by transient fields u, v.

    Parameters
    ----------
    u, v : callable
        Displacement and velocity ``f(x, t) -> (n_points, 2)``.
    t0 : float
        Time at which the bootstrap values are frozen.
    """
    u0, v0 = FrozenValue(u, t0), FrozenValue(v, t0)
    return BoundaryConditions(
        fsi_u_tags=[boundary_tag],
        fsi_u_values=[u],
        fsi_v_tags=[boundary_tag],
        fsi_v_values=[v],
        bootstrap_u_tags=[boundary_tag, interface_tag],
        bootstrap_u_values=[u0, u0],
        bootstrap_v_tags=[boundary_tag, interface_tag],
        bootstrap_v_values=[v0, v0],
    )


# ========================================================
# Field spaces
# ========================================================


class FieldSpace:
    """Q1 Lagrange field on the vertices of a (sub-)mesh.

    Parameters
    ----------
    name : str
        Field name ("u", "v", "p", ...).
    mesh : Mesh
        Mesh whose vertices carry the nodes.
    ncomp : int
        Number of components per node.
    dirichlet_tags : list of str, optional
        Tags of the constrained faces.
    dirichlet_values : list, optional
        One value per tag: callable ``f(x, t)`` or constant.
    labeling : EntityLabeling, optional
        Labeling to resolve tags with (defaults to ``mesh.labeling``).
    """

    def __init__(
        self,
        name: str,
        mesh: Mesh,
        ncomp: int,
        dirichlet_tags: Optional[Sequence[str]] = None,
        dirichlet_values: Optional[Sequence[BoundaryValue]] = None,
        labeling: Optional[EntityLabeling] = None,
    ):
        self.name = name
        self.mesh = mesh
        self.ncomp = int(ncomp)
        self.labeling = labeling if labeling is not None else mesh.labeling

        tags = list(dirichlet_tags or [])
        values = list(dirichlet_values or [])
        if len(tags) != len(values):
            raise ConfigurationError(
                name, f"{len(tags)} Dirichlet tags but {len(values)} values"
            )
        unknown = [t for t in tags if not self.labeling.has_tag(t)]
        if unknown:
            raise ConfigurationError(
                name, f"unknown Dirichlet tag(s) {unknown}, available: {sorted(self.labeling.tags)}"
            )
        self.dirichlet_tags = tags
        self.dirichlet_values = values

        # Root vertex -> node (-1 where the field has no node)
        self.node_to_root = mesh.vertex_to_root
        self.root_to_node = np.full(mesh.root.n_vertices, -1, dtype=int)
        self.root_to_node[self.node_to_root] = np.arange(self.n_nodes)

        # First tag claiming a node wins
        owner = np.full(self.n_nodes, -1, dtype=int)
        for k, tag in enumerate(tags):
            nodes = self._tagged_nodes(tag)
            nodes = nodes[owner[nodes] < 0]
            owner[nodes] = k
        self._dirichlet_owner = owner
        self.dirichlet_nodes = np.flatnonzero(owner >= 0)

    def _tagged_nodes(self, tag: str) -> np.ndarray:
        topo = self.mesh.topology
        nodes = [
            topo.face_to_vertices(d)[self.labeling.tagged_faces(tag, d)].reshape(-1)
            for d in range(self.mesh.dim)
        ]
        return np.unique(np.concatenate(nodes)) if nodes else np.empty(0, dtype=int)

    @property
    def n_nodes(self) -> int:
        return self.mesh.n_vertices

    @property
    def n_dofs(self) -> int:
        return self.n_nodes * self.ncomp

    @property
    def node_coordinates(self) -> np.ndarray:
        return self.mesh.vertices

    @property
    def dirichlet_dofs(self) -> np.ndarray:
        """Local DOFs of the constrained nodes (all components)."""
        return (self.dirichlet_nodes[:, None] * self.ncomp + np.arange(self.ncomp)).reshape(-1)

    def dirichlet_dof_values(self, t: float) -> np.ndarray:
        """Prescribed values at ``dirichlet_dofs`` at time t."""
        out = np.zeros((self.dirichlet_nodes.size, self.ncomp))
        owner = self._dirichlet_owner[self.dirichlet_nodes]
        for k, value in enumerate(self.dirichlet_values):
            sel = owner == k
            if np.any(sel):
                x = self.node_coordinates[self.dirichlet_nodes[sel]]
                out[sel] = evaluate_value(value, x, t, self.ncomp)
        return out.reshape(-1)

    def interpolate(self, value: BoundaryValue, t: float = 0.0) -> np.ndarray:
        """Nodal interpolation of a value, flattened to (n_dofs,)."""
        return evaluate_value(value, self.node_coordinates, t, self.ncomp).reshape(-1).copy()

    def __repr__(self):
        return (
            f"FieldSpace({self.name!r}, n_nodes={self.n_nodes}, ncomp={self.ncomp}, "
            f"n_dirichlet={self.dirichlet_nodes.size})"
        )


class MultiFieldSpace:
    """Product of field spaces with block DOF numbering.

    Parameters
    ----------
    fields : list of FieldSpace
        Fields in block order.
    """

    def __init__(self, fields: Sequence[FieldSpace]):
        self.fields = list(fields)
        names = [f.name for f in self.fields]
        if len(set(names)) != len(names):
            raise ConfigurationError("fields", f"duplicate field names {names}")

        self.offsets = {}
        offset = 0
        for f in self.fields:
            self.offsets[f.name] = offset
            offset += f.n_dofs
        self.n_dofs = offset

        dirichlet = [self.offsets[f.name] + f.dirichlet_dofs for f in self.fields]
        self.dirichlet_dofs = np.concatenate(dirichlet) if dirichlet else np.empty(0, dtype=int)
        is_free = np.ones(self.n_dofs, dtype=bool)
        is_free[self.dirichlet_dofs] = False
        self.free_dofs = np.flatnonzero(is_free)

    @property
    def names(self) -> List[str]:
        return [f.name for f in self.fields]

    def __getitem__(self, name: str) -> FieldSpace:
        for f in self.fields:
            if f.name == name:
                return f
        raise KeyError(name)

    def __contains__(self, name: str) -> bool:
        return name in self.offsets

    def block(self, name: str) -> slice:
        f = self[name]
        start = self.offsets[name]
        return slice(start, start + f.n_dofs)

    def dirichlet_values(self, t: float) -> np.ndarray:
        """Prescribed values at ``dirichlet_dofs`` at time t."""
        values = [f.dirichlet_dof_values(t) for f in self.fields]
        return np.concatenate(values) if values else np.empty(0)

    def apply_dirichlet(self, x: np.ndarray, t: float) -> np.ndarray:
        """Copy of x with the Dirichlet DOFs set to their values at time t."""
        x = np.array(x, dtype=float)
        x[self.dirichlet_dofs] = self.dirichlet_values(t)
        return x

    def zeros(self) -> np.ndarray:
        return np.zeros(self.n_dofs)

    def split(self, x: np.ndarray) -> Dict[str, np.ndarray]:
        """Nodal arrays (n_nodes, ncomp) of every field."""
        return {f.name: x[self.block(f.name)].reshape(f.n_nodes, f.ncomp) for f in self.fields}

    def join(self, values: Dict[str, np.ndarray]) -> np.ndarray:
        """Inverse of ``split``; missing fields are zero."""
        x = self.zeros()
        for name, array in values.items():
            x[self.block(name)] = np.asarray(array, dtype=float).reshape(-1)
        return x

    def interpolate(self, values: Dict[str, BoundaryValue], t: float = 0.0) -> np.ndarray:
        """Nodal interpolation of one value per field (missing fields are zero)."""
        return self.join({name: self[name].interpolate(v, t) for name, v in values.items()})

    def __repr__(self):
        return f"MultiFieldSpace({self.names}, n_dofs={self.n_dofs}, n_free={self.free_dofs.size})"


# ========================================================
# Builder
# ========================================================


@dataclass
class FieldSpaces:
    """Spaces of the bootstrap (fluid only) and the coupled FSI problems."""

    bootstrap: MultiFieldSpace
    fsi: MultiFieldSpace


def build_field_spaces(
    parent: Mesh, fluid: Mesh, fluid_labeling: EntityLabeling, bconds: BoundaryConditions
) -> FieldSpaces:
    """Create the bootstrap and FSI multi-field spaces.

    The bootstrap space lives on the fluid mesh, constrained on the outer
    boundary and the interface. In the FSI space displacement and velocity
    live on the parent mesh, so interface nodes are shared between regions,
    while the pressure lives on the fluid mesh only.
    """
    dim = parent.dim
    bootstrap = MultiFieldSpace(
        [
            FieldSpace("u", fluid, dim, bconds.bootstrap_u_tags, bconds.bootstrap_u_values, fluid_labeling),
            FieldSpace("v", fluid, dim, bconds.bootstrap_v_tags, bconds.bootstrap_v_values, fluid_labeling),
            FieldSpace("p", fluid, 1, labeling=fluid_labeling),
        ]
    )
    fsi = MultiFieldSpace(
        [
            FieldSpace("u", parent, dim, bconds.fsi_u_tags, bconds.fsi_u_values),
            FieldSpace("v", parent, dim, bconds.fsi_v_tags, bconds.fsi_v_values),
            FieldSpace("p", fluid, 1, labeling=fluid_labeling),
        ]
    )
    log.info(f"Bootstrap space: {bootstrap}")
    log.info(f"FSI space: {fsi}")
    return FieldSpaces(bootstrap=bootstrap, fsi=fsi)
