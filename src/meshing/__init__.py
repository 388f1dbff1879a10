"""Meshes, partitioning into solid/fluid regions, and interface tagging."""

from .mesh_data import QUAD4, CellType, EntityLabeling, GridTopology, Mesh
from .structured import create_cartesian_mesh
from .partition import InsideCircle, MeshPartition, SubMesh, partition_mesh, submesh
from .interface import extract_interface, interface_facet_cells
from .measures import RegionMeasures, cell_measures, region_measures

__all__ = [
    "QUAD4",
    "CellType",
    "EntityLabeling",
    "GridTopology",
    "Mesh",
    "create_cartesian_mesh",
    "InsideCircle",
    "MeshPartition",
    "SubMesh",
    "partition_mesh",
    "submesh",
    "extract_interface",
    "interface_facet_cells",
    "RegionMeasures",
    "cell_measures",
    "region_measures",
]
