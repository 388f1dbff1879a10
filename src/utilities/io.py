"""Result I/O: VTK snapshot series and HDF5 tables."""

import logging
from pathlib import Path
from typing import Dict
from xml.etree import ElementTree

import numpy as np
import pandas as pd
import pyvista as pv

log = logging.getLogger(__name__)

# Number of vertices per cell -> VTK cell type
_VTK_CELL_TYPES = {3: pv.CellType.TRIANGLE, 4: pv.CellType.QUAD}


def ensure_output_dir(path) -> Path:
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def mesh_to_vtk(vertices: np.ndarray, cells: np.ndarray, point_data: Dict[str, np.ndarray] = None) -> pv.UnstructuredGrid:
    """Build a pyvista grid from a 2D mesh and nodal fields.

    Vector fields with two components are padded to three so ParaView can
    display them as vectors.
    """
    n_cells, n_vertices_per_cell = cells.shape
    connectivity = np.hstack([np.full((n_cells, 1), n_vertices_per_cell), cells]).ravel()
    celltypes = np.full(n_cells, _VTK_CELL_TYPES[n_vertices_per_cell], dtype=np.uint8)
    points = np.column_stack([vertices, np.zeros(len(vertices))]) if vertices.shape[1] == 2 else vertices

    grid = pv.UnstructuredGrid(connectivity, celltypes, points)
    for name, values in (point_data or {}).items():
        values = np.asarray(values, dtype=float).reshape(len(vertices), -1)
        if values.shape[1] == 2:
            values = np.column_stack([values, np.zeros(len(values))])
        grid.point_data[name] = values[:, 0] if values.shape[1] == 1 else values
    return grid


class ResultWriter:
    """Writes a time series of snapshots as .vtu files plus a .pvd collection.

    Snapshots must arrive in strictly increasing time order. Existing files
    are never overwritten.

    Parameters
    ----------
    folder : str or Path
        Output directory (created if missing).
    name : str
        Base name of the series.
    vertices, cells : np.ndarray
        Mesh on which all snapshot fields are nodal.
    """

    def __init__(self, folder, name: str, vertices: np.ndarray, cells: np.ndarray):
        self.folder = ensure_output_dir(folder)
        self.name = name
        self.vertices = vertices
        self.cells = cells
        self.entries = []

    @property
    def collection_path(self) -> Path:
        return self.folder / f"{self.name}.pvd"

    def append(self, snapshot) -> Path:
        """Write one snapshot (any object with ``time`` and ``fields``)."""
        if self.entries and snapshot.time <= self.entries[-1][0]:
            raise ValueError(
                f"Snapshot time {snapshot.time} does not follow {self.entries[-1][0]}"
            )
        path = self.folder / f"{self.name}_{len(self.entries):04d}.vtu"
        if path.exists():
            raise FileExistsError(f"Refusing to overwrite existing snapshot {path}")

        mesh_to_vtk(self.vertices, self.cells, snapshot.fields).save(str(path))
        self.entries.append((float(snapshot.time), path.name))
        self._write_collection()
        log.debug(f"Wrote snapshot t={snapshot.time:.4g} to {path}")
        return path

    def _write_collection(self):
        root = ElementTree.Element("VTKFile", type="Collection", version="0.1")
        collection = ElementTree.SubElement(root, "Collection")
        for t, filename in self.entries:
            ElementTree.SubElement(collection, "DataSet", timestep=repr(t), part="0", file=filename)
        ElementTree.ElementTree(root).write(self.collection_path, xml_declaration=True)

    def index(self) -> pd.DataFrame:
        return pd.DataFrame(self.entries, columns=["time", "file"])


def save_simulation_data(filepath, tables: Dict[str, pd.DataFrame]):
    """Save named DataFrames to one compressed HDF5 file."""
    filepath = Path(filepath)
    ensure_output_dir(filepath.parent)
    with pd.HDFStore(filepath, mode="w", complevel=5) as store:
        for key, frame in tables.items():
            store[key] = frame
    log.info(f"Saved results to {filepath}")


def load_simulation_data(filepath) -> Dict[str, pd.DataFrame]:
    """Load every table of an HDF5 file written by ``save_simulation_data``."""
    with pd.HDFStore(filepath, mode="r") as store:
        return {key.lstrip("/"): store[key] for key in store.keys()}
