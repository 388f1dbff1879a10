"""Tests for VTK snapshot series and HDF5 tables."""

import numpy as np
import pandas as pd
import pytest
import pyvista as pv

from solvers import Snapshot
from utilities.io import ResultWriter, load_simulation_data, mesh_to_vtk, save_simulation_data


@pytest.fixture
def writer(square_mesh, tmp_path):
    return ResultWriter(tmp_path / "vtk", "run", square_mesh.vertices, square_mesh.cells)


def snapshot(t, n=25):
    return Snapshot(t, {"u": np.full((n, 2), t), "p": np.full((n, 1), np.nan)})


class TestMeshToVtk:
    """Tests for the pyvista conversion."""

    def test_grid(self, square_mesh):
        grid = mesh_to_vtk(square_mesh.vertices, square_mesh.cells, {"u": np.ones((25, 2))})
        assert grid.n_cells == 16
        assert grid.n_points == 25
        # 2-vectors are padded to 3 components
        assert grid.point_data["u"].shape == (25, 3)

    def test_scalar_field(self, square_mesh):
        grid = mesh_to_vtk(square_mesh.vertices, square_mesh.cells, {"p": np.arange(25.0)})
        assert grid.point_data["p"].shape == (25,)


class TestResultWriter:
    """Tests for the snapshot series writer."""

    def test_writes_series(self, writer):
        writer.append(snapshot(0.0))
        path = writer.append(snapshot(0.1))
        assert path.name == "run_0001.vtu"
        assert writer.collection_path.exists()
        grid = pv.read(path)
        np.testing.assert_allclose(grid.point_data["u"][:, :2], 0.1)

    def test_collection_lists_timesteps(self, writer):
        writer.append(snapshot(0.0))
        writer.append(snapshot(0.5))
        text = writer.collection_path.read_text()
        assert 'file="run_0000.vtu"' in text
        assert 'timestep="0.5"' in text
        assert list(writer.index()["file"]) == ["run_0000.vtu", "run_0001.vtu"]

    @pytest.mark.parametrize("t", [0.1, 0.0])
    def test_rejects_non_increasing_time(self, writer, t):
        writer.append(snapshot(0.1))
        with pytest.raises(ValueError):
            writer.append(snapshot(t))
        assert len(writer.entries) == 1

    def test_refuses_overwrite(self, square_mesh, writer):
        writer.append(snapshot(0.0))
        again = ResultWriter(writer.folder, "run", square_mesh.vertices, square_mesh.cells)
        with pytest.raises(FileExistsError):
            again.append(snapshot(0.0))


class TestSimulationData:
    """Tests for the HDF5 table store."""

    def test_round_trip(self, tmp_path):
        tables = {
            "metrics": pd.DataFrame([{"n_steps": 1, "converged": True}]),
            "time_series": pd.DataFrame({"time": [0.1, 0.2], "residual_norm": [1e-9, 1e-10]}),
        }
        path = tmp_path / "out" / "results.h5"
        save_simulation_data(path, tables)
        loaded = load_simulation_data(path)
        assert set(loaded) == {"metrics", "time_series"}
        pd.testing.assert_frame_equal(loaded["time_series"], tables["time_series"])
