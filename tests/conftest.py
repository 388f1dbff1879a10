"""Pytest configuration and fixtures for the FSI solver tests."""

import sys
from pathlib import Path

import numpy as np
import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


@pytest.fixture
def square_mesh():
    """4x4 Cartesian mesh of [-1, 1]^2 (16 square cells of side 0.5)."""
    from meshing import create_cartesian_mesh

    return create_cartesian_mesh((-1.0, 1.0, -1.0, 1.0), (4, 4))


@pytest.fixture
def disk_partition(square_mesh):
    """Partition of the 4x4 mesh with a solid disk of radius 0.5."""
    from meshing import InsideCircle, partition_mesh

    return partition_mesh(square_mesh, InsideCircle(0.5))


@pytest.fixture
def fluid_labeling(disk_partition):
    """Fluid labeling carrying the interface tag."""
    from meshing import extract_interface

    return extract_interface(disk_partition.fluid)


@pytest.fixture
def small_params():
    """Parameters for a small 4x4 FSI problem (one Crank-Nicolson step)."""
    return {
        "n_m": 4,
        "t0": 0.0,
        "tf": 0.1,
        "dt": 0.1,
        "order": 2,
        "ftol": 1e-8,
        "max_iterations": 20,
    }


@pytest.fixture
def rng():
    return np.random.default_rng(1234)
