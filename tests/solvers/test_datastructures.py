"""Tests for solver parameters and result containers."""

import numpy as np
import pytest

from solvers import FSIParameters, Metrics, Snapshot, TimeSeries, Trajectory
from utilities.exceptions import ConfigurationError


class TestFSIParameters:
    """Tests for parameter validation and export."""

    def test_defaults(self):
        p = FSIParameters()
        assert p.degree == 4
        assert p.n_steps == 1
        assert p.strategy == "linearElasticity"

    @pytest.mark.parametrize(
        "name,value",
        [
            ("n_m", 0),
            ("dt", 0.0),
            ("theta", 0.0),
            ("order", 0),
            ("ftol", -1.0),
            ("max_iterations", 0),
            ("radius", -0.5),
            ("linear_solver", "gmres"),
            ("strategy", "biharmonic"),
        ],
    )
    def test_invalid_value_names_parameter(self, name, value):
        with pytest.raises(ConfigurationError) as excinfo:
            FSIParameters(**{name: value})
        assert excinfo.value.parameter == name

    def test_final_time_before_start(self):
        with pytest.raises(ConfigurationError) as excinfo:
            FSIParameters(t0=1.0, tf=0.5)
        assert excinfo.value.parameter == "tf"

    def test_domain_from_list(self):
        """Hydra passes the domain as a list."""
        p = FSIParameters(domain=[0, 2, 0, 1])
        assert p.domain == (0.0, 2.0, 0.0, 1.0)

    def test_n_steps(self):
        assert FSIParameters(t0=0.0, tf=0.3, dt=0.1).n_steps == 3

    def test_to_mlflow(self):
        params = FSIParameters().to_mlflow()
        assert params["domain"] == "-1,1,-1,1"
        assert params["n_m"] == 10
        assert FSIParameters().to_dataframe().shape[0] == 1


class TestResults:
    """Tests for metrics, time series and snapshots."""

    def test_metrics_to_mlflow(self):
        metrics = Metrics(n_steps=2, converged=True, newton_iterations=5).to_mlflow()
        assert metrics["converged"] == 1.0
        assert metrics["newton_iterations"] == 5.0
        assert all(isinstance(v, float) for v in metrics.values())

    def test_time_series(self):
        ts = TimeSeries()
        ts.append(0.1, 3, 1e-9)
        ts.append(0.2, 2, 1e-10)
        df = ts.to_dataframe()
        assert list(df.columns) == ["time", "newton_iterations", "residual_norm"]
        assert len(df) == 2

    def test_snapshot_columns(self):
        snapshot = Snapshot(0.0, {"u": np.zeros((3, 2)), "p": np.ones((3, 1))})
        df = snapshot.to_dataframe()
        assert list(df.columns) == ["u_0", "u_1", "p"]


class TestTrajectory:
    """Tests for the append-only snapshot sequence."""

    def test_append_increasing(self):
        trajectory = Trajectory()
        for t in (0.1, 0.2):
            trajectory.append(Snapshot(t, {}))
        assert len(trajectory) == 2
        np.testing.assert_allclose(trajectory.times, [0.1, 0.2])
        assert trajectory.last.time == 0.2
        assert [s.time for s in trajectory] == [0.1, 0.2]

    @pytest.mark.parametrize("t", [0.1, 0.05])
    def test_rejects_non_increasing(self, t):
        trajectory = Trajectory()
        trajectory.append(Snapshot(0.1, {}))
        with pytest.raises(ValueError):
            trajectory.append(Snapshot(t, {}))
        assert len(trajectory) == 1

    def test_empty(self):
        assert Trajectory().last is None
