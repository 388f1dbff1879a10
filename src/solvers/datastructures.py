"""Data structures for solver configuration and results.

This module defines the configuration and result data structures
for the partitioned-mesh FSI solver.

Structure:
- FSIParameters: Input configuration (logged to MLflow at start)
- Metrics: Output results (logged to MLflow at end)
- TimeSeries: Per-step convergence history
- Snapshot / Trajectory: Time-stamped nodal fields
"""

from dataclasses import asdict, dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple

import numpy as np
import pandas as pd

from fem.weak_forms import MeshStrategy
from utilities.exceptions import ConfigurationError


# ========================================================
# Parameters (Input Configuration)
# ========================================================


@dataclass
class FSIParameters:
    """FSI solver parameters - input configuration.

    Material defaults describe a soft solid disk in a viscous fluid on the
    square (-1, 1)^2, advanced by one Crank-Nicolson step.
    """

    # Solid (St. Venant-Kirchhoff)
    E_s: float = 1.0
    nu_s: float = 0.4
    rho_s: float = 1.0
    # Fluid
    rho_f: float = 1.0
    mu_f: float = 1.0
    # Mesh motion
    E_m: float = 1.0
    nu_m: float = -0.1
    strategy: str = "linearElasticity"
    # Geometry
    n_m: int = 10
    domain: Tuple[float, float, float, float] = (-1.0, 1.0, -1.0, 1.0)
    radius: float = 0.5
    # Discretization
    order: int = 2
    stabilization: float = 0.1
    pressure_penalty: float = 1e-8
    # Time integration
    t0: float = 0.0
    tf: float = 0.1
    dt: float = 0.1
    theta: float = 0.5
    # Newton
    ftol: float = 1e-6
    max_iterations: int = 50
    line_search: bool = True
    linear_solver: str = "direct"

    def __post_init__(self):
        self.domain = tuple(float(b) for b in self.domain)
        if len(self.domain) != 4:
            raise ConfigurationError("domain", f"expected (x0, x1, y0, y1), got {self.domain}")
        if int(self.n_m) != self.n_m or self.n_m <= 0:
            raise ConfigurationError("n_m", f"must be a positive integer, got {self.n_m}")
        self.n_m = int(self.n_m)
        if self.dt <= 0:
            raise ConfigurationError("dt", f"must be positive, got {self.dt}")
        if self.tf < self.t0:
            raise ConfigurationError("tf", f"final time {self.tf} is before t0={self.t0}")
        if not 0.0 < self.theta <= 1.0:
            raise ConfigurationError("theta", f"must lie in (0, 1], got {self.theta}")
        if self.order < 1:
            raise ConfigurationError("order", f"must be at least 1, got {self.order}")
        if self.ftol <= 0:
            raise ConfigurationError("ftol", f"must be positive, got {self.ftol}")
        if self.max_iterations < 1:
            raise ConfigurationError("max_iterations", f"must be at least 1, got {self.max_iterations}")
        if self.radius <= 0:
            raise ConfigurationError("radius", f"must be positive, got {self.radius}")
        if self.linear_solver not in ("direct", "bicgstab"):
            raise ConfigurationError("linear_solver", f"unknown method {self.linear_solver!r}")
        self.strategy = MeshStrategy.parse(self.strategy).value

    @property
    def degree(self) -> int:
        """Quadrature degree of cell and interface integrals."""
        return 2 * self.order

    @property
    def n_steps(self) -> int:
        return int(np.floor((self.tf - self.t0) / self.dt + 1e-10))

    def to_dataframe(self):
        return pd.DataFrame([self.to_mlflow()])

    def to_mlflow(self) -> Dict[str, object]:
        params = asdict(self)
        params["domain"] = ",".join(f"{b:g}" for b in self.domain)
        return params


# ========================================================
# Metrics (Output Results)
# ========================================================


@dataclass
class Metrics:
    """Solver metrics - output results computed during/after solving."""

    n_steps: int = 0
    converged: bool = False
    newton_iterations: int = 0
    final_residual: float = float("inf")
    wall_time_seconds: float = 0.0
    bootstrap_time_seconds: float = 0.0
    transient_time_seconds: float = 0.0
    n_dofs: int = 0
    n_solid_cells: int = 0
    n_fluid_cells: int = 0
    n_interface_facets: int = 0
    fluid_area: float = 0.0
    solid_area: float = 0.0
    interface_length: float = 0.0

    def to_dataframe(self):
        return pd.DataFrame([asdict(self)])

    def to_mlflow(self) -> Dict[str, float]:
        return {k: float(v) for k, v in asdict(self).items()}


# ========================================================
# Time Series (Convergence History)
# ========================================================


@dataclass
class TimeSeries:
    """Convergence history (one value per accepted time step)."""

    time: List[float] = field(default_factory=list)
    newton_iterations: List[int] = field(default_factory=list)
    residual_norm: List[float] = field(default_factory=list)

    def append(self, t: float, iterations: int, residual_norm: float):
        self.time.append(float(t))
        self.newton_iterations.append(int(iterations))
        self.residual_norm.append(float(residual_norm))

    def to_dataframe(self) -> pd.DataFrame:
        """Convert to DataFrame with one row per time step."""
        return pd.DataFrame(asdict(self))


# ========================================================
# Snapshots (Time-stamped Fields)
# ========================================================


@dataclass(frozen=True)
class Snapshot:
    """Nodal fields on the parent mesh at one time level.

    Fields without a node on some parent vertex (the pressure outside the
    fluid region, the bootstrap fields inside the solid) hold NaN there.
    """

    time: float
    fields: Dict[str, np.ndarray]

    def to_dataframe(self) -> pd.DataFrame:
        """One row per parent vertex, one column per field component."""
        columns = {}
        for name, values in self.fields.items():
            values = np.asarray(values).reshape(len(values), -1)
            if values.shape[1] == 1:
                columns[name] = values[:, 0]
            else:
                for k in range(values.shape[1]):
                    columns[f"{name}_{k}"] = values[:, k]
        return pd.DataFrame(columns)


class Trajectory:
    """Append-only sequence of snapshots with strictly increasing times."""

    def __init__(self):
        self._snapshots: List[Snapshot] = []

    def append(self, snapshot: Snapshot):
        if self._snapshots and snapshot.time <= self._snapshots[-1].time:
            raise ValueError(
                f"Snapshot time {snapshot.time} does not follow {self._snapshots[-1].time}"
            )
        self._snapshots.append(snapshot)

    @property
    def times(self) -> np.ndarray:
        return np.array([s.time for s in self._snapshots])

    @property
    def last(self) -> Optional[Snapshot]:
        return self._snapshots[-1] if self._snapshots else None

    def __len__(self) -> int:
        return len(self._snapshots)

    def __iter__(self) -> Iterator[Snapshot]:
        return iter(self._snapshots)

    def __getitem__(self, index) -> Snapshot:
        return self._snapshots[index]
