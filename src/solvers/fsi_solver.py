"""Monolithic FSI solver on a partitioned background mesh."""

import logging
import time

import mlflow
import numpy as np

from fem.assembly.operators import FEOperator, TransientFEOperator
from fem.core.domains import CellDomain, InterfaceDomain
from fem.spaces import MultiFieldSpace, build_field_spaces
from fem.weak_forms import lame_parameters, weak_forms
from meshing.interface import extract_interface, interface_facet_cells
from meshing.measures import region_measures
from meshing.partition import InsideCircle, partition_mesh
from meshing.structured import create_cartesian_mesh
from utilities.exceptions import ConfigurationError, LinearSolveError, NewtonConvergenceError
from utilities.io import save_simulation_data

from .analytical import AnalyticalSolution
from .bootstrap import StokesBootstrapSolver
from .datastructures import FSIParameters, Metrics, Snapshot, TimeSeries, Trajectory
from .newton import NewtonParameters, NewtonSolver
from .theta_method import ThetaMethod

log = logging.getLogger(__name__)


class FSISolver:
    """Fluid-structure interaction on one mesh split into solid and fluid cells.

    Handles:
    - Partition of the background mesh and interface tagging
    - Field spaces, integration domains and the coupled operators
    - Stokes bootstrap of the initial state, then theta-method time stepping
    - Metrics / time series tracking and MLflow logging

    Parameters
    ----------
    params : FSIParameters, optional
        Parameters object. If not provided, kwargs are used to create params.
    mesh : Mesh, optional
        Root background mesh; a Cartesian n_m x n_m mesh of ``params.domain`` by default.
    is_in : callable, optional
        Solid cell predicate on cell vertex coordinates; a circle of
        ``params.radius`` around the origin by default.
    solution : AnalyticalSolution, optional
        Boundary data and solid initial state.
    **kwargs
        Configuration parameters passed to FSIParameters if params is None.
    """

    Parameters = FSIParameters

    def __init__(self, params=None, mesh=None, is_in=None, solution=None, **kwargs):
        if params is None:
            params = self.Parameters(**kwargs)

        self.params = params
        self.solution = solution if solution is not None else AnalyticalSolution()
        self.metrics = Metrics()
        self.time_series = TimeSeries()
        self.trajectory = Trajectory()
        self.bootstrap_snapshot = None
        self.x = None

        p = self.params
        self.mesh = mesh if mesh is not None else create_cartesian_mesh(p.domain, (p.n_m, p.n_m))
        if self.mesh.root is not self.mesh:
            raise ConfigurationError("mesh", "background mesh must be a root mesh, not a sub-mesh")
        self.is_in = is_in if is_in is not None else InsideCircle(p.radius)
        self._setup()

    # =========================================================================
    # Setup
    # =========================================================================

    def _setup(self):
        p = self.params

        # --- Regions and interface ---
        self.partition = partition_mesh(self.mesh, self.is_in)
        fluid, solid = self.partition.fluid, self.partition.solid
        self.fluid_labeling = extract_interface(fluid)
        _, interface_cells, _ = interface_facet_cells(fluid, self.fluid_labeling)
        self.measures = region_measures(self.partition, interface_cells)

        # --- Integration domains ---
        self.domains = {
            "fluid": CellDomain(fluid, p.degree, "fluid"),
            "solid": CellDomain(solid, p.degree, "solid"),
            "interface": InterfaceDomain(fluid, self.fluid_labeling, p.degree),
        }

        # --- Spaces ---
        self.bconds = self.solution.boundary_conditions(p.t0)
        self.spaces = build_field_spaces(self.mesh, fluid, self.fluid_labeling, self.bconds)

        # --- Operators ---
        lam_s, mu_s = lame_parameters(p.E_s, p.nu_s)
        lam_m, mu_m = lame_parameters(p.E_m, p.nu_m)
        fluid_params = {
            "rho_f": p.rho_f,
            "mu_f": p.mu_f,
            "lam_m": lam_m,
            "mu_m": mu_m,
            "vol": self.measures.fluid,
            "stab": p.stabilization,
            "pressure_penalty": p.pressure_penalty,
        }
        solid_params = {
            "rho_s": p.rho_s,
            "lam_s": lam_s,
            "mu_s": mu_s,
            "f_u": getattr(self.solution, "kinematic_forcing", None),
        }
        interface_params = {
            "lam_m": lam_m,
            "mu_m": mu_m,
            "vol": self.measures.interface,
        }

        forms = weak_forms(p.strategy)
        self.stokes_op = FEOperator(
            self.spaces.bootstrap, forms.stokes(self.domains["fluid"], fluid_params), t=p.t0
        )
        self.fsi_op = TransientFEOperator(
            self.spaces.fsi,
            forms.fluid(self.domains["fluid"], fluid_params),
            forms.solid(self.domains["solid"], solid_params),
            forms.interface(self.domains["interface"], interface_params),
        )

    # =========================================================================
    # Solve
    # =========================================================================

    def initial_state(self, x_bootstrap: np.ndarray) -> np.ndarray:
        """Interpolate the bootstrap solution into the FSI space.

        Fluid nodes take the bootstrap values, solid-only nodes take the
        analytical displacement and velocity at t0, and Dirichlet DOFs their
        boundary values at t0.
        """
        t0 = self.params.t0
        boot, fsi = self.spaces.bootstrap, self.spaces.fsi

        x0 = fsi.interpolate({"u": self.solution.u, "v": self.solution.v}, t0)
        values = fsi.split(x0)
        for name, boot_values in boot.split(x_bootstrap).items():
            nodes = fsi[name].root_to_node[boot[name].node_to_root]
            values[name][nodes] = boot_values
        return fsi.apply_dirichlet(fsi.join(values), t0)

    def solve(self, writer=None):
        """Run the bootstrap solve and the time integration.

        Stores results in solver attributes:
        - self.bootstrap_snapshot : fluid fields of the Stokes solve at t0
        - self.trajectory : one snapshot per accepted time step
        - self.time_series : Newton iterations and residual per step
        - self.metrics : Metrics dataclass with solver metrics

        Parameters
        ----------
        writer : ResultWriter, optional
            Receives the bootstrap snapshot and then every accepted step.

        Raises
        ------
        NewtonConvergenceError, LinearSolveError
            A failed step aborts the run after the metrics are stored.
        """
        p = self.params
        time_start = time.time()
        mlflow_time = 0.0

        self.time_series = TimeSeries()
        self.trajectory = Trajectory()

        bootstrap = StokesBootstrapSolver(self.stokes_op, method=p.linear_solver)
        x_bootstrap = bootstrap.solve(p.t0)
        bootstrap_time = time.time() - time_start
        log.info(f"Bootstrap solved in {bootstrap_time:.2f} seconds")
        transient_start = time.time()
        self.bootstrap_snapshot = self._snapshot(p.t0, self.spaces.bootstrap, x_bootstrap)
        if writer is not None:
            writer.append(self.bootstrap_snapshot)

        self.x = self.initial_state(x_bootstrap)
        nls = NewtonSolver(
            NewtonParameters(
                ftol=p.ftol,
                max_iterations=p.max_iterations,
                line_search=p.line_search,
                linear_solver=p.linear_solver,
            )
        )
        ode = ThetaMethod(nls, p.dt, p.theta)
        log.info(f"Time integration: {p.n_steps} steps of dt={p.dt} from t0={p.t0}")

        is_converged = False
        try:
            for step, (t, x, result) in enumerate(ode.iterate(self.fsi_op, self.x, p.t0, p.tf), start=1):
                self.x = x
                snapshot = self._snapshot(t, self.spaces.fsi, x)
                self.trajectory.append(snapshot)
                self.time_series.append(t, result.iterations, result.residual_norm)
                if writer is not None:
                    writer.append(snapshot)

                if mlflow.active_run():
                    t_log_start = time.time()
                    mlflow.log_metrics(
                        {"newton_iterations": result.iterations, "residual_norm": result.residual_norm},
                        step=step,
                    )
                    mlflow_time += time.time() - t_log_start
            is_converged = True
        except (NewtonConvergenceError, LinearSolveError):
            log.error(f"Time integration aborted after {len(self.trajectory)} accepted steps")
            raise
        finally:
            transient_time = time.time() - transient_start - mlflow_time
            wall_time = bootstrap_time + transient_time
            self._store_results(is_converged, wall_time, bootstrap_time, transient_time)
            log.info(f"Solver finished in {wall_time:.2f} seconds (excl. {mlflow_time:.2f}s logging).")

        return self.trajectory

    def _snapshot(self, t: float, space: MultiFieldSpace, x: np.ndarray) -> Snapshot:
        """Fields of x scattered onto the parent vertices (NaN where undefined)."""
        fields = {}
        for name, values in space.split(x).items():
            f = space[name]
            full = np.full((self.mesh.n_vertices, f.ncomp), np.nan)
            full[f.node_to_root] = values
            fields[name] = full
        return Snapshot(time=float(t), fields=fields)

    def _store_results(self, is_converged: bool, wall_time: float, bootstrap_time: float, transient_time: float):
        ts = self.time_series
        self.metrics = Metrics(
            n_steps=len(ts.time),
            converged=is_converged,
            newton_iterations=int(sum(ts.newton_iterations)),
            final_residual=ts.residual_norm[-1] if ts.residual_norm else float("inf"),
            wall_time_seconds=wall_time,
            bootstrap_time_seconds=bootstrap_time,
            transient_time_seconds=transient_time,
            n_dofs=self.spaces.fsi.n_dofs,
            n_solid_cells=self.partition.solid.n_cells,
            n_fluid_cells=self.partition.fluid.n_cells,
            n_interface_facets=self.domains["interface"].n_cells,
            fluid_area=self._measure("fluid"),
            solid_area=self._measure("solid"),
            interface_length=self._measure("interface"),
        )

    def _measure(self, name: str) -> float:
        domain = self.domains[name]
        return domain.integrate(np.ones_like(domain.weights))

    # =========================================================================
    # Output
    # =========================================================================

    def fields_dataframe(self):
        """Final (or bootstrap) fields with vertex coordinates, one row per vertex."""
        snapshot = self.trajectory.last or self.bootstrap_snapshot
        if snapshot is None:
            raise RuntimeError("No solution available; call solve() first")
        df = snapshot.to_dataframe()
        df.insert(0, "y", self.mesh.vertices[:, 1])
        df.insert(0, "x", self.mesh.vertices[:, 0])
        return df

    def save(self, filepath):
        """Save params, metrics, time series and final fields to HDF5.

        Parameters
        ----------
        filepath : str or Path
            Output file path (use .h5 extension).
        """
        save_simulation_data(
            filepath,
            {
                "params": self.params.to_dataframe(),
                "metrics": self.metrics.to_dataframe(),
                "time_series": self.time_series.to_dataframe(),
                "fields": self.fields_dataframe(),
            },
        )
