"""
FSI Solver - Hydra entry point with MLflow tracking.

Usage:
    python main.py
    python main.py solver.n_m=20 solver.dt=0.05 solver.tf=0.5
    python main.py solver.strategy=laplacian
    python main.py -m solver.n_m=8,16,32

MLflow modes:
    files   - file-based ./mlruns (default)
    remote  - tracking server from mlflow.tracking_uri (credentials in .env)
"""

import logging
import sys
import tempfile
from pathlib import Path

import hydra
import mlflow
from dotenv import load_dotenv
from hydra.core.hydra_config import HydraConfig
from hydra.utils import instantiate
from omegaconf import DictConfig, OmegaConf

# Load .env file (for MLflow credentials)
load_dotenv()

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent / "src"))

from utilities.io import ResultWriter  # noqa: E402
from utilities.mlflow import log_fields, setup_tracking  # noqa: E402

log = logging.getLogger(__name__)


def run_solver(cfg: DictConfig, output_dir: Path) -> str:
    """Run solver and log to MLflow. Returns run_id."""
    solver = instantiate(cfg.solver, _convert_="partial")

    writer = None
    if cfg.output.get("write_vtk", True):
        writer = ResultWriter(output_dir / "vtk", cfg.output.name, solver.mesh.vertices, solver.mesh.cells)

    with mlflow.start_run(run_name=cfg.run_name, tags={"solver": "fsi"}) as run:
        mlflow.log_params(solver.params.to_mlflow())
        mlflow.log_dict(OmegaConf.to_container(cfg), "config.yaml")

        log.info(
            f"Solving: {solver.partition.solid.n_cells} solid / "
            f"{solver.partition.fluid.n_cells} fluid cells, {solver.spaces.fsi.n_dofs} dofs"
        )
        try:
            solver.solve(writer=writer)
        finally:
            mlflow.log_metrics(solver.metrics.to_mlflow())

        with tempfile.TemporaryDirectory() as tmpdir:
            h5_path = Path(tmpdir) / "results.h5"
            solver.save(h5_path)
            mlflow.log_artifact(str(h5_path))

        final = solver.trajectory.last or solver.bootstrap_snapshot
        log_fields({"x": solver.mesh.vertices, **final.fields})
        if writer is not None:
            mlflow.log_artifacts(str(writer.folder), artifact_path="vtk")

        log.info(
            f"Done: {solver.metrics.n_steps} steps, "
            f"{solver.metrics.newton_iterations} Newton iterations, "
            f"time={solver.metrics.wall_time_seconds:.2f}s"
        )
        return run.info.run_id


@hydra.main(config_path="conf", config_name="config", version_base=None)
def main(cfg: DictConfig) -> None:
    """Hydra entry point - runs solver with MLflow tracking."""
    log.info(f"FSI: n_m={cfg.solver.n_m}, dt={cfg.solver.dt}, tf={cfg.solver.tf}")
    setup_tracking(cfg)

    output_dir = Path(HydraConfig.get().runtime.output_dir)
    run_id = run_solver(cfg, output_dir)
    log.info(f"MLflow run: {run_id}")


if __name__ == "__main__":
    main()
