"""MLflow tracking setup and field artifacts.

Two tracking modes are configured under ``mlflow`` in the Hydra config:

    files   - runs stored under the local path ``mlflow.tracking_uri``
    remote  - tracking server at ``mlflow.tracking_uri``, or at
              MLFLOW_TRACKING_URI when the config leaves it empty
"""

import logging
import os
import tempfile
from pathlib import Path

import mlflow
import zarr
from omegaconf import DictConfig

from utilities.exceptions import ConfigurationError

log = logging.getLogger(__name__)

TRACKING_MODES = ("files", "remote")


def tracking_uri(cfg: DictConfig) -> str:
    """Tracking URI for the configured mode."""
    mode = str(cfg.mlflow.get("mode", "files")).lower()
    if mode not in TRACKING_MODES:
        raise ConfigurationError("mlflow.mode", f"expected one of {TRACKING_MODES}, got {mode!r}")

    uri = cfg.mlflow.get("tracking_uri") or ""
    if mode == "files":
        return Path(uri or "mlruns").resolve().as_uri()

    uri = uri or os.environ.get("MLFLOW_TRACKING_URI", "")
    if not uri:
        raise ConfigurationError("mlflow.tracking_uri", "remote mode needs a server URI")
    return uri


def experiment_name(cfg: DictConfig) -> str:
    """Experiment name, nested under ``mlflow.project_prefix`` when one is set."""
    prefix = str(cfg.mlflow.get("project_prefix") or "").rstrip("/")
    name = cfg.experiment_name
    return "/".join([prefix, name]) if prefix else name


def setup_tracking(cfg: DictConfig) -> str:
    """Point MLflow at the configured store and activate the experiment.

    Returns
    -------
    str
        Id of the active experiment.
    """
    uri = tracking_uri(cfg)
    mlflow.set_tracking_uri(uri)
    experiment = mlflow.set_experiment(experiment_name(cfg))
    log.info(f"MLflow experiment '{experiment.name}' ({experiment.experiment_id}) at {uri}")
    return experiment.experiment_id


def log_fields(fields: dict, artifact_path: str = "fields"):
    """Store vertex fields as zarr arrays under the run's artifacts."""
    with tempfile.TemporaryDirectory() as tmpdir:
        for name, values in fields.items():
            path = Path(tmpdir) / f"{name}.zarr"
            zarr.save(str(path), values)
            mlflow.log_artifact(str(path), artifact_path=artifact_path)

    log.info(f"Logged fields: {', '.join(fields)} (zarr)")
