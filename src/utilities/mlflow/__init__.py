"""MLflow utilities for experiment tracking and artifact management."""

from .io import experiment_name, log_fields, setup_tracking, tracking_uri

__all__ = [
    "experiment_name",
    "log_fields",
    "setup_tracking",
    "tracking_uri",
]
