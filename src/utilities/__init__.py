"""Cross-project utilities (exceptions, result IO, MLflow)."""

# Keep __init__ lightweight to avoid circular imports between packages.
from utilities.exceptions import ConfigurationError, LinearSolveError, NewtonConvergenceError  # noqa: F401
from utilities.io import load_simulation_data, save_simulation_data, ensure_output_dir  # noqa: F401

__all__ = [
    "ConfigurationError",
    "LinearSolveError",
    "NewtonConvergenceError",
    "load_simulation_data",
    "save_simulation_data",
    "ensure_output_dir",
]
