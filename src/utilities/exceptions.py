"""Exceptions raised by the FSI pipeline."""


class ConfigurationError(ValueError):
    """Invalid parameter or boundary-condition setting.

    Parameters
    ----------
    parameter : str
        Name of the offending parameter (or field / tag).
    message : str
        What is wrong with it.
    """

    def __init__(self, parameter: str, message: str):
        self.parameter = parameter
        super().__init__(f"{parameter}: {message}")


class LinearSolveError(RuntimeError):
    """The sparse linear solver failed (singular matrix, no convergence)."""


class NewtonConvergenceError(RuntimeError):
    """Newton iteration did not reach the residual tolerance.

    Attributes
    ----------
    iterations : int
        Number of Newton updates performed.
    residual_norm : float
        Max-norm of the free residual at the last iterate.
    x : np.ndarray or None
        Last iterate.
    step : int or None
        Time step index (set by the time integrator).
    time : float or None
        Time level of the failed step.
    """

    def __init__(self, message, iterations=0, residual_norm=float("inf"), x=None, step=None, time=None):
        self.iterations = iterations
        self.residual_norm = residual_norm
        self.x = x
        self.step = step
        self.time = time
        super().__init__(message)
