"""Manufactured displacement, velocity and pressure fields.

    u(x, t) = 1e-3 (x^2 y, -x y^2) t
    v(x, t) = 1e-3 (x^2 y, -x y^2)
    p(x, t) = (x + y) t

Both velocity and displacement are divergence free, and v = du/dt. Every
callable takes points of shape (n_points, 2) and a time, and returns
(n_points, 2) for vectors or (n_points,) for scalars.
"""

import numpy as np

from fem.spaces import get_boundary_conditions


class AnalyticalSolution:
    """Analytical fields with their explicit time derivatives.

    Parameters
    ----------
    amplitude : float, optional
        Scale of the displacement and velocity fields (default: 1e-3).
    """

    def __init__(self, amplitude: float = 1.0e-3):
        self.amplitude = float(amplitude)

    def _shape(self, x):
        x = np.asarray(x, dtype=float)
        return self.amplitude * np.column_stack([x[:, 0] ** 2 * x[:, 1], -x[:, 0] * x[:, 1] ** 2])

    def u(self, x, t):
        return self._shape(x) * t

    def du_dt(self, x, t):
        return self._shape(x)

    def v(self, x, t):
        return self._shape(x)

    def p(self, x, t):
        x = np.asarray(x, dtype=float)
        return (x[:, 0] + x[:, 1]) * t

    def kinematic_forcing(self, x, t):
        """du/dt - v, the source closing the solid kinematic equation."""
        return self.du_dt(x, t) - self.v(x, t)

    def boundary_conditions(self, t0: float = 0.0):
        return get_boundary_conditions(self.u, self.v, t0)

    def __repr__(self):
        return f"AnalyticalSolution(amplitude={self.amplitude})"
