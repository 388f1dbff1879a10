"""Scipy-based sparse linear solvers (direct LU and BiCGSTAB)."""

import logging
import warnings

import numpy as np
from scipy.sparse import csc_matrix, csr_matrix
from scipy.sparse.linalg import LinearOperator, MatrixRankWarning, bicgstab, spilu, splu

from utilities.exceptions import LinearSolveError

log = logging.getLogger(__name__)


def scipy_solver(
    A_csr: csr_matrix,
    b_np: np.ndarray,
    method: str = "direct",
    tolerance=1e-10,
    max_iterations=1000,
):
    """Solve A x = b with scipy.

    Parameters
    ----------
    A_csr : csr_matrix
        Sparse matrix in CSR format.
    b_np : np.ndarray
        Right-hand side vector.
    method : str, optional
        "direct" (SuperLU factorization) or "bicgstab" (ILU preconditioned).
    tolerance : float, optional
        Relative tolerance of the iterative solver (default: 1e-10).
    max_iterations : int, optional
        Maximum iterations of the iterative solver (default: 1000).

    Returns
    -------
    x_np : np.ndarray
        Solution vector.
    info : int
        0 on success (iteration count is not tracked).

    Raises
    ------
    LinearSolveError
        If the matrix is singular or the iterative solve does not converge.
    """
    b = np.asarray(b_np, dtype=float)
    if b.size == 0:
        return np.zeros(0), 0

    if method == "direct":
        x = _direct(A_csr, b)
    elif method == "bicgstab":
        x = _bicgstab(A_csr, b, tolerance, max_iterations)
    else:
        raise ValueError(f"Unknown linear solver method '{method}'")

    if not np.all(np.isfinite(x)):
        raise LinearSolveError(f"{method} solve produced non-finite values")
    return x, 0


def _direct(A_csr, b):
    with warnings.catch_warnings():
        warnings.simplefilter("error", MatrixRankWarning)
        try:
            lu = splu(csc_matrix(A_csr))
        except (RuntimeError, MatrixRankWarning) as exc:
            raise LinearSolveError(f"LU factorization failed: {exc}") from exc
    return lu.solve(b)


def _bicgstab(A_csr, b, tolerance, max_iterations):
    try:
        ilu = spilu(csc_matrix(A_csr))
    except RuntimeError as exc:
        raise LinearSolveError(f"ILU preconditioner failed: {exc}") from exc
    M = LinearOperator(A_csr.shape, ilu.solve)

    x, info = bicgstab(A_csr, b, rtol=tolerance, atol=0, maxiter=max_iterations, M=M)
    if info > 0:
        raise LinearSolveError(f"BiCGSTAB did not converge in {info} iterations")
    if info < 0:
        raise LinearSolveError(f"BiCGSTAB failed (info={info})")
    return x
