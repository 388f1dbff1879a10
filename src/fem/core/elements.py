"""Bilinear (Q1) quadrilateral element: shape functions and Gauss rules."""

import math

import numpy as np

from meshing.mesh_data import QUAD4

REFERENCE_VERTICES = np.asarray(QUAD4.reference_vertices)


def gauss_legendre(degree: int):
    """1D Gauss-Legendre rule on [-1, 1] exact for polynomials of the given degree."""
    n_points = max(1, math.ceil((degree + 1) / 2))
    return np.polynomial.legendre.leggauss(n_points)


def quad_quadrature(degree: int):
    """Tensor-product Gauss rule on the reference square.

    Returns
    -------
    points : np.ndarray
        Quadrature points, shape (n_q, 2).
    weights : np.ndarray
        Quadrature weights, shape (n_q,).
    """
    s, w = gauss_legendre(degree)
    xi, eta = np.meshgrid(s, s, indexing="ij")
    points = np.column_stack([xi.ravel(), eta.ravel()])
    weights = np.outer(w, w).ravel()
    return points, weights


def edge_quadrature(degree: int, local_edge):
    """Gauss rule on one edge of the reference square.

    Parameters
    ----------
    degree : int
        Polynomial exactness.
    local_edge : tuple
        Local vertex pair (a, b) of the edge.

    Returns
    -------
    points : np.ndarray
        Reference coordinates of the points, shape (n_q, 2).
    weights : np.ndarray
        1D weights, shape (n_q,).
    tangent : np.ndarray
        Reference tangent d(xi)/ds, shape (2,).
    """
    s, w = gauss_legendre(degree)
    a, b = REFERENCE_VERTICES[local_edge[0]], REFERENCE_VERTICES[local_edge[1]]
    points = 0.5 * (1.0 - s)[:, None] * a + 0.5 * (1.0 + s)[:, None] * b
    return points, w, 0.5 * (b - a)


def shape_functions(points: np.ndarray):
    """Q1 shape functions and reference gradients.

    Parameters
    ----------
    points : np.ndarray
        Reference coordinates, shape (n_q, 2).

    Returns
    -------
    N : np.ndarray
        Shape function values, shape (n_q, 4).
    dN : np.ndarray
        Reference gradients dN/dxi, shape (n_q, 4, 2).
    """
    xi, eta = points[:, 0:1], points[:, 1:2]
    xa, ya = REFERENCE_VERTICES[:, 0], REFERENCE_VERTICES[:, 1]

    N = 0.25 * (1.0 + xi * xa) * (1.0 + eta * ya)
    dN = np.empty(N.shape + (2,))
    dN[..., 0] = 0.25 * xa * (1.0 + eta * ya)
    dN[..., 1] = 0.25 * ya * (1.0 + xi * xa)
    return N, dN


def geometry(cell_coords: np.ndarray, N: np.ndarray, dN: np.ndarray):
    """Map reference quantities onto physical cells.

    Parameters
    ----------
    cell_coords : np.ndarray
        Vertex coordinates, shape (n_cells, 4, 2).
    N, dN : np.ndarray
        Shape functions and reference gradients at the quadrature points,
        shared by all cells (n_q, 4[, 2]) or per cell (n_cells, n_q, 4[, 2]).

    Returns
    -------
    points : np.ndarray
        Physical points, shape (n_cells, n_q, 2).
    J : np.ndarray
        Jacobian dx/dxi, shape (n_cells, n_q, 2, 2).
    grad : np.ndarray
        Physical gradients dN/dx, shape (n_cells, n_q, 4, 2).
    detJ : np.ndarray
        Jacobian determinants, shape (n_cells, n_q).
    """
    n_cells = cell_coords.shape[0]
    if N.ndim == 2:
        N = np.broadcast_to(N, (n_cells,) + N.shape)
        dN = np.broadcast_to(dN, (n_cells,) + dN.shape)

    points = np.einsum("cqa,cai->cqi", N, cell_coords)
    J = np.einsum("cai,cqaj->cqij", cell_coords, dN)
    detJ = J[..., 0, 0] * J[..., 1, 1] - J[..., 0, 1] * J[..., 1, 0]

    # Closed-form 2x2 inverse (works for empty cell arrays)
    invJ = np.empty_like(J)
    invJ[..., 0, 0] = J[..., 1, 1]
    invJ[..., 0, 1] = -J[..., 0, 1]
    invJ[..., 1, 0] = -J[..., 1, 0]
    invJ[..., 1, 1] = J[..., 0, 0]
    invJ /= detJ[..., None, None]

    grad = np.einsum("cqaj,cqji->cqai", dN, invJ)
    return points, J, grad, detJ
