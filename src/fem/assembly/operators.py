"""Finite element terms and the operators assembled from them.

A term couples a residual kernel, its Jacobian kernel and (for transient
problems) the Jacobian with respect to the time derivative, to one
integration domain. Kernels work on whole domains at once:

    residual(state, basis, ...)    -> {field: (n_cells, n_basis, ncomp)}
    jacobian(state, basis, ...)    -> {(test, trial): (n_cells, n_basis, ncomp, n_basis, ncomp)}
    jacobian_t(state, basis, ...)  -> same layout as jacobian

``basis`` is the term's domain (shape functions, gradients, weights,
normals). Fields whose nodes do not cover every cell of the domain are not
part of the term; a kernel returning such a field is an error.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

import numpy as np
from scipy.sparse import csr_matrix

from fem.core.domains import Domain
from fem.spaces import MultiFieldSpace

from .sparsity import SparsityPattern

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class FETerm:
    """Residual/Jacobian kernels integrated over one domain."""

    residual: Callable
    jacobian: Callable
    domain: Domain
    jacobian_t: Optional[Callable] = None


@dataclass
class QuadratureState:
    """Field values at the quadrature points of a domain.

    ``values[f]`` has shape (n_cells, n_q, ncomp) and ``grads[f]`` shape
    (n_cells, n_q, ncomp, dim); ``values_t[f]`` holds the time derivative
    values and is empty for stationary operators.
    """

    t: float
    points: np.ndarray
    normals: Optional[np.ndarray]
    values: Dict[str, np.ndarray] = field(default_factory=dict)
    grads: Dict[str, np.ndarray] = field(default_factory=dict)
    values_t: Dict[str, np.ndarray] = field(default_factory=dict)


class _TermIntegrator:
    """Element DOF maps of one term, gather of states and local scatter."""

    def __init__(self, term: FETerm, space: MultiFieldSpace):
        self.term = term
        self.space = space
        domain = term.domain
        n_cells = domain.n_cells

        self.field_dofs = {}
        self.local_slices = {}
        start = 0
        for f in space.fields:
            nodes = f.root_to_node[domain.root_vertices]
            if np.any(nodes < 0):
                continue
            dofs = space.offsets[f.name] + nodes[:, :, None] * f.ncomp + np.arange(f.ncomp)
            self.field_dofs[f.name] = dofs
            size = dofs.shape[1] * f.ncomp
            self.local_slices[f.name] = slice(start, start + size)
            start += size
        self.n_local = start

        blocks = [d.reshape(n_cells, d.shape[1] * d.shape[2]) for d in self.field_dofs.values()]
        self.element_dofs = np.concatenate(blocks, axis=1) if blocks else np.empty((n_cells, 0), dtype=int)

    def state(self, t, x, xt=None) -> QuadratureState:
        domain = self.term.domain
        state = QuadratureState(t=t, points=domain.points, normals=domain.normals)
        for name, dofs in self.field_dofs.items():
            xe = x[dofs]
            state.values[name] = np.einsum("cqa,cak->cqk", domain.shape, xe)
            state.grads[name] = np.einsum("cqad,cak->cqkd", domain.grad, xe)
            if xt is not None:
                xte = xt[dofs]
                state.values_t[name] = np.einsum("cqa,cak->cqk", domain.shape, xte)
        return state

    def _slice(self, name):
        if name not in self.space:
            raise KeyError(f"Unknown field {name!r}")
        try:
            return self.local_slices[name]
        except KeyError:
            raise KeyError(
                f"Field {name!r} is not defined on every cell of domain {self.term.domain.name!r}"
            ) from None

    def local_vector(self, blocks: Dict[str, np.ndarray]) -> np.ndarray:
        n_cells = self.term.domain.n_cells
        Re = np.zeros((n_cells, self.n_local))
        for name, r in blocks.items():
            rows = self._slice(name)
            Re[:, rows] += r.reshape(n_cells, rows.stop - rows.start)
        return Re

    def local_matrix(self, blocks: Dict[tuple, np.ndarray]) -> np.ndarray:
        n_cells = self.term.domain.n_cells
        Ke = np.zeros((n_cells, self.n_local, self.n_local))
        for (test, trial), K in blocks.items():
            rows, cols = self._slice(test), self._slice(trial)
            Ke[:, rows, cols] += K.reshape(n_cells, rows.stop - rows.start, cols.stop - cols.start)
        return Ke


class _AssembledOperator:
    """Shared assembly machinery of stationary and transient operators."""

    def __init__(self, space: MultiFieldSpace, *terms: FETerm):
        self.space = space
        self.terms = terms
        self._integrators = [_TermIntegrator(term, space) for term in terms]
        self.pattern = SparsityPattern(space.n_dofs, [i.element_dofs for i in self._integrators])
        log.debug(
            f"{type(self).__name__}: {len(terms)} terms, {space.n_dofs} dofs, nnz={self.pattern.nnz}"
        )

    def _vector(self, t, x, xt) -> np.ndarray:
        out = np.zeros(self.space.n_dofs)
        for integrator in self._integrators:
            if integrator.term.domain.n_cells == 0:
                continue
            state = integrator.state(t, x, xt)
            Re = integrator.local_vector(integrator.term.residual(state, integrator.term.domain))
            out += np.bincount(
                integrator.element_dofs.ravel(), weights=Re.ravel(), minlength=self.space.n_dofs
            )
        return out

    def _matrix(self, t, x, xt, shift=None, time_only=False) -> csr_matrix:
        """Assemble J (time_only=False, shift=None), J_t (time_only=True), or J + shift * J_t."""
        element_matrices = []
        for integrator in self._integrators:
            term = integrator.term
            if term.domain.n_cells == 0:
                element_matrices.append(None)
                continue
            state = integrator.state(t, x, xt)
            Ke = None
            if not time_only:
                Ke = integrator.local_matrix(term.jacobian(state, term.domain))
            if term.jacobian_t is not None and (time_only or shift is not None):
                Kt = integrator.local_matrix(term.jacobian_t(state, term.domain))
                Ke = Kt if Ke is None else Ke + (shift if shift is not None else 1.0) * Kt
            element_matrices.append(Ke)
        return self.pattern.assemble(element_matrices)


class FEOperator(_AssembledOperator):
    """Stationary operator R(x) summed over terms.

    Parameters
    ----------
    space : MultiFieldSpace
        Trial/test space.
    *terms : FETerm
        Terms to assemble.
    t : float, optional
        Time passed to the kernels (default 0).
    """

    def __init__(self, space: MultiFieldSpace, *terms: FETerm, t: float = 0.0):
        super().__init__(space, *terms)
        self.t = t

    def residual(self, x: np.ndarray) -> np.ndarray:
        return self._vector(self.t, x, None)

    def jacobian(self, x: np.ndarray) -> csr_matrix:
        return self._matrix(self.t, x, None)


class TransientFEOperator(_AssembledOperator):
    """Transient operator R(t, x, dx/dt) summed over terms."""

    def residual(self, t: float, x: np.ndarray, xt: np.ndarray) -> np.ndarray:
        return self._vector(t, x, xt)

    def jacobian(self, t: float, x: np.ndarray, xt: np.ndarray) -> csr_matrix:
        """dR/dx."""
        return self._matrix(t, x, xt)

    def jacobian_t(self, t: float, x: np.ndarray, xt: np.ndarray) -> csr_matrix:
        """dR/d(dx/dt)."""
        return self._matrix(t, x, xt, time_only=True)

    def jacobian_shifted(self, t: float, x: np.ndarray, xt: np.ndarray, shift: float) -> csr_matrix:
        """dR/dx + shift * dR/d(dx/dt), assembled in one pass."""
        return self._matrix(t, x, xt, shift=shift)
