"""CSR sparsity pattern built once from element DOF maps.

The pattern keeps, for every term, the position of each element matrix
entry in the CSR data array. Assembling a new matrix is then a weighted
``np.bincount`` into the data array; rows, columns and the index structure
are never recomputed.
"""

from typing import List, Sequence

import numpy as np
from scipy.sparse import csr_matrix


class SparsityPattern:
    """Union of the element couplings of several terms.

    Parameters
    ----------
    n_dofs : int
        Global system size.
    element_dofs : list of np.ndarray
        Per term, the global DOFs of every element, shape (n_cells, n_local).
    """

    def __init__(self, n_dofs: int, element_dofs: Sequence[np.ndarray]):
        self.n_dofs = int(n_dofs)

        keys = []
        for dofs in element_dofs:
            rows = np.broadcast_to(dofs[:, :, None], dofs.shape + (dofs.shape[1],))
            cols = np.broadcast_to(dofs[:, None, :], dofs.shape + (dofs.shape[1],))
            keys.append(rows.astype(np.int64).ravel() * self.n_dofs + cols.ravel())

        all_keys = np.concatenate(keys) if keys else np.empty(0, dtype=np.int64)
        unique, inverse = np.unique(all_keys, return_inverse=True)
        inverse = inverse.reshape(-1)

        # Sorted keys are row-major: this is already the CSR ordering
        rows = unique // self.n_dofs
        self.indices = (unique % self.n_dofs).astype(np.int32)
        self.indptr = np.concatenate([[0], np.cumsum(np.bincount(rows, minlength=self.n_dofs))]).astype(np.int32)
        self.nnz = unique.size

        self._maps: List[np.ndarray] = []
        start = 0
        for k in keys:
            self._maps.append(inverse[start:start + k.size])
            start += k.size

    def assemble(self, element_matrices: Sequence[np.ndarray]) -> csr_matrix:
        """Assemble per-term element matrices (n_cells, n_local, n_local) into CSR.

        A term without contribution passes None.
        """
        data = np.zeros(self.nnz)
        for index_map, Ke in zip(self._maps, element_matrices):
            if Ke is not None and index_map.size:
                data += np.bincount(index_map, weights=np.ravel(Ke), minlength=self.nnz)
        return csr_matrix(
            (data, self.indices.copy(), self.indptr.copy()), shape=(self.n_dofs, self.n_dofs)
        )
