"""
Sparse Matrix Reader

Reader over scipy sparse matrices. The input is held in CSR form so that
row (cell) access is a pointer lookup; CSC, COO and other formats are
converted once on construction.

Fast paths:
    Kernels can use ``csr`` and ``get_row_nonzero`` to work on stored
    entries only, without densifying rows.
"""

import logging
from typing import Iterator, Tuple

import numpy as np
from scipy import sparse as sp

from ._base import MatrixKind, MatrixReader
from scqc.core.error import ScqcError

logger = logging.getLogger("scqc.matrix")

__all__ = ['SparseReader']


class SparseReader(MatrixReader):
    """
    Reader over a scipy sparse matrix or sparse array.

    Attributes:
        csr: The CSR matrix used for reads. Shares data with the input
            when the input already is CSR.

    Example:
        >>> import scipy.sparse as sp
        >>> reader = SparseReader(sp.csr_matrix([[1, 0, 2], [0, 3, 0]]))
        >>> reader.get_row_nonzero(0)
        (array([0, 2], dtype=int32), array([1., 2.]))
    """

    def __init__(self, mat):
        if not sp.issparse(mat):
            raise ScqcError(
                ScqcError.ERROR_TYPE_ERROR,
                f"expected a scipy sparse matrix, got {type(mat).__name__}",
            )
        if len(mat.shape) != 2:
            raise ScqcError(
                ScqcError.ERROR_DIMENSION_MISMATCH,
                f"expected a 2-dimensional matrix, got shape {mat.shape}",
            )
        MatrixKind.from_dtype(mat.dtype)

        if mat.format != "csr":
            logger.debug("converting %s input to CSR for row access", mat.format)
        # Always a csr_matrix so indexing semantics do not depend on the
        # sparse-array vs sparse-matrix flavour of the input.
        self._csr = sp.csr_matrix(mat)
        if not self._csr.has_canonical_format:
            self._csr = self._csr.copy()
            self._csr.sum_duplicates()

    @property
    def shape(self) -> Tuple[int, int]:
        return self._csr.shape

    @property
    def dtype(self) -> np.dtype:
        return self._csr.dtype

    @property
    def is_sparse(self) -> bool:
        return True

    @property
    def csr(self) -> sp.csr_matrix:
        return self._csr

    @property
    def nnz(self) -> int:
        return self._csr.nnz

    def get_row_nonzero(self, i: int) -> Tuple[np.ndarray, np.ndarray]:
        """
        Stored entries of row ``i``.

        Returns:
            (indices, values): column indices and float64 values.
        """
        self._check_row(i)
        start, end = self._csr.indptr[i], self._csr.indptr[i + 1]
        return (
            self._csr.indices[start:end].copy(),
            np.array(self._csr.data[start:end], dtype=np.float64),
        )

    def _read_rows(self, start: int, stop: int) -> np.ndarray:
        return self._csr[start:stop].toarray().astype(np.float64, copy=False)

    def iter_sparse_blocks(self, block_size=None) -> Iterator[Tuple[int, sp.csr_matrix]]:
        for start, stop in self._block_ranges(block_size):
            yield start, self._csr[start:stop]

    def get_col(self, j: int) -> np.ndarray:
        self._check_col(j)
        return self._csr[:, [j]].toarray().ravel().astype(np.float64, copy=False)

    def select_columns(self, subset: np.ndarray) -> sp.csr_matrix:
        """CSR matrix of the given feature indices, in the given order."""
        if subset.size == self.n_features and np.array_equal(
            subset, np.arange(self.n_features)
        ):
            return self._csr
        return sp.csr_matrix(self._csr[:, subset])

    def row_sums(self, subset=None) -> np.ndarray:
        mat = self._csr if subset is None else self.select_columns(subset)
        return np.asarray(mat.sum(axis=1, dtype=np.float64)).ravel()

    def col_sums(self) -> np.ndarray:
        return np.asarray(self._csr.sum(axis=0, dtype=np.float64)).ravel()

    def row_nnz(self, subset=None) -> np.ndarray:
        mat = self._csr if subset is None else self.select_columns(subset)
        # Explicitly stored zeros are not counted.
        nonzero = mat.data != 0
        cum = np.concatenate(([0], np.cumsum(nonzero, dtype=np.int64)))
        return cum[mat.indptr[1:]] - cum[mat.indptr[:-1]]

    def col_nnz(self) -> np.ndarray:
        nonzero = self._csr.data != 0
        return np.bincount(
            self._csr.indices[nonzero], minlength=self.n_features
        ).astype(np.int64)

    def to_dense(self) -> np.ndarray:
        return self._csr.toarray().astype(np.float64, copy=False)
