"""
Matrix Reader Base Classes

This module defines the abstract reader interface through which every scqc
kernel accesses expression matrices. Kernels never touch the storage
backing directly; they read rows, columns or row blocks as dense float64
arrays and let the reader decide how to fetch them.

Type Hierarchy:

    MatrixReader (ABC)
    ├── DenseReader   - in-memory numpy arrays
    ├── SparseReader  - scipy sparse matrices (held as CSR)
    └── HDF5Reader    - dense datasets or CSR/CSC groups on disk (h5py)

Orientation:

    Rows are observations (cells), columns are features (genes).

Example:

    reader = create_reader(counts)
    for start, block in reader.iter_blocks():
        totals = block.sum(axis=1)
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Iterator, Optional, Tuple, Union

import numpy as np
from scipy import sparse as sp

from scqc.core.config import get_block_size
from scqc.core.error import ScqcError, check_arg

__all__ = [
    'MatrixKind',
    'MatrixReader',
]


class MatrixKind(Enum):
    """Value kind of a matrix.

    Attributes:
        INTEGER: Integer or boolean values (raw counts).
        NUMERIC: Floating-point values (normalized or real-valued data).
    """
    INTEGER = 'integer'
    NUMERIC = 'numeric'

    @classmethod
    def from_dtype(cls, dtype) -> "MatrixKind":
        """Classify a numpy dtype."""
        kind = np.dtype(dtype).kind
        if kind in ('i', 'u', 'b'):
            return cls.INTEGER
        if kind == 'f':
            return cls.NUMERIC
        raise ScqcError(
            ScqcError.ERROR_TYPE_ERROR,
            f"unsupported matrix dtype {np.dtype(dtype)}, expected integer or floating values",
        )

    @classmethod
    def parse(cls, value: Union["MatrixKind", str]) -> "MatrixKind":
        if isinstance(value, MatrixKind):
            return value
        try:
            return cls(str(value).lower())
        except ValueError as exc:
            raise ScqcError(
                ScqcError.ERROR_INVALID_ARGUMENT,
                f"unknown matrix kind '{value}', expected 'integer' or 'numeric'",
            ) from exc


class MatrixReader(ABC):
    """
    Abstract base class for all matrix readers.

    Subclasses provide the shape, the dtype and a block read; everything
    else (bounds checking, row/column access, block iteration, reductions)
    is derived here and may be overridden where the backing allows a
    faster path.

    Required (subclasses must implement):
        shape: (n_cells, n_features)
        dtype: numpy dtype of stored values
        _read_rows(start, stop): dense float64 block of rows

    Arrays returned by readers are fresh copies; callers may modify them.
    """

    # =========================================================================
    # Abstract Interface
    # =========================================================================

    @property
    @abstractmethod
    def shape(self) -> Tuple[int, int]:
        """Matrix dimensions (n_cells, n_features)."""
        ...

    @property
    @abstractmethod
    def dtype(self) -> np.dtype:
        """Dtype of the stored values."""
        ...

    @abstractmethod
    def _read_rows(self, start: int, stop: int) -> np.ndarray:
        """Read rows [start, stop) as a dense float64 array. Bounds are pre-checked."""
        ...

    # =========================================================================
    # Derived Properties
    # =========================================================================

    @property
    def n_cells(self) -> int:
        return self.shape[0]

    @property
    def n_features(self) -> int:
        return self.shape[1]

    @property
    def kind(self) -> MatrixKind:
        return MatrixKind.from_dtype(self.dtype)

    @property
    def is_sparse(self) -> bool:
        """Whether the backing stores only non-zero entries."""
        return False

    # =========================================================================
    # Access
    # =========================================================================

    def get_rows(self, start: int, stop: int) -> np.ndarray:
        """Dense float64 block holding rows [start, stop)."""
        n = self.n_cells
        check_arg(
            0 <= start <= stop <= n,
            ScqcError.ERROR_INDEX_OUT_OF_BOUNDS,
            f"row range [{start}, {stop}) out of bounds for {n} rows",
        )
        return self._read_rows(start, stop)

    def get_row(self, i: int, first: int = 0, last: Optional[int] = None) -> np.ndarray:
        """Dense float64 values of row ``i`` for features [first, last)."""
        self._check_row(i)
        first, last = self._check_feature_range(first, last)
        return self._read_rows(i, i + 1)[0, first:last]

    def get_col(self, j: int) -> np.ndarray:
        """Dense float64 values of column ``j`` across all cells."""
        self._check_col(j)
        out = np.empty(self.n_cells, dtype=np.float64)
        for start, block in self.iter_blocks():
            out[start:start + block.shape[0]] = block[:, j]
        return out

    def iter_blocks(self, block_size: Optional[int] = None) -> Iterator[Tuple[int, np.ndarray]]:
        """
        Iterate over row blocks.

        Yields:
            (start, block) where block holds rows [start, start + len(block)).
        """
        for start, stop in self._block_ranges(block_size):
            yield start, self._read_rows(start, stop)

    def iter_sparse_blocks(self, block_size: Optional[int] = None) -> Iterator[Tuple[int, sp.csr_matrix]]:
        """
        Iterate over row blocks as canonical CSR matrices.

        Sparse backings override this to avoid densifying each block.

        Yields:
            (start, block) where block holds rows [start, start + block.shape[0]).
        """
        for start, block in self.iter_blocks(block_size):
            yield start, sp.csr_matrix(block)

    def _block_ranges(self, block_size: Optional[int]) -> Iterator[Tuple[int, int]]:
        if block_size is None:
            block_size = get_block_size()
        check_arg(
            block_size > 0,
            ScqcError.ERROR_INVALID_ARGUMENT,
            f"block_size must be positive, got {block_size}",
        )
        n = self.n_cells
        for start in range(0, n, block_size):
            yield start, min(start + block_size, n)

    # =========================================================================
    # Reductions
    # =========================================================================

    def row_sums(self, subset: Optional[np.ndarray] = None) -> np.ndarray:
        """Per-cell totals, optionally over a subset of feature indices."""
        out = np.zeros(self.n_cells, dtype=np.float64)
        for start, block in self.iter_blocks():
            if subset is not None:
                block = block[:, subset]
            out[start:start + block.shape[0]] = block.sum(axis=1)
        return out

    def col_sums(self) -> np.ndarray:
        """Per-feature totals."""
        out = np.zeros(self.n_features, dtype=np.float64)
        for _, block in self.iter_blocks():
            out += block.sum(axis=0)
        return out

    def row_nnz(self, subset: Optional[np.ndarray] = None) -> np.ndarray:
        """Number of non-zero values per cell, optionally over a feature subset."""
        out = np.zeros(self.n_cells, dtype=np.int64)
        for start, block in self.iter_blocks():
            if subset is not None:
                block = block[:, subset]
            out[start:start + block.shape[0]] = np.count_nonzero(block, axis=1)
        return out

    def col_nnz(self) -> np.ndarray:
        """Number of non-zero values per feature."""
        out = np.zeros(self.n_features, dtype=np.int64)
        for _, block in self.iter_blocks():
            out += np.count_nonzero(block, axis=0)
        return out

    def to_dense(self) -> np.ndarray:
        """Materialize the whole matrix as a dense float64 array."""
        return self._read_rows(0, self.n_cells)

    # =========================================================================
    # Checks
    # =========================================================================

    def _check_row(self, i: int) -> None:
        check_arg(
            0 <= i < self.n_cells,
            ScqcError.ERROR_INDEX_OUT_OF_BOUNDS,
            f"row {i} out of bounds for {self.n_cells} rows",
        )

    def _check_col(self, j: int) -> None:
        check_arg(
            0 <= j < self.n_features,
            ScqcError.ERROR_INDEX_OUT_OF_BOUNDS,
            f"column {j} out of bounds for {self.n_features} columns",
        )

    def _check_feature_range(self, first: int, last: Optional[int]) -> Tuple[int, int]:
        if last is None:
            last = self.n_features
        if not (0 <= first <= last <= self.n_features):
            raise ScqcError(
                ScqcError.ERROR_INDEX_OUT_OF_BOUNDS,
                f"feature range [{first}, {last}) out of bounds for {self.n_features} columns",
            )
        return first, last

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(shape={self.shape}, "
            f"dtype={self.dtype}, kind={self.kind.value})"
        )
