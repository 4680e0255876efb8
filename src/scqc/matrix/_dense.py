"""
Dense Matrix Reader

Reader over an in-memory 2-D numpy array. Nested Python sequences are
converted with ``np.asarray`` first.
"""

from typing import Tuple

import numpy as np

from ._base import MatrixKind, MatrixReader
from scqc.core.error import ScqcError

__all__ = ['DenseReader']


class DenseReader(MatrixReader):
    """
    Reader over a dense 2-D array.

    The source array is referenced, not copied; every read returns a new
    float64 array.

    Example:
        >>> reader = DenseReader([[1, 0, 2], [0, 3, 0]])
        >>> reader.kind
        <MatrixKind.INTEGER: 'integer'>
        >>> reader.get_row(1)
        array([0., 3., 0.])
    """

    def __init__(self, data):
        arr = np.asarray(data)
        if arr.ndim != 2:
            raise ScqcError(
                ScqcError.ERROR_DIMENSION_MISMATCH,
                f"expected a 2-dimensional matrix, got {arr.ndim} dimensions",
            )
        # Validates the dtype early.
        MatrixKind.from_dtype(arr.dtype)
        self._data = arr

    @property
    def shape(self) -> Tuple[int, int]:
        return self._data.shape

    @property
    def dtype(self) -> np.dtype:
        return self._data.dtype

    @property
    def data(self) -> np.ndarray:
        """The wrapped array."""
        return self._data

    def _read_rows(self, start: int, stop: int) -> np.ndarray:
        return np.array(self._data[start:stop], dtype=np.float64)

    def get_row(self, i: int, first: int = 0, last=None) -> np.ndarray:
        self._check_row(i)
        first, last = self._check_feature_range(first, last)
        return np.array(self._data[i, first:last], dtype=np.float64)

    def get_col(self, j: int) -> np.ndarray:
        self._check_col(j)
        return np.array(self._data[:, j], dtype=np.float64)

    def row_sums(self, subset=None) -> np.ndarray:
        data = self._data if subset is None else self._data[:, subset]
        return data.sum(axis=1, dtype=np.float64)

    def col_sums(self) -> np.ndarray:
        return self._data.sum(axis=0, dtype=np.float64)

    def row_nnz(self, subset=None) -> np.ndarray:
        data = self._data if subset is None else self._data[:, subset]
        return np.count_nonzero(data, axis=1).astype(np.int64)

    def col_nnz(self) -> np.ndarray:
        return np.count_nonzero(self._data, axis=0).astype(np.int64)
