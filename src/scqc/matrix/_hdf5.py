"""
HDF5 Matrix Reader

Out-of-core reader over matrices stored in HDF5 files with h5py. Two
layouts are understood:

    - A 2-D dense dataset.
    - A group holding a compressed sparse matrix as written by AnnData:
      ``data``, ``indices`` and ``indptr`` datasets plus a ``shape``
      attribute and an ``encoding-type`` of ``csr_matrix`` or
      ``csc_matrix`` (the legacy ``h5sparse_format`` / ``h5sparse_shape``
      attributes are accepted too).

Dense datasets and CSR groups are read lazily, one row block at a time.
CSC groups cannot be sliced by row cheaply and are loaded into memory on
first access.

Example:
    >>> with HDF5Reader("pbmc.h5ad", key="X") as reader:
    ...     totals = reader.row_sums()
"""

import logging
import os
from typing import Any, Iterator, Optional, Tuple

import numpy as np
from scipy import sparse as sp

from ._base import MatrixKind, MatrixReader
from scqc.core.error import ScqcError, require_module

logger = logging.getLogger("scqc.matrix")

__all__ = ['HDF5Reader']


def _decode(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value)


class HDF5Reader(MatrixReader):
    """
    Reader over an HDF5 dataset or sparse group.

    Args:
        source: Path to an HDF5 file, an open ``h5py.File``/``h5py.Group``,
            or an ``h5py.Dataset``.
        key: Name of the dataset or group inside ``source`` when ``source``
            is a file or group. Defaults to ``"X"``.

    When the reader opens the file itself, ``close()`` (or leaving a
    ``with`` block) closes it. Objects passed in open are left open.
    """

    def __init__(self, source, key: Optional[str] = None):
        h5py = require_module("h5py", "hdf5")

        self._file = None
        if isinstance(source, (str, os.PathLike)):
            path = os.fspath(source)
            if not os.path.exists(path):
                raise ScqcError(ScqcError.ERROR_FILE_NOT_FOUND, f"no such file: {path}")
            try:
                self._file = h5py.File(path, "r")
            except OSError as exc:
                raise ScqcError(
                    ScqcError.ERROR_IO_ERROR, f"cannot open {path} as HDF5: {exc}"
                ) from exc
            source = self._file
            logger.debug("opened %s for reading", path)

        if isinstance(source, h5py.Dataset):
            node = source
        elif isinstance(source, h5py.Group):
            name = "X" if key is None else key
            if name not in source:
                self.close()
                raise ScqcError(
                    ScqcError.ERROR_INVALID_ARGUMENT,
                    f"'{name}' not found in HDF5 group {source.name}",
                )
            node = source[name]
        else:
            self.close()
            raise ScqcError(
                ScqcError.ERROR_TYPE_ERROR,
                f"expected an HDF5 path, group or dataset, got {type(source).__name__}",
            )

        self._node = node
        self._csc_cache: Optional[sp.csr_matrix] = None

        if isinstance(node, h5py.Dataset):
            self._layout = "dense"
            if len(node.shape) != 2:
                self.close()
                raise ScqcError(
                    ScqcError.ERROR_DIMENSION_MISMATCH,
                    f"expected a 2-dimensional dataset, got shape {node.shape}",
                )
            self._shape = (int(node.shape[0]), int(node.shape[1]))
            self._dtype = node.dtype
        else:
            try:
                self._layout, self._shape = self._read_sparse_header(node)
            except ScqcError:
                self.close()
                raise
            self._dtype = node["data"].dtype
            self._indptr = np.asarray(node["indptr"][:], dtype=np.int64)

        MatrixKind.from_dtype(self._dtype)

    @staticmethod
    def _read_sparse_header(group) -> Tuple[str, Tuple[int, int]]:
        attrs = group.attrs
        if "encoding-type" in attrs:
            encoding = _decode(attrs["encoding-type"])
            shape = attrs.get("shape")
        elif "h5sparse_format" in attrs:
            encoding = _decode(attrs["h5sparse_format"]) + "_matrix"
            shape = attrs.get("h5sparse_shape")
        else:
            raise ScqcError(
                ScqcError.ERROR_TYPE_ERROR,
                f"HDF5 group {group.name} is not an encoded sparse matrix",
            )

        if encoding not in ("csr_matrix", "csc_matrix"):
            raise ScqcError(
                ScqcError.ERROR_NOT_IMPLEMENTED,
                f"unsupported sparse encoding '{encoding}'",
            )
        for name in ("data", "indices", "indptr"):
            if name not in group:
                raise ScqcError(
                    ScqcError.ERROR_IO_ERROR,
                    f"sparse group {group.name} is missing '{name}'",
                )
        if shape is None or len(shape) != 2:
            raise ScqcError(
                ScqcError.ERROR_IO_ERROR,
                f"sparse group {group.name} has no valid shape attribute",
            )
        return encoding[:3], (int(shape[0]), int(shape[1]))

    # =========================================================================
    # MatrixReader Interface
    # =========================================================================

    @property
    def shape(self) -> Tuple[int, int]:
        return self._shape

    @property
    def dtype(self) -> np.dtype:
        return self._dtype

    @property
    def is_sparse(self) -> bool:
        return self._layout != "dense"

    @property
    def layout(self) -> str:
        """'dense', 'csr' or 'csc'."""
        return self._layout

    def _read_rows(self, start: int, stop: int) -> np.ndarray:
        if stop <= start:
            return np.zeros((0, self.n_features), dtype=np.float64)

        if self._layout == "dense":
            return np.asarray(self._node[start:stop], dtype=np.float64)

        return self._read_csr(start, stop).toarray().astype(np.float64, copy=False)

    def _read_csr(self, start: int, stop: int) -> sp.csr_matrix:
        """Rows [start, stop) of a sparse group as a canonical CSR matrix."""
        if self._layout == "csc":
            block = sp.csr_matrix(self._load_csc()[start:stop])
        else:
            ptr = self._indptr[start:stop + 1]
            lo, hi = int(ptr[0]), int(ptr[-1])
            block = sp.csr_matrix(
                (self._node["data"][lo:hi], self._node["indices"][lo:hi], ptr - lo),
                shape=(stop - start, self.n_features),
            )
        block.sum_duplicates()
        return block

    def iter_sparse_blocks(self, block_size: Optional[int] = None) -> Iterator[Tuple[int, sp.csr_matrix]]:
        if self._layout == "dense":
            yield from super().iter_sparse_blocks(block_size)
            return
        for start, stop in self._block_ranges(block_size):
            yield start, self._read_csr(start, stop)

    def _load_csc(self) -> sp.csr_matrix:
        if self._csc_cache is None:
            logger.debug("loading CSC group %s into memory for row access", self._node.name)
            csc = sp.csc_matrix(
                (self._node["data"][:], self._node["indices"][:], self._indptr),
                shape=self._shape,
            )
            self._csc_cache = csc.tocsr()
        return self._csc_cache

    # =========================================================================
    # Resource Management
    # =========================================================================

    def close(self) -> None:
        """Close the file if this reader opened it."""
        if self._file is not None:
            self._file.close()
            self._file = None
        self._csc_cache = None

    def __enter__(self) -> "HDF5Reader":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __del__(self):
        if getattr(self, "_file", None) is not None:
            self.close()
