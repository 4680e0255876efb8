"""
scqc Matrix Module.

Uniform read access to expression matrices regardless of how they are
stored. Kernels in ``scqc.feature`` and ``scqc.preprocessing`` accept any
matrix input, wrap it with ``create_reader`` and only use the
``MatrixReader`` interface afterwards.

Readers:
    - DenseReader: numpy arrays and nested sequences
    - SparseReader: scipy sparse matrices/arrays (held as CSR)
    - HDF5Reader: dense datasets or AnnData-encoded sparse groups (h5py)

Example:
    >>> from scqc.matrix import create_reader
    >>> reader = create_reader(counts)
    >>> reader.kind, reader.shape
    (<MatrixKind.INTEGER: 'integer'>, (2700, 32738))
"""

from ._base import MatrixKind, MatrixReader
from ._dense import DenseReader
from ._sparse import SparseReader
from ._hdf5 import HDF5Reader
from ._dispatch import (
    create_reader,
    create_integer_reader,
    create_numeric_reader,
)

__all__ = [
    "MatrixKind",
    "MatrixReader",
    "DenseReader",
    "SparseReader",
    "HDF5Reader",
    "create_reader",
    "create_integer_reader",
    "create_numeric_reader",
]
