"""
Reader construction.

``create_reader`` turns any supported matrix input into a MatrixReader,
choosing the backend from the input format.
"""

import logging
from typing import Optional, Union

from ._base import MatrixKind, MatrixReader
from ._dense import DenseReader
from ._sparse import SparseReader
from scqc._typing import MatrixInput, get_format
from scqc.core.error import ScqcError

logger = logging.getLogger("scqc.matrix")

__all__ = [
    'create_reader',
    'create_integer_reader',
    'create_numeric_reader',
]


def _is_anndata(obj) -> bool:
    cls = type(obj)
    return cls.__name__ == "AnnData" and cls.__module__.startswith("anndata")


def create_reader(
    obj: MatrixInput,
    kind: Optional[Union[MatrixKind, str]] = None,
    key: Optional[str] = None,
) -> MatrixReader:
    """Create a reader for any supported matrix input.

    Dispatch:
        - MatrixReader: returned as-is
        - scipy sparse: SparseReader
        - numpy array / nested sequence: DenseReader
        - h5py dataset or group, or a path: HDF5Reader (``key`` selects the
          dataset inside a file or group)
        - AnnData: reader over ``adata.X``

    Args:
        obj: Matrix input (cells x features).
        kind: Required value kind ('integer' or 'numeric'). None accepts both.
        key: Dataset name for HDF5 sources.

    Returns:
        MatrixReader over ``obj``.

    Raises:
        ScqcError: ERROR_TYPE_ERROR for unsupported inputs,
            ERROR_TYPE_MISMATCH if the value kind differs from ``kind``.
    """
    fmt = get_format(obj)

    if fmt == "reader":
        reader = obj
    elif fmt in ("scipy_csr", "scipy_csc", "scipy_other"):
        reader = SparseReader(obj)
    elif fmt in ("numpy", "sequence"):
        reader = DenseReader(obj)
    elif fmt in ("h5py_dataset", "h5py_group", "path"):
        from ._hdf5 import HDF5Reader
        reader = HDF5Reader(obj, key=key)
    elif _is_anndata(obj):
        logger.debug("reading AnnData.X")
        return create_reader(obj.X, kind=kind)
    else:
        raise ScqcError(
            ScqcError.ERROR_TYPE_ERROR,
            f"cannot read a matrix from {type(obj).__name__}. "
            f"Supported types: numpy.ndarray, scipy.sparse, h5py, "
            f"MatrixReader, List[List[float]]",
        )

    logger.debug("created %r from %s input", reader, fmt)

    if kind is not None:
        expected = MatrixKind.parse(kind)
        if reader.kind != expected:
            raise ScqcError(
                ScqcError.ERROR_TYPE_MISMATCH,
                f"expected a {expected.value} matrix, got {reader.kind.value} "
                f"values (dtype {reader.dtype})",
            )
    return reader


def create_integer_reader(obj: MatrixInput, key: Optional[str] = None) -> MatrixReader:
    """Create a reader that only accepts integer (count) matrices."""
    return create_reader(obj, kind=MatrixKind.INTEGER, key=key)


def create_numeric_reader(obj: MatrixInput, key: Optional[str] = None) -> MatrixReader:
    """Create a reader that only accepts floating-point matrices."""
    return create_reader(obj, kind=MatrixKind.NUMERIC, key=key)
