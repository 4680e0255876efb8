"""
scqc Type Definitions and Input Normalization.

This module provides type aliases and helper functions for the input
formats accepted by scqc operations:

    - MatrixReader instances (passed through)
    - NumPy arrays (ndarray)
    - SciPy sparse matrices and arrays (CSR, CSC, COO, ...)
    - h5py datasets and groups, or paths to HDF5 files
    - Python sequences (List, Tuple)

Vector-valued arguments (size factors, feature subsets, ``top`` counts)
are normalized to NumPy arrays here so kernels can assume clean input.

Example:
    >>> from scqc._typing import ensure_subset
    >>> ensure_subset([True, False, True], n_features=3)
    array([0, 2])
"""

from __future__ import annotations

import os
from typing import (
    TYPE_CHECKING,
    Any,
    List,
    Optional,
    Sequence,
    Union,
)

import numpy as np

from scqc.core.error import ScqcError

if TYPE_CHECKING:
    from scipy import sparse as sp
    from scqc.matrix import MatrixReader


# =============================================================================
# Type Aliases
# =============================================================================

# Dense array inputs
DenseInput = Union[
    "np.ndarray",
    Sequence[Sequence[float]],
    List[List[float]],
]

# Any matrix accepted by create_reader
MatrixInput = Union[
    "MatrixReader",
    "sp.spmatrix",
    DenseInput,
    str,
    "os.PathLike",
]

# Vector inputs
VectorInput = Union[
    "np.ndarray",
    Sequence[float],
    List[float],
]

# Index vector inputs
IndexInput = Union[
    "np.ndarray",
    Sequence[int],
    List[int],
]

# Feature selection: indices or boolean mask
SubsetInput = Union[
    IndexInput,
    Sequence[bool],
    None,
]


# =============================================================================
# Format Detection
# =============================================================================

def is_reader(obj: Any) -> bool:
    """Check if object is a scqc MatrixReader."""
    from scqc.matrix._base import MatrixReader
    return isinstance(obj, MatrixReader)


def is_scipy_sparse(obj: Any) -> bool:
    """Check if object is any scipy sparse matrix or array."""
    try:
        from scipy import sparse as sp
        return sp.issparse(obj)
    except ImportError:
        return False


def is_numpy_array(obj: Any) -> bool:
    """Check if object is a numpy ndarray."""
    return isinstance(obj, np.ndarray)


def is_h5py_dataset(obj: Any) -> bool:
    """Check if object is an h5py Dataset (without importing h5py)."""
    return type(obj).__module__.startswith("h5py") and type(obj).__name__ == "Dataset"


def is_h5py_group(obj: Any) -> bool:
    """Check if object is an h5py Group or File."""
    return type(obj).__module__.startswith("h5py") and type(obj).__name__ in ("Group", "File")


def get_format(obj: Any) -> str:
    """Detect the format of a matrix input.

    Args:
        obj: Matrix object.

    Returns:
        Format string: 'reader', 'scipy_csr', 'scipy_csc', 'scipy_other',
        'numpy', 'h5py_dataset', 'h5py_group', 'path', 'sequence',
        or 'unknown'.
    """
    if is_reader(obj):
        return "reader"
    elif is_scipy_sparse(obj):
        fmt = getattr(obj, "format", None)
        if fmt == "csr":
            return "scipy_csr"
        elif fmt == "csc":
            return "scipy_csc"
        return "scipy_other"
    elif is_numpy_array(obj):
        return "numpy"
    elif is_h5py_dataset(obj):
        return "h5py_dataset"
    elif is_h5py_group(obj):
        return "h5py_group"
    elif isinstance(obj, (str, os.PathLike)):
        return "path"
    elif isinstance(obj, (list, tuple)):
        return "sequence"
    else:
        return "unknown"


# =============================================================================
# Vector Conversion
# =============================================================================

def ensure_vector(
    vec: VectorInput,
    size: Optional[int] = None,
    name: str = "vector",
) -> np.ndarray:
    """Convert any vector input to a 1-D float64 array.

    Args:
        vec: Input vector in any supported format.
        size: Expected size (for validation).
        name: Argument name used in error messages.

    Returns:
        1-D float64 ndarray.

    Raises:
        ScqcError: If the input is not 1-D or its size doesn't match.
    """
    try:
        result = np.asarray(vec, dtype=np.float64)
    except (TypeError, ValueError) as exc:
        raise ScqcError(
            ScqcError.ERROR_TYPE_ERROR,
            f"{name} must be numeric, got {type(vec).__name__}",
        ) from exc

    if result.ndim == 0:
        result = result.reshape(1)
    if result.ndim != 1:
        raise ScqcError(
            ScqcError.ERROR_DIMENSION_MISMATCH,
            f"{name} must be 1-dimensional, got {result.ndim} dimensions",
        )
    if size is not None and result.size != size:
        raise ScqcError(
            ScqcError.ERROR_DIMENSION_MISMATCH,
            f"length of {name} ({result.size}) != expected {size}",
        )
    return result


def ensure_index_vector(
    vec: IndexInput,
    size: Optional[int] = None,
    name: str = "indices",
) -> np.ndarray:
    """Convert any index input to a 1-D int64 array.

    Float inputs are accepted only when every value is integral.

    Args:
        vec: Input index vector.
        size: Expected size (for validation).
        name: Argument name used in error messages.

    Returns:
        1-D int64 ndarray.
    """
    arr = np.asarray(vec)
    if arr.ndim == 0:
        arr = arr.reshape(1)
    if arr.ndim != 1:
        raise ScqcError(
            ScqcError.ERROR_DIMENSION_MISMATCH,
            f"{name} must be 1-dimensional, got {arr.ndim} dimensions",
        )

    if arr.size == 0:
        result = np.zeros(0, dtype=np.int64)
    elif arr.dtype.kind in ("i", "u"):
        result = arr.astype(np.int64)
    elif arr.dtype.kind == "f":
        if not np.all(np.isfinite(arr)) or not np.all(arr == np.floor(arr)):
            raise ScqcError(
                ScqcError.ERROR_TYPE_ERROR,
                f"{name} must contain integer values",
            )
        result = arr.astype(np.int64)
    else:
        raise ScqcError(
            ScqcError.ERROR_TYPE_ERROR,
            f"{name} must be an integer vector, got dtype {arr.dtype}",
        )

    if size is not None and result.size != size:
        raise ScqcError(
            ScqcError.ERROR_DIMENSION_MISMATCH,
            f"length of {name} ({result.size}) != expected {size}",
        )
    return result


def ensure_subset(
    subset: SubsetInput,
    n_features: int,
    name: str = "subset",
) -> np.ndarray:
    """Resolve a feature selection to 0-based int64 indices.

    Args:
        subset: None (all features), a boolean mask of length n_features,
            or a vector of 0-based indices. Indices keep their given order.
        n_features: Number of features in the matrix.
        name: Argument name used in error messages.

    Returns:
        1-D int64 ndarray of feature indices.

    Raises:
        ScqcError: If a mask has the wrong length or an index is out of range.
    """
    if subset is None:
        return np.arange(n_features, dtype=np.int64)

    arr = np.asarray(subset)
    if arr.dtype == np.bool_:
        if arr.ndim != 1 or arr.size != n_features:
            raise ScqcError(
                ScqcError.ERROR_DIMENSION_MISMATCH,
                f"{name} mask length ({arr.size}) != number of features ({n_features})",
            )
        return np.flatnonzero(arr).astype(np.int64)

    indices = ensure_index_vector(arr, name=name)
    if indices.size and (indices.min() < 0 or indices.max() >= n_features):
        raise ScqcError(
            ScqcError.ERROR_INDEX_OUT_OF_BOUNDS,
            f"{name} indices out of range [0, {n_features})",
        )
    return indices


# =============================================================================
# Exports
# =============================================================================

__all__ = [
    # Type aliases
    "DenseInput",
    "MatrixInput",
    "VectorInput",
    "IndexInput",
    "SubsetInput",
    # Detection functions
    "is_reader",
    "is_scipy_sparse",
    "is_numpy_array",
    "is_h5py_dataset",
    "is_h5py_group",
    "get_format",
    # Conversion functions
    "ensure_vector",
    "ensure_index_vector",
    "ensure_subset",
]
