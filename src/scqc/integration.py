"""
AnnData Integration

Runs scqc kernels on AnnData objects and stores the results in the
object's annotation frames, the way scanpy's ``pp`` functions do.

    - calculate_qc_metrics: per-cell metrics -> adata.obs,
      per-feature metrics -> adata.var
    - log_normalize: log-normalized values -> adata.layers

anndata is optional; it is only required when these functions are called.

Usage:
    import anndata
    import scqc.integration as sqi

    adata = anndata.read_h5ad("pbmc.h5ad")
    adata.var["mito"] = adata.var_names.str.startswith("MT-")
    sqi.calculate_qc_metrics(adata, subsets={"mito": "mito"})
    sqi.log_normalize(adata)
"""

import importlib.util
import logging
import sys
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from scqc._typing import SubsetInput, VectorInput, ensure_vector
from scqc.core.error import ScqcError, require_module
from scqc.feature.qc import (
    DEFAULT_PERCENT_TOP,
    per_cell_qc_metrics,
    per_feature_qc_metrics,
)
from scqc.matrix import MatrixReader, create_reader
from scqc.preprocessing.normalize import normalize_counts, resolve_size_factors

logger = logging.getLogger("scqc.integration")

__all__ = [
    "is_available",
    "status",
    "calculate_qc_metrics",
    "log_normalize",
]


# =============================================================================
# Availability
# =============================================================================

def _is_library_available(name: str) -> bool:
    """Check if a library is available without importing it."""
    return name in sys.modules or importlib.util.find_spec(name) is not None


def is_available() -> bool:
    """Whether anndata can be imported."""
    return _is_library_available("anndata")


def status() -> Dict[str, bool]:
    """
    Optional dependency status.

    Example:
        >>> import scqc.integration as sqi
        >>> sqi.status()
        {'anndata_available': True, 'h5py_available': True}
    """
    return {
        "anndata_available": _is_library_available("anndata"),
        "h5py_available": _is_library_available("h5py"),
    }


def _check_anndata(adata: Any) -> None:
    anndata = require_module("anndata", "anndata")
    if not isinstance(adata, anndata.AnnData):
        raise ScqcError(
            ScqcError.ERROR_TYPE_ERROR,
            f"expected an AnnData object, got {type(adata).__name__}",
        )


def _reader_for(adata: Any, layer: Optional[str]) -> MatrixReader:
    if layer is None:
        if adata.X is None:
            raise ScqcError(ScqcError.ERROR_INVALID_ARGUMENT, "adata.X is empty")
        return create_reader(adata.X)
    if layer not in adata.layers:
        raise ScqcError(
            ScqcError.ERROR_INVALID_ARGUMENT,
            f"layer '{layer}' not found, available: {list(adata.layers.keys())}",
        )
    return create_reader(adata.layers[layer])


def _resolve_var_subset(adata: Any, name: str, selection: Union[str, SubsetInput]) -> SubsetInput:
    """A ``var`` column name becomes its boolean mask."""
    if not isinstance(selection, str):
        return selection
    if selection not in adata.var.columns:
        raise ScqcError(
            ScqcError.ERROR_INVALID_ARGUMENT,
            f"subset '{name}' refers to missing var column '{selection}'",
        )
    return np.asarray(adata.var[selection], dtype=bool)


# =============================================================================
# QC Metrics
# =============================================================================

def calculate_qc_metrics(
    adata: Any,
    layer: Optional[str] = None,
    subsets: Optional[Mapping[str, Union[str, SubsetInput]]] = None,
    percent_top: Sequence[int] = DEFAULT_PERCENT_TOP,
    inplace: bool = True,
) -> Optional[Tuple[Dict[str, np.ndarray], Dict[str, np.ndarray]]]:
    """
    Compute per-cell and per-feature QC metrics of an AnnData object.

    Args:
        adata: AnnData with counts in ``X`` or in ``layer``.
        layer: Layer to read instead of ``X``.
        subsets: Named feature subsets. Values are either names of boolean
            ``adata.var`` columns or explicit masks / index vectors.
        percent_top: Top-feature counts for the ``percent_top_N`` columns.
        inplace: Write to ``adata.obs`` / ``adata.var`` and return None.
            Otherwise return ``(cell_metrics, feature_metrics)`` dicts.

    Example:
        >>> adata.var["mito"] = adata.var_names.str.startswith("MT-")
        >>> calculate_qc_metrics(adata, subsets={"mito": "mito"})
        >>> adata.obs["subsets_mito_percent"].describe()
    """
    _check_anndata(adata)
    reader = _reader_for(adata, layer)

    resolved = {
        name: _resolve_var_subset(adata, name, selection)
        for name, selection in (subsets or {}).items()
    }
    cell_metrics = per_cell_qc_metrics(reader, subsets=resolved, percent_top=percent_top).to_dict()
    feature_metrics = per_feature_qc_metrics(reader).to_dict()

    if not inplace:
        return cell_metrics, feature_metrics

    for key, values in cell_metrics.items():
        adata.obs[key] = values
    for key, values in feature_metrics.items():
        adata.var[key] = values
    logger.info(
        "added %d obs and %d var QC columns",
        len(cell_metrics), len(feature_metrics),
    )
    return None


# =============================================================================
# Normalization
# =============================================================================

def log_normalize(
    adata: Any,
    layer: Optional[str] = None,
    size_factors: Optional[Union[str, VectorInput]] = None,
    key_added: str = "logcounts",
    pseudo_count: float = 1.0,
    center_size_factors: bool = True,
) -> None:
    """
    Store log-normalized expression values in ``adata.layers[key_added]``.

    The size factors used are written to ``adata.obs["size_factor"]``.

    Args:
        adata: AnnData with counts in ``X`` or in ``layer``.
        layer: Layer to read instead of ``X``.
        size_factors: Name of an ``adata.obs`` column, an explicit vector,
            or None for library size factors.
        key_added: Output layer name.
        pseudo_count: Added before the log2 transform.
        center_size_factors: Rescale size factors to unit mean.

    Example:
        >>> log_normalize(adata)
        >>> adata.layers["logcounts"]
    """
    _check_anndata(adata)
    reader = _reader_for(adata, layer)

    if isinstance(size_factors, str):
        if size_factors not in adata.obs.columns:
            raise ScqcError(
                ScqcError.ERROR_INVALID_ARGUMENT,
                f"obs column '{size_factors}' not found",
            )
        size_factors = ensure_vector(adata.obs[size_factors].to_numpy(), name="size_factors")

    sf = resolve_size_factors(reader, size_factors, center=center_size_factors)
    adata.layers[key_added] = normalize_counts(
        reader,
        size_factors=sf,
        pseudo_count=pseudo_count,
        center_size_factors=False,
    )
    adata.obs["size_factor"] = sf
    logger.info("stored log-normalized values in layers['%s']", key_added)
