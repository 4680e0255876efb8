"""
Quality Control Metrics for Expression Matrices.

This module provides the per-cell and per-feature quality control metrics
used to flag low-quality cells in single-cell data.

Implemented Metrics:
    - Top-feature dominance: share of each cell's counts held by its N
      most highly expressed features
    - Per-cell QC: total counts, detected features, feature-subset totals
      (e.g. mitochondrial genes)
    - Per-feature QC: mean expression, detection rate

All functions accept any matrix input understood by
``scqc.matrix.create_reader`` (cells x features).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Sequence, Tuple

import numpy as np

from scqc._typing import (
    IndexInput,
    MatrixInput,
    SubsetInput,
    ensure_index_vector,
    ensure_subset,
)
from scqc.core.config import get_block_size
from scqc.core.error import ScqcError
from scqc.matrix import MatrixReader, SparseReader, create_reader

logger = logging.getLogger("scqc.qc")

DEFAULT_PERCENT_TOP = (50, 100, 200, 500)


# =============================================================================
# Top Features
# =============================================================================

def _check_top(top: IndexInput) -> np.ndarray:
    arr = ensure_index_vector(top, name="top")
    if arr.size == 0:
        raise ScqcError(ScqcError.ERROR_INVALID_ARGUMENT, "top must not be empty")
    if arr.min() < 1:
        raise ScqcError(
            ScqcError.ERROR_INVALID_ARGUMENT,
            "numbers of top features must be positive",
        )
    if np.any(np.diff(arr) < 0):
        raise ScqcError(
            ScqcError.ERROR_INVALID_ARGUMENT,
            "numbers of top features must be sorted",
        )
    return arr


def calc_top_features(
    mat: MatrixInput,
    top: IndexInput,
    subset: SubsetInput = None,
) -> np.ndarray:
    """Percentage of each cell's expression held by its top features.

    For every cell, the selected features are ranked by decreasing value
    and the cumulative share of the cell total is reported at each rank
    in ``top``. Highly dominated libraries (a few features taking most of
    the counts) are a typical sign of low-complexity or damaged cells.

    Algorithm:
        For cell c with selected values v (n_sel values):
            total = sum(v)
            ranked = v sorted in decreasing order
            result[c, k] = 100 * sum(ranked[:min(top[k], n_sel)]) / total

    Time Complexity:
        O(n_cells * n_sel * log(max(top))) for dense input.
        O(nnz * log(nnz per row)) for sparse non-negative input.

    Args:
        mat: Expression matrix (cells x features), integer or numeric.
        top: Non-empty, non-decreasing sequence of positive integers.
        subset: Features to consider (0-based indices or boolean mask).
            Only selected features contribute to the ranking and total.

    Returns:
        float64 array of shape (n_cells, len(top)).

    Raises:
        ScqcError: If ``top`` is empty, unsorted or not positive, or if
            ``subset`` is invalid.

    Examples:
        >>> import scqc.feature as feat
        >>> pct = feat.calc_top_features(counts, top=[50, 100, 200, 500])
        >>> dominated = pct[:, 0] > 80

    Notes:
        - A cell whose selected total is zero gets NaN in every column.
        - Values of ``top`` above the number of selected features are
          capped, so they report 100 for any cell with a non-zero total.
    """
    reader = create_reader(mat)
    top_arr = _check_top(top)
    idx = ensure_subset(subset, reader.n_features)

    n_sel = idx.size
    caps = np.minimum(top_arr, n_sel)

    if isinstance(reader, SparseReader) and _is_nonnegative(reader):
        result = _top_features_sparse(reader, caps, idx)
    else:
        result = _top_features_dense(reader, caps, idx)

    n_empty = int(np.count_nonzero(np.isnan(result[:, 0]))) if result.size else 0
    if n_empty:
        logger.warning("%d cell(s) have zero total over the selected features", n_empty)
    return result


def _is_nonnegative(reader: SparseReader) -> bool:
    data = reader.csr.data
    return data.size == 0 or data.min() >= 0


def _percentages(top_sums: np.ndarray, totals: np.ndarray) -> np.ndarray:
    with np.errstate(divide="ignore", invalid="ignore"):
        pct = 100.0 * top_sums / totals[:, None]
    pct[totals == 0] = np.nan
    return pct


def _top_features_dense(reader: MatrixReader, caps: np.ndarray, idx: np.ndarray) -> np.ndarray:
    """Block-wise ranking over densified rows."""
    n_cells = reader.n_cells
    n_sel = idx.size
    kmax = int(caps.max()) if caps.size else 0
    result = np.empty((n_cells, caps.size), dtype=np.float64)

    for start, block in reader.iter_blocks():
        stop = start + block.shape[0]
        vals = block[:, idx]
        totals = vals.sum(axis=1)

        if kmax == 0:
            top_sums = np.zeros((vals.shape[0], caps.size))
        else:
            if kmax < n_sel:
                # Only the kmax largest values are needed.
                vals = -np.partition(-vals, kmax - 1, axis=1)[:, :kmax]
            ranked = -np.sort(-vals, axis=1)
            cum = np.cumsum(ranked, axis=1)
            top_sums = np.where(caps > 0, cum[:, np.maximum(caps, 1) - 1], 0.0)

        result[start:stop] = _percentages(top_sums, totals)

    return result


def _top_features_sparse(reader: SparseReader, caps: np.ndarray, idx: np.ndarray) -> np.ndarray:
    """Ranking over stored entries only; valid for non-negative data.

    Rows are handled one block at a time. Within a block all row segments
    are ranked by a single lexsort on (row, -value), and top sums are read
    off one cumulative sum at each row's offset.
    """
    csr = reader.select_columns(idx)
    n_cells = reader.n_cells
    result = np.empty((n_cells, caps.size), dtype=np.float64)
    block_size = get_block_size()

    for start in range(0, n_cells, block_size):
        stop = min(start + block_size, n_cells)
        ptr = np.asarray(csr.indptr[start:stop + 1], dtype=np.int64)
        lo = ptr[0]
        local = ptr - lo
        counts = np.diff(local)

        vals = np.asarray(csr.data[lo:ptr[-1]], dtype=np.float64)
        rows = np.repeat(np.arange(stop - start), counts)
        ranked = vals[np.lexsort((-vals, rows))]

        cum = np.concatenate(([0.0], np.cumsum(ranked)))
        offsets = cum[local[:-1]]
        totals = cum[local[1:]] - offsets
        # Unstored entries are zeros and add nothing beyond the stored count.
        upto = np.minimum(caps[None, :], counts[:, None])
        top_sums = cum[local[:-1, None] + upto] - offsets[:, None]

        result[start:stop] = _percentages(top_sums, totals)

    return result


# =============================================================================
# Per-Cell QC
# =============================================================================

@dataclass
class SubsetQC:
    """QC metrics of one feature subset, per cell.

    Attributes:
        sum: Total counts over the subset.
        detected: Number of subset features with a non-zero value.
        percent: 100 * sum / cell total (NaN for empty cells).
    """
    sum: np.ndarray
    detected: np.ndarray
    percent: np.ndarray


@dataclass
class CellQCMetrics:
    """Per-cell QC metrics.

    Attributes:
        total: Total counts per cell.
        detected: Number of features with a non-zero value per cell.
        top: Feature counts used for ``percent_top`` columns.
        percent_top: (n_cells, len(top)) percentages from calc_top_features.
        subsets: Metrics per named feature subset.
    """
    total: np.ndarray
    detected: np.ndarray
    top: Tuple[int, ...]
    percent_top: np.ndarray
    subsets: Dict[str, SubsetQC] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, np.ndarray]:
        """Flatten into column name -> per-cell array."""
        out = {
            "total": self.total,
            "detected": self.detected,
        }
        for k, t in enumerate(self.top):
            out[f"percent_top_{t}"] = self.percent_top[:, k]
        for name, metrics in self.subsets.items():
            out[f"subsets_{name}_sum"] = metrics.sum
            out[f"subsets_{name}_detected"] = metrics.detected
            out[f"subsets_{name}_percent"] = metrics.percent
        return out


def _resolve_percent_top(percent_top: Sequence[int], n_features: int) -> Tuple[int, ...]:
    requested = sorted(set(int(t) for t in ensure_index_vector(percent_top, name="percent_top")))
    kept = [t for t in requested if t <= n_features]
    if not kept:
        kept = [max(n_features, 1)]
    if len(kept) < len(requested):
        logger.debug(
            "dropping percent_top values above %d features: %s",
            n_features, [t for t in requested if t > n_features],
        )
    return tuple(kept)


def per_cell_qc_metrics(
    mat: MatrixInput,
    subsets: Optional[Mapping[str, SubsetInput]] = None,
    percent_top: Sequence[int] = DEFAULT_PERCENT_TOP,
) -> CellQCMetrics:
    """Compute per-cell quality control metrics.

    Computed Metrics:
        - total: total counts per cell
        - detected: features with non-zero value per cell
        - percent_top_N: share of counts in the N top features
        - subsets_<name>_{sum,detected,percent}: for each feature subset

    These metrics help identify:
        - Empty droplets (low total)
        - Low-complexity libraries (high percent_top)
        - Damaged cells (high mitochondrial percent)

    Args:
        mat: Raw count matrix (cells x features).
        subsets: Named feature selections, e.g. ``{"mito": mito_mask}``.
        percent_top: Top-feature counts to report. Values above the number
            of features are dropped; if none remain, the number of features
            is used.

    Returns:
        CellQCMetrics.

    Examples:
        >>> qc = per_cell_qc_metrics(counts, subsets={"mito": is_mito})
        >>> keep = (qc.total > 1000) & (qc.subsets["mito"].percent < 10)
    """
    reader = create_reader(mat)
    top = _resolve_percent_top(percent_top, reader.n_features)

    total = reader.row_sums()
    detected = reader.row_nnz()
    pct_top = calc_top_features(reader, top)

    subset_metrics: Dict[str, SubsetQC] = {}
    for name, selection in (subsets or {}).items():
        idx = ensure_subset(selection, reader.n_features, name=f"subsets['{name}']")
        sub_sum = reader.row_sums(idx)
        with np.errstate(divide="ignore", invalid="ignore"):
            percent = 100.0 * sub_sum / total
        percent[total == 0] = np.nan
        subset_metrics[name] = SubsetQC(
            sum=sub_sum,
            detected=reader.row_nnz(idx),
            percent=percent,
        )

    return CellQCMetrics(
        total=total,
        detected=detected,
        top=top,
        percent_top=pct_top,
        subsets=subset_metrics,
    )


# =============================================================================
# Per-Feature QC
# =============================================================================

@dataclass
class FeatureQCMetrics:
    """Per-feature QC metrics.

    Attributes:
        mean: Mean value across all cells.
        detected: Percentage of cells with a non-zero value.
    """
    mean: np.ndarray
    detected: np.ndarray

    def to_dict(self) -> Dict[str, np.ndarray]:
        return {"mean": self.mean, "detected": self.detected}


def per_feature_qc_metrics(mat: MatrixInput) -> FeatureQCMetrics:
    """Compute per-feature mean and detection rate.

    Args:
        mat: Expression matrix (cells x features).

    Returns:
        FeatureQCMetrics. Both fields are NaN when the matrix has no cells.
    """
    reader = create_reader(mat)
    n_cells = reader.n_cells

    with np.errstate(divide="ignore", invalid="ignore"):
        mean = reader.col_sums() / n_cells
        detected = 100.0 * reader.col_nnz() / n_cells

    return FeatureQCMetrics(mean=mean, detected=detected)


# =============================================================================
# Exports
# =============================================================================

__all__ = [
    "DEFAULT_PERCENT_TOP",
    "calc_top_features",
    "per_cell_qc_metrics",
    "per_feature_qc_metrics",
    "CellQCMetrics",
    "FeatureQCMetrics",
    "SubsetQC",
]
