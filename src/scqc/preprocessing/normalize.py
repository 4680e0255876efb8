"""
Normalized Expression Values.

This module computes size-factor normalized expression values, the
standard way of removing library size effects from single-cell counts.

Implemented Methods:
    - calc_exprs: the general kernel (multiple size-factor sets, optional
      log2 transform, optional per-feature summation)
    - library_size_factors: size factors from per-cell totals
    - normalize_counts: log-normalized expression
    - calculate_cpm: counts per million
    - calc_average: average normalized expression per feature

Orientation:
    Rows are cells, columns are features. Size factors have one entry per
    cell; each feature is normalized by one size-factor set.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence, Union

import numpy as np
from scipy import sparse as sp

from scqc._typing import (
    IndexInput,
    MatrixInput,
    SubsetInput,
    VectorInput,
    ensure_index_vector,
    ensure_subset,
    ensure_vector,
)
from scqc.core.config import _get_real_dtype
from scqc.core.error import ScqcError
from scqc.matrix import MatrixReader, SparseReader, create_reader

logger = logging.getLogger("scqc.normalize")

SizeFactorInput = Union[VectorInput, Sequence[VectorInput], "np.ndarray"]


# =============================================================================
# Argument Checks
# =============================================================================

def _resolve_size_factors(size_factors: SizeFactorInput, n_cells: int) -> np.ndarray:
    """Stack size factors into an (n_sets, n_cells) float64 array."""
    if isinstance(size_factors, np.ndarray):
        if size_factors.ndim == 2:
            sets = [ensure_vector(row, size=n_cells, name="size_factors") for row in size_factors]
        else:
            sets = [ensure_vector(size_factors, size=n_cells, name="size_factors")]
    elif np.isscalar(size_factors):
        sets = [ensure_vector(size_factors, size=n_cells, name="size_factors")]
    else:
        items = list(size_factors)
        if not items and n_cells == 0:
            # No cells: an empty list is one empty vector.
            items = [np.zeros(0)]
        if items and all(np.ndim(item) == 0 for item in items):
            sets = [ensure_vector(items, size=n_cells, name="size_factors")]
        else:
            sets = [
                ensure_vector(item, size=n_cells, name=f"size_factors[{k}]")
                for k, item in enumerate(items)
            ]

    if not sets:
        raise ScqcError(
            ScqcError.ERROR_INVALID_ARGUMENT,
            "at least one set of size factors is required",
        )

    stacked = np.vstack(sets)
    if not np.all(np.isfinite(stacked)) or np.any(stacked <= 0):
        raise ScqcError(
            ScqcError.ERROR_DOMAIN_ERROR,
            "size factors must be finite and positive",
        )
    return stacked


def _resolve_sf_to_use(sf_to_use: Optional[IndexInput], n_features: int, n_sets: int) -> np.ndarray:
    if sf_to_use is None:
        return np.zeros(n_features, dtype=np.int64)

    chosen = ensure_index_vector(sf_to_use, size=n_features, name="sf_to_use")
    if chosen.size and (chosen.min() < 0 or chosen.max() >= n_sets):
        raise ScqcError(
            ScqcError.ERROR_INDEX_OUT_OF_BOUNDS,
            f"sf_to_use values must lie in [0, {n_sets})",
        )
    return chosen


def _check_prior(prior_count: float) -> float:
    try:
        prior = float(prior_count)
    except (TypeError, ValueError) as exc:
        raise ScqcError(
            ScqcError.ERROR_TYPE_ERROR,
            f"prior_count must be a number, got {prior_count!r}",
        ) from exc
    if not np.isfinite(prior) or prior < 0:
        raise ScqcError(
            ScqcError.ERROR_DOMAIN_ERROR,
            f"prior_count must be finite and non-negative, got {prior}",
        )
    return prior


# =============================================================================
# calc_exprs
# =============================================================================

def calc_exprs(
    mat: MatrixInput,
    size_factors: SizeFactorInput,
    sf_to_use: Optional[IndexInput] = None,
    prior_count: float = 1.0,
    log: bool = True,
    sum: bool = False,
    subset: SubsetInput = None,
    preserve_sparse: bool = True,
) -> Union[np.ndarray, sp.csr_matrix]:
    """Compute normalized expression values.

    Each value is divided by the size factor of its cell, offset by a
    prior count and optionally log2-transformed. Features can be
    normalized by different size-factor sets (e.g. spike-in transcripts
    by spike-in size factors, endogenous genes by deconvolution factors).

    Mathematical Definition:
        For cell c and selected feature j with set s = sf_to_use[j]:

            y[c, j] = x[c, j] / size_factors[s][c] + prior_count
            if log:  y[c, j] = log2(y[c, j])

        With sum=True the result is sum over c of y[c, j].

    Sparsity:
        The transform maps zero to zero when (log and prior_count == 1) or
        (not log and prior_count == 0). In those cases a sparse input gives
        a scipy CSR result unless ``preserve_sparse`` is False.

    Args:
        mat: Expression matrix (cells x features).
        size_factors: One size-factor vector (length n_cells), or several
            as a sequence of vectors or a 2-D (n_sets, n_cells) array.
            All values must be finite and positive.
        sf_to_use: Size-factor set per feature (length n_features).
            Defaults to set 0 for every feature.
        prior_count: Non-negative value added after division.
        log: Apply log2.
        sum: Return per-feature sums over cells instead of the matrix.
        subset: Features to compute (0-based indices or boolean mask).
            Output columns follow the subset order.
        preserve_sparse: Keep sparse output where the transform allows.

    Returns:
        (n_cells, n_selected) array or CSR matrix, or, with sum=True, a
        vector of length n_selected. The floating precision follows
        ``scqc.get_precision()``.

    Raises:
        ScqcError: On invalid size factors, sf_to_use, prior_count or subset.

    Examples:
        >>> sf = library_size_factors(counts)
        >>> logcounts = calc_exprs(counts, sf, prior_count=1, log=True)
        >>>
        >>> # Spike-ins normalized separately
        >>> exprs = calc_exprs(counts, [gene_sf, spike_sf], sf_to_use=is_spike.astype(int))
    """
    reader = create_reader(mat)
    n_cells, n_features = reader.shape

    sf_sets = _resolve_size_factors(size_factors, n_cells)
    chosen = _resolve_sf_to_use(sf_to_use, n_features, sf_sets.shape[0])
    prior = _check_prior(prior_count)
    idx = ensure_subset(subset, n_features)
    dtype = _get_real_dtype()

    log = bool(log)
    zero_preserving = (log and prior == 1.0) or (not log and prior == 0.0)
    if log and prior == 0.0:
        logger.warning("log transform with prior_count=0 maps zero values to -inf")

    if isinstance(reader, SparseReader) and (sum or (preserve_sparse and zero_preserving)):
        logger.debug("calc_exprs: sparse path (sum=%s)", sum)
        return _calc_exprs_sparse(
            reader.select_columns(idx), sf_sets, chosen[idx], prior, log, sum, dtype
        )

    if reader.is_sparse and preserve_sparse and zero_preserving and not sum:
        logger.debug("calc_exprs: block-wise sparse path")
        return _calc_exprs_sparse_blocks(reader, sf_sets, chosen[idx], prior, log, idx, dtype)

    logger.debug("calc_exprs: dense path (sum=%s)", sum)
    return _calc_exprs_dense(reader, sf_sets, chosen[idx], prior, log, sum, idx, dtype)


def _transform(values: np.ndarray, divisors, prior: float, log: bool) -> np.ndarray:
    out = values / divisors
    if prior:
        out += prior
    if log:
        with np.errstate(divide="ignore"):
            out = np.log2(out)
    return out


def _calc_exprs_dense(
    reader: MatrixReader,
    sf_sets: np.ndarray,
    set_for: np.ndarray,
    prior: float,
    log: bool,
    do_sum: bool,
    idx: np.ndarray,
    dtype: np.dtype,
) -> np.ndarray:
    n_cells = reader.n_cells
    n_sel = idx.size
    single_set = sf_sets.shape[0] == 1

    if do_sum:
        out = np.zeros(n_sel, dtype=np.float64)
    else:
        out = np.empty((n_cells, n_sel), dtype=dtype)

    for start, block in reader.iter_blocks():
        stop = start + block.shape[0]
        vals = block[:, idx]
        if single_set:
            divisors = sf_sets[0, start:stop, None]
        else:
            divisors = sf_sets[:, start:stop][set_for].T
        vals = _transform(vals, divisors, prior, log)

        if do_sum:
            out += vals.sum(axis=0)
        else:
            out[start:stop] = vals

    if do_sum:
        return out.astype(dtype, copy=False)
    return out


def _calc_exprs_sparse(
    sub: sp.csr_matrix,
    sf_sets: np.ndarray,
    set_for: np.ndarray,
    prior: float,
    log: bool,
    do_sum: bool,
    dtype: np.dtype,
) -> Union[np.ndarray, sp.csr_matrix]:
    """Transform stored entries of ``sub`` only; zeros are accounted for analytically.

    ``sub`` holds the selected columns; ``sf_sets`` covers its rows.
    """
    n_cells, n_sel = sub.shape

    rows = np.repeat(np.arange(n_cells), np.diff(sub.indptr))
    cols = sub.indices
    divisors = sf_sets[set_for[cols], rows]
    vals = _transform(np.asarray(sub.data, dtype=np.float64), divisors, prior, log)

    if not do_sum:
        return sp.csr_matrix(
            (vals.astype(dtype, copy=False), cols.copy(), sub.indptr.copy()),
            shape=(n_cells, n_sel),
        )

    stored_sums = np.bincount(cols, weights=vals, minlength=n_sel)
    n_missing = n_cells - np.bincount(cols, minlength=n_sel)

    # Every unstored entry is zero, which transforms to the same value
    # whatever its size factor.
    zero_value = _transform(np.zeros(1), 1.0, prior, log)[0]
    if zero_value == 0.0:
        totals = stored_sums
    else:
        with np.errstate(invalid="ignore"):
            totals = stored_sums + np.where(n_missing > 0, n_missing * zero_value, 0.0)
    return totals.astype(dtype, copy=False)


def _calc_exprs_sparse_blocks(
    reader: MatrixReader,
    sf_sets: np.ndarray,
    set_for: np.ndarray,
    prior: float,
    log: bool,
    idx: np.ndarray,
    dtype: np.dtype,
) -> sp.csr_matrix:
    """CSR result for sparse backings read one row block at a time."""
    parts = []
    for start, block in reader.iter_sparse_blocks():
        stop = start + block.shape[0]
        parts.append(_calc_exprs_sparse(
            sp.csr_matrix(block[:, idx]), sf_sets[:, start:stop], set_for, prior, log, False, dtype
        ))
    if not parts:
        return sp.csr_matrix((reader.n_cells, idx.size), dtype=dtype)
    return sp.csr_matrix(sp.vstack(parts, format="csr"))


# =============================================================================
# Size Factors
# =============================================================================

def library_size_factors(
    mat: MatrixInput,
    subset: SubsetInput = None,
    center: bool = True,
) -> np.ndarray:
    """Size factors proportional to per-cell library size.

    Args:
        mat: Raw count matrix (cells x features).
        subset: Features whose counts define the library size.
        center: Scale so that the size factors have unit mean.

    Returns:
        float64 vector of length n_cells.

    Raises:
        ScqcError: ERROR_DOMAIN_ERROR if every cell has zero counts,
            whether or not ``center`` is set.

    Notes:
        Cells with zero counts get a size factor of zero and a warning is
        logged; calc_exprs rejects such size factors, so filter those
        cells first.
    """
    reader = create_reader(mat)
    idx = None if subset is None else ensure_subset(subset, reader.n_features)
    lib_sizes = reader.row_sums(idx)

    n_zero = int(np.count_nonzero(lib_sizes == 0))
    if lib_sizes.size and n_zero == lib_sizes.size:
        raise ScqcError(
            ScqcError.ERROR_DOMAIN_ERROR,
            "every cell has zero library size",
        )
    if n_zero:
        logger.warning("%d cell(s) have zero library size", n_zero)

    if not center or lib_sizes.size == 0:
        return lib_sizes
    return _center(lib_sizes)


def _center(size_factors: np.ndarray) -> np.ndarray:
    mean = size_factors.mean() if size_factors.size else 1.0
    if not np.isfinite(mean) or mean <= 0:
        raise ScqcError(
            ScqcError.ERROR_DOMAIN_ERROR,
            "cannot center size factors with a non-positive mean",
        )
    return size_factors / mean


# =============================================================================
# Convenience Wrappers
# =============================================================================

def normalize_counts(
    mat: MatrixInput,
    size_factors: Optional[VectorInput] = None,
    log: bool = True,
    pseudo_count: float = 1.0,
    center_size_factors: bool = True,
    subset: SubsetInput = None,
    preserve_sparse: bool = True,
) -> Union[np.ndarray, sp.csr_matrix]:
    """Log-normalized expression values.

    Args:
        mat: Raw count matrix (cells x features).
        size_factors: Per-cell size factors. Defaults to library size factors.
        log: Apply log2.
        pseudo_count: Added before the log transform.
        center_size_factors: Rescale size factors to unit mean first.
        subset: Features to return.
        preserve_sparse: See calc_exprs.

    Returns:
        Normalized values, as from calc_exprs.

    Example:
        >>> logcounts = normalize_counts(counts)
    """
    reader = create_reader(mat)
    sf = resolve_size_factors(reader, size_factors, center_size_factors)
    return calc_exprs(
        reader,
        sf,
        prior_count=pseudo_count,
        log=log,
        subset=subset,
        preserve_sparse=preserve_sparse,
    )


def resolve_size_factors(
    reader: MatrixReader,
    size_factors: Optional[VectorInput],
    center: bool = True,
) -> np.ndarray:
    """Size factors to use for ``reader``: given ones or library size factors."""
    if size_factors is None:
        return library_size_factors(reader, center=center)
    sf = ensure_vector(size_factors, size=reader.n_cells, name="size_factors")
    return _center(sf) if center else sf


def calculate_cpm(
    mat: MatrixInput,
    subset: SubsetInput = None,
    preserve_sparse: bool = True,
) -> Union[np.ndarray, sp.csr_matrix]:
    """Counts per million.

    Library sizes are taken over all features, so the selected features of
    a cell sum to at most one million.

    Args:
        mat: Raw count matrix (cells x features).
        subset: Features to return.
        preserve_sparse: See calc_exprs.

    Returns:
        CPM values, as from calc_exprs with log=False and prior_count=0.

    Raises:
        ScqcError: ERROR_DOMAIN_ERROR if any cell has a zero library size;
            CPM is undefined for such cells, so filter them first.
    """
    reader = create_reader(mat)
    lib_sizes = library_size_factors(reader, center=False)
    n_empty = int(np.count_nonzero(lib_sizes <= 0))
    if n_empty:
        raise ScqcError(
            ScqcError.ERROR_DOMAIN_ERROR,
            f"{n_empty} cell(s) have zero library size, CPM is undefined for them",
        )
    return calc_exprs(
        reader,
        lib_sizes / 1e6,
        prior_count=0.0,
        log=False,
        subset=subset,
        preserve_sparse=preserve_sparse,
    )


def calc_average(
    mat: MatrixInput,
    size_factors: Optional[VectorInput] = None,
    subset: SubsetInput = None,
) -> np.ndarray:
    """Average normalized expression of each feature across cells.

    Counts are divided by centred size factors (no log, no prior count)
    and averaged over cells.

    Args:
        mat: Raw count matrix (cells x features).
        size_factors: Per-cell size factors. Defaults to library size factors.
        subset: Features to return.

    Returns:
        Vector of length n_selected.

    Raises:
        ScqcError: If the matrix has no cells.
    """
    reader = create_reader(mat)
    if reader.n_cells == 0:
        raise ScqcError(
            ScqcError.ERROR_INVALID_ARGUMENT,
            "cannot average over a matrix with no cells",
        )
    sf = resolve_size_factors(reader, size_factors, center=True)
    sums = calc_exprs(reader, sf, prior_count=0.0, log=False, sum=True, subset=subset)
    return sums / reader.n_cells


# =============================================================================
# Exports
# =============================================================================

__all__ = [
    "calc_exprs",
    "library_size_factors",
    "resolve_size_factors",
    "normalize_counts",
    "calculate_cpm",
    "calc_average",
]
