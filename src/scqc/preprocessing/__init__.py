"""
scqc Preprocessing Module.

Normalization of raw counts into expression values.

Submodules:
    - normalize: size-factor normalization, log transform, CPM, averages

Typical Preprocessing Pipeline:
    1. Quality control filtering (feature module)
    2. Size factor estimation (this module)
    3. Normalization and log transformation (this module)

Example:
    >>> import scqc.preprocessing as pp
    >>>
    >>> sf = pp.library_size_factors(counts)
    >>> logcounts = pp.calc_exprs(counts, sf, prior_count=1, log=True)
"""

from scqc.preprocessing.normalize import (
    calc_exprs,
    library_size_factors,
    resolve_size_factors,
    normalize_counts,
    calculate_cpm,
    calc_average,
)

__all__ = [
    "calc_exprs",
    "library_size_factors",
    "resolve_size_factors",
    "normalize_counts",
    "calculate_cpm",
    "calc_average",
]
