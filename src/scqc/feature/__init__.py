"""
scqc Feature Module.

Quality control metrics computed over cells and features of an
expression matrix.

Submodules:
    - qc: Top-feature dominance, per-cell and per-feature QC metrics

Example:
    >>> import scqc.feature as feat
    >>>
    >>> # Share of counts in each cell's 50 top features
    >>> pct = feat.calc_top_features(counts, top=[50])
    >>>
    >>> # Full per-cell table with a mitochondrial subset
    >>> qc = feat.per_cell_qc_metrics(counts, subsets={"mito": is_mito})
"""

from scqc.feature.qc import (
    DEFAULT_PERCENT_TOP,
    calc_top_features,
    per_cell_qc_metrics,
    per_feature_qc_metrics,
    CellQCMetrics,
    FeatureQCMetrics,
    SubsetQC,
)

__all__ = [
    "DEFAULT_PERCENT_TOP",
    "calc_top_features",
    "per_cell_qc_metrics",
    "per_feature_qc_metrics",
    "CellQCMetrics",
    "FeatureQCMetrics",
    "SubsetQC",
]
