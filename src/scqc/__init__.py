"""
scqc - Single-Cell Quality Control

Expression-matrix kernels for single-cell quality control and
normalization:
- Top-feature dominance per cell (calc_top_features)
- Size-factor normalized, log-transformed expression (calc_exprs)
- Per-cell / per-feature QC tables, library size factors, CPM
- Uniform readers over numpy, scipy.sparse and HDF5 (h5py) matrices
- AnnData integration (optional)

Modules:
- matrix: Matrix readers and reader dispatch
- feature: Quality control metrics
- preprocessing: Normalization
- integration: AnnData adapter

Architecture:
    ┌──────────────────────────────────────────────┐
    │   feature.qc        preprocessing.normalize  │
    ├──────────────────────────────────────────────┤
    │   MatrixReader: Dense | Sparse | HDF5        │
    │   Kind: INTEGER | NUMERIC                    │
    └──────────────────────────────────────────────┘

Example:
    >>> import scqc
    >>> import scipy.sparse as sp
    >>>
    >>> counts = sp.random(100, 2000, density=0.05, format='csr') * 10
    >>> pct = scqc.calc_top_features(counts, top=[50, 100])
    >>>
    >>> sf = scqc.library_size_factors(counts)
    >>> logcounts = scqc.calc_exprs(counts, sf, prior_count=1, log=True)
"""

import logging

__version__ = '0.1.0'

logging.getLogger("scqc").addHandler(logging.NullHandler())

from . import core
from . import matrix
from . import feature
from . import preprocessing

from .core import (
    RealType,
    ScqcError,
    get_config,
    set_precision,
    get_precision,
    set_block_size,
    get_block_size,
)

from .matrix import (
    MatrixKind,
    MatrixReader,
    DenseReader,
    SparseReader,
    HDF5Reader,
    create_reader,
    create_integer_reader,
    create_numeric_reader,
)

from .feature import (
    calc_top_features,
    per_cell_qc_metrics,
    per_feature_qc_metrics,
    CellQCMetrics,
    FeatureQCMetrics,
)

from .preprocessing import (
    calc_exprs,
    library_size_factors,
    normalize_counts,
    calculate_cpm,
    calc_average,
)

__all__ = [
    # Version
    '__version__',

    # Modules
    'core',
    'matrix',
    'feature',
    'preprocessing',

    # Configuration / errors
    'RealType',
    'ScqcError',
    'get_config',
    'set_precision',
    'get_precision',
    'set_block_size',
    'get_block_size',

    # Readers
    'MatrixKind',
    'MatrixReader',
    'DenseReader',
    'SparseReader',
    'HDF5Reader',
    'create_reader',
    'create_integer_reader',
    'create_numeric_reader',

    # QC
    'calc_top_features',
    'per_cell_qc_metrics',
    'per_feature_qc_metrics',
    'CellQCMetrics',
    'FeatureQCMetrics',

    # Normalization
    'calc_exprs',
    'library_size_factors',
    'normalize_counts',
    'calculate_cpm',
    'calc_average',
]
