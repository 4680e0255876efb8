"""
Pytest configuration and shared fixtures for scqc tests.
"""

import pytest
import numpy as np
from pathlib import Path
import sys

# Add src to path for imports
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root / "src"))

import scipy.sparse as sp

from scqc.core.config import get_config


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture(autouse=True)
def reset_config():
    """Restore default configuration after every test."""
    yield
    get_config().reset()


@pytest.fixture
def qc_counts():
    """Count matrix (4 cells x 5 features) for QC metrics.

    Matrix:
    [[10, 0, 5, 1, 4],   total 20
     [ 0, 0, 0, 0, 0],   empty cell
     [ 2, 2, 2, 2, 2],   total 10
     [ 0, 7, 0, 3, 0]]   total 10
    """
    return np.array([
        [10, 0, 5, 1, 4],
        [0, 0, 0, 0, 0],
        [2, 2, 2, 2, 2],
        [0, 7, 0, 3, 0],
    ], dtype=np.int32)


@pytest.fixture
def qc_counts_csr(qc_counts):
    return sp.csr_matrix(qc_counts)


@pytest.fixture
def norm_counts():
    """Count matrix (3 cells x 3 features) without empty cells.

    Matrix:
    [[2, 0, 4],
     [1, 3, 0],
     [0, 0, 8]]
    """
    return np.array([
        [2, 0, 4],
        [1, 3, 0],
        [0, 0, 8],
    ], dtype=np.int64)


@pytest.fixture
def norm_counts_csr(norm_counts):
    return sp.csr_matrix(norm_counts)


@pytest.fixture
def norm_size_factors():
    return np.array([2.0, 1.0, 4.0])


@pytest.fixture
def random_counts():
    """Random Poisson count matrix (60 cells x 40 features), ~70% zeros."""
    rng = np.random.default_rng(42)
    dense = rng.poisson(0.4, size=(60, 40)).astype(np.float64)
    dense[:, 0] += 1  # no empty cells
    return dense


# =============================================================================
# Helper Functions
# =============================================================================

def assert_array_equal(a1, a2, rtol=1e-7, atol=1e-10):
    """Assert two arrays (dense or sparse) are approximately equal."""
    if sp.issparse(a1):
        a1 = a1.toarray()
    if sp.issparse(a2):
        a2 = a2.toarray()
    np.testing.assert_allclose(np.asarray(a1), np.asarray(a2), rtol=rtol, atol=atol)
