"""
Tests for configuration, errors and input normalization.
"""

import pytest
import numpy as np
import scipy.sparse as sp

import scqc
from scqc.core.config import DEFAULT_BLOCK_SIZE, RealType, get_config
from scqc.core.error import (
    ScqcError,
    check_arg,
    error_message,
    require_module,
)
from scqc._typing import (
    ensure_index_vector,
    ensure_subset,
    ensure_vector,
    get_format,
)
from conftest import assert_array_equal


# =============================================================================
# Configuration
# =============================================================================

class TestPrecision:
    """Test precision settings."""

    def test_default(self):
        assert scqc.get_precision() == RealType.FLOAT64

    @pytest.mark.parametrize("value,expected", [
        ("f32", RealType.FLOAT32),
        ("float32", RealType.FLOAT32),
        ("single", RealType.FLOAT32),
        ("F64", RealType.FLOAT64),
        ("double", RealType.FLOAT64),
        (RealType.FLOAT32, RealType.FLOAT32),
    ])
    def test_set_precision(self, value, expected):
        scqc.set_precision(value)
        assert scqc.get_precision() == expected

    def test_numpy_dtype(self):
        assert RealType.FLOAT32.numpy_dtype == np.float32
        assert RealType.FLOAT64.numpy_dtype == np.float64

    def test_unknown_precision(self):
        with pytest.raises(ScqcError) as info:
            scqc.set_precision("f16")
        assert info.value.code == ScqcError.ERROR_INVALID_ARGUMENT


class TestBlockSize:
    """Test block size settings."""

    def test_default(self):
        assert scqc.get_block_size() == DEFAULT_BLOCK_SIZE

    def test_set(self):
        scqc.set_block_size(16)
        assert scqc.get_block_size() == 16

    @pytest.mark.parametrize("value", [0, -3, "many"])
    def test_invalid(self, value):
        with pytest.raises(ScqcError):
            scqc.set_block_size(value)

    def test_reset(self):
        scqc.set_block_size(3)
        scqc.set_precision("f32")
        get_config().reset()
        assert scqc.get_block_size() == DEFAULT_BLOCK_SIZE
        assert scqc.get_precision() == RealType.FLOAT64


class TestEnvironment:
    """Test SCQC_* environment overrides."""

    def test_load(self):
        get_config().load_environment({"SCQC_PRECISION": "f32", "SCQC_BLOCK_SIZE": "64"})
        assert scqc.get_precision() == RealType.FLOAT32
        assert scqc.get_block_size() == 64

    def test_empty_values_ignored(self):
        get_config().load_environment({"SCQC_PRECISION": "", "SCQC_BLOCK_SIZE": ""})
        assert scqc.get_precision() == RealType.FLOAT64
        assert scqc.get_block_size() == DEFAULT_BLOCK_SIZE

    def test_invalid_value(self):
        with pytest.raises(ScqcError):
            get_config().load_environment({"SCQC_BLOCK_SIZE": "zero"})


# =============================================================================
# Errors
# =============================================================================

class TestScqcError:
    """Test error codes and helpers."""

    def test_default_message(self):
        err = ScqcError(ScqcError.ERROR_DOMAIN_ERROR)
        assert err.code == 12
        assert err.message == "Domain error"
        assert str(err) == "scqc error 12: Domain error"

    def test_custom_message(self):
        err = ScqcError(ScqcError.ERROR_INVALID_ARGUMENT, "bad top")
        assert err.message == "bad top"
        assert isinstance(err, Exception)

    def test_from_code(self):
        err = ScqcError.from_code(ScqcError.ERROR_FILE_NOT_FOUND, "counts.h5")
        assert err.code == ScqcError.ERROR_FILE_NOT_FOUND
        assert err.message == "counts.h5: File not found"

    def test_unknown_code(self):
        assert "999" in error_message(999)

    def test_check_arg(self):
        check_arg(True, ScqcError.ERROR_RANGE_ERROR, "unused")
        with pytest.raises(ScqcError) as info:
            check_arg(False, ScqcError.ERROR_RANGE_ERROR, "out of range")
        assert info.value.code == ScqcError.ERROR_RANGE_ERROR

    def test_require_module(self):
        assert require_module("numpy", "test") is np

    def test_require_missing_module(self):
        with pytest.raises(ScqcError) as info:
            require_module("scqc_no_such_module", "extra")
        assert info.value.code == ScqcError.ERROR_FEATURE_UNAVAILABLE
        assert "scqc[extra]" in info.value.message


# =============================================================================
# Input normalization
# =============================================================================

class TestGetFormat:
    """Test matrix format detection."""

    def test_formats(self, qc_counts):
        assert get_format(qc_counts) == "numpy"
        assert get_format(sp.csr_matrix(qc_counts)) == "scipy_csr"
        assert get_format(sp.csc_matrix(qc_counts)) == "scipy_csc"
        assert get_format(sp.coo_matrix(qc_counts)) == "scipy_other"
        assert get_format([[1, 2]]) == "sequence"
        assert get_format("counts.h5") == "path"
        assert get_format(scqc.create_reader(qc_counts)) == "reader"
        assert get_format(3.0) == "unknown"


class TestEnsureVectors:
    """Test vector conversion helpers."""

    def test_ensure_vector(self):
        out = ensure_vector([1, 2, 3], size=3)
        assert out.dtype == np.float64
        assert_array_equal(out, [1, 2, 3])

    def test_ensure_vector_scalar(self):
        assert ensure_vector(2).shape == (1,)

    def test_ensure_vector_2d(self):
        with pytest.raises(ScqcError) as info:
            ensure_vector(np.ones((2, 2)))
        assert info.value.code == ScqcError.ERROR_DIMENSION_MISMATCH

    def test_ensure_vector_non_numeric(self):
        with pytest.raises(ScqcError) as info:
            ensure_vector(["a", "b"])
        assert info.value.code == ScqcError.ERROR_TYPE_ERROR

    def test_ensure_index_vector_integral_floats(self):
        out = ensure_index_vector(np.array([1.0, 3.0]))
        assert out.dtype == np.int64
        assert list(out) == [1, 3]

    def test_ensure_index_vector_strings(self):
        with pytest.raises(ScqcError):
            ensure_index_vector(["x"])

    def test_ensure_subset_none(self):
        assert list(ensure_subset(None, 3)) == [0, 1, 2]

    def test_ensure_subset_mask(self):
        assert list(ensure_subset([True, False, True], 3)) == [0, 2]

    def test_ensure_subset_keeps_order_and_duplicates(self):
        assert list(ensure_subset([2, 0, 2], 3)) == [2, 0, 2]

    def test_ensure_subset_negative(self):
        with pytest.raises(ScqcError) as info:
            ensure_subset([-1], 3)
        assert info.value.code == ScqcError.ERROR_INDEX_OUT_OF_BOUNDS
