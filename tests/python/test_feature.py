"""
Tests for quality control metrics.
"""

import logging

import pytest
import numpy as np
import scipy.sparse as sp

from scqc import ScqcError
from scqc.feature import (
    CellQCMetrics,
    calc_top_features,
    per_cell_qc_metrics,
    per_feature_qc_metrics,
)
from conftest import assert_array_equal


def _reference_top(dense, top, subset=None):
    """Straightforward per-row ranking used to check the kernels."""
    vals = dense if subset is None else dense[:, subset]
    out = np.full((vals.shape[0], len(top)), np.nan)
    for i, row in enumerate(vals):
        total = row.sum()
        if total == 0:
            continue
        ranked = np.sort(row)[::-1]
        for k, t in enumerate(top):
            out[i, k] = 100.0 * ranked[:min(t, ranked.size)].sum() / total
    return out


@pytest.fixture(params=["dense", "csr", "csc"])
def as_format(request):
    def convert(dense):
        if request.param == "dense":
            return dense
        return sp.csr_matrix(dense).asformat(request.param)
    return convert


# =============================================================================
# calc_top_features
# =============================================================================

class TestCalcTopFeatures:
    """Test top-feature percentages."""

    def test_known_values(self, qc_counts, as_format):
        pct = calc_top_features(as_format(qc_counts), top=[1, 2, 3])
        assert pct.shape == (4, 3)
        assert pct.dtype == np.float64
        assert_array_equal(pct[0], [50, 75, 95])
        assert np.all(np.isnan(pct[1]))
        assert_array_equal(pct[2], [20, 40, 60])
        assert_array_equal(pct[3], [70, 100, 100])

    def test_top_above_feature_count(self, qc_counts, as_format):
        pct = calc_top_features(as_format(qc_counts), top=[10])
        assert_array_equal(pct[[0, 2, 3], 0], [100, 100, 100])
        assert np.isnan(pct[1, 0])

    def test_equal_top_values_allowed(self, qc_counts):
        pct = calc_top_features(qc_counts, top=[2, 2])
        assert_array_equal(pct[0], [75, 75])

    def test_subset_indices(self, qc_counts, as_format):
        pct = calc_top_features(as_format(qc_counts), top=[1, 2], subset=[0, 2])
        assert_array_equal(pct[0], [100 * 10 / 15, 100])
        assert_array_equal(pct[2], [50, 100])
        assert np.all(np.isnan(pct[[1, 3]]))

    def test_subset_mask_matches_indices(self, qc_counts):
        mask = np.array([True, False, True, False, False])
        assert_array_equal(
            calc_top_features(qc_counts, [1, 2], subset=mask),
            calc_top_features(qc_counts, [1, 2], subset=[0, 2]),
        )

    def test_empty_subset_gives_nan(self, qc_counts):
        pct = calc_top_features(qc_counts, top=[1], subset=[])
        assert pct.shape == (4, 1)
        assert np.all(np.isnan(pct))

    def test_negative_values(self, as_format):
        mat = np.array([[-1.0, 0.0, 3.0]])
        pct = calc_top_features(as_format(mat), top=[1, 2, 3])
        assert_array_equal(pct[0], [150, 150, 100])

    def test_matches_reference(self, random_counts, as_format):
        top = [1, 5, 10, 50]
        expected = _reference_top(random_counts, top)
        assert_array_equal(calc_top_features(as_format(random_counts), top), expected)

    def test_block_size_does_not_change_result(self, random_counts):
        import scqc

        expected = calc_top_features(random_counts, [3, 7])
        scqc.set_block_size(7)
        assert_array_equal(calc_top_features(random_counts, [3, 7]), expected)

    @pytest.mark.parametrize("block_size", [1, 7, 1000])
    def test_sparse_blocks_match_reference(self, random_counts, block_size):
        import scqc

        dense = random_counts.copy()
        dense[[3, 10, 11, 59]] = 0
        mat = sp.csr_matrix(dense)
        # Explicit zeros must not change the ranking.
        mat.data[::5] = 0
        dense = mat.toarray()
        top = [1, 2, 5, 40]
        scqc.set_block_size(block_size)
        assert_array_equal(calc_top_features(mat, top), _reference_top(dense, top))
        assert_array_equal(
            calc_top_features(mat, top, subset=[39, 0, 7]),
            _reference_top(dense, top, subset=[39, 0, 7]),
        )

    def test_empty_cells_logged(self, qc_counts, caplog):
        with caplog.at_level(logging.WARNING, logger="scqc.qc"):
            calc_top_features(qc_counts, top=[1])
        assert "1 cell(s)" in caplog.text

    def test_no_cells(self):
        pct = calc_top_features(np.zeros((0, 4)), top=[1, 2])
        assert pct.shape == (0, 2)

    @pytest.mark.parametrize("top", [[], [0], [-1, 2], [3, 1]])
    def test_invalid_top(self, qc_counts, top):
        with pytest.raises(ScqcError) as info:
            calc_top_features(qc_counts, top=top)
        assert info.value.code == ScqcError.ERROR_INVALID_ARGUMENT

    def test_invalid_top_messages(self, qc_counts):
        with pytest.raises(ScqcError, match="must be positive"):
            calc_top_features(qc_counts, top=[0, 1])
        with pytest.raises(ScqcError, match="must be sorted"):
            calc_top_features(qc_counts, top=[2, 1])

    def test_fractional_top_rejected(self, qc_counts):
        with pytest.raises(ScqcError) as info:
            calc_top_features(qc_counts, top=[1.5])
        assert info.value.code == ScqcError.ERROR_TYPE_ERROR

    def test_subset_out_of_range(self, qc_counts):
        with pytest.raises(ScqcError) as info:
            calc_top_features(qc_counts, top=[1], subset=[0, 5])
        assert info.value.code == ScqcError.ERROR_INDEX_OUT_OF_BOUNDS

    def test_subset_mask_wrong_length(self, qc_counts):
        with pytest.raises(ScqcError) as info:
            calc_top_features(qc_counts, top=[1], subset=[True, False])
        assert info.value.code == ScqcError.ERROR_DIMENSION_MISMATCH


# =============================================================================
# Per-cell QC
# =============================================================================

class TestPerCellQC:
    """Test per-cell QC metrics."""

    def test_basic_metrics(self, qc_counts, as_format):
        qc = per_cell_qc_metrics(as_format(qc_counts), percent_top=(1, 2, 50))
        assert isinstance(qc, CellQCMetrics)
        assert qc.top == (1, 2)
        assert_array_equal(qc.total, [20, 0, 10, 10])
        assert list(qc.detected) == [4, 0, 5, 2]
        assert_array_equal(qc.percent_top[0], [50, 75])

    def test_percent_top_fallback(self, qc_counts):
        qc = per_cell_qc_metrics(qc_counts, percent_top=(50, 100))
        assert qc.top == (5,)
        assert_array_equal(qc.percent_top[0], [100])

    def test_percent_top_sorted_and_deduplicated(self, qc_counts):
        qc = per_cell_qc_metrics(qc_counts, percent_top=[3, 1, 3])
        assert qc.top == (1, 3)

    def test_subsets(self, qc_counts, as_format):
        qc = per_cell_qc_metrics(
            as_format(qc_counts),
            subsets={"a": [0, 1], "b": np.array([False, False, False, True, True])},
            percent_top=(1,),
        )
        a = qc.subsets["a"]
        assert_array_equal(a.sum, [10, 0, 4, 7])
        assert list(a.detected) == [1, 0, 2, 1]
        assert_array_equal(a.percent[[0, 2, 3]], [50, 40, 70])
        assert np.isnan(a.percent[1])

        b = qc.subsets["b"]
        assert_array_equal(b.sum, [5, 0, 4, 3])

    def test_to_dict_columns(self, qc_counts):
        qc = per_cell_qc_metrics(qc_counts, subsets={"mito": [4]}, percent_top=(1, 2))
        columns = qc.to_dict()
        assert list(columns) == [
            "total",
            "detected",
            "percent_top_1",
            "percent_top_2",
            "subsets_mito_sum",
            "subsets_mito_detected",
            "subsets_mito_percent",
        ]
        assert_array_equal(columns["percent_top_2"], qc.percent_top[:, 1])

    def test_bad_subset(self, qc_counts):
        with pytest.raises(ScqcError, match="mito"):
            per_cell_qc_metrics(qc_counts, subsets={"mito": [9]})


# =============================================================================
# Per-feature QC
# =============================================================================

class TestPerFeatureQC:
    """Test per-feature QC metrics."""

    def test_basic_metrics(self, qc_counts, as_format):
        qc = per_feature_qc_metrics(as_format(qc_counts))
        assert_array_equal(qc.mean, [3, 2.25, 1.75, 1.5, 1.5])
        assert_array_equal(qc.detected, [50, 50, 50, 75, 50])

    def test_to_dict(self, qc_counts):
        columns = per_feature_qc_metrics(qc_counts).to_dict()
        assert set(columns) == {"mean", "detected"}

    def test_no_cells(self):
        qc = per_feature_qc_metrics(np.zeros((0, 2)))
        assert np.all(np.isnan(qc.mean))
        assert np.all(np.isnan(qc.detected))
