"""
Tests for AnnData integration.
"""

import pytest
import numpy as np
import scipy.sparse as sp

anndata = pytest.importorskip("anndata")
pd = pytest.importorskip("pandas")

import scqc.integration as sqi
from scqc import ScqcError
from conftest import assert_array_equal


@pytest.fixture
def adata(qc_counts):
    obs = pd.DataFrame(index=[f"cell{i}" for i in range(qc_counts.shape[0])])
    var = pd.DataFrame(
        {"mito": [True, True, False, False, False]},
        index=[f"gene{j}" for j in range(qc_counts.shape[1])],
    )
    return anndata.AnnData(X=sp.csr_matrix(qc_counts.astype(np.float32)), obs=obs, var=var)


@pytest.fixture
def adata_norm(norm_counts):
    return anndata.AnnData(
        X=norm_counts.astype(np.float32),
        obs=pd.DataFrame(index=["c0", "c1", "c2"]),
        var=pd.DataFrame(index=["g0", "g1", "g2"]),
    )


class TestStatus:
    """Test availability helpers."""

    def test_available(self):
        assert sqi.is_available()

    def test_status(self):
        status = sqi.status()
        assert status["anndata_available"] is True
        assert set(status) == {"anndata_available", "h5py_available"}


class TestCalculateQCMetrics:
    """Test QC metrics stored on AnnData."""

    def test_inplace(self, adata):
        assert sqi.calculate_qc_metrics(adata, subsets={"mito": "mito"}, percent_top=(1, 2)) is None
        assert_array_equal(adata.obs["total"], [20, 0, 10, 10])
        assert_array_equal(adata.obs["detected"], [4, 0, 5, 2])
        assert_array_equal(adata.obs["percent_top_1"].iloc[[0, 2, 3]], [50, 20, 70])
        assert_array_equal(adata.obs["subsets_mito_sum"], [10, 0, 4, 7])
        assert np.isnan(adata.obs["subsets_mito_percent"].iloc[1])
        assert_array_equal(adata.var["mean"], [3, 2.25, 1.75, 1.5, 1.5])
        assert_array_equal(adata.var["detected"], [50, 50, 50, 75, 50])

    def test_default_percent_top(self, adata):
        sqi.calculate_qc_metrics(adata)
        assert "percent_top_5" in adata.obs.columns

    def test_not_inplace(self, adata):
        cells, features = sqi.calculate_qc_metrics(
            adata, subsets={"first": [0]}, percent_top=(1,), inplace=False
        )
        assert "total" not in adata.obs.columns
        assert_array_equal(cells["subsets_first_sum"], [10, 0, 2, 0])
        assert set(features) == {"mean", "detected"}

    def test_layer(self, adata, qc_counts):
        adata.layers["doubled"] = qc_counts * 2
        cells, _ = sqi.calculate_qc_metrics(adata, layer="doubled", percent_top=(1,), inplace=False)
        assert_array_equal(cells["total"], [40, 0, 20, 20])

    def test_missing_layer(self, adata):
        with pytest.raises(ScqcError) as info:
            sqi.calculate_qc_metrics(adata, layer="spliced")
        assert info.value.code == ScqcError.ERROR_INVALID_ARGUMENT

    def test_missing_var_column(self, adata):
        with pytest.raises(ScqcError, match="ribo"):
            sqi.calculate_qc_metrics(adata, subsets={"ribo": "ribo"})

    def test_not_anndata(self, qc_counts):
        with pytest.raises(ScqcError) as info:
            sqi.calculate_qc_metrics(qc_counts)
        assert info.value.code == ScqcError.ERROR_TYPE_ERROR


class TestLogNormalize:
    """Test log-normalization stored on AnnData."""

    def test_library_size_factors(self, adata_norm, norm_counts):
        sqi.log_normalize(adata_norm)
        sf = np.array([1, 2 / 3, 4 / 3])
        assert_array_equal(adata_norm.obs["size_factor"], sf)
        assert_array_equal(
            adata_norm.layers["logcounts"], np.log2(norm_counts / sf[:, None] + 1)
        )

    def test_obs_column_size_factors(self, adata_norm):
        adata_norm.obs["sf"] = [2.0, 1.0, 4.0]
        sqi.log_normalize(adata_norm, size_factors="sf", center_size_factors=False,
                          key_added="lognorm")
        log3 = np.log2(3.0)
        assert_array_equal(
            adata_norm.layers["lognorm"], [[1, 0, log3], [1, 2, 0], [0, 0, log3]]
        )

    def test_sparse_stays_sparse(self, adata):
        adata = adata[[0, 2, 3]].copy()
        sqi.log_normalize(adata)
        assert sp.issparse(adata.layers["logcounts"])

    def test_missing_obs_column(self, adata_norm):
        with pytest.raises(ScqcError):
            sqi.log_normalize(adata_norm, size_factors="sf")
