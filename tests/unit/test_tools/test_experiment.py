"""
Test the end-to-end experiment (rctdprobe.tools.experiment)
"""
import json

import numpy as np
import pandas as pd
import pytest

from rctdprobe import ExperimentParameters, run_weight_interpretation
from rctdprobe.models.data import (
    ComparisonParameters,
    DeconvolutionParameters,
    ScenarioParameters,
)
from rctdprobe.tools.deconvolution import rctd as rctd_module
from rctdprobe.utils.exceptions import (
    DataCompatibilityError,
    DependencyError,
    InsufficientReplicatesError,
)
from tests.fixtures.mock_adata import make_stub_deconvolver


class TestNNLSRun:
    """Full run on the baseline backend"""

    def test_verdict_is_rna_proportion(self, nnls_experiment_params):
        result = run_weight_interpretation(nnls_experiment_params)
        assert result.verdict == "rna_proportion"
        assert result.interpretation.skewed_spots == ["spot2", "spot3"]
        assert result.interpretation.skewed_spots_separate

    def test_tables_share_labels(self, nnls_experiment_params):
        result = run_weight_interpretation(nnls_experiment_params)
        for table in (
            result.cell_fraction,
            result.rna_proportion,
            result.normalized_weights,
        ):
            assert list(table.index) == list(result.weights.index)
            assert list(table.columns) == list(result.weights.columns)

    def test_totals(self, nnls_experiment_params):
        result = run_weight_interpretation(nnls_experiment_params)
        assert result.totals.to_dict() == {"typeA": 30.0, "typeB": 165.0}

    def test_no_environment_by_default(self, nnls_experiment_params):
        assert run_weight_interpretation(nnls_experiment_params).environment is None

    def test_environment_attached(self, nnls_experiment_params, monkeypatch):
        monkeypatch.setattr(
            "rctdprobe.tools.experiment.get_environment_report",
            lambda: {"python_version": "3.x"},
        )
        result = run_weight_interpretation(
            nnls_experiment_params, include_environment=True
        )
        assert result.environment == {"python_version": "3.x"}

    def test_custom_cell_type_key(self):
        params = ExperimentParameters(
            deconvolution=DeconvolutionParameters(method="nnls", cell_type_key="label")
        )
        result = run_weight_interpretation(params)
        assert "label" in result.scenario.reference.obs
        assert "cell_type" not in result.scenario.reference.obs
        assert result.totals.to_dict() == {"typeA": 30.0, "typeB": 165.0}
        assert result.verdict == "rna_proportion"

    def test_equal_totals_are_ambiguous(self):
        params = ExperimentParameters(
            scenario=ScenarioParameters(marker_scale=1),
            deconvolution=DeconvolutionParameters(method="nnls"),
        )
        assert run_weight_interpretation(params).verdict == "ambiguous"


class TestStubRuns:
    """Runs with injected deconvolution functions"""

    def test_cell_fraction_stub(self):
        result = run_weight_interpretation(
            deconvolver=make_stub_deconvolver(kind="cell_fraction")
        )
        assert result.verdict == "cell_fraction"
        assert not result.interpretation.skewed_spots_separate

    def test_stub_within_tolerance(self):
        result = run_weight_interpretation(
            deconvolver=make_stub_deconvolver(noise=0.03)
        )
        assert result.verdict == "rna_proportion"

    def test_stub_outside_tolerance(self):
        result = run_weight_interpretation(
            deconvolver=make_stub_deconvolver(noise=0.2)
        )
        assert result.verdict == "inconclusive"

    def test_under_normalized_stub(self):
        stub = make_stub_deconvolver(scale=0.9)
        raw = run_weight_interpretation(deconvolver=stub)
        assert raw.verdict == "inconclusive"
        assert raw.interpretation.normalization.max_deviation == pytest.approx(0.1)

        params = ExperimentParameters(
            comparison=ComparisonParameters(compare_normalized=True)
        )
        normalized = run_weight_interpretation(params, deconvolver=stub)
        assert normalized.verdict == "rna_proportion"

    def test_weights_returned_raw(self):
        result = run_weight_interpretation(deconvolver=make_stub_deconvolver(scale=0.9))
        np.testing.assert_allclose(result.weights.sum(axis=1), 0.9)
        np.testing.assert_allclose(result.normalized_weights.sum(axis=1), 1.0)

    def test_mismatched_labels(self):
        base = make_stub_deconvolver()

        def renamed(spatial, reference, params):
            weights, stats = base(spatial, reference, params)
            return weights.rename(columns={"typeB": "typeC"}), stats

        with pytest.raises(DataCompatibilityError):
            run_weight_interpretation(deconvolver=renamed)

    def test_missing_spot(self):
        base = make_stub_deconvolver()

        def dropped(spatial, reference, params):
            weights, stats = base(spatial, reference, params)
            return weights.iloc[:3], stats

        with pytest.raises(DataCompatibilityError, match="Dimension mismatch"):
            run_weight_interpretation(deconvolver=dropped)


class TestRCTDWithoutR:
    """The RCTD path fails with specific errors before R is needed"""

    def test_single_replicate(self):
        params = ExperimentParameters(scenario=ScenarioParameters(n_replicates=1))
        with pytest.raises(InsufficientReplicatesError):
            run_weight_interpretation(params)

    def test_missing_r(self, monkeypatch):
        monkeypatch.setattr(
            rctd_module, "is_rctd_available", lambda: (False, "R is not accessible")
        )
        with pytest.raises(DependencyError):
            run_weight_interpretation()


def test_summary_is_json_serializable(nnls_experiment_params):
    result = run_weight_interpretation(nnls_experiment_params)
    payload = json.loads(result.summary().model_dump_json())

    assert payload["interpretation"]["verdict"] == "rna_proportion"
    assert payload["archetype_totals"] == {"typeA": 30.0, "typeB": 165.0}
    assert payload["cell_fraction"]["spot3"]["typeA"] == 0.75
    assert payload["rna_proportion"]["spot1"]["typeA"] == pytest.approx(30 / 195)
    assert payload["deconvolution"]["method"] == "NNLS"
    assert set(payload["weights"]) == {"spot1", "spot2", "spot3", "spot4"}


def test_summary_keeps_nan_as_null():
    base = make_stub_deconvolver()

    def with_nan(spatial, reference, params):
        weights, stats = base(spatial, reference, params)
        weights.loc["spot4"] = np.nan
        return weights, stats

    result = run_weight_interpretation(deconvolver=with_nan)
    assert result.verdict == "inconclusive"
    summary = result.summary()
    assert summary.weights["spot4"] == {"typeA": None, "typeB": None}
    assert isinstance(result.weights, pd.DataFrame)
