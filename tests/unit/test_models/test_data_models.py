"""
Test parameter and result models (rctdprobe.models)
"""
import pytest
from pydantic import ValidationError

from rctdprobe.models.data import (
    ComparisonParameters,
    DeconvolutionParameters,
    ExperimentParameters,
    ScenarioParameters,
)


class TestScenarioParameters:
    """Test ScenarioParameters validation"""

    def test_defaults(self):
        params = ScenarioParameters()
        assert params.cell_types == ["typeA", "typeB"]
        assert params.mixtures == [(1, 1), (1, 3), (3, 1), (3, 3)]
        assert params.n_replicates == 2

    def test_labels_must_differ(self):
        with pytest.raises(ValidationError, match="must differ"):
            ScenarioParameters(type_a_label="x", type_b_label="x")

    def test_empty_mixtures(self):
        with pytest.raises(ValidationError):
            ScenarioParameters(mixtures=[])

    def test_zero_cells_rejected(self):
        with pytest.raises(ValidationError):
            ScenarioParameters(mixtures=[(0, 1)])

    def test_coordinate_count(self):
        with pytest.raises(ValidationError, match="coordinates given"):
            ScenarioParameters(coordinates=[(0.0, 0.0)])

    def test_coordinates_distinct(self):
        with pytest.raises(ValidationError, match="distinct"):
            ScenarioParameters(
                mixtures=[(1, 1), (1, 2)], coordinates=[(0.0, 0.0), (0.0, 0.0)]
            )

    def test_replicates_positive(self):
        with pytest.raises(ValidationError):
            ScenarioParameters(n_replicates=0)


class TestDeconvolutionParameters:
    """Test DeconvolutionParameters defaults and bounds"""

    def test_lowered_thresholds(self):
        params = DeconvolutionParameters()
        assert params.method == "rctd"
        assert params.rctd_mode == "full"
        assert params.max_cores == 1
        assert params.rctd_cell_min_instance == 2
        assert params.rctd_umi_min <= 195

    def test_unknown_method(self):
        with pytest.raises(ValidationError):
            DeconvolutionParameters(method="cell2location")

    def test_max_cores_bounds(self):
        with pytest.raises(ValidationError):
            DeconvolutionParameters(max_cores=0)
        with pytest.raises(ValidationError):
            DeconvolutionParameters(max_cores=17)


class TestComparisonParameters:
    """Test ComparisonParameters bounds"""

    def test_defaults(self):
        params = ComparisonParameters()
        assert params.tolerance == 0.05
        assert not params.compare_normalized

    @pytest.mark.parametrize("tolerance", [0.0, 1.0, -0.1])
    def test_tolerance_bounds(self, tolerance):
        with pytest.raises(ValidationError):
            ComparisonParameters(tolerance=tolerance)


def test_experiment_parameters_from_dict():
    params = ExperimentParameters.model_validate(
        {
            "scenario": {"n_replicates": 3},
            "deconvolution": {"method": "nnls"},
            "comparison": {"compare_normalized": True},
        }
    )
    assert params.scenario.n_replicates == 3
    assert params.deconvolution.method == "nnls"
    assert params.comparison.compare_normalized
