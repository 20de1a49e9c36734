"""
pytest configuration and global fixtures

This file defines shared fixtures and configuration for all tests.
"""
import matplotlib

matplotlib.use("Agg")

import pytest  # noqa: E402

from rctdprobe.models.data import (  # noqa: E402
    DeconvolutionParameters,
    ExperimentParameters,
    ScenarioParameters,
)


# ========== Pytest Configuration ==========

def pytest_configure(config):
    """Configure pytest markers"""
    config.addinivalue_line("markers", "unit: Unit tests (fast)")
    config.addinivalue_line("markers", "integration: Integration tests (slower)")
    config.addinivalue_line("markers", "slow: Slow tests (>5 seconds)")
    config.addinivalue_line("markers", "requires_r: Tests requiring R and spacexr")


# ========== Scenario Fixtures ==========

@pytest.fixture
def scenario_params():
    """Default four-spot scenario"""
    return ScenarioParameters()


@pytest.fixture
def archetypes(scenario_params):
    """Type A and type B expression vectors"""
    from rctdprobe.tools.synthetic import build_archetypes
    return build_archetypes(scenario_params)


@pytest.fixture
def reference_adata(archetypes, scenario_params):
    """Reference with two replicate cells per type"""
    from rctdprobe.tools.synthetic import build_reference
    return build_reference(*archetypes, scenario_params)


@pytest.fixture
def spatial_adata(archetypes, scenario_params):
    """Four mixed spots"""
    from rctdprobe.tools.synthetic import build_spatial
    return build_spatial(*archetypes, scenario_params)


@pytest.fixture
def scenario(scenario_params):
    """Archetypes plus reference and spatial datasets"""
    from rctdprobe.tools.synthetic import build_scenario
    return build_scenario(scenario_params)


@pytest.fixture
def nnls_params():
    """Deconvolution parameters selecting the NNLS backend"""
    return DeconvolutionParameters(method="nnls")


@pytest.fixture
def nnls_experiment_params():
    """Experiment parameters that run without R"""
    return ExperimentParameters(deconvolution=DeconvolutionParameters(method="nnls"))


# ========== Mock Data Fixtures ==========

@pytest.fixture
def mock_reference_adata():
    """Random reference with three cell types"""
    from tests.fixtures.mock_adata import create_mock_reference_adata
    return create_mock_reference_adata()


@pytest.fixture
def mock_spatial_adata():
    """Random spatial dataset with coordinates"""
    from tests.fixtures.mock_adata import create_mock_spatial_adata
    return create_mock_spatial_adata()


# ========== R Environment ==========

@pytest.fixture(scope="session")
def require_rctd():
    """Skip unless rpy2, anndata2ri, R and spacexr are all usable"""
    from rctdprobe.tools.deconvolution.rctd import is_rctd_available

    available, message = is_rctd_available()
    if not available:
        pytest.skip(f"RCTD not available: {message}")
