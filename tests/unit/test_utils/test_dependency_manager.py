"""
Test dependency detection and the environment report
(rctdprobe.utils.dependency_manager)
"""
import pytest

from rctdprobe.utils.dependency_manager import (
    DependencyManager,
    get_environment_report,
    get_r_environment,
)
from rctdprobe.utils.exceptions import DependencyError


def test_available_dependency():
    manager = DependencyManager()
    available, version = manager.check_dependency("numpy")
    assert available
    assert version


def test_version_from_distribution_metadata():
    from importlib import metadata

    available, version = DependencyManager().check_dependency("click")
    assert available
    assert version == metadata.version("click")


def test_missing_dependency():
    manager = DependencyManager()
    available, message = manager.check_dependency("surely_not_a_real_module_xyz")
    assert not available
    assert "Import failed" in message


def test_results_are_cached():
    manager = DependencyManager()
    manager.check_dependency("pandas")
    assert "pandas" in manager._cache


def test_require_dependency():
    manager = DependencyManager()
    assert manager.require_dependency("numpy").__name__ == "numpy"
    with pytest.raises(DependencyError, match="pip install"):
        manager.require_dependency("surely_not_a_real_module_xyz", "testing")


def test_dependency_report():
    report = DependencyManager().get_dependency_report()
    assert set(report["critical_dependencies"]) >= {"numpy", "anndata", "scanpy"}
    assert set(report["optional_dependencies"]) == {"rpy2", "anndata2ri"}
    assert report["missing_critical"] == []


def test_environment_report_without_r():
    report = get_environment_report(include_r=False)
    assert report["python_version"]
    assert report["platform"]
    assert "r" not in report


def test_r_environment_when_rpy2_missing(monkeypatch):
    monkeypatch.setattr(
        "rctdprobe.utils.dependency_manager.is_available", lambda name: False
    )
    assert get_r_environment() == {"r_version": None, "spacexr_version": None}
