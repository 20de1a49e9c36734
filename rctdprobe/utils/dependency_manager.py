"""
rctdprobe Dependency Manager

Dependency detection for the Python stack and the R bridge, plus the
environment/version report printed at the end of every run.
"""

import importlib
import logging
import platform
import sys
from dataclasses import dataclass
from importlib import metadata
from typing import Any, Dict, Optional, Tuple

from .exceptions import DependencyError

logger = logging.getLogger(__name__)


@dataclass
class DependencyInfo:
    """Information about a dependency"""

    name: str
    import_name: str
    install_command: str


class DependencyManager:
    """
    Centralized dependency management:
    - Fail fast: clear error messages for critical deps
    - Degrade gracefully: the R backend is optional
    """

    CRITICAL_DEPS = {
        "numpy": DependencyInfo("numpy", "numpy", "pip install numpy"),
        "pandas": DependencyInfo("pandas", "pandas", "pip install pandas"),
        "scipy": DependencyInfo("scipy", "scipy", "pip install scipy"),
        "anndata": DependencyInfo("anndata", "anndata", "pip install anndata"),
        "scanpy": DependencyInfo("scanpy", "scanpy", "pip install scanpy"),
        "pydantic": DependencyInfo("pydantic", "pydantic", "pip install pydantic"),
        "click": DependencyInfo("click", "click", "pip install click"),
        "rich": DependencyInfo("rich", "rich", "pip install rich"),
        "matplotlib": DependencyInfo(
            "matplotlib", "matplotlib", "pip install matplotlib"
        ),
        "seaborn": DependencyInfo("seaborn", "seaborn", "pip install seaborn"),
    }

    OPTIONAL_DEPS = {
        "rpy2": DependencyInfo(
            "rpy2", "rpy2", "pip install rpy2 (requires R installation)"
        ),
        "anndata2ri": DependencyInfo("anndata2ri", "anndata2ri", "pip install anndata2ri"),
    }

    def __init__(self):
        self._cache: Dict[str, Tuple[bool, Optional[str]]] = {}

    def _get_dependency_info(self, dep_name: str) -> Optional[DependencyInfo]:
        if dep_name in self.CRITICAL_DEPS:
            return self.CRITICAL_DEPS[dep_name]
        return self.OPTIONAL_DEPS.get(dep_name)

    def check_dependency(self, dep_name: str) -> Tuple[bool, Optional[str]]:
        """
        Check if a dependency is importable.

        Returns:
            (is_available, version_or_error)
        """
        if dep_name in self._cache:
            return self._cache[dep_name]

        dep_info = self._get_dependency_info(dep_name)
        import_name = dep_info.import_name if dep_info else dep_name

        try:
            module = importlib.import_module(import_name)
        except ImportError as e:
            result = (False, f"Import failed: {e}")
        else:
            try:
                version = metadata.version(dep_info.name if dep_info else dep_name)
            except metadata.PackageNotFoundError:
                version = getattr(module, "__version__", "unknown")
            result = (True, str(version))

        self._cache[dep_name] = result
        return result

    def require_dependency(self, dep_name: str, feature: Optional[str] = None) -> Any:
        """
        Import and return a dependency, raising DependencyError if missing.
        """
        available, _ = self.check_dependency(dep_name)
        if not available:
            dep_info = self._get_dependency_info(dep_name)
            install_cmd = (
                dep_info.install_command if dep_info else f"pip install {dep_name}"
            )
            raise DependencyError(
                f"Missing dependency '{dep_name}' for feature '{feature or dep_name}'. "
                f"Install with: {install_cmd}"
            )
        dep_info = self._get_dependency_info(dep_name)
        return importlib.import_module(dep_info.import_name if dep_info else dep_name)

    def get_dependency_report(self) -> Dict[str, Any]:
        """Availability and version for every known dependency."""
        report: Dict[str, Any] = {
            "critical_dependencies": {},
            "optional_dependencies": {},
            "missing_critical": [],
            "missing_optional": [],
        }
        for section, deps, missing in (
            ("critical_dependencies", self.CRITICAL_DEPS, "missing_critical"),
            ("optional_dependencies", self.OPTIONAL_DEPS, "missing_optional"),
        ):
            for dep_name in deps:
                available, version_or_error = self.check_dependency(dep_name)
                report[section][dep_name] = {
                    "available": available,
                    "version_or_error": version_or_error,
                }
                if not available:
                    report[missing].append(dep_name)
        return report


# Global instance
dependency_manager = DependencyManager()


def is_available(dep_name: str) -> bool:
    """Convenience function to check if a dependency is available"""
    return dependency_manager.check_dependency(dep_name)[0]


def require(dep_name: str, feature: Optional[str] = None):
    """Convenience function to require a dependency"""
    return dependency_manager.require_dependency(dep_name, feature)


def get_r_environment() -> Dict[str, Optional[str]]:
    """R and spacexr versions, or None for whatever is unreachable."""
    info: Dict[str, Optional[str]] = {"r_version": None, "spacexr_version": None}
    if not is_available("rpy2"):
        return info

    import rpy2.robjects as ro

    try:
        info["r_version"] = str(ro.r("R.version.string")[0])
    except Exception as e:
        logger.debug(f"R is not accessible: {e}")
        return info

    try:
        info["spacexr_version"] = str(
            ro.r('as.character(utils::packageVersion("spacexr"))')[0]
        )
    except Exception as e:
        logger.debug(f"spacexr is not installed: {e}")
    return info


def get_environment_report(include_r: bool = True) -> Dict[str, Any]:
    """Session/version report shown after an experiment."""
    report = {
        "python_version": sys.version.split()[0],
        "platform": platform.platform(),
    }
    report.update(dependency_manager.get_dependency_report())
    if include_r:
        report["r"] = get_r_environment()
    return report


__all__ = [
    "DependencyInfo",
    "DependencyManager",
    "dependency_manager",
    "is_available",
    "require",
    "get_r_environment",
    "get_environment_report",
]
