"""
Utility functions for rctdprobe.
"""

from .adata_utils import (
    CELL_COUNTS_KEY,
    CELL_TYPE_KEY,
    COUNTS_LAYER,
    NUMI_KEY,
    SPATIAL_KEY,
    find_common_genes,
    get_counts_matrix,
    get_spatial_key,
    row_totals,
    to_dense,
    validate_adata_basics,
    validate_gene_overlap,
    validate_integer_counts,
    validate_obs_column,
)
from .dependency_manager import (
    DependencyInfo,
    DependencyManager,
    get_environment_report,
    is_available,
    require,
)
from .exceptions import (
    DataCompatibilityError,
    DataError,
    DependencyError,
    InsufficientMarkerGenesError,
    InsufficientReplicatesError,
    LowUMIError,
    ParameterError,
    PreconditionError,
    ProcessingError,
    RCTDProbeError,
)
from .output_utils import suppress_output

__all__ = [
    # Exceptions
    "RCTDProbeError",
    "DataError",
    "DataCompatibilityError",
    "PreconditionError",
    "InsufficientReplicatesError",
    "LowUMIError",
    "InsufficientMarkerGenesError",
    "ParameterError",
    "ProcessingError",
    "DependencyError",
    # Output
    "suppress_output",
    # Constants
    "SPATIAL_KEY",
    "CELL_TYPE_KEY",
    "NUMI_KEY",
    "COUNTS_LAYER",
    "CELL_COUNTS_KEY",
    # AnnData helpers
    "get_spatial_key",
    "to_dense",
    "get_counts_matrix",
    "row_totals",
    "find_common_genes",
    "validate_obs_column",
    "validate_adata_basics",
    "validate_gene_overlap",
    "validate_integer_counts",
    # Dependency management
    "DependencyManager",
    "DependencyInfo",
    "require",
    "is_available",
    "get_environment_report",
]
