"""
AnnData utilities for rctdprobe.

This module provides:
1. Standard field name constants
2. Field discovery functions (get_*_key)
3. Data access functions
4. Validation functions (validate_*)

One file for all AnnData-related utilities. No duplication.
"""

from typing import TYPE_CHECKING, List, Optional, Set

import numpy as np
import pandas as pd

if TYPE_CHECKING:
    import anndata as ad

from scipy import sparse

from .exceptions import DataError

# =============================================================================
# Constants: Standard Field Names
# =============================================================================
SPATIAL_KEY = "spatial"
CELL_TYPE_KEY = "cell_type"
NUMI_KEY = "nUMI"
COUNTS_LAYER = "counts"
CELL_COUNTS_KEY = "cell_counts"

# Alternative names for compatibility
ALTERNATIVE_SPATIAL_KEYS: Set[str] = {
    "spatial",
    "X_spatial",
    "coordinates",
    "coords",
    "spatial_coords",
    "positions",
}


# =============================================================================
# Field Discovery: Find keys in AnnData
# =============================================================================
def get_spatial_key(adata: "ad.AnnData") -> Optional[str]:
    """Find spatial coordinate key in adata.obsm."""
    if SPATIAL_KEY in adata.obsm:
        return SPATIAL_KEY
    for key in sorted(ALTERNATIVE_SPATIAL_KEYS):
        if key in adata.obsm:
            return key
    return None


# =============================================================================
# Data Access
# =============================================================================
def to_dense(X) -> np.ndarray:
    """Return a dense ndarray for a sparse or dense matrix."""
    if sparse.issparse(X):
        return X.toarray()
    return np.asarray(X)


def get_counts_matrix(adata: "ad.AnnData") -> np.ndarray:
    """Dense count matrix, preferring layers['counts'] over X."""
    if COUNTS_LAYER in adata.layers:
        return to_dense(adata.layers[COUNTS_LAYER])
    return to_dense(adata.X)


def row_totals(adata: "ad.AnnData") -> pd.Series:
    """Total counts per observation, indexed by obs_names."""
    return pd.Series(
        get_counts_matrix(adata).sum(axis=1),
        index=adata.obs_names,
        name=NUMI_KEY,
    )


def find_common_genes(
    source_genes: pd.Index, target_genes: pd.Index
) -> List[str]:
    """Genes present in both sets, in target (reference) order."""
    source_set = set(source_genes)
    return [g for g in target_genes if g in source_set]


# =============================================================================
# Validation
# =============================================================================
def validate_obs_column(
    adata: "ad.AnnData",
    column: str,
    friendly_name: Optional[str] = None,
) -> None:
    """
    Validate that a column exists in adata.obs.

    Raises:
        DataError: If column not found
    """
    if column not in adata.obs.columns:
        name = friendly_name or f"Column '{column}'"
        available = ", ".join(list(adata.obs.columns)[:10])
        suffix = "..." if len(adata.obs.columns) > 10 else ""
        raise DataError(
            f"{name} not found in adata.obs. Available: {available}{suffix}"
        )


def validate_adata_basics(
    adata: "ad.AnnData",
    min_obs: int = 1,
    min_vars: int = 1,
) -> None:
    """Validate basic AnnData structure."""
    if adata is None:
        raise DataError("AnnData object cannot be None")
    if adata.n_obs < min_obs:
        raise DataError(f"Dataset has {adata.n_obs} observations, need {min_obs}")
    if adata.n_vars < min_vars:
        raise DataError(f"Dataset has {adata.n_vars} variables, need {min_vars}")


def validate_gene_overlap(
    common_genes: List[str],
    source_n_vars: int,
    target_n_vars: int,
    min_genes: int = 10,
    source_name: str = "spatial",
    target_name: str = "reference",
) -> None:
    """Raise DataError when too few genes are shared between two datasets."""
    if len(common_genes) < min_genes:
        raise DataError(
            f"Insufficient common genes: {len(common_genes)} < {min_genes} required. "
            f"{target_name.capitalize()}: {target_n_vars}, "
            f"{source_name.capitalize()}: {source_n_vars} genes. "
            f"Check gene naming convention match."
        )


def validate_integer_counts(X: np.ndarray, label: str) -> None:
    """Raise DataError unless X holds non-negative integer counts."""
    if X.size == 0:
        raise DataError(f"{label} data is empty")
    has_negatives = X.min() < 0
    has_decimals = not np.allclose(X, np.round(X), atol=1e-6)
    if has_negatives or has_decimals:
        issue = "negative values" if has_negatives else "decimal values"
        raise DataError(
            f"{label} data is not raw counts: {issue}, "
            f"range [{X.min():.2f}, {X.max():.2f}]. "
            f"Deconvolution requires raw integer counts."
        )

