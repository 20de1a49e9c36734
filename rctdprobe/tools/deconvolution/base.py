"""
Base utilities for deconvolution methods.

Design Philosophy:
- Immutable data container (frozen dataclass) for prepared data
- Single function API for the common case
- Every backend is a plain function with the same signature, so callers
  (and tests) can swap one in without touching the comparator
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Tuple

import anndata as ad
import numpy as np
import pandas as pd

from ...models.data import DeconvolutionParameters
from ...utils.adata_utils import (
    COUNTS_LAYER,
    find_common_genes,
    get_counts_matrix,
    validate_adata_basics,
    validate_gene_overlap,
    validate_integer_counts,
    validate_obs_column,
)
from ...utils.exceptions import DataError, ProcessingError

logger = logging.getLogger(__name__)

# (spatial, reference, params) -> (weights spots x cell types, statistics)
DeconvolutionFunction = Callable[
    [ad.AnnData, ad.AnnData, DeconvolutionParameters],
    Tuple[pd.DataFrame, Dict[str, Any]],
]


# =============================================================================
# Immutable Data Container
# =============================================================================


@dataclass(frozen=True)
class PreparedDeconvolutionData:
    """Immutable container for prepared deconvolution data.

    Attributes:
        spatial: Spatial AnnData subset to common genes (raw counts in X)
        reference: Reference AnnData subset to common genes (raw counts in X)
        cell_type_key: Column name for cell types in reference
        cell_types: Cell types in category order
        common_genes: Genes present in both datasets, reference order
    """

    spatial: ad.AnnData
    reference: ad.AnnData
    cell_type_key: str
    cell_types: List[str]
    common_genes: List[str]

    @property
    def n_spots(self) -> int:
        """Number of spatial spots."""
        return self.spatial.n_obs

    @property
    def n_cell_types(self) -> int:
        """Number of cell types."""
        return len(self.cell_types)

    @property
    def n_genes(self) -> int:
        """Number of common genes."""
        return len(self.common_genes)

    def cell_type_labels(self) -> pd.Series:
        """Reference labels as strings, indexed by cell name."""
        return self.reference.obs[self.cell_type_key].astype(str)

    def numi(self, which: str) -> pd.Series:
        """Total counts per observation over the common genes."""
        adata = self.spatial if which == "spatial" else self.reference
        return pd.Series(
            np.asarray(adata.X).sum(axis=1),
            index=adata.obs_names,
            name="nUMI",
        )


# =============================================================================
# Single Entry Point
# =============================================================================


def prepare_deconvolution(
    spatial_adata: ad.AnnData,
    reference_adata: ad.AnnData,
    cell_type_key: str,
    require_int_dtype: bool = False,
    min_common_genes: int = 10,
) -> PreparedDeconvolutionData:
    """Prepare data for deconvolution in a single function call.

    1. Validation of cell type key
    2. Raw count restoration for both datasets
    3. Common gene identification and validation
    4. Subsetting to common genes

    Args:
        spatial_adata: Spatial AnnData (spots x genes)
        reference_adata: Reference AnnData (cells x genes)
        cell_type_key: Column in reference.obs containing cell type labels
        require_int_dtype: Convert to int32 (required for R-based methods)
        min_common_genes: Minimum required gene overlap

    Returns:
        PreparedDeconvolutionData with all fields populated
    """
    validate_adata_basics(spatial_adata)
    validate_adata_basics(reference_adata)
    validate_obs_column(reference_adata, cell_type_key, "Cell type key")

    labels = reference_adata.obs[cell_type_key]
    if isinstance(labels.dtype, pd.CategoricalDtype):
        cell_types = [str(c) for c in labels.cat.categories if (labels == c).any()]
    else:
        cell_types = [str(c) for c in pd.unique(labels)]
    if len(cell_types) < 2:
        raise DataError(
            f"Reference data must have at least 2 cell types, found {len(cell_types)}"
        )

    spatial_prep = _prepare_counts(spatial_adata, "Spatial", require_int_dtype)
    reference_prep = _prepare_counts(reference_adata, "Reference", require_int_dtype)

    common_genes = find_common_genes(spatial_prep.var_names, reference_prep.var_names)
    validate_gene_overlap(
        common_genes,
        spatial_prep.n_vars,
        reference_prep.n_vars,
        min_genes=min_common_genes,
    )
    logger.debug(
        f"Gene matching: {len(common_genes)} common genes "
        f"({len(common_genes) / reference_prep.n_vars * 100:.1f}% of reference)"
    )

    return PreparedDeconvolutionData(
        spatial=spatial_prep[:, common_genes].copy(),
        reference=reference_prep[:, common_genes].copy(),
        cell_type_key=cell_type_key,
        cell_types=cell_types,
        common_genes=common_genes,
    )


def _prepare_counts(
    adata: ad.AnnData,
    label: str,
    require_int_dtype: bool,
) -> ad.AnnData:
    """Copy of adata with validated raw counts in a dense X."""
    source = "counts_layer" if COUNTS_LAYER in adata.layers else "X"
    X = get_counts_matrix(adata)
    validate_integer_counts(X, label)

    adata_copy = adata.copy()
    adata_copy.X = X.astype(np.int32) if require_int_dtype else X.astype(np.float64)

    logger.debug(
        f"{label} data validated: source={source}, "
        f"range=[{int(X.min())}, {int(X.max())}]"
    )
    return adata_copy


# =============================================================================
# Result Validation
# =============================================================================


def validate_proportions(
    proportions: pd.DataFrame,
    method: str,
    warnings_out: List[str],
    max_sum_deviation: float = 0.1,
) -> pd.DataFrame:
    """Validate raw deconvolution output without altering its meaning.

    - NaN means "computation failed" and is kept
    - Negative values indicate an algorithm error and raise
    - Rows are never forced to sum to 1; the original sums go to attrs
    """
    nan_mask = proportions.isna()
    if nan_mask.any().any():
        msg = (
            f"{method} produced {int(nan_mask.sum().sum())} NaN values in "
            f"{int(nan_mask.any(axis=1).sum())} spots. "
            "NaN indicates computation failure, NOT absence of cell types."
        )
        logger.warning(msg)
        warnings_out.append(msg)

    if (proportions < 0).any().any():
        neg_count = int((proportions < 0).sum().sum())
        raise ProcessingError(
            f"{method} error: {neg_count} negative values "
            f"(min: {proportions.min().min():.4f}). Check input data quality."
        )

    row_sums = proportions.sum(axis=1, skipna=True)
    sum_deviation = (row_sums - 1.0).abs()
    if len(sum_deviation) and sum_deviation.max() > max_sum_deviation:
        msg = (
            f"{method} proportions deviate from expected sum of 1.0: "
            f"max deviation {sum_deviation.max():.3f} in "
            f"{int((sum_deviation > max_sum_deviation).sum())} spots."
        )
        logger.warning(msg)
        warnings_out.append(msg)

    proportions.attrs["method"] = method
    proportions.attrs["original_sums"] = row_sums
    proportions.attrs["has_nan"] = bool(nan_mask.any().any())
    return proportions


# =============================================================================
# Statistics Helper
# =============================================================================


def create_deconvolution_stats(
    proportions: pd.DataFrame,
    common_genes: List[str],
    method: str,
    device: str = "CPU",
    **method_specific_params,
) -> Dict[str, Any]:
    """Create standardized statistics dictionary for deconvolution results."""
    cell_types = list(proportions.columns)
    stats = {
        "method": method,
        "device": device,
        "n_spots": len(proportions),
        "n_cell_types": len(cell_types),
        "cell_types": cell_types,
        "genes_used": len(common_genes),
        "mean_proportions": {
            str(k): float(v) for k, v in proportions.mean().items()
        },
        "dominant_types": {
            str(k): int(v)
            for k, v in proportions.dropna(how="all")
            .idxmax(axis=1)
            .value_counts()
            .items()
        },
    }
    stats.update(method_specific_params)
    return stats
