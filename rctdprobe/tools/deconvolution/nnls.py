"""
Profile-based NNLS deconvolution.

Each spot's counts are decomposed onto the mean UMI-normalized expression
profile of every reference cell type, the same normalization RCTD uses for
its cell type means. A coefficient is therefore the number of UMIs a cell
type contributes, and the weight is that number divided by the spot nUMI.
"""

import logging
from typing import Any, Dict, Tuple

import anndata as ad
import numpy as np
import pandas as pd
from scipy.optimize import nnls

from ...models.data import DeconvolutionParameters
from .base import (
    PreparedDeconvolutionData,
    create_deconvolution_stats,
    prepare_deconvolution,
    validate_proportions,
)

logger = logging.getLogger(__name__)


def cell_type_profiles(data: PreparedDeconvolutionData) -> pd.DataFrame:
    """Mean of counts / nUMI per cell type, genes x cell types."""
    counts = np.asarray(data.reference.X, dtype=np.float64)
    numi = counts.sum(axis=1, keepdims=True)
    keep = numi[:, 0] > 0
    normalized = counts[keep] / numi[keep]
    labels = data.cell_type_labels().to_numpy()[keep]

    profiles = {
        ct: normalized[labels == ct].mean(axis=0) for ct in data.cell_types
    }
    return pd.DataFrame(profiles, index=data.common_genes)


def deconvolve_nnls(
    spatial_adata: ad.AnnData,
    reference_adata: ad.AnnData,
    params: DeconvolutionParameters,
) -> Tuple[pd.DataFrame, Dict[str, Any]]:
    """Deconvolve spatial spots by non-negative least squares.

    Args:
        spatial_adata: Spatial AnnData with raw counts
        reference_adata: Reference AnnData with raw counts and cell type labels
        params: Deconvolution parameters (cell_type_key, min_common_genes)

    Returns:
        Tuple of (weights DataFrame, statistics dictionary)
    """
    data = prepare_deconvolution(
        spatial_adata,
        reference_adata,
        params.cell_type_key,
        min_common_genes=params.min_common_genes,
    )

    signature = cell_type_profiles(data)
    spot_counts = np.asarray(data.spatial.X, dtype=np.float64)
    spot_numi = spot_counts.sum(axis=1)

    weights = np.full((data.n_spots, data.n_cell_types), np.nan)
    residuals = np.full(data.n_spots, np.nan)
    for i in range(data.n_spots):
        if spot_numi[i] <= 0:
            continue
        coef, residual = nnls(signature.to_numpy(), spot_counts[i])
        weights[i] = coef / spot_numi[i]
        residuals[i] = residual

    proportions = pd.DataFrame(
        weights, index=list(data.spatial.obs_names), columns=data.cell_types
    )
    logger.info(f"NNLS fitted {data.n_spots} spots on {data.n_genes} genes")

    warnings_out = []
    proportions = validate_proportions(proportions, "NNLS", warnings_out)

    stats = create_deconvolution_stats(
        proportions,
        data.common_genes,
        "NNLS",
        residuals={
            spot: float(r) for spot, r in zip(proportions.index, residuals)
        },
        warnings=warnings_out,
    )
    return proportions, stats
