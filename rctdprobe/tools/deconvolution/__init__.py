"""
Deconvolution backends.

Every backend shares the DeconvolutionFunction signature
``(spatial, reference, params) -> (weights, stats)``.
"""

import logging
from typing import Dict, Optional, Tuple

import anndata as ad
import pandas as pd

from ...models.analysis import DeconvolutionResult
from ...models.data import DeconvolutionParameters
from ...utils.exceptions import ParameterError
from .base import (
    DeconvolutionFunction,
    PreparedDeconvolutionData,
    create_deconvolution_stats,
    prepare_deconvolution,
    validate_proportions,
)
from .nnls import deconvolve_nnls
from .rctd import deconvolve_rctd, is_rctd_available

logger = logging.getLogger(__name__)

DECONVOLUTION_METHODS: Dict[str, DeconvolutionFunction] = {
    "rctd": deconvolve_rctd,
    "nnls": deconvolve_nnls,
}


def deconvolve_spatial_data(
    spatial_adata: ad.AnnData,
    reference_adata: ad.AnnData,
    params: Optional[DeconvolutionParameters] = None,
    deconvolver: Optional[DeconvolutionFunction] = None,
) -> Tuple[pd.DataFrame, DeconvolutionResult]:
    """Run a deconvolution backend and wrap its statistics.

    Args:
        spatial_adata: Spatial AnnData (spots x genes, raw counts)
        reference_adata: Reference AnnData with cell type labels
        params: Deconvolution parameters; params.method picks the backend
        deconvolver: Explicit backend overriding params.method

    Returns:
        Tuple of (weights DataFrame, DeconvolutionResult)
    """
    params = params or DeconvolutionParameters()

    if deconvolver is None:
        if params.method not in DECONVOLUTION_METHODS:
            raise ParameterError(
                f"Unsupported deconvolution method: {params.method}. "
                f"Supported: {', '.join(DECONVOLUTION_METHODS)}"
            )
        deconvolver = DECONVOLUTION_METHODS[params.method]

    logger.info(f"Deconvolving with {getattr(deconvolver, '__name__', deconvolver)}")
    proportions, stats = deconvolver(spatial_adata, reference_adata, params)

    method = str(stats.get("method", proportions.attrs.get("method", params.method)))
    result = DeconvolutionResult(
        method=method,
        cell_types=[str(c) for c in proportions.columns],
        n_cell_types=proportions.shape[1],
        n_spots=proportions.shape[0],
        statistics=stats,
    )
    return proportions, result


__all__ = [
    "DECONVOLUTION_METHODS",
    "DeconvolutionFunction",
    "PreparedDeconvolutionData",
    "create_deconvolution_stats",
    "deconvolve_nnls",
    "deconvolve_rctd",
    "deconvolve_spatial_data",
    "is_rctd_available",
    "prepare_deconvolution",
    "validate_proportions",
]
