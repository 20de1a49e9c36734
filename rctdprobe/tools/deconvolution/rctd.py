"""
RCTD (spacexr) deconvolution through rpy2.

The algorithm itself stays in R and is called unmodified. This module moves
the data across, lowers the library's minimum-count thresholds so a tiny
synthetic dataset is accepted, and reads back the weight matrix.
"""

import logging
import re
from contextlib import nullcontext
from typing import Any, Dict, Tuple

import anndata as ad
import numpy as np
import pandas as pd
import scipy.sparse as sp

from ...models.data import DeconvolutionParameters
from ...utils.adata_utils import get_spatial_key
from ...utils.dependency_manager import require
from ...utils.exceptions import (
    DependencyError,
    InsufficientMarkerGenesError,
    InsufficientReplicatesError,
    LowUMIError,
    ParameterError,
    ProcessingError,
    RCTDProbeError,
)
from ...utils.output_utils import suppress_output
from .base import (
    PreparedDeconvolutionData,
    create_deconvolution_stats,
    prepare_deconvolution,
    validate_proportions,
)

logger = logging.getLogger(__name__)

# Message patterns of spacexr precondition failures, checked in order
_R_ERROR_PATTERNS = (
    (
        InsufficientReplicatesError,
        re.compile(
            r"CELL_MIN_INSTANCE|minimum of \d+ cells|cells per cell type|"
            r"fewer than \d+ cells",
            re.IGNORECASE,
        ),
    ),
    (
        InsufficientMarkerGenesError,
        re.compile(
            r"get_de_genes|DE genes|differentially expressed|gene_list|"
            r"fewer than \d+ genes",
            re.IGNORECASE,
        ),
    ),
    (
        LowUMIError,
        re.compile(
            r"UMI_min|min_UMI|N_fit of 0|fewer than \d+ pixels", re.IGNORECASE
        ),
    ),
)


def is_rctd_available() -> Tuple[bool, str]:
    """Check if RCTD (spacexr) and its dependencies are available

    Returns:
        Tuple of (is_available, error_message)
    """
    try:
        require("rpy2", "RCTD")
        require("anndata2ri", "RCTD")
    except DependencyError as e:
        return False, str(e)

    import rpy2.robjects as ro
    from rpy2.robjects import pandas2ri
    from rpy2.robjects.conversion import localconverter

    try:
        with localconverter(ro.default_converter + pandas2ri.converter):
            ro.r("R.version.string")
    except Exception as e:
        return False, f"R is not accessible: {str(e)}"

    try:
        with localconverter(ro.default_converter + pandas2ri.converter):
            ro.r("suppressPackageStartupMessages(library(spacexr))")
    except Exception as e:
        return (
            False,
            f"spacexr R package is not installed or failed to load: {str(e)}. "
            "Install with: devtools::install_github('dmcable/spacexr', "
            "build_vignettes = FALSE)",
        )

    return True, ""


def check_rctd_preconditions(
    data: PreparedDeconvolutionData, params: DeconvolutionParameters
) -> None:
    """Apply the library's input thresholds before R is involved.

    Raises:
        InsufficientReplicatesError: A cell type has fewer than
            rctd_cell_min_instance reference cells
        LowUMIError: Too few cells of a type (or no spot) pass the UMI minimum
    """
    labels = data.cell_type_labels()
    reference_numi = data.numi("reference")
    passing = reference_numi >= params.rctd_ref_umi_min

    for cell_type in data.cell_types:
        in_type = labels == cell_type
        n_cells = int(in_type.sum())
        if n_cells < params.rctd_cell_min_instance:
            raise InsufficientReplicatesError(
                f"Reference has {n_cells} cell(s) of type '{cell_type}', "
                f"need at least {params.rctd_cell_min_instance} (CELL_MIN_INSTANCE)"
            )
        n_kept = int((in_type & passing).sum())
        if n_kept < params.rctd_cell_min_instance:
            raise LowUMIError(
                f"Only {n_kept} cell(s) of type '{cell_type}' have nUMI >= "
                f"{params.rctd_ref_umi_min} (min_UMI); need "
                f"{params.rctd_cell_min_instance}"
            )

    spatial_numi = data.numi("spatial")
    if not (spatial_numi >= params.rctd_umi_min).any():
        raise LowUMIError(
            f"No spot reaches UMI_min={params.rctd_umi_min} "
            f"(max spot nUMI {spatial_numi.max():.0f})"
        )


def translate_r_error(error: Exception) -> RCTDProbeError:
    """Map an error raised inside R to the matching precondition error."""
    message = str(error)
    for error_class, pattern in _R_ERROR_PATTERNS:
        if pattern.search(message):
            return error_class(f"RCTD rejected the input: {message}")
    return ProcessingError(f"RCTD deconvolution failed: {message}")


def _optional_rctd_args(params: DeconvolutionParameters) -> str:
    """Extra create.RCTD arguments; unset ones keep the library default."""
    optional = {
        "gene_cutoff": params.rctd_gene_cutoff,
        "fc_cutoff": params.rctd_fc_cutoff,
        "gene_cutoff_reg": params.rctd_gene_cutoff_reg,
        "fc_cutoff_reg": params.rctd_fc_cutoff_reg,
    }
    return "".join(
        f", {name} = {float(value)!r}"
        for name, value in optional.items()
        if value is not None
    )


def _spot_coordinates(spatial_adata: ad.AnnData) -> pd.DataFrame:
    spatial_key = get_spatial_key(spatial_adata)
    if spatial_key:
        return pd.DataFrame(
            np.asarray(spatial_adata.obsm[spatial_key])[:, :2],
            index=spatial_adata.obs_names,
            columns=["x", "y"],
        )
    # Dummy coordinates; RCTD does not use adjacency
    return pd.DataFrame(
        {"x": range(spatial_adata.n_obs), "y": [0] * spatial_adata.n_obs},
        index=spatial_adata.obs_names,
    )


_EXTRACT_FULL = """
weights_matrix <- as.matrix(myRCTD@results$weights)
cell_type_names <- myRCTD@cell_type_info$renorm[[2]]
weights_matrix <- weights_matrix[, cell_type_names, drop = FALSE]
spot_names <- rownames(weights_matrix)
"""

_EXTRACT_DOUBLET = """
weights_doublet <- myRCTD@results$weights_doublet
results_df <- myRCTD@results$results_df
cell_type_names <- myRCTD@cell_type_info$renorm[[2]]
spot_names <- rownames(results_df)
weights_matrix <- matrix(0, nrow = length(spot_names), ncol = length(cell_type_names))
rownames(weights_matrix) <- spot_names
colnames(weights_matrix) <- cell_type_names
for (i in seq_along(spot_names)) {
    spot_class <- as.character(results_df$spot_class[i])
    first_type <- as.character(results_df$first_type[i])
    second_type <- as.character(results_df$second_type[i])
    if (spot_class %in% c("doublet_certain", "doublet_uncertain")) {
        weights_matrix[i, first_type] <- weights_doublet[i, "first_type"]
        if (second_type != first_type) {
            weights_matrix[i, second_type] <- weights_doublet[i, "second_type"]
        }
    } else if (spot_class == "singlet") {
        weights_matrix[i, first_type] <- 1.0
    }
}
"""

_EXTRACT_MULTI = """
results_list <- myRCTD@results
spot_names <- colnames(myRCTD@spatialRNA@counts)
cell_type_names <- myRCTD@cell_type_info$renorm[[2]]
weights_matrix <- matrix(0, nrow = length(spot_names), ncol = length(cell_type_names))
rownames(weights_matrix) <- spot_names
colnames(weights_matrix) <- cell_type_names
for (i in seq_along(spot_names)) {
    spot_result <- results_list[[i]]
    predicted_types <- spot_result$cell_type_list
    for (j in seq_along(predicted_types)) {
        weights_matrix[i, predicted_types[j]] <- spot_result$sub_weights[j]
    }
}
"""

_EXTRACTORS = {
    "full": _EXTRACT_FULL,
    "doublet": _EXTRACT_DOUBLET,
    "multi": _EXTRACT_MULTI,
}


def deconvolve_rctd(
    spatial_adata: ad.AnnData,
    reference_adata: ad.AnnData,
    params: DeconvolutionParameters,
) -> Tuple[pd.DataFrame, Dict[str, Any]]:
    """Deconvolve spatial data using RCTD (Robust Cell Type Decomposition)

    Args:
        spatial_adata: Spatial AnnData with raw counts
        reference_adata: Reference AnnData with raw counts and cell type labels
        params: Deconvolution parameters. The rctd_* fields override
                create.RCTD / Reference thresholds:
                - rctd_mode: 'full' (any number of types per spot),
                  'doublet' (at most two), 'multi' (greedy, capped)
                - rctd_cell_min_instance: CELL_MIN_INSTANCE
                - rctd_ref_umi_min: Reference(min_UMI)
                - rctd_umi_min / rctd_umi_min_sigma / rctd_counts_min:
                  UMI_min / UMI_min_sigma / counts_MIN

    Returns:
        Tuple of (weights DataFrame, statistics dictionary). Weights are the
        raw RCTD output; rows are not renormalized.

    Raises:
        InsufficientReplicatesError, LowUMIError, InsufficientMarkerGenesError:
            Configuration precondition failures
        DependencyError: If rpy2, anndata2ri or spacexr is not available
        ProcessingError: If RCTD fails for any other reason

    References:
        Cable et al. (2022) Nat. Biotechnol. "Robust decomposition of cell type
        mixtures in spatial transcriptomics"
    """
    mode = params.rctd_mode

    data = prepare_deconvolution(
        spatial_adata,
        reference_adata,
        params.cell_type_key,
        require_int_dtype=True,
        min_common_genes=params.min_common_genes,
    )

    if mode == "multi" and params.rctd_max_multi_types >= data.n_cell_types:
        raise ParameterError(
            f"MAX_MULTI_TYPES ({params.rctd_max_multi_types}) must be less than "
            f"total cell types ({data.n_cell_types})."
        )

    if params.validate_preconditions:
        check_rctd_preconditions(data, params)

    available, error_message = is_rctd_available()
    if not available:
        raise DependencyError(f"RCTD is not available: {error_message}")

    import anndata2ri
    import rpy2.robjects as ro
    import rpy2.robjects.packages as rpackages
    from rpy2.robjects import numpy2ri, pandas2ri
    from rpy2.robjects.conversion import localconverter

    coords = _spot_coordinates(data.spatial)
    cell_types_series = pd.Series(
        data.cell_type_labels().to_numpy(),
        index=data.reference.obs_names,
        name="cell_type",
    )
    spatial_numi = data.numi("spatial").astype(np.float64)
    reference_numi = data.numi("reference").astype(np.float64)

    logger.info(
        f"Running RCTD ({mode} mode): {data.n_spots} spots, "
        f"{data.reference.n_obs} reference cells, {data.n_genes} genes"
    )

    quiet = suppress_output if params.quiet else nullcontext
    try:
        with localconverter(ro.default_converter + pandas2ri.converter):
            rpackages.importr("spacexr")

        # genes x observations, R convention
        with localconverter(ro.default_converter + anndata2ri.converter):
            ro.globalenv["spatial_counts"] = sp.csc_matrix(data.spatial.X.T)
            ro.globalenv["reference_counts"] = sp.csc_matrix(data.reference.X.T)
            ro.globalenv["gene_names"] = ro.StrVector(data.common_genes)
            ro.globalenv["spot_names"] = ro.StrVector(list(data.spatial.obs_names))
            ro.globalenv["cell_names"] = ro.StrVector(list(data.reference.obs_names))
            ro.r(
                """
                rownames(spatial_counts) <- gene_names
                colnames(spatial_counts) <- spot_names
                rownames(reference_counts) <- gene_names
                colnames(reference_counts) <- cell_names
                """
            )

        with localconverter(ro.default_converter + pandas2ri.converter):
            ro.globalenv["coords"] = ro.conversion.py2rpy(coords)
            ro.globalenv["numi_spatial"] = ro.conversion.py2rpy(spatial_numi)
            ro.globalenv["numi_ref"] = ro.conversion.py2rpy(reference_numi)
            ro.globalenv["cell_types_vec"] = ro.conversion.py2rpy(cell_types_series)
            ro.globalenv["max_cores_val"] = params.max_cores
            ro.globalenv["cell_min_val"] = params.rctd_cell_min_instance
            ro.globalenv["ref_umi_min_val"] = params.rctd_ref_umi_min
            ro.globalenv["umi_min_val"] = params.rctd_umi_min
            ro.globalenv["umi_min_sigma_val"] = params.rctd_umi_min_sigma
            ro.globalenv["counts_min_val"] = params.rctd_counts_min
            ro.globalenv["max_multi_types_val"] = params.rctd_max_multi_types
            ro.globalenv["conf_thresh"] = params.rctd_confidence_threshold
            ro.globalenv["doub_thresh"] = params.rctd_doublet_threshold
            ro.globalenv["rctd_mode"] = mode

        with quiet():
            ro.r(
                f"""
                names(numi_spatial) <- spot_names
                names(numi_ref) <- cell_names
                puck <- SpatialRNA(coords, spatial_counts, numi_spatial)

                cell_types_factor <- as.factor(cell_types_vec)
                names(cell_types_factor) <- cell_names
                reference <- Reference(reference_counts, cell_types_factor, numi_ref,
                                       min_UMI = ref_umi_min_val)

                myRCTD <- create.RCTD(puck, reference,
                                      max_cores = max_cores_val,
                                      CELL_MIN_INSTANCE = cell_min_val,
                                      UMI_min = umi_min_val,
                                      UMI_min_sigma = umi_min_sigma_val,
                                      counts_MIN = counts_min_val,
                                      MAX_MULTI_TYPES = max_multi_types_val{_optional_rctd_args(params)})
                myRCTD@config$CONFIDENCE_THRESHOLD <- conf_thresh
                myRCTD@config$DOUBLET_THRESHOLD <- doub_thresh

                myRCTD <- run.RCTD(myRCTD, doublet_mode = rctd_mode)
                """
            )

        with localconverter(
            ro.default_converter + pandas2ri.converter + numpy2ri.converter
        ):
            ro.r(_EXTRACTORS[mode])
            weights_array = np.asarray(
                ro.conversion.rpy2py(ro.r("weights_matrix")), dtype=np.float64
            )
            cell_type_names = [str(c) for c in ro.conversion.rpy2py(ro.r("cell_type_names"))]
            spot_names = [str(s) for s in ro.conversion.rpy2py(ro.r("spot_names"))]
    except RCTDProbeError:
        raise
    except Exception as e:
        raise translate_r_error(e) from e

    proportions = pd.DataFrame(weights_array, index=spot_names, columns=cell_type_names)
    # Keep the reference category order regardless of R's factor order
    proportions = proportions.reindex(columns=data.cell_types)

    warnings_out = []
    proportions = validate_proportions(proportions, f"RCTD-{mode}", warnings_out)

    stats = create_deconvolution_stats(
        proportions,
        data.common_genes,
        f"RCTD-{mode}",
        "CPU",
        mode=mode,
        max_cores=params.max_cores,
        cell_min_instance=params.rctd_cell_min_instance,
        ref_umi_min=params.rctd_ref_umi_min,
        umi_min=params.rctd_umi_min,
        umi_min_sigma=params.rctd_umi_min_sigma,
        confidence_threshold=params.rctd_confidence_threshold,
        doublet_threshold=params.rctd_doublet_threshold,
        warnings=warnings_out,
    )
    return proportions, stats
