"""
Synthetic data for probing what a deconvolution weight matrix means.

Two archetype cell types share a gene namespace made of three groups:
markers of type A, markers of type B (scaled up so B carries far more RNA
per cell) and housekeeping genes with identical counts in both types.
The reference replicates each archetype; every spatial spot is an integer
mixture of the archetypes with known cell counts.
"""

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Tuple

import anndata as ad
import numpy as np
import pandas as pd
import scanpy as sc

from ..models.data import ScenarioParameters
from ..utils.adata_utils import (
    CELL_COUNTS_KEY,
    CELL_TYPE_KEY,
    COUNTS_LAYER,
    NUMI_KEY,
    SPATIAL_KEY,
)
from ..utils.exceptions import DataCompatibilityError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyntheticScenario:
    """Archetypes plus the reference and spatial datasets built from them."""

    vector_a: pd.Series
    vector_b: pd.Series
    reference: ad.AnnData
    spatial: ad.AnnData

    @property
    def cell_counts(self) -> pd.DataFrame:
        """Known mixing coefficients, spots x cell types."""
        return self.spatial.obsm[CELL_COUNTS_KEY]


def gene_names(n_per_group: int = 5) -> List[str]:
    """Gene ids: a1..an (A markers), b1..bn (B markers), c1..cn (shared)."""
    return [
        f"{prefix}{i}" for prefix in ("a", "b", "c") for i in range(1, n_per_group + 1)
    ]


def build_archetypes(
    params: Optional[ScenarioParameters] = None,
) -> Tuple[pd.Series, pd.Series]:
    """Expression vectors of the two idealized cell types.

    With the defaults, type A sums to 30 and type B to 165.
    """
    params = params or ScenarioParameters()
    n = params.n_genes_per_group
    ramp = np.arange(1, n + 1, dtype=np.int64)
    zeros = np.zeros(n, dtype=np.int64)
    genes = gene_names(n)

    vector_a = pd.Series(
        np.concatenate([ramp, zeros, ramp]), index=genes, name=params.type_a_label
    )
    vector_b = pd.Series(
        np.concatenate([zeros, ramp * params.marker_scale, ramp]),
        index=genes,
        name=params.type_b_label,
    )
    return vector_a, vector_b


def _check_same_genes(vector_a: pd.Series, vector_b: pd.Series) -> None:
    if not vector_a.index.equals(vector_b.index):
        raise DataCompatibilityError(
            "Archetype vectors must share the same gene index "
            f"({len(vector_a)} vs {len(vector_b)} genes)"
        )


def _annotate_totals(adata: ad.AnnData) -> None:
    """Store per-observation total counts in obs['nUMI']."""
    sc.pp.calculate_qc_metrics(adata, percent_top=None, log1p=False, inplace=True)
    adata.obs[NUMI_KEY] = adata.obs["total_counts"].astype(np.int64)


def build_reference(
    vector_a: pd.Series,
    vector_b: pd.Series,
    params: Optional[ScenarioParameters] = None,
    cell_type_key: str = CELL_TYPE_KEY,
) -> ad.AnnData:
    """Reference dataset: n_replicates identical cells per archetype.

    Labels are stored categorical in obs[cell_type_key].

    A single replicate is allowed here on purpose; the deconvolution stage
    is where the minimum-instance precondition is enforced.
    """
    params = params or ScenarioParameters()
    _check_same_genes(vector_a, vector_b)

    rows, labels, names = [], [], []
    for label, vector in ((params.type_a_label, vector_a), (params.type_b_label, vector_b)):
        for i in range(params.n_replicates):
            rows.append(vector.to_numpy())
            labels.append(label)
            names.append(f"{label}_cell{i + 1}")

    X = np.vstack(rows).astype(np.int64)
    obs = pd.DataFrame(
        {cell_type_key: pd.Categorical(labels, categories=params.cell_types)},
        index=names,
    )
    adata = ad.AnnData(X=X, obs=obs, var=pd.DataFrame(index=vector_a.index.copy()))
    adata.layers[COUNTS_LAYER] = X.copy()
    _annotate_totals(adata)

    logger.info(
        f"Reference: {adata.n_obs} cells x {adata.n_vars} genes, "
        f"{params.n_replicates} per type"
    )
    return adata


def _grid_coordinates(n_spots: int) -> np.ndarray:
    side = math.ceil(math.sqrt(n_spots))
    return np.array(
        [(float(i % side), float(i // side)) for i in range(n_spots)], dtype=np.float64
    )


def build_spatial(
    vector_a: pd.Series,
    vector_b: pd.Series,
    params: Optional[ScenarioParameters] = None,
) -> ad.AnnData:
    """Spatial dataset: one spot per mixture, row = nA * A + nB * B."""
    params = params or ScenarioParameters()
    _check_same_genes(vector_a, vector_b)

    counts = np.array(params.mixtures, dtype=np.int64)
    archetypes = np.vstack([vector_a.to_numpy(), vector_b.to_numpy()])
    X = counts @ archetypes

    spot_names = [f"spot{i + 1}" for i in range(len(counts))]
    if params.coordinates is not None:
        coords = np.asarray(params.coordinates, dtype=np.float64)
    else:
        coords = _grid_coordinates(len(counts))

    adata = ad.AnnData(
        X=X,
        obs=pd.DataFrame(index=spot_names),
        var=pd.DataFrame(index=vector_a.index.copy()),
    )
    adata.layers[COUNTS_LAYER] = X.copy()
    adata.obsm[SPATIAL_KEY] = coords
    adata.obsm[CELL_COUNTS_KEY] = pd.DataFrame(
        counts, index=spot_names, columns=params.cell_types
    )
    _annotate_totals(adata)

    logger.info(
        f"Spatial: {adata.n_obs} spots x {adata.n_vars} genes, "
        f"nUMI {adata.obs[NUMI_KEY].tolist()}"
    )
    return adata


def build_scenario(
    params: Optional[ScenarioParameters] = None,
    cell_type_key: str = CELL_TYPE_KEY,
) -> SyntheticScenario:
    """Build archetypes, reference and spatial data in one call."""
    params = params or ScenarioParameters()
    vector_a, vector_b = build_archetypes(params)
    return SyntheticScenario(
        vector_a=vector_a,
        vector_b=vector_b,
        reference=build_reference(vector_a, vector_b, params, cell_type_key),
        spatial=build_spatial(vector_a, vector_b, params),
    )
