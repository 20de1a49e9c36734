"""
Interpretation of a deconvolution weight matrix.

Two ground-truth matrices are derived from the known mixing coefficients:

- cell fraction:   (nA, nB) / (nA + nB)
- RNA proportion:  (nA*TA, nB*TB) / (nA*TA + nB*TB), with TA, TB the total
                   counts of one cell of each archetype

The weight matrix is compared with both, entry by entry, under an absolute
tolerance. The weights are only near-normalized, so the comparison can run on
the raw rows or on row-normalized ones.
"""

import logging
from typing import Dict, List, Mapping, Optional, Union

import anndata as ad
import numpy as np
import pandas as pd

from ..models.analysis import (
    HypothesisComparison,
    InterpretationResult,
    NormalizationSummary,
)
from ..models.data import ComparisonParameters
from ..utils.adata_utils import CELL_TYPE_KEY, NUMI_KEY, row_totals, validate_obs_column
from ..utils.exceptions import DataCompatibilityError, DataError

logger = logging.getLogger(__name__)

CELL_FRACTION = "cell_fraction"
RNA_PROPORTION = "rna_proportion"


def _validate_cell_counts(cell_counts: pd.DataFrame) -> pd.DataFrame:
    if cell_counts.empty:
        raise DataError("Cell counts table is empty")
    values = cell_counts.to_numpy(dtype=np.float64)
    if not np.isfinite(values).all() or (values < 0).any():
        raise DataError("Cell counts must be finite and non-negative")
    if (values.sum(axis=1) <= 0).any():
        raise DataError("Every spot needs at least one cell")
    return cell_counts.astype(np.float64)


def cell_fraction_hypothesis(cell_counts: pd.DataFrame) -> pd.DataFrame:
    """Fraction of cells of each type per spot."""
    counts = _validate_cell_counts(cell_counts)
    return counts.div(counts.sum(axis=1), axis=0)


def rna_proportion_hypothesis(
    cell_counts: pd.DataFrame,
    totals: Union[pd.Series, Mapping[str, float]],
) -> pd.DataFrame:
    """Fraction of RNA molecules contributed by each type per spot.

    Args:
        cell_counts: Spots x cell types, number of cells of each type
        totals: Total counts of a single cell of each type
    """
    counts = _validate_cell_counts(cell_counts)
    totals = pd.Series(totals, dtype=np.float64)

    missing = [ct for ct in counts.columns if ct not in totals.index]
    if missing:
        raise DataCompatibilityError(
            f"No total RNA content for cell types: {', '.join(map(str, missing))}"
        )
    totals = totals.reindex(counts.columns)
    if (totals <= 0).any():
        raise DataError("Cell type totals must be positive")

    rna = counts.mul(totals, axis=1)
    return rna.div(rna.sum(axis=1), axis=0)


def archetype_totals(
    reference: ad.AnnData, cell_type_key: str = CELL_TYPE_KEY
) -> pd.Series:
    """Mean total counts of one reference cell per cell type."""
    validate_obs_column(reference, cell_type_key, "Cell type key")
    if NUMI_KEY in reference.obs:
        numi = reference.obs[NUMI_KEY].astype(np.float64)
    else:
        numi = row_totals(reference).astype(np.float64)
    labels = reference.obs[cell_type_key].astype(str)
    return numi.groupby(labels).mean().rename("total_counts")


def normalize_weights(weights: pd.DataFrame) -> pd.DataFrame:
    """Row-normalized copy; rows summing to zero become NaN."""
    row_sums = weights.sum(axis=1, skipna=True)
    return weights.div(row_sums.where(row_sums > 0), axis=0)


def measure_normalization(weights: pd.DataFrame) -> NormalizationSummary:
    """How far each weight row is from summing to exactly one."""
    row_sums = weights.sum(axis=1, skipna=True)
    deviation = (row_sums - 1.0).abs()
    return NormalizationSummary(
        row_sums={str(k): float(v) for k, v in row_sums.items()},
        max_deviation=float(deviation.max()) if len(deviation) else 0.0,
        mean_deviation=float(deviation.mean()) if len(deviation) else 0.0,
    )


def _align(weights: pd.DataFrame, hypothesis: pd.DataFrame) -> pd.DataFrame:
    if weights.shape != hypothesis.shape:
        raise DataCompatibilityError(
            f"Dimension mismatch: weights {weights.shape} vs "
            f"hypothesis {hypothesis.shape}"
        )
    if set(weights.index) != set(hypothesis.index) or set(weights.columns) != set(
        hypothesis.columns
    ):
        raise DataCompatibilityError(
            "Spot or cell type labels differ between weights and hypothesis: "
            f"{list(weights.columns)} vs {list(hypothesis.columns)}"
        )
    return hypothesis.reindex(index=weights.index, columns=weights.columns)


def compare_to_hypothesis(
    weights: pd.DataFrame,
    hypothesis: pd.DataFrame,
    tolerance: float = 0.05,
    name: str = "hypothesis",
) -> HypothesisComparison:
    """Absolute, per-entry comparison of weights with one hypothesis.

    A spot with any NaN weight never matches.
    """
    expected = _align(weights, hypothesis)
    diff = (weights.astype(np.float64) - expected).abs()
    spot_max = diff.max(axis=1, skipna=False)

    outside = [
        str(spot)
        for spot, value in spot_max.items()
        if np.isnan(value) or value > tolerance
    ]
    finite = diff.to_numpy()[np.isfinite(diff.to_numpy())]

    return HypothesisComparison(
        hypothesis=name,
        tolerance=tolerance,
        max_abs_diff=float(finite.max()) if finite.size else float("nan"),
        mean_abs_diff=float(finite.mean()) if finite.size else float("nan"),
        spot_max_abs_diff={str(k): float(v) for k, v in spot_max.items()},
        spots_outside_tolerance=outside,
        matches=not outside,
    )


def most_skewed_spots(cell_fraction: pd.DataFrame, n: int) -> List[str]:
    """Spots whose cell composition departs most from an even mix."""
    if n <= 0:
        return []
    even = 1.0 / cell_fraction.shape[1]
    skew = (cell_fraction - even).abs().max(axis=1)
    ranked = skew.sort_values(ascending=False, kind="stable")
    ranked = ranked[ranked > 0]
    return [str(spot) for spot in ranked.index[:n]]


def interpret_weights(
    weights: pd.DataFrame,
    cell_fraction: pd.DataFrame,
    rna_proportion: pd.DataFrame,
    params: Optional[ComparisonParameters] = None,
) -> InterpretationResult:
    """Decide which hypothesis the weight matrix follows.

    Returns:
        InterpretationResult with verdict 'rna_proportion', 'cell_fraction',
        'ambiguous' (both match) or 'inconclusive' (neither matches)

    Raises:
        DataCompatibilityError: If the matrices do not share shape and labels
    """
    params = params or ComparisonParameters()
    normalization = measure_normalization(weights)
    compared = normalize_weights(weights) if params.compare_normalized else weights

    comparisons: Dict[str, HypothesisComparison] = {
        CELL_FRACTION: compare_to_hypothesis(
            compared, cell_fraction, params.tolerance, CELL_FRACTION
        ),
        RNA_PROPORTION: compare_to_hypothesis(
            compared, rna_proportion, params.tolerance, RNA_PROPORTION
        ),
    }

    cell_match = comparisons[CELL_FRACTION].matches
    rna_match = comparisons[RNA_PROPORTION].matches
    if cell_match and rna_match:
        verdict = "ambiguous"
    elif rna_match:
        verdict = RNA_PROPORTION
    elif cell_match:
        verdict = CELL_FRACTION
    else:
        verdict = "inconclusive"

    skewed = most_skewed_spots(
        cell_fraction.reindex(index=weights.index, columns=weights.columns),
        params.n_skewed_spots,
    )
    outside_cell = set(comparisons[CELL_FRACTION].spots_outside_tolerance)
    separate = bool(skewed) and all(spot in outside_cell for spot in skewed)

    logger.info(
        f"Verdict: {verdict} (max |diff| cell_fraction="
        f"{comparisons[CELL_FRACTION].max_abs_diff:.4f}, rna_proportion="
        f"{comparisons[RNA_PROPORTION].max_abs_diff:.4f}, "
        f"max row-sum deviation={normalization.max_deviation:.4f})"
    )

    return InterpretationResult(
        verdict=verdict,
        compared_normalized=params.compare_normalized,
        comparisons=comparisons,
        normalization=normalization,
        skewed_spots=skewed,
        skewed_spots_separate=separate,
    )
