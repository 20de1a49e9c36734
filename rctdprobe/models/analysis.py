"""
Analysis result models for the weight-interpretation experiment.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel

Verdict = Literal["rna_proportion", "cell_fraction", "ambiguous", "inconclusive"]


class HypothesisComparison(BaseModel):
    """Distance between the weight matrix and one hypothesis matrix"""

    hypothesis: str
    tolerance: float
    max_abs_diff: float
    mean_abs_diff: float
    spot_max_abs_diff: Dict[str, float]  # Per spot, max over cell types
    spots_outside_tolerance: List[str]
    matches: bool


class NormalizationSummary(BaseModel):
    """How far the weight rows are from summing to one"""

    row_sums: Dict[str, float]
    max_deviation: float
    mean_deviation: float


class InterpretationResult(BaseModel):
    """Outcome of comparing the weights with both hypotheses

    Attributes:
        verdict: Hypothesis the weights follow; 'ambiguous' when both match,
                 'inconclusive' when neither does.
        compared_normalized: Whether row-normalized weights were compared.
        skewed_spots: Spots where the two hypotheses differ the most.
        skewed_spots_separate: True when none of the skewed spots match the
                               cell-fraction hypothesis within tolerance.
    """

    verdict: Verdict
    compared_normalized: bool
    comparisons: Dict[str, HypothesisComparison]
    normalization: NormalizationSummary
    skewed_spots: List[str]
    skewed_spots_separate: bool


class DeconvolutionResult(BaseModel):
    """Result of spatial deconvolution"""

    method: str
    cell_types: List[str]
    n_cell_types: int
    n_spots: int
    statistics: Dict[str, Any]  # Statistics about the deconvolution results


class ExperimentSummary(BaseModel):
    """Serializable summary of one run, suitable for JSON export"""

    deconvolution: DeconvolutionResult
    interpretation: InterpretationResult
    archetype_totals: Dict[str, float]
    weights: Dict[str, Dict[str, Optional[float]]]
    cell_fraction: Dict[str, Dict[str, float]]
    rna_proportion: Dict[str, Dict[str, float]]
    normalized_weights: Dict[str, Dict[str, Optional[float]]]
    environment: Optional[Dict[str, Any]] = None
