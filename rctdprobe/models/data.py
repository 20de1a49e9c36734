"""
Parameter models for the weight-interpretation experiment.
"""

from __future__ import annotations

from typing import Annotated, List, Literal, Optional, Tuple

from pydantic import BaseModel, Field, model_validator
from typing_extensions import Self

PositiveCount = Annotated[int, Field(gt=0)]


class ScenarioParameters(BaseModel):
    """Synthetic scenario: two archetypes, a replicated reference, mixed spots"""

    type_a_label: str = "typeA"
    type_b_label: str = "typeB"
    n_genes_per_group: Annotated[int, Field(gt=0, le=100)] = (
        5  # Genes per group (markers A, markers B, shared housekeeping)
    )
    marker_scale: Annotated[int, Field(gt=0)] = (
        10  # Type B marker counts are marker_scale * (1..n), A markers are 1..n
    )
    n_replicates: Annotated[int, Field(gt=0)] = (
        2  # Reference cells per type. RCTD needs >= CELL_MIN_INSTANCE
    )
    mixtures: List[Tuple[PositiveCount, PositiveCount]] = Field(
        default_factory=lambda: [(1, 1), (1, 3), (3, 1), (3, 3)]
    )  # (cells of type A, cells of type B) per spot
    coordinates: Optional[List[Tuple[float, float]]] = (
        None  # Spot coordinates; cosmetic, a unit grid is used when omitted
    )

    @model_validator(mode="after")
    def _check_scenario(self) -> Self:
        if self.type_a_label == self.type_b_label:
            raise ValueError("type_a_label and type_b_label must differ")
        if not self.mixtures:
            raise ValueError("at least one mixture is required")
        if self.coordinates is not None:
            if len(self.coordinates) != len(self.mixtures):
                raise ValueError(
                    f"{len(self.coordinates)} coordinates given for "
                    f"{len(self.mixtures)} spots"
                )
            if len(set(self.coordinates)) != len(self.coordinates):
                raise ValueError("spot coordinates must be distinct")
        return self

    @property
    def cell_types(self) -> List[str]:
        return [self.type_a_label, self.type_b_label]


class DeconvolutionParameters(BaseModel):
    """Spatial deconvolution parameters model"""

    method: Literal["rctd", "nnls"] = "rctd"
    cell_type_key: str = "cell_type"  # Key in reference.obs with cell type labels
    min_common_genes: Annotated[int, Field(gt=0)] = 10
    validate_preconditions: bool = (
        True  # Check library thresholds in Python before calling R
    )

    # RCTD specific parameters
    rctd_mode: Literal["full", "doublet", "multi"] = "full"
    max_cores: Annotated[int, Field(gt=0, le=16)] = 1  # One worker for tiny data
    rctd_cell_min_instance: Annotated[int, Field(gt=0)] = (
        2  # CELL_MIN_INSTANCE, library default 25
    )
    rctd_ref_umi_min: Annotated[int, Field(ge=0)] = (
        10  # Reference(min_UMI), library default 100
    )
    rctd_umi_min: Annotated[int, Field(ge=0)] = 10  # UMI_min, library default 100
    rctd_umi_min_sigma: Annotated[int, Field(ge=0)] = (
        10  # UMI_min_sigma, library default 300
    )
    rctd_counts_min: Annotated[int, Field(ge=0)] = 10  # counts_MIN, library default 10
    rctd_confidence_threshold: Annotated[float, Field(gt=0)] = 10.0
    rctd_doublet_threshold: Annotated[float, Field(gt=0)] = 25.0
    rctd_max_multi_types: Annotated[int, Field(gt=0)] = 4
    rctd_gene_cutoff: Optional[Annotated[float, Field(ge=0)]] = None
    rctd_fc_cutoff: Optional[Annotated[float, Field(ge=0)]] = None
    rctd_gene_cutoff_reg: Optional[Annotated[float, Field(ge=0)]] = None
    rctd_fc_cutoff_reg: Optional[Annotated[float, Field(ge=0)]] = None
    quiet: bool = True  # Swallow R console chatter


class ComparisonParameters(BaseModel):
    """How the weight matrix is compared with the two hypotheses"""

    tolerance: Annotated[float, Field(gt=0, lt=1)] = 0.05  # Absolute, per entry
    compare_normalized: bool = (
        False  # Compare row-normalized weights instead of raw weights
    )
    n_skewed_spots: Annotated[int, Field(ge=0)] = (
        2  # Most skewed spots that must separate the two hypotheses
    )


class ExperimentParameters(BaseModel):
    """Complete configuration of one weight-interpretation run"""

    scenario: ScenarioParameters = Field(default_factory=ScenarioParameters)
    deconvolution: DeconvolutionParameters = Field(
        default_factory=DeconvolutionParameters
    )
    comparison: ComparisonParameters = Field(default_factory=ComparisonParameters)
