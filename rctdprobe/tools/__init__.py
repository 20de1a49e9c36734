"""
Analysis tools: synthetic data, deconvolution backends, interpretation.
"""

from .deconvolution import deconvolve_spatial_data
from .experiment import ExperimentResult, run_weight_interpretation
from .interpretation import (
    archetype_totals,
    cell_fraction_hypothesis,
    compare_to_hypothesis,
    interpret_weights,
    measure_normalization,
    normalize_weights,
    rna_proportion_hypothesis,
)
from .synthetic import (
    SyntheticScenario,
    build_archetypes,
    build_reference,
    build_scenario,
    build_spatial,
)
