"""
Data models for rctdprobe.
"""

from .analysis import (
    DeconvolutionResult,
    ExperimentSummary,
    HypothesisComparison,
    InterpretationResult,
    NormalizationSummary,
)
from .data import (
    ComparisonParameters,
    DeconvolutionParameters,
    ExperimentParameters,
    ScenarioParameters,
)
