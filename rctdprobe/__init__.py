"""
rctdprobe

Runs RCTD on a tiny synthetic spatial dataset to find out what its weight
matrix means: cell-count fractions or RNA-molecule proportions per spot.
"""

__version__ = "0.1.0"

from .models.data import ExperimentParameters  # noqa: E402
from .tools.experiment import ExperimentResult, run_weight_interpretation  # noqa: E402

__all__ = ["ExperimentParameters", "ExperimentResult", "run_weight_interpretation"]
